"""
Tests for the command-line entry point (main.py).
"""

import json

import pytest

from main import main
from print_quote.project_config import CONFIG_FILENAME, QuoteConfig
from tests.conftest import cube_obj, make_binary_stl, make_cube_triangles


@pytest.fixture
def order_dir(tmp_path, monkeypatch):
    """Upload directory with a small STL and OBJ; cwd and home kept empty."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    uploads = tmp_path / "uploads"
    uploads.mkdir()
    (uploads / "cube.stl").write_bytes(make_binary_stl(make_cube_triangles()))
    (uploads / "knob.obj").write_text(cube_obj())
    return uploads


class TestMain:
    """Tests for main()."""

    def test_single_file_summary(self, order_dir, capsys):
        """Test text quote for one cube."""
        assert main([str(order_dir / "cube.stl")]) == 0

        out = capsys.readouterr().out
        assert "cube.stl" in out
        assert "Total:         75 kr" in out

    def test_json_output(self, order_dir, capsys):
        """Test JSON quote for two files."""
        code = main([str(order_dir / "cube.stl"), str(order_dir / "knob.obj"),
                     "--json", "--material", "PETG", "--copies", "2"])

        assert code == 0
        data = json.loads(capsys.readouterr().out)
        items = data["breakdown"]["items"]
        assert [i["name"] for i in items] == ["cube.stl", "knob.obj"]
        assert all(i["material"] == "PETG" and i["copies"] == 2 for i in items)
        assert data["breakdown"]["file_fee"] == 10

    def test_invalid_copies_become_one(self, order_dir, capsys):
        """Test a junk copy count is quoted as one copy."""
        assert main([str(order_dir / "cube.stl"), "--json", "-n", "lots"]) == 0
        assert json.loads(capsys.readouterr().out)["breakdown"]["items"][0]["copies"] == 1

    def test_sequential(self, order_dir, capsys):
        """Test --sequential gives the same total."""
        assert main([str(order_dir / "cube.stl"), str(order_dir / "knob.obj"), "--sequential"]) == 0
        # 50 start + 2 * 3 material + 10 extra file + 22 shipping (40 g)
        assert "Total:         88 kr" in capsys.readouterr().out

    def test_config_next_to_uploads(self, order_dir, capsys):
        """Test .quote.json in the upload directory is used."""
        (order_dir / CONFIG_FILENAME).write_text(json.dumps({"pricing": {"base_fee": 0}}))

        assert main([str(order_dir / "cube.stl"), "--json"]) == 0
        assert json.loads(capsys.readouterr().out)["breakdown"]["total"] == 25

    def test_env_override(self, order_dir, capsys, monkeypatch):
        """Test START_FEE environment override."""
        monkeypatch.setenv("START_FEE", "100")

        assert main([str(order_dir / "cube.stl"), "--json"]) == 0
        assert json.loads(capsys.readouterr().out)["breakdown"]["total"] == 125

    def test_missing_file(self, order_dir):
        """Test unreadable file exits with 1."""
        assert main([str(order_dir / "missing.stl")]) == 1

    def test_no_files(self, order_dir):
        """Test no arguments exits with 1."""
        assert main([]) == 1

    def test_bad_config_value(self, order_dir, tmp_path):
        """Test out-of-range config exits with 1."""
        config = tmp_path / "bad.json"
        config.write_text(json.dumps({"estimation": {"fill_factor": 5}}))

        assert main([str(order_dir / "cube.stl"), "--config", str(config)]) == 1

    def test_validate_accepts_good_upload(self, order_dir):
        """Test --validate passes a small cube."""
        assert main([str(order_dir / "cube.stl"), "--validate"]) == 0

    def test_validate_rejects_extension(self, order_dir, capsys):
        """Test --validate rejects unsupported files before quoting."""
        other = order_dir / "part.3mf"
        other.write_bytes(b"PK\x03\x04")

        assert main([str(other), "--validate"]) == 1
        assert capsys.readouterr().out == ""

    def test_unsupported_without_validation_is_quoted(self, order_dir, capsys):
        """Test unsupported files are quoted at the minimum weight without --validate."""
        other = order_dir / "part.3mf"
        other.write_bytes(b"PK\x03\x04")

        assert main([str(other), "--json"]) == 0
        assert json.loads(capsys.readouterr().out)["estimates"][0]["grams"] == 5

    def test_validate_rejects_large_model(self, order_dir):
        """Test --validate rejects models larger than the build volume."""
        big = order_dir / "big.stl"
        big.write_bytes(make_binary_stl(make_cube_triangles(size=300.0)))

        assert main([str(big), "--validate"]) == 1

    def test_unexpected_error(self, order_dir, monkeypatch):
        """Test unexpected failures exit with 2."""
        def explode(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr("main.quote_order", explode)
        assert main([str(order_dir / "cube.stl")]) == 2

    def test_init_config(self, tmp_path):
        """Test --init-config writes a loadable sample."""
        path = tmp_path / CONFIG_FILENAME

        assert main(["--init-config", str(path)]) == 0
        assert QuoteConfig.load(path) == QuoteConfig()
