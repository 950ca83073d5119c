"""
Unit tests for print_quote.io.stl_reader module.

Tests:
- Binary STL reading, including truncated files
- ASCII STL reading and positional vertex grouping
- Files written by numpy-stl
"""

import numpy as np
import pytest

from print_quote.io.stl_reader import read_ascii_stl, read_binary_stl, read_stl
from tests.conftest import make_ascii_stl, make_binary_stl, make_cube_triangles


class TestReadBinarySTL:
    """Tests for read_binary_stl."""

    def test_cube(self, cube_binary_stl, cube_triangles):
        """Test all 12 cube triangles are read in order."""
        triangles = read_binary_stl(cube_binary_stl)

        assert triangles.shape == (12, 3, 3)
        assert triangles.dtype == np.float64
        np.testing.assert_array_almost_equal(triangles, cube_triangles)

    def test_numpy_stl_file(self, cube_stl_path, cube_triangles):
        """Test reading a file written by numpy-stl."""
        triangles = read_stl(cube_stl_path.read_bytes())
        np.testing.assert_array_almost_equal(triangles, cube_triangles)

    def test_zero_triangles(self):
        """Test declared count 0 gives an empty array."""
        triangles = read_binary_stl(make_binary_stl([]))
        assert triangles.shape == (0, 3, 3)

    def test_truncated_reads_complete_records_only(self, cube_triangles):
        """Test file with fewer records than declared."""
        full = make_binary_stl(cube_triangles)
        # Drop the last 4 records and half of the 5th-to-last one
        data = full[:84 + 8 * 50 - 25]

        triangles = read_binary_stl(data)

        assert triangles.shape == (7, 3, 3)
        np.testing.assert_array_almost_equal(triangles, cube_triangles[:7])

    def test_declared_count_exceeds_data(self, cube_triangles):
        """Test oversized declared count without truncating the payload."""
        data = make_binary_stl(cube_triangles, declared_count=1_000_000)
        assert len(read_binary_stl(data)) == 12

    def test_extra_trailing_bytes_ignored(self, cube_triangles):
        """Test bytes past the declared records are ignored."""
        data = make_binary_stl(cube_triangles, declared_count=3) + b"\0" * 200
        assert len(read_binary_stl(data)) == 3

    def test_preamble_only(self):
        """Test header and count but no records."""
        data = make_binary_stl([], declared_count=5)
        assert read_binary_stl(data).shape == (0, 3, 3)


class TestReadAsciiSTL:
    """Tests for read_ascii_stl."""

    def test_cube(self, cube_ascii_stl, cube_triangles):
        """Test ASCII cube matches source triangles."""
        triangles = read_ascii_stl(cube_ascii_stl)

        assert triangles.shape == (12, 3, 3)
        np.testing.assert_array_almost_equal(triangles, cube_triangles)

    def test_accepts_str(self, cube_triangles):
        """Test text input."""
        assert len(read_ascii_stl(make_ascii_stl(cube_triangles))) == 12

    def test_scientific_notation_and_signs(self):
        """Test exponent and sign forms."""
        text = (
            "solid t\n"
            "vertex 1.5e1 -2E-1 +3\n"
            "  vertex .5 0. -0.25e+2\n"
            "\tvertex 0 0 0\n"
            "endsolid t\n"
        )
        triangles = read_ascii_stl(text)

        np.testing.assert_array_almost_equal(
            triangles[0], [[15.0, -0.2, 3.0], [0.5, 0.0, -25.0], [0.0, 0.0, 0.0]]
        )

    def test_crlf_line_endings(self, cube_triangles):
        """Test Windows line endings."""
        text = make_ascii_stl(cube_triangles).replace("\n", "\r\n")
        assert len(read_ascii_stl(text)) == 12

    def test_grouping_is_positional(self):
        """Test vertices group in threes regardless of facet boundaries."""
        text = (
            "solid t\n"
            "vertex 1 0 0\n"            # stray vertex outside any facet
            "facet normal 0 0 1\n"
            " outer loop\n"
            "  vertex 0 1 0\n"
            "  vertex 0 0 1\n"
            "  vertex 9 9 9\n"
            " endloop\n"
            "endfacet\n"
            "endsolid t\n"
        )
        triangles = read_ascii_stl(text)

        assert len(triangles) == 1
        np.testing.assert_array_equal(triangles[0], [[1, 0, 0], [0, 1, 0], [0, 0, 1]])

    def test_incomplete_trailing_triangle_dropped(self):
        """Test leftover vertices do not form a triangle."""
        text = "vertex 0 0 0\nvertex 1 0 0\nvertex 0 1 0\nvertex 5 5 5\n"
        assert len(read_ascii_stl(text)) == 1

    def test_non_matching_lines_ignored(self):
        """Test garbage and keyword lines contribute nothing."""
        text = "solid x\nvertex a b c\nvertexes 1 2 3\nfacet normal 0 0 1\nendsolid\n"
        assert read_ascii_stl(text).shape == (0, 3, 3)

    def test_binary_garbage(self):
        """Test undecodable bytes do not raise."""
        assert read_ascii_stl(bytes(range(256)) * 4).shape == (0, 3, 3)


class TestReadSTL:
    """Tests for read_stl dispatch."""

    @pytest.mark.parametrize("binary", [True, False])
    def test_both_encodings(self, binary):
        """Test same cube through either encoding."""
        tris = make_cube_triangles(size=4.0, offset=(1.0, 2.0, 3.0))
        data = make_binary_stl(tris) if binary else make_ascii_stl(tris).encode()
        np.testing.assert_array_almost_equal(read_stl(data), tris)
