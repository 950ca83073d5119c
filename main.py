"""
Entry point: price quote for 3D-printing one order of STL/OBJ files.

Usage:
    python main.py <mesh_file> [<mesh_file> ...] [--material PLA] [--copies N]

Examples:
    python main.py bracket.stl
    python main.py bracket.stl knob.obj --material PETG --copies 2
    python main.py bracket.stl --json --validate
    python main.py --init-config .quote.json
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from print_quote.batch import UploadedItem, quote_order
from print_quote.io.validator import (
    UploadValidationError,
    ValidationReport,
    validate_dimensions,
    validate_uploads,
)
from print_quote.logging_config import configure_default_logging
from print_quote.materials import Material
from print_quote.project_config import ConfigError, create_sample_config, load_config

logger = logging.getLogger("print_quote.cli")


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Quote a 3D-print order from STL/OBJ files.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "files",
        nargs="*",
        help="Mesh files, one order line each.",
    )
    parser.add_argument(
        "--material", "-m",
        default=Material.PLA.value,
        help=f"Material for every file ({', '.join(m.value for m in Material)}; default: PLA).",
    )
    parser.add_argument(
        "--color",
        default="white",
        help="Color for every file (default: white).",
    )
    parser.add_argument(
        "--copies", "-n",
        default="1",
        help="Copies of every file (default: 1).",
    )
    parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to a .quote.json configuration file.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="as_json",
        help="Print the quote as JSON.",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Reject unsupported, oversized or too large models before pricing.",
    )
    parser.add_argument(
        "--sequential",
        action="store_true",
        help="Estimate files one by one instead of on a thread pool.",
    )
    parser.add_argument(
        "--jobs", "-j",
        type=int,
        default=None,
        dest="max_workers",
        help="Maximum parallel estimations (default: from config).",
    )
    parser.add_argument(
        "--init-config",
        default=None,
        dest="init_config",
        metavar="PATH",
        help="Write a sample configuration file and exit.",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug logging.",
    )
    return parser.parse_args(argv)


def _read_uploads(paths: List[Path], args: argparse.Namespace) -> List[UploadedItem]:
    return [
        UploadedItem.from_path(path, material=args.material, color=args.color, copies=args.copies)
        for path in paths
    ]


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    configure_default_logging(verbose=args.verbose)

    if args.init_config:
        create_sample_config(args.init_config)
        return 0
    if not args.files:
        logger.critical("No mesh files given.")
        return 1

    paths = [Path(f) for f in args.files]

    try:
        config = load_config(
            explicit_config=args.config,
            search_dirs=sorted({p.parent for p in paths}),
        )

        if args.validate:
            validate_uploads(
                ((p.name, p.stat().st_size) for p in paths), config.uploads
            ).raise_for_errors()

        uploads = _read_uploads(paths, args)
        quote = quote_order(
            uploads,
            config=config,
            parallel=not args.sequential,
            max_workers=args.max_workers,
        )

        if args.validate:
            report = ValidationReport()
            for est in quote.estimates:
                report.extend(validate_dimensions(
                    est.result.dimensions_mm, est.upload.filename, config.uploads))
            report.raise_for_errors()

    except UploadValidationError as exc:
        logger.critical("Upload rejected: %s", exc)
        return 1
    except OSError as exc:
        logger.critical("Cannot read mesh file: %s", exc)
        return 1
    except ConfigError as exc:
        logger.critical("Configuration error: %s", exc)
        return 1
    except Exception as exc:
        logger.critical("Unexpected error: %s", exc, exc_info=True)
        return 2

    if args.as_json:
        print(json.dumps(quote.to_dict(), indent=2, ensure_ascii=False))
    else:
        print(quote.summary())
    return 0


if __name__ == "__main__":
    sys.exit(main())
