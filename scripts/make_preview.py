"""
Build an obscured preview of a local PDF.

Writes the leading pages of the input document to a new file, the same
way the document upload endpoint builds the free preview it stores.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from conectabio.documents import build_preview
from conectabio.errors import ValidationError

logger = logging.getLogger(__name__)


def default_output_path(source: Path) -> Path:
    return source.with_name(f"{source.stem}-preview{source.suffix or '.pdf'}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Build a PDF preview")
    parser.add_argument("source", type=Path, help="PDF to read")
    parser.add_argument(
        "--percentage",
        type=int,
        default=100,
        help="Share of pages to keep, 0-100 (rounded up)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Where to write the preview (default: <source>-preview.pdf)",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    try:
        pdf_bytes = args.source.read_bytes()
    except OSError as exc:
        logger.error("Could not read %s: %s", args.source, exc)
        return 1

    try:
        preview, total, keep = build_preview(pdf_bytes, args.percentage)
    except ValidationError as exc:
        logger.error("%s", exc.message)
        return 1

    output = args.output or default_output_path(args.source)
    output.write_bytes(preview)
    logger.info("Wrote %s: %d of %d pages", output, keep, total)
    return 0


if __name__ == "__main__":
    sys.exit(main())
