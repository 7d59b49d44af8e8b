"""
Quick local test helper: transcodes a local image and writes the result to
disk. This bypasses the pipeline runner, the API and the storage layers.
"""

from __future__ import annotations

import argparse
from pathlib import Path

# Ensure project root is importable when running from scripts/
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from compressor_service.models import EncodingSpec
from compressor_service.transform import transcode


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Transcode a local image")
    parser.add_argument("--input", required=True, help="Path to the input image")
    parser.add_argument("--output", required=True, help="Path to write the transcoded image")
    parser.add_argument("--format", default="webp", choices=["jpeg", "webp", "png"], help="Output format")
    parser.add_argument("--quality", type=int, default=40, help="Output quality 0-100")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    input_path = Path(args.input)
    output_path = Path(args.output)
    if not input_path.exists():
        raise FileNotFoundError(f"Input file not found: {input_path}")

    image_bytes = input_path.read_bytes()
    out_bytes = transcode(image_bytes, EncodingSpec.parse(args.format, args.quality))
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(out_bytes)
    print(f"Wrote {len(image_bytes)} -> {len(out_bytes)} bytes to {output_path}")


if __name__ == "__main__":
    main()
