"""
Command-line document scanner.

Allows users to:
- Scan one or more page photos into a cropped, enhanced document image
- Choose an enhancement preset (document, black & white, ...)
- Save the edge map used for detection
- Run OCR on the result (Tesseract or Mistral)
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from .config import ScannerConfig
from .enhance import PRESETS
from .imaging import Raster, load_image, save_image
from .ocr import create_ocr_engine
from .rectify import combine_pages
from .scanner import ScanResult, scan_image


def print_header() -> None:
    """Print CLI header."""
    print("\n" + "=" * 60)
    print("📄 Document Scanner")
    print("=" * 60 + "\n")


def print_separator() -> None:
    """Print section separator."""
    print("\n" + "-" * 60 + "\n")


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        description="Document Scanner - detect, straighten and enhance photographed pages"
    )
    parser.add_argument(
        "pages",
        nargs="+",
        help="Photo(s) of the document, one per page"
    )
    parser.add_argument(
        "-o", "--output",
        default=None,
        help="Output image path (default: <first page>_scan.jpg)"
    )
    parser.add_argument(
        "--preset",
        choices=sorted(PRESETS) + ["none"],
        default="document",
        help="Enhancement preset (default: document)"
    )
    parser.add_argument(
        "--no-crop",
        action="store_true",
        help="Skip document detection and perspective correction"
    )
    parser.add_argument(
        "--rotate",
        type=float,
        default=0,
        help="Rotate each page clockwise by this many degrees"
    )
    parser.add_argument(
        "--edges",
        default=None,
        help="Save the detection edge map of the first page to this path"
    )
    parser.add_argument(
        "--ocr",
        choices=["none", "tesseract", "mistral"],
        default="none",
        help="Extract text from the result (default: none)"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show pipeline log messages"
    )
    return parser


def default_output_path(first_page: str) -> str:
    path = Path(first_page)
    return str(path.with_name(f"{path.stem}_scan.jpg"))


def report_page(index: int, source: str, result: ScanResult) -> None:
    """Print a one-line summary of a scanned page."""
    height, width = result.image.shape[:2]
    detection = result.detection

    if result.cropped and detection is not None:
        status = f"✅ Document detected (confidence {detection.confidence:.2f})"
    elif result.cropped:
        status = "✅ Cropped to supplied corners"
    elif detection is not None and detection.corners is not None:
        status = f"⚠️  Low confidence ({detection.confidence:.2f}), kept full photo"
    elif detection is not None:
        status = "⚠️  No document edges found, kept full photo"
    else:
        status = "Crop skipped"

    print(f"  Page {index}: {source} -> {width}x{height}  {status}")


def run_ocr(image: Raster, engine_name: str, config: ScannerConfig) -> None:
    """Extract and print text from the scanned image."""
    print_separator()
    print("📖 Extracting text...")

    engine = create_ocr_engine(
        engine_name,
        language=config.ocr_language,
        api_key=os.getenv("MISTRAL_API_KEY"),
    )
    text, confidence = engine.extract_text_with_confidence(image)

    if not text.strip():
        print("❌ No text extracted from document")
        return

    print(f"✅ Extracted {len(text)} characters (confidence {confidence:.0f})")
    print(f"   Preview: {text[:200]}...")


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    # Load environment variables from .env file if it exists
    load_dotenv()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        config = ScannerConfig.from_env()
    except ValueError as e:
        print(f"❌ Invalid configuration: {e}")
        sys.exit(1)

    settings = None if args.preset == "none" else PRESETS[args.preset]
    output_path: str = args.output or default_output_path(args.pages[0])

    print_header()
    print(f"📄 Scanning {len(args.pages)} page(s), preset: {args.preset}")

    results: list[ScanResult] = []
    for index, source in enumerate(args.pages, start=1):
        try:
            image = load_image(source)
            result = scan_image(
                image,
                settings=settings,
                config=config,
                rotation=args.rotate,
                auto_crop=not args.no_crop,
            )
        except (FileNotFoundError, ValueError) as e:
            print(f"❌ Error scanning {source}: {e}")
            sys.exit(1)

        report_page(index, source, result)
        results.append(result)

    first_detection = results[0].detection
    if args.edges:
        if first_detection is not None and first_detection.edge_image is not None:
            save_image(first_detection.edge_image, args.edges)
            print(f"  Edge map saved to {args.edges}")
        else:
            print("⚠️  No edge map available (detection was skipped)")

    if len(results) > 1:
        final = combine_pages([r.image for r in results], gap=config.page_gap)
    else:
        final = results[0].image

    try:
        save_image(final, output_path, quality=config.jpeg_quality)
    except (OSError, ValueError) as e:
        print(f"❌ Error saving {output_path}: {e}")
        sys.exit(1)

    print_separator()
    print(f"💾 Saved {final.shape[1]}x{final.shape[0]} image to {output_path}")

    if args.ocr != "none":
        try:
            run_ocr(final, args.ocr, config)
        except Exception as e:
            print(f"❌ Error extracting text: {e}")
            sys.exit(1)


if __name__ == "__main__":
    main()
