"""
Command Line Interface for text_ocr
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from .errors import OCRError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="text-ocr",
        description="Detect and recognize text in an image",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Print one JSON object per text line
  text-ocr receipt.jpg

  # Fix upside-down lines and draw the result
  text-ocr scan.png --use-angle-cls --draw scan_boxes.png

  # Local models on GPU 1
  text-ocr page.png --det-model-dir models/det --rec-model-dir models/rec \\
      --rec-char-dict-path models/dict.txt --use-gpu --gpu-id 1
        """,
    )

    parser.add_argument("input", nargs="?", help="Input image path")
    parser.add_argument("--det-model-dir", default=None, help="Detection model file or directory")
    parser.add_argument("--cls-model-dir", default=None, help="Classification model file or directory")
    parser.add_argument("--rec-model-dir", default=None, help="Recognition model file or directory")
    parser.add_argument("--rec-char-dict-path", default=None, help="Character dictionary for recognition")
    parser.add_argument("--use-angle-cls", action="store_true", help="Correct upside-down text lines")

    # Engine options
    parser.add_argument("--use-gpu", action="store_true", help="Run inference on CUDA")
    parser.add_argument("--gpu-id", type=int, default=0, help="CUDA device index (default: 0)")
    parser.add_argument("--gpu-mem", type=int, default=1000, help="GPU memory limit in MB (default: 1000)")
    parser.add_argument("--num-threads", type=int, default=6, help="CPU inference threads (default: 6)")
    parser.add_argument("--use-mkldnn", action="store_true", help="Use the oneDNN provider on CPU")
    parser.add_argument("--max-workers", type=int, default=1, help="Threads for cropping regions (default: 1)")

    # Output
    parser.add_argument(
        "--drop-score",
        type=float,
        default=0.0,
        help="Hide results scoring below this (default: 0.0)",
    )
    parser.add_argument("--draw", default=None, help="Write an annotated copy of the image here")
    parser.add_argument("--font-path", default=None, help="TrueType font used by --draw")
    parser.add_argument("--model-status", action="store_true", help="Show which default models are cached and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv=None) -> int:
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.model_status:
        from .models import registry
        print(registry.status())
        return 0

    if args.input is None:
        parser.error("the following arguments are required: input")

    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Error: Input file '{args.input}' not found", file=sys.stderr)
        return 1

    import cv2

    image = cv2.imread(str(input_path), cv2.IMREAD_COLOR)
    if image is None:
        print(f"Error: Could not decode image '{args.input}'", file=sys.stderr)
        return 1

    from .pipeline import OCRPipeline

    try:
        with OCRPipeline.from_config(vars(args)) as ocr:
            results = [r for r in ocr.run(image) if r.score >= args.drop_score]
    except KeyboardInterrupt:
        print("\n\nInterrupted by user", file=sys.stderr)
        return 130
    except OCRError as e:
        print(f"\nError: {e}", file=sys.stderr)
        if args.verbose:
            logging.getLogger(__name__).exception("OCR failed")
        return 1

    for result in results:
        print(json.dumps(result.to_dict(), ensure_ascii=False))

    if args.draw:
        from .utils import draw_ocr_boxes

        annotated = draw_ocr_boxes(
            image,
            [r.bbox for r in results],
            texts=[r.text for r in results],
            font_path=args.font_path,
            drop_score=args.drop_score,
            scores=[r.score for r in results],
        )
        cv2.imwrite(args.draw, annotated)

    return 0


if __name__ == "__main__":
    sys.exit(main())
