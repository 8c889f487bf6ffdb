import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from facecrop.config import ERROR_POLICIES, STRATEGIES, ConfigError, load_config, validate_config
from facecrop.detector import build_face_detector
from facecrop.pipeline import collect_image_paths, prepare_output_dir, run

logger = logging.getLogger("facecrop")

DESCRIPTION = (
    "facecrop extracts crops of all faces within a given image (.png|.jpeg|.jpg) "
    "or directory of images. Crops are either absolute (pixels) or relative to the "
    "face size, and are then optionally resized and/or filtered out by size."
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="facecrop", description=DESCRIPTION)
    parser.add_argument("input", type=Path, help="image file or directory of images")
    parser.add_argument("output", type=Path, help="directory to write crops to")
    parser.add_argument("-s", "--strategy", choices=STRATEGIES)
    parser.add_argument("-a", "--aspect-ratio", type=float, help="width:height of relative crops")
    parser.add_argument("-t", "--top-padding", type=float, help="share of the crop height above the face, 0.0-1.0")
    parser.add_argument("-p", "--proportion-of-face", type=float, help="share of the crop height taken by the face")
    parser.add_argument("--height", type=int, help="absolute crop height, or resize/filter target")
    parser.add_argument("--width", type=int, help="absolute crop width, or resize/filter target")
    parser.add_argument("-r", "--resize", action="store_true", default=None)
    parser.add_argument("-f", "--filter-by-size", action="store_true", default=None)
    parser.add_argument("--on-error", choices=ERROR_POLICIES)
    parser.add_argument("--allow-cpu", action="store_true")
    parser.add_argument("-v", "--verbose", action="count", default=0)
    return parser


def setup_logging(verbose: int) -> None:
    level = logging.DEBUG if verbose > 0 else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    overrides = {
        "strategy": args.strategy,
        "aspect_ratio": args.aspect_ratio,
        "top_padding": args.top_padding,
        "proportion_of_face": args.proportion_of_face,
        "height": args.height,
        "width": args.width,
        "resize": args.resize,
        "filter_by_size": args.filter_by_size,
        "on_error": args.on_error,
        "allow_cpu_fallback": True if args.allow_cpu else None,
    }
    try:
        config = replace(load_config(), **{k: v for k, v in overrides.items() if v is not None})
        validate_config(config)
    except ConfigError as exc:
        parser.error(str(exc))
    logger.info("Running with %s", config)

    paths = collect_image_paths(args.input)
    output_dir = prepare_output_dir(args.output)

    logger.info("Instantiating face detector")
    detector = build_face_detector(config)
    summary = run(paths, output_dir, detector, config)
    logger.info(
        "Finished processing %d/%d images, saved %d crops",
        summary.processed,
        summary.images,
        len(summary.saved),
    )
    return 1 if summary.failed else 0


if __name__ == "__main__":
    sys.exit(main())
