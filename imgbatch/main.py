"""Command line entry point.

    imgbatch remove -s SRC [-o OUT] -b [-e THRESHOLD]
    imgbatch convert -s SRC [-o OUT] [-f FORMAT]
"""

from __future__ import annotations

import argparse
import os
import sys
from functools import partial
from pathlib import Path

from imgbatch.background import remove_background_file
from imgbatch.background.flood_fill import MAX_EDGE_THRESHOLD
from imgbatch.batch_worker import BatchWorker
from imgbatch.converter import convert_image, is_target_format
from imgbatch.discovery import collect_convert_candidates, collect_image_files
from imgbatch.image_engine.decoder import PyvipsCodec
from imgbatch.logger import get_logger, setup_logger
from imgbatch.path_utils import abs_path
from imgbatch.settings_manager import SettingsManager

logger = get_logger("main")

__version__ = "1.0.0"
MAX_QUALITY = 100


def _byte(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {value!r}") from None
    if not 0 <= n <= MAX_EDGE_THRESHOLD:
        raise argparse.ArgumentTypeError(f"must be within 0..{MAX_EDGE_THRESHOLD}: {n}")
    return n


def _positive_or_zero(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {value!r}") from None
    if n < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {n}")
    return n


def _quality(value: str) -> int:
    n = _positive_or_zero(value)
    if not 1 <= n <= MAX_QUALITY:
        raise argparse.ArgumentTypeError(f"must be within 1..{MAX_QUALITY}: {n}")
    return n


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="imgbatch",
        description="Parallel batch image conversion and background removal.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", help="Set log level (debug, info, warning, error)")
    parser.add_argument("--log-cats", help="Only show log records from these comma-separated modules")
    parser.add_argument("--settings", help="Path to a JSON settings file")

    sub = parser.add_subparsers(dest="command", required=True)

    remove = sub.add_parser("remove", help="Remove background from images")
    remove.add_argument("-b", "--background", action="store_true", help="Remove background from images")
    remove.add_argument("-s", "--source", required=True, help="Source directory for input images")
    remove.add_argument(
        "-o", "--output", help="Output directory for processed images (optional, defaults to source directory)"
    )
    remove.add_argument(
        "-e", "--edge-threshold", type=_byte, help="Set the edge detection threshold (default from settings: 30)"
    )
    remove.add_argument("-j", "--jobs", type=_positive_or_zero, help="Worker processes (0 = one per CPU)")

    convert = sub.add_parser("convert", help="Convert images to different formats")
    convert.add_argument("-s", "--source", required=True, help="Source directory for input images")
    convert.add_argument(
        "-o", "--output", help="Output directory for converted images (optional, defaults to source directory)"
    )
    convert.add_argument("-f", "--format", help="Target format for conversion (e.g., png, jpg, bmp, webp)")
    convert.add_argument("-q", "--quality", type=_quality, help="Quality for lossy formats (1-100)")
    convert.add_argument("-j", "--jobs", type=_positive_or_zero, help="Worker processes (0 = one per CPU)")
    return parser


def _apply_logging_options(args: argparse.Namespace) -> None:
    # setup_logger reads these on every call, so later get_logger() calls keep them
    if args.log_level:
        os.environ["IMGBATCH_LOG_LEVEL"] = args.log_level
    if args.log_cats:
        os.environ["IMGBATCH_LOG_CATS"] = args.log_cats
    setup_logger()


def get_output_dir(args: argparse.Namespace, source_dir: Path) -> Path:
    return abs_path(args.output) if args.output else source_dir


def validate_directories(source_dir: Path, output_dir: Path) -> bool:
    """Check the source directory and create the output directory if needed."""
    if not source_dir.is_dir():
        logger.error("Source directory does not exist or is not a directory: %s", source_dir)
        return False
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error("Failed to create output directory %s: %s", output_dir, e)
        return False
    return True


def _run_worker(worker: BatchWorker) -> BatchWorker:
    worker.log.connect(logger.info)
    worker.progress.connect(lambda done, total: logger.debug("progress %d/%d", done, total))
    worker.run()
    summary = worker.summary()
    logger.info(
        "%d ok, %d skipped, %d failed",
        summary.get("ok", 0),
        summary.get("skipped", 0),
        summary.get("failed", 0),
    )
    return worker


def run_remove(args: argparse.Namespace, settings: SettingsManager) -> int:
    source_dir = abs_path(args.source)
    output_dir = get_output_dir(args, source_dir)
    threshold = args.edge_threshold if args.edge_threshold is not None else settings.edge_threshold
    jobs = args.jobs if args.jobs is not None else settings.max_workers

    if not validate_directories(source_dir, output_dir):
        return 1

    if not args.background:
        logger.warning("Nothing to do: pass -b/--background to remove backgrounds")
        return 0

    files = collect_image_files(source_dir)
    if not files:
        logger.info("No images found in the source directory.")
        return 0

    logger.info("Removing background from %d images (edge threshold %d)", len(files), threshold)
    task = partial(
        remove_background_file,
        source_dir=source_dir,
        output_dir=output_dir,
        threshold=threshold,
        codec=PyvipsCodec(),
    )
    _run_worker(BatchWorker(task, files, max_workers=jobs))
    logger.info("Background removal completed.")
    return 0


def run_convert(args: argparse.Namespace, settings: SettingsManager) -> int:
    source_dir = abs_path(args.source)
    output_dir = get_output_dir(args, source_dir)
    target_format = (args.format or settings.target_format).lower()
    quality = args.quality if args.quality is not None else settings.quality
    jobs = args.jobs if args.jobs is not None else settings.max_workers

    if not is_target_format(target_format):
        logger.error("Unsupported format: %s", target_format)
        return 2

    if not validate_directories(source_dir, output_dir):
        return 1

    files = collect_convert_candidates(source_dir, target_format)
    if not files:
        logger.info("No files found to convert!")
        return 0

    task = partial(
        convert_image,
        output_dir=output_dir,
        target_format=target_format,
        codec=PyvipsCodec(),
        quality=quality,
    )
    _run_worker(BatchWorker(task, files, max_workers=jobs))
    logger.info("Image processing completed.")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _apply_logging_options(args)
    settings = SettingsManager(args.settings)

    if args.command == "remove":
        return run_remove(args, settings)
    return run_convert(args, settings)


if __name__ == "__main__":
    sys.exit(main())
