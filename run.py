"""Command-line entry point for the frame rejuvenation pipeline."""

from __future__ import annotations

import argparse
import signal
import sys

from rejuv.config import PipelineConfig
from rejuv.pipeline import FrameRejuvenator
from rejuv.types import ASPECT_RATIOS
from rejuv.utils.files import read_archives


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(description="Rejuvenate draft film frames from production ZIP archives.")
    parser.add_argument(
        "archives",
        nargs="+",
        help="Production ZIP archives (avatars, scene frames, per-frame .txt, full script).",
    )
    parser.add_argument(
        "--test",
        action="store_true",
        help="Only process the first few frames (see REJUV_TEST_BATCH_SIZE).",
    )
    parser.add_argument("--output-dir", help="Where rejuvenated frames are written.")
    parser.add_argument("--aspect-ratio", choices=ASPECT_RATIOS, help="Aspect ratio of generated frames.")
    parser.add_argument(
        "--live",
        action="store_true",
        help="Call the real services instead of the offline mocks.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Entry point used by ``python run.py``."""
    args = parse_args(sys.argv[1:] if argv is None else argv)
    config = PipelineConfig.from_env()
    if args.output_dir:
        config.output_dir = args.output_dir
    if args.aspect_ratio:
        config.aspect_ratio = args.aspect_ratio
    if args.live:
        config.enable_mock_generation = False

    pipeline = FrameRejuvenator(config)
    pipeline.subscribe(print)

    try:
        payloads = read_archives(args.archives)
    except FileNotFoundError as exc:
        print(exc, file=sys.stderr)
        return 1

    archive = pipeline.upload(payloads)
    if archive is None:
        return 1

    def _request_cancel(signum, frame) -> None:
        if pipeline.cancel():
            print("Cancel requested; finishing the current frame. Press Ctrl+C again to abort immediately.")
        signal.signal(signal.SIGINT, signal.default_int_handler)

    previous_handler = signal.signal(signal.SIGINT, _request_cancel)
    try:
        report = pipeline.run(test=args.test)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if report is None:
        return 1
    print(
        f"Attempted {len(report.attempted)}, saved {len(report.succeeded)}, "
        f"failed {len(report.failed)}, skipped {len(report.skipped)}."
    )
    print(f"Outputs stored in {config.output_dir}/, prompt traces in {config.runs_dir}/")
    return 0 if not report.halted else 1


if __name__ == "__main__":
    raise SystemExit(main())
