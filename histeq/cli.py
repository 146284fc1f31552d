from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from .backend import create_backend
from .config import BACKENDS, HISTOGRAM_CHOICES, SCAN_CHOICES, PipelineConfig
from .errors import HistEqError
from .image_io import load_image, save_image
from .pipeline import EqualizationPipeline

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="histeq", description="Histogram equalization on an OpenCL device.")
    parser.add_argument("-f", "--file", default="test.ppm", help="input image file (default: test.ppm)")
    parser.add_argument("-o", "--output", help="output image file (default: <input>_equalized<ext>)")
    parser.add_argument("-p", "--platform", type=int, help="select platform")
    parser.add_argument("-d", "--device", type=int, help="select device")
    parser.add_argument("-l", "--list", action="store_true", help="list all platforms and devices")
    parser.add_argument("-b", "--bins", type=int, help="number of histogram bins, must divide 256 (default: 256)")
    parser.add_argument("--backend", choices=BACKENDS, help="compute backend (default: opencl)")
    parser.add_argument("--histogram", choices=HISTOGRAM_CHOICES, help="histogram strategy (default: local)")
    parser.add_argument("--scan", choices=SCAN_CHOICES, help="cumulative scan strategy (default: hillis-steele)")
    parser.add_argument("--group-size", type=int, help="work-group size of the local histogram (default: 256)")
    parser.add_argument("--show", action="store_true", help="display input and output images")
    parser.add_argument("-v", "--verbose", action="store_true", help="log every stage")
    return parser


def default_output_path(path: str | Path) -> Path:
    path = Path(path)
    return path.with_name(f"{path.stem}_equalized{path.suffix}")


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        if args.list:
            from .opencl_backend import list_devices

            print("\n".join(list_devices()))
            return 0

        config = PipelineConfig.from_env(
            bins=args.bins,
            histogram=args.histogram,
            scan=args.scan,
            group_size=args.group_size,
            backend=args.backend,
            platform_id=args.platform,
            device_id=args.device,
        ).validate()
        image = load_image(args.file)
        backend = create_backend(config)
        result = EqualizationPipeline(backend, config).run(image)
        output_path = Path(args.output) if args.output else default_output_path(args.file)
        save_image(result.output, output_path)
        logger.info("Saved %s", output_path)
    except HistEqError as exc:
        logger.error("%s", exc)
        build_log = getattr(exc, "build_log", None)
        if build_log:
            logger.error("Build log:\n%s", build_log)
        return 1

    if args.show:
        from .viewer import show_images

        show_images(image, result.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
