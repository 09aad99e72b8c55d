"""Command line entry point of the image digester."""

import argparse
import asyncio
import logging
import os
import sys
from typing import Optional, Sequence

from .config import DigesterConfig
from .core.types import DEFAULT_JOBS, SUPPORTED_FORMATS
from .digester import digest_image
from .exceptions import DigesterError

logger = logging.getLogger(__name__)


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="image-digester",
        description=(
            "Load a container image, calculate its image manifest sha256 digest "
            "and write it to a digest file."
        ),
    )
    parser.add_argument(
        "--dst", "-dst",
        help="The destination location of the digest file to write to.",
    )
    parser.add_argument(
        "--src", "-src",
        help=(
            "Path to the config.json when --format is legacy, path to the index.json "
            "when --format is oci or path to the image .tar file when --format is docker."
        ),
    )
    parser.add_argument(
        "--format", "-format",
        dest="image_format",
        help=f"The format of the source image, one of {', '.join(SUPPORTED_FORMATS)}.",
    )
    parser.add_argument(
        "--config-path", "-configPath",
        help="Path to the image config.json, only used for legacy images.",
    )
    parser.add_argument(
        "--legacy-base-image", "-legacyBaseImage",
        dest="base_image",
        help="Path to a docker save tarball of the base image, only used for legacy images.",
    )
    parser.add_argument(
        "--layers", "-layers",
        action="append",
        default=[],
        help="Path to a layer of this image, bottom first. Repeat for each layer. Legacy only.",
    )
    parser.add_argument(
        "--manifest", "-manifest",
        help="Existing manifest.json to use instead of generating one. Legacy only.",
    )
    parser.add_argument(
        "--manifest-out",
        help="Where to write the generated manifest (default: next to the config).",
    )
    parser.add_argument(
        "--jobs",
        type=positive_int,
        default=DEFAULT_JOBS,
        help=f"Number of layers hashed concurrently (default: {DEFAULT_JOBS}).",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.getenv("IMAGE_DIGESTER_LOG_LEVEL", "INFO"),
        help="Logging level (default: $IMAGE_DIGESTER_LOG_LEVEL or INFO).",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Running the Image Digester to generate an image digest file...")

    try:
        config = DigesterConfig.from_args(
            dst=args.dst,
            image_format=args.image_format,
            src=args.src,
            config_path=args.config_path,
            layers=args.layers,
            base_image=args.base_image,
            manifest=args.manifest,
            manifest_out=args.manifest_out,
            jobs=args.jobs,
        )
        asyncio.run(digest_image(config))
    except DigesterError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
