"""Selection of the read path for each image format."""

import logging

from .config import DigesterConfig
from .core.types import FORMAT_DOCKER, FORMAT_LEGACY, FORMAT_OCI
from .exceptions import UnsupportedFormatError
from .legacy.assembler import assemble_manifest
from .legacy.loader import load_legacy_image
from .models import Image
from .oci.layout import read_oci_layout
from .tar.reader import read_docker_tarball

logger = logging.getLogger(__name__)


async def read_image(config: DigesterConfig) -> Image:
    """Read the image described by config.

    docker and oci sources are handed to their loaders directly. legacy
    sources get a manifest generated from config and layers first, unless an
    existing manifest was given, and are then loaded from disk.

    Raises:
        UnsupportedFormatError: If the format is unknown
        DigesterError: Any error raised by the selected loader
    """
    if config.format == FORMAT_DOCKER:
        return await read_docker_tarball(config.image_source)

    if config.format == FORMAT_OCI:
        logger.info(
            f"Determined image source path to be {config.image_source} "
            f"based on -format={config.format}, -src={config.src}."
        )
        return await read_oci_layout(config.image_source)

    if config.format == FORMAT_LEGACY:
        manifest_path = config.manifest_path
        if manifest_path is None:
            manifest_path = config.legacy_manifest_out
            await assemble_manifest(
                config.config_path,
                config.layers,
                manifest_path,
                base_image=config.base_image,
                jobs=config.jobs,
            )
        else:
            logger.info(f"Using existing manifest {manifest_path}, skipping generation")
        return await load_legacy_image(manifest_path, config.config_path)

    raise UnsupportedFormatError(config.format)
