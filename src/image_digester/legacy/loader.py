"""Loading of legacy layouts: a config document plus a schema 2 manifest."""

import json
import logging
from pathlib import Path
from typing import Any

import aiofiles

from ..exceptions import ConfigLayerMismatchError, ConfigParseError, ManifestParseError
from ..models import Descriptor, Image, LayerInfo

logger = logging.getLogger(__name__)


async def read_config(config_path: Path) -> tuple[bytes, dict[str, Any]]:
    """Read an image config document.

    Args:
        config_path: Path to the config JSON

    Returns:
        Tuple of (raw config bytes, parsed config)

    Raises:
        ConfigParseError: If the file cannot be read, is not a JSON object,
            or carries a malformed rootfs.diff_ids
    """
    try:
        async with aiofiles.open(config_path, "rb") as f:
            raw_config = await f.read()
    except OSError as e:
        raise ConfigParseError(f"Unable to read image config {config_path}: {e}") from e

    try:
        config = json.loads(raw_config)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ConfigParseError(f"Invalid JSON in image config {config_path}: {e}") from e

    if not isinstance(config, dict):
        raise ConfigParseError(f"Image config {config_path} must be a JSON object")

    rootfs = config.get("rootfs", {})
    if not isinstance(rootfs, dict):
        raise ConfigParseError(f"rootfs in image config {config_path} must be an object")
    diff_ids = rootfs.get("diff_ids", [])
    if not isinstance(diff_ids, list) or not all(isinstance(d, str) for d in diff_ids):
        raise ConfigParseError(
            f"rootfs.diff_ids in image config {config_path} must be a list of digests"
        )

    return raw_config, config


def config_diff_ids(config: dict[str, Any]) -> list[str]:
    """Return rootfs.diff_ids of a parsed config, bottom layer first."""
    return list((config.get("rootfs") or {}).get("diff_ids") or [])


async def load_legacy_image(manifest_path: Path, config_path: Path) -> Image:
    """Load a legacy image from its manifest and config on disk.

    The image digest is the digest of the manifest file as written.

    Raises:
        ManifestParseError: If the manifest cannot be read or is malformed
        ConfigParseError: If the config cannot be read or is malformed
        ConfigLayerMismatchError: If manifest layers and config diff_ids
            differ in count
    """
    try:
        async with aiofiles.open(manifest_path, "rb") as f:
            raw_manifest = await f.read()
    except OSError as e:
        raise ManifestParseError(f"Unable to read manifest {manifest_path}: {e}") from e

    try:
        manifest = json.loads(raw_manifest)
        if not isinstance(manifest, dict):
            raise ManifestParseError(f"Manifest {manifest_path} must be a JSON object")
        Descriptor.from_dict(manifest["config"])
        layer_descriptors = [Descriptor.from_dict(layer) for layer in manifest["layers"]]
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ManifestParseError(f"Invalid JSON in manifest {manifest_path}: {e}") from e
    except (KeyError, TypeError, ValueError) as e:
        raise ManifestParseError(
            f"Manifest {manifest_path} must have a config descriptor and a layers list: {e}"
        ) from e

    raw_config, config = await read_config(config_path)
    diff_ids = config_diff_ids(config)
    if len(diff_ids) != len(layer_descriptors):
        raise ConfigLayerMismatchError(
            f"Image config {config_path} lists {len(diff_ids)} diff_ids but "
            f"manifest {manifest_path} lists {len(layer_descriptors)} layers"
        )

    logger.debug(f"Loaded legacy manifest {manifest_path} with {len(layer_descriptors)} layers")
    return Image(
        raw_manifest=raw_manifest,
        raw_config=raw_config,
        layers=[
            LayerInfo(descriptor=descriptor, diff_id=diff_id)
            for descriptor, diff_id in zip(layer_descriptors, diff_ids)
        ],
        history=list(config.get("history") or []),
        source=manifest_path,
    )
