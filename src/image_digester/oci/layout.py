"""OCI image layout reader."""

import json
import logging
from pathlib import Path
from typing import Any

import aiofiles

from ..core.types import INDEX_MANIFEST_FILE, INDEX_MEDIA_TYPES
from ..exceptions import OciLayoutError
from ..models import Descriptor, Image, LayerInfo
from ..utils.digest import validate_digest, verify_digest

logger = logging.getLogger(__name__)

# Guards against index cycles in a malformed layout
MAX_INDEX_DEPTH = 8


def blob_path(layout_dir: Path, digest: str) -> Path:
    """Return the path of a blob inside an OCI layout."""
    if not validate_digest(digest):
        raise OciLayoutError(f"Invalid digest {digest!r} in {layout_dir}")
    algorithm, hex_value = digest.split(":", 1)
    return layout_dir / "blobs" / algorithm / hex_value


async def read_blob(layout_dir: Path, descriptor: Descriptor) -> bytes:
    """Read a blob and check it against its descriptor digest.

    Raises:
        OciLayoutError: If the blob is missing or does not match its digest
    """
    path = blob_path(layout_dir, descriptor.digest)
    try:
        async with aiofiles.open(path, "rb") as f:
            content = await f.read()
    except OSError as e:
        raise OciLayoutError(f"Unable to read blob {descriptor.digest} from {path}: {e}") from e

    if not verify_digest(content, descriptor.digest):
        raise OciLayoutError(f"Blob {path} does not match digest {descriptor.digest}")
    return content


def _parse_json(content: bytes, what: str) -> dict[str, Any]:
    try:
        data = json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise OciLayoutError(f"Invalid JSON in {what}: {e}") from e
    if not isinstance(data, dict):
        raise OciLayoutError(f"{what} must be a JSON object")
    return data


def _first_manifest(index: dict[str, Any], what: str) -> Descriptor:
    manifests = index.get("manifests")
    if not isinstance(manifests, list) or not manifests:
        raise OciLayoutError(f"{what} lists no manifests")
    try:
        return Descriptor.from_dict(manifests[0])
    except (KeyError, TypeError, ValueError) as e:
        raise OciLayoutError(f"Invalid manifest descriptor in {what}: {e}") from e


async def read_oci_layout(layout_dir: str | Path) -> Image:
    """Load the first image of an OCI image layout.

    Nested indexes are followed to their first entry. The image digest is
    the digest the layout records for the manifest blob.

    Args:
        layout_dir: Directory holding index.json and blobs/

    Returns:
        Image backed by the stored manifest blob

    Raises:
        OciLayoutError: If the layout is missing, malformed or inconsistent
    """
    layout_dir = Path(layout_dir)
    index_path = layout_dir / INDEX_MANIFEST_FILE
    try:
        async with aiofiles.open(index_path, "rb") as f:
            index = _parse_json(await f.read(), str(index_path))
    except OSError as e:
        raise OciLayoutError(f"Unable to read {index_path}: {e}") from e

    descriptor = _first_manifest(index, str(index_path))
    for _ in range(MAX_INDEX_DEPTH):
        if descriptor.media_type not in INDEX_MEDIA_TYPES:
            break
        logger.debug(f"Following nested index {descriptor.digest}")
        nested = _parse_json(await read_blob(layout_dir, descriptor), descriptor.digest)
        descriptor = _first_manifest(nested, descriptor.digest)
    if descriptor.media_type in INDEX_MEDIA_TYPES:
        raise OciLayoutError(f"Index nesting in {layout_dir} exceeds {MAX_INDEX_DEPTH} levels")

    raw_manifest = await read_blob(layout_dir, descriptor)
    manifest = _parse_json(raw_manifest, f"manifest {descriptor.digest}")

    try:
        config_descriptor = Descriptor.from_dict(manifest["config"])
        layer_descriptors = [Descriptor.from_dict(layer) for layer in manifest.get("layers", [])]
    except (KeyError, TypeError, ValueError) as e:
        raise OciLayoutError(f"Invalid descriptor in manifest {descriptor.digest}: {e}") from e

    raw_config = await read_blob(layout_dir, config_descriptor)
    config = _parse_json(raw_config, f"config {config_descriptor.digest}")
    diff_ids = (config.get("rootfs") or {}).get("diff_ids") or []
    if len(diff_ids) != len(layer_descriptors):
        raise OciLayoutError(
            f"Config {config_descriptor.digest} lists {len(diff_ids)} diff_ids but "
            f"manifest {descriptor.digest} lists {len(layer_descriptors)} layers"
        )

    layers = [
        LayerInfo(
            descriptor=layer,
            diff_id=diff_id,
            source=str(blob_path(layout_dir, layer.digest)),
        )
        for layer, diff_id in zip(layer_descriptors, diff_ids)
    ]

    logger.info(f"Loaded OCI layout {layout_dir}: manifest {descriptor.digest}, {len(layers)} layers")
    return Image(
        raw_manifest=raw_manifest,
        raw_config=raw_config,
        layers=layers,
        history=list(config.get("history") or []),
        source=layout_dir,
    )
