"""Assembly of a schema 2 manifest from a config, layer tarballs and a base image.

The effective layer sequence is the base image layers followed by the new
layers. Each new layer is read once: the stored gzip bytes give the manifest
descriptor and the inflated stream gives the diff_id. The config's
rootfs.diff_ids must list exactly the effective diff_ids in the same order.
"""

import asyncio
import hashlib
import logging
import zlib
from pathlib import Path
from typing import Any, Optional, Sequence

import aiofiles

from ..core.types import DEFAULT_JOBS, DOCKER_CONFIG_JSON, DOCKER_LAYER
from ..exceptions import (
    ConfigLayerMismatchError,
    EmptyImageError,
    LayerReadError,
    ManifestWriteError,
)
from ..models import Descriptor, Image, LayerInfo, serialize_manifest
from ..tar.reader import read_docker_tarball
from ..utils.digest import calculate_digest
from ..utils.validator import is_gzip_header
from .loader import config_diff_ids, read_config

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

# 16 + MAX_WBITS makes zlib expect a gzip header and trailer
GZIP_WBITS = 16 + zlib.MAX_WBITS


async def hash_layer(path: Path, chunk_size: int = CHUNK_SIZE) -> LayerInfo:
    """Compute the descriptor and diff_id of a gzipped layer tarball.

    Concatenated gzip members are inflated in turn, as gzip readers do.

    Args:
        path: Path to the layer tarball
        chunk_size: Size of chunks to read

    Returns:
        LayerInfo with a Docker tar+gzip descriptor

    Raises:
        LayerReadError: If the file cannot be read or is not valid gzip
    """
    compressed = hashlib.sha256()
    uncompressed = hashlib.sha256()
    # None between members, set while a member is being inflated
    decompressor: Optional[Any] = None
    padding = False
    size = 0

    try:
        async with aiofiles.open(path, "rb") as f:
            while True:
                chunk = await f.read(chunk_size)
                if not chunk:
                    break
                if size == 0 and not is_gzip_header(chunk):
                    raise LayerReadError(f"Layer {path} is not a gzip-compressed tarball")
                compressed.update(chunk)
                size += len(chunk)

                data = chunk
                while data:
                    if padding:
                        if data.strip(b"\x00"):
                            raise LayerReadError(
                                f"Layer {path} has data after trailing zero padding"
                            )
                        break
                    if decompressor is None:
                        if data[:1] == b"\x00":
                            # Zero padding after the last member runs to the end
                            padding = True
                            continue
                        decompressor = zlib.decompressobj(GZIP_WBITS)
                    uncompressed.update(decompressor.decompress(data))
                    if not decompressor.eof:
                        break
                    data = decompressor.unused_data
                    decompressor = None
    except OSError as e:
        raise LayerReadError(f"Unable to read layer {path}: {e}") from e
    except zlib.error as e:
        raise LayerReadError(f"Corrupt gzip data in layer {path}: {e}") from e

    if size == 0:
        raise LayerReadError(f"Layer {path} is empty")
    if decompressor is not None:
        raise LayerReadError(f"Layer {path} ends in the middle of a gzip stream")

    descriptor = Descriptor(
        media_type=DOCKER_LAYER,
        size=size,
        digest=f"sha256:{compressed.hexdigest()}",
    )
    diff_id = f"sha256:{uncompressed.hexdigest()}"
    logger.debug(f"Layer {path}: digest {descriptor.digest}, diff_id {diff_id}, size: {size} bytes")
    return LayerInfo(descriptor=descriptor, diff_id=diff_id, source=str(path))


async def hash_layers(
    layer_paths: Sequence[Path], jobs: int = DEFAULT_JOBS
) -> list[LayerInfo]:
    """Hash layers concurrently, returning them in input order."""
    semaphore = asyncio.Semaphore(jobs)

    async def bounded(path: Path) -> LayerInfo:
        async with semaphore:
            return await hash_layer(path)

    return list(await asyncio.gather(*(bounded(path) for path in layer_paths)))


def verify_diff_ids(
    config_path: Path, expected: list[str], layers: list[LayerInfo], base_count: int
) -> None:
    """Check config diff_ids against the effective layer sequence.

    Raises:
        ConfigLayerMismatchError: On any difference in count or order
    """
    if len(expected) != len(layers):
        raise ConfigLayerMismatchError(
            f"Image config {config_path} lists {len(expected)} diff_ids but the image has "
            f"{len(layers)} layers ({base_count} from the base image, "
            f"{len(layers) - base_count} new)"
        )

    for idx, (diff_id, layer) in enumerate(zip(expected, layers)):
        if diff_id != layer.diff_id:
            origin = "base image" if idx < base_count else layer.source
            raise ConfigLayerMismatchError(
                f"diff_id mismatch at layer {idx}: image config {config_path} has "
                f"{diff_id}, {origin} has {layer.diff_id}"
            )


def merge_history(
    base_history: list[dict[str, Any]], history: list[dict[str, Any]]
) -> list[dict[str, Any]]:
    """Chain base image history with the new config's history.

    A config built on top of the base usually repeats the base history
    already; it is then taken as is.
    """
    if history[: len(base_history)] == base_history:
        return list(history)
    return list(base_history) + list(history)


async def write_manifest(raw_manifest: bytes, manifest_path: Path) -> None:
    """Write the assembled manifest.

    Raises:
        ManifestWriteError: If the file cannot be written
    """
    try:
        async with aiofiles.open(manifest_path, "wb") as f:
            await f.write(raw_manifest)
    except OSError as e:
        raise ManifestWriteError(f"Unable to write manifest to {manifest_path}: {e}") from e


async def assemble_manifest(
    config_path: Path,
    layer_paths: Sequence[Path],
    manifest_path: Path,
    base_image: Optional[Path] = None,
    jobs: int = DEFAULT_JOBS,
) -> Image:
    """config와 레이어 tarball로 이미지 매니페스트를 생성합니다.

    베이스 이미지가 주어지면 베이스 레이어 뒤에 새 레이어를 이어 붙입니다.
    생성된 매니페스트는 manifest_path에 기록됩니다.

    Args:
        config_path: 이미지 config JSON 경로 (예: "image/config.json")
        layer_paths: 레이어 tarball 경로 목록, 아래 레이어부터 순서대로
            - 예: [Path("l1.tar.gz"), Path("l2.tar.gz")]
        manifest_path: 매니페스트를 기록할 경로 (예: "image/manifest.json")
        base_image: 베이스 이미지 docker save tarball 경로 (선택사항)
        jobs: 동시에 해시할 레이어 수 (기본값: 4)

    Returns:
        Image: 생성된 매니페스트, config, 레이어를 담은 이미지

    Raises:
        ConfigParseError: config를 읽거나 파싱할 수 없는 경우
        TarReadError: 베이스 이미지를 읽을 수 없는 경우
        EmptyImageError: 레이어가 하나도 없는 경우
        LayerReadError: 레이어를 읽을 수 없는 경우
        ConfigLayerMismatchError: config diff_ids와 레이어가 일치하지 않는 경우
        ManifestWriteError: 매니페스트를 기록할 수 없는 경우

    Examples:
        # 베이스 이미지 없이 매니페스트 생성
        image = await assemble_manifest(
            Path("image/config.json"),
            [Path("l1.tar.gz"), Path("l2.tar.gz")],
            Path("image/manifest.json"),
        )
    """
    raw_config, config = await read_config(config_path)

    base_layers: list[LayerInfo] = []
    base_history: list[dict[str, Any]] = []
    if base_image is not None:
        logger.info(f"Loading base image {base_image}")
        base = await read_docker_tarball(base_image)
        base_layers = base.layers
        base_history = base.history

    if not layer_paths and not base_layers:
        raise EmptyImageError(
            f"No layers given for image config {config_path} and no base image layers to inherit"
        )

    new_layers = await hash_layers(layer_paths, jobs)
    layers = base_layers + new_layers
    verify_diff_ids(config_path, config_diff_ids(config), layers, len(base_layers))

    config_descriptor = Descriptor(
        media_type=DOCKER_CONFIG_JSON,
        size=len(raw_config),
        digest=calculate_digest(raw_config),
    )
    raw_manifest = serialize_manifest(
        config_descriptor, [layer.descriptor for layer in layers]
    )

    logger.info(f"Generating image manifest to {manifest_path}...")
    await write_manifest(raw_manifest, manifest_path)

    return Image(
        raw_manifest=raw_manifest,
        raw_config=raw_config,
        layers=layers,
        history=merge_history(base_history, list(config.get("history") or [])),
        source=config_path,
    )
