"""Docker save tarball reader implementation."""

import asyncio
import hashlib
import json
import logging
import tarfile
from pathlib import Path
from typing import Any, Optional

from ..core.types import DOCKER_CONFIG_JSON, DOCKER_LAYER, DOCKER_UNCOMPRESSED_LAYER
from ..exceptions import TarReadError
from ..models import Descriptor, Image, LayerInfo, serialize_manifest
from ..utils.digest import calculate_digest
from ..utils.validator import (
    extract_single_manifest_entry,
    get_tar_members,
    is_gzip_header,
    normalize_member_name,
)

logger = logging.getLogger(__name__)


class TarImageReader:
    """Async reader for Docker save tar files."""

    def __init__(self, tar_path: str | Path, chunk_size: int = 1024 * 1024) -> None:
        """Initialize tar reader.

        Args:
            tar_path: Path to the tar file
            chunk_size: Size of chunks used when hashing layers
        """
        self.tar_path = Path(tar_path)
        if not self.tar_path.exists():
            raise TarReadError(f"Tar file not found: {tar_path}")
        self.chunk_size = chunk_size
        self._tar_file: Optional[tarfile.TarFile] = None
        self._members: dict[str, tarfile.TarInfo] = {}

    async def __aenter__(self) -> "TarImageReader":
        """Enter async context manager."""
        loop = asyncio.get_event_loop()
        try:
            self._tar_file = await loop.run_in_executor(
                None, tarfile.open, str(self.tar_path), "r"
            )
        except (tarfile.TarError, OSError) as e:
            raise TarReadError(f"Cannot read tar file {self.tar_path}: {e}") from e
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        await self.close()

    async def close(self) -> None:
        """Close the tar file."""
        if self._tar_file:
            loop = asyncio.get_event_loop()
            await loop.run_in_executor(None, self._tar_file.close)
            self._tar_file = None

    async def load_image(self) -> Image:
        """Load the single image stored in the tarball.

        Returns:
            Image with a schema 2 manifest synthesized from the tarball

        Raises:
            TarReadError: If the tarball is not a valid docker save archive
        """
        loop = asyncio.get_event_loop()
        entry = await loop.run_in_executor(None, self._manifest_entry)

        config_name = entry["Config"]
        raw_config = await loop.run_in_executor(
            None, self._extract_file_content, config_name
        )
        config = _parse_config(raw_config, config_name)
        diff_ids = (config.get("rootfs") or {}).get("diff_ids") or []

        layer_paths = entry["Layers"]
        if len(diff_ids) != len(layer_paths):
            raise TarReadError(
                f"Config {config_name} lists {len(diff_ids)} diff_ids but "
                f"manifest.json lists {len(layer_paths)} layers"
            )

        layer_sources = entry.get("LayerSources") or {}
        layers = []
        for idx, (layer_path, diff_id) in enumerate(zip(layer_paths, diff_ids), 1):
            if diff_id in layer_sources:
                # Foreign layer, the descriptor is recorded instead of derived
                descriptor = Descriptor.from_dict(layer_sources[diff_id])
            else:
                digest, size, compressed = await loop.run_in_executor(
                    None, self._hash_member, layer_path
                )
                descriptor = Descriptor(
                    media_type=DOCKER_LAYER if compressed else DOCKER_UNCOMPRESSED_LAYER,
                    size=size,
                    digest=digest,
                )
            logger.debug(
                f"Layer {idx}/{len(layer_paths)}: {descriptor.digest}, size: {descriptor.size} bytes"
            )
            layers.append(LayerInfo(descriptor=descriptor, diff_id=diff_id, source=layer_path))

        config_descriptor = Descriptor(
            media_type=DOCKER_CONFIG_JSON,
            size=len(raw_config),
            digest=calculate_digest(raw_config),
        )
        raw_manifest = serialize_manifest(
            config_descriptor, [layer.descriptor for layer in layers]
        )

        logger.info(f"Loaded {self.tar_path}: {len(layers)} layers")
        return Image(
            raw_manifest=raw_manifest,
            raw_config=raw_config,
            layers=layers,
            history=list(config.get("history") or []),
            source=self.tar_path,
        )

    def _manifest_entry(self) -> dict[str, Any]:
        """Return the validated manifest.json entry (sync helper)."""
        if not self._tar_file:
            raise TarReadError("Tar file not opened")
        try:
            self._members = get_tar_members(self._tar_file)
            return extract_single_manifest_entry(self._tar_file)
        except tarfile.TarError as e:
            raise TarReadError(f"Cannot read tar file {self.tar_path}: {e}") from e

    def _member(self, name: str) -> tarfile.TarInfo:
        """Look up a member by its cleaned name.

        Raises:
            KeyError: If no member has that name
        """
        return self._members[normalize_member_name(name)]

    def _hash_member(self, name: str) -> tuple[str, int, bool]:
        """Stream a member and return its digest, size and whether it is gzipped (sync helper)."""
        if not self._tar_file:
            raise TarReadError("Tar file not opened")

        try:
            file_obj = self._tar_file.extractfile(self._member(name))
            if file_obj is None:
                raise TarReadError(f"Could not extract {name}")

            hasher = hashlib.sha256()
            size = 0
            header = b""
            with file_obj:
                while True:
                    chunk = file_obj.read(self.chunk_size)
                    if not chunk:
                        break
                    if size == 0:
                        header = chunk[:2]
                    hasher.update(chunk)
                    size += len(chunk)
        except KeyError:
            raise TarReadError(f"File {name} not found in tar")
        except (tarfile.TarError, OSError) as e:
            raise TarReadError(f"Failed to read {name}: {e}") from e

        return f"sha256:{hasher.hexdigest()}", size, is_gzip_header(header)

    def _extract_file_content(self, filename: str) -> bytes:
        """Extract file content from tar (sync helper).

        Args:
            filename: Name of file to extract

        Returns:
            File content as bytes

        Raises:
            TarReadError: If file cannot be extracted
        """
        if not self._tar_file:
            raise TarReadError("Tar file not opened")

        try:
            file_obj = self._tar_file.extractfile(self._member(filename))
            if file_obj is None:
                raise TarReadError(f"Could not extract {filename}")

            content = file_obj.read()
            file_obj.close()
            return content
        except KeyError:
            raise TarReadError(f"File {filename} not found in tar")
        except (tarfile.TarError, OSError) as e:
            raise TarReadError(f"Failed to extract {filename}: {e}") from e


def _parse_config(raw_config: bytes, name: str) -> dict[str, Any]:
    """Parse a config blob stored in the tarball."""
    try:
        config = json.loads(raw_config)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise TarReadError(f"Invalid JSON in config {name}: {e}") from e
    if not isinstance(config, dict):
        raise TarReadError(f"Config {name} must be a JSON object")
    return config


async def read_docker_tarball(tar_path: str | Path) -> Image:
    """Load an image from a docker save tarball."""
    async with TarImageReader(tar_path) as reader:
        return await reader.load_image()
