"""Data models for loaded container images."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from .core.types import DOCKER_MANIFEST_SCHEMA2


@dataclass(frozen=True)
class Descriptor:
    """Content descriptor: media type, size and digest of a blob."""

    media_type: str
    size: int
    digest: str
    urls: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Render in manifest key order."""
        result: dict[str, Any] = {
            "mediaType": self.media_type,
            "size": self.size,
            "digest": self.digest,
        }
        if self.urls:
            result["urls"] = list(self.urls)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Descriptor":
        return cls(
            media_type=data["mediaType"],
            size=int(data["size"]),
            digest=data["digest"],
            urls=tuple(data.get("urls") or ()),
        )


@dataclass(frozen=True)
class LayerInfo:
    """Image layer: its manifest descriptor and uncompressed diff_id."""

    descriptor: Descriptor
    diff_id: Optional[str]
    source: Optional[str] = None  # File path or tar member holding the blob

    @property
    def digest(self) -> str:
        return self.descriptor.digest

    @property
    def size(self) -> int:
        return self.descriptor.size

    @property
    def media_type(self) -> str:
        return self.descriptor.media_type


@dataclass
class Image:
    """Container image loaded from any of the supported layouts."""

    raw_manifest: bytes
    raw_config: Optional[bytes]
    layers: list[LayerInfo]
    history: list[dict[str, Any]] = field(default_factory=list)
    source: Optional[Path] = None

    @property
    def manifest(self) -> dict[str, Any]:
        return json.loads(self.raw_manifest)

    @property
    def diff_ids(self) -> list[Optional[str]]:
        return [layer.diff_id for layer in self.layers]


def serialize_manifest(
    config: Descriptor,
    layers: list[Descriptor],
    media_type: str = DOCKER_MANIFEST_SCHEMA2,
) -> bytes:
    """Serialize a schema 2 manifest to canonical bytes.

    Keys are emitted in schemaVersion, mediaType, config, layers order with
    no insignificant whitespace.
    """
    manifest = {
        "schemaVersion": 2,
        "mediaType": media_type,
        "config": config.to_dict(),
        "layers": [layer.to_dict() for layer in layers],
    }
    return json.dumps(manifest, separators=(",", ":")).encode("utf-8")
