"""Image Digester - content digests of container image manifests."""

__version__ = "0.1.0"

from .config import DigesterConfig
from .digester import digest_image
from .dispatch import read_image
from .exceptions import (
    ConfigLayerMismatchError,
    ConfigParseError,
    DigesterError,
    DigestInputError,
    DigestWriteError,
    EmptyImageError,
    LayerReadError,
    ManifestParseError,
    ManifestWriteError,
    MissingArgumentError,
    OciLayoutError,
    SourcePathMismatchError,
    TarReadError,
    UnsupportedFormatError,
)
from .legacy.assembler import assemble_manifest
from .models import Descriptor, Image, LayerInfo
from .utils.digest import Digest, image_digest
from .writer import write_digest

__all__ = [
    "DigesterConfig",
    "digest_image",
    "read_image",
    "assemble_manifest",
    "write_digest",
    "image_digest",
    "Digest",
    "Descriptor",
    "Image",
    "LayerInfo",
    "DigesterError",
    "MissingArgumentError",
    "UnsupportedFormatError",
    "SourcePathMismatchError",
    "ConfigParseError",
    "LayerReadError",
    "ConfigLayerMismatchError",
    "EmptyImageError",
    "DigestInputError",
    "DigestWriteError",
    "TarReadError",
    "OciLayoutError",
    "ManifestParseError",
    "ManifestWriteError",
]
