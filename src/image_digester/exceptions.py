"""Custom exceptions for the image digester."""


class DigesterError(Exception):
    """Base exception for all digester errors."""

    pass


class MissingArgumentError(DigesterError):
    """Raised when a required option was not specified."""

    pass


class UnsupportedFormatError(DigesterError):
    """Raised when the image format is not one of docker, oci or legacy."""

    def __init__(self, image_format: str) -> None:
        self.image_format = image_format
        super().__init__(
            f"Unsupported image format {image_format!r}, want one of docker, oci, legacy"
        )


class SourcePathMismatchError(DigesterError):
    """Raised when the source path does not have the shape the format expects."""

    pass


class ConfigParseError(DigesterError):
    """Raised when the image config cannot be read or parsed."""

    pass


class LayerReadError(DigesterError):
    """Raised when a layer tarball cannot be read."""

    pass


class ConfigLayerMismatchError(DigesterError):
    """Raised when config diff_ids and the layer sequence disagree."""

    pass


class EmptyImageError(DigesterError):
    """Raised when an image would be assembled without any layer."""

    pass


class DigestInputError(DigesterError):
    """Raised when the bytes to digest cannot be read."""

    pass


class DigestWriteError(DigesterError):
    """Raised when the digest file cannot be written."""

    pass


class TarReadError(DigesterError):
    """Raised when unable to read or parse tar file."""

    pass


class OciLayoutError(DigesterError):
    """Raised when an OCI image layout is missing or inconsistent."""

    pass


class ManifestParseError(DigesterError):
    """Raised when an image manifest cannot be read or parsed."""

    pass


class ManifestWriteError(DigesterError):
    """Raised when the assembled manifest cannot be written."""

    pass
