"""Run configuration for the image digester."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from .core.types import (
    DEFAULT_JOBS,
    FORMAT_DOCKER,
    FORMAT_LEGACY,
    FORMAT_OCI,
    MANIFEST_FILE,
)
from .exceptions import MissingArgumentError
from .utils.validator import validate_format, validate_source_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DigesterConfig:
    """Immutable run configuration, built once from the command line."""

    dst: Path
    format: str
    src: Optional[Path] = None
    config_path: Optional[Path] = None
    layers: tuple[Path, ...] = ()
    base_image: Optional[Path] = None
    manifest_path: Optional[Path] = None
    manifest_out: Optional[Path] = None
    jobs: int = DEFAULT_JOBS

    @property
    def image_source(self) -> Path:
        """Path handed to the loader for the configured format.

        For oci this is the layout directory rather than index.json itself.
        """
        if self.format == FORMAT_DOCKER:
            return self.src
        if self.format == FORMAT_OCI:
            return self.src.parent
        return self.config_path.parent

    @property
    def legacy_manifest_out(self) -> Path:
        """Where the assembled legacy manifest is written."""
        if self.manifest_out is not None:
            return self.manifest_out
        return self.config_path.parent / MANIFEST_FILE

    @classmethod
    def from_args(
        cls,
        *,
        dst: Optional[str],
        image_format: Optional[str],
        src: Optional[str] = None,
        config_path: Optional[str] = None,
        layers: Optional[Sequence[str]] = None,
        base_image: Optional[str] = None,
        manifest: Optional[str] = None,
        manifest_out: Optional[str] = None,
        jobs: int = DEFAULT_JOBS,
    ) -> "DigesterConfig":
        """Validate raw option values and build the configuration.

        No file is opened here: only presence and path shapes are checked.

        Raises:
            MissingArgumentError: If a required option is absent
            UnsupportedFormatError: If the format is unknown
            SourcePathMismatchError: If src does not match the format
        """
        if not dst:
            raise MissingArgumentError("Required option -dst was not specified.")
        if not image_format:
            raise MissingArgumentError("Required option -format was not specified.")
        validate_format(image_format)

        if image_format == FORMAT_LEGACY and config_path is None:
            # Older invocation: -src points at the config.json itself
            if not src:
                raise MissingArgumentError(
                    "Required option -src (or -configPath) was not specified for -format=legacy."
                )
            validate_source_path(image_format, src)
            config_path = src
        elif not src and image_format != FORMAT_LEGACY:
            raise MissingArgumentError("Required option -src was not specified.")
        elif src and image_format != FORMAT_LEGACY:
            validate_source_path(image_format, src)

        if image_format != FORMAT_LEGACY and (layers or base_image or manifest):
            logger.warning(
                "Ignoring -layers, -legacyBaseImage and -manifest for -format=%s",
                image_format,
            )
            layers, base_image, manifest = None, None, None

        return cls(
            dst=Path(dst),
            format=image_format,
            src=Path(src) if src else None,
            config_path=Path(config_path) if config_path else None,
            layers=tuple(Path(layer) for layer in layers or ()),
            base_image=Path(base_image) if base_image else None,
            manifest_path=Path(manifest) if manifest else None,
            manifest_out=Path(manifest_out) if manifest_out else None,
            jobs=jobs,
        )
