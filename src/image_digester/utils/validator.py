"""Validation utilities for image sources and Docker tar files."""

import json
import posixpath
import tarfile
from pathlib import Path
from typing import Any, Collection, Union

from ..core.types import (
    CONFIG_FILE,
    FORMAT_DOCKER,
    FORMAT_LEGACY,
    FORMAT_OCI,
    GZIP_MAGIC,
    INDEX_MANIFEST_FILE,
    MANIFEST_FILE,
    SUPPORTED_FORMATS,
)
from ..exceptions import SourcePathMismatchError, TarReadError, UnsupportedFormatError


def validate_format(image_format: str) -> None:
    """Check that the image format is one the digester can read.

    Raises:
        UnsupportedFormatError: If the format is unknown
    """
    if image_format not in SUPPORTED_FORMATS:
        raise UnsupportedFormatError(image_format)


def validate_source_path(image_format: str, src: Union[str, Path]) -> None:
    """소스 경로가 이미지 포맷에 맞는 형태인지 검증합니다.

    파일을 열지 않고 경로의 확장자와 파일명만 확인합니다.

    Args:
        image_format: 이미지 포맷 ("docker", "oci", "legacy")
        src: 소스 경로
            - docker: "image.tar" 처럼 .tar 확장자를 가진 tarball
            - oci: "layout/index.json" 처럼 index.json 파일
            - legacy: "image/config.json" 처럼 config.json 파일

    Raises:
        UnsupportedFormatError: 알 수 없는 포맷인 경우
        SourcePathMismatchError: 경로가 포맷과 맞지 않는 경우

    Examples:
        # docker 포맷은 .tar 파일이어야 합니다
        validate_source_path("docker", "out/image.tar")

        # oci 포맷은 index.json 경로여야 합니다
        validate_source_path("oci", "out/layout/index.json")
    """
    validate_format(image_format)
    path = Path(src)

    if image_format == FORMAT_DOCKER and path.suffix != ".tar":
        raise SourcePathMismatchError(
            f"Invalid value for argument -src for -format=docker, got {str(src)!r}, "
            "want path to tarball file with extension .tar."
        )
    if image_format == FORMAT_LEGACY and path.name != CONFIG_FILE:
        raise SourcePathMismatchError(
            f"Invalid value for argument -src for -format=legacy, got {str(src)!r}, "
            f"want path to {CONFIG_FILE}"
        )
    if image_format == FORMAT_OCI and path.name != INDEX_MANIFEST_FILE:
        raise SourcePathMismatchError(
            f"Invalid value for argument -src for -format=oci, got {str(src)!r}, "
            f"want path to {INDEX_MANIFEST_FILE}"
        )


def is_gzip_header(header: bytes) -> bool:
    """Check if the leading bytes of a blob are a gzip header."""
    return header[:2] == GZIP_MAGIC


def normalize_member_name(name: str) -> str:
    """Clean a tar member name so that ``./a/b`` and ``a/b`` match."""
    return posixpath.normpath(name)


def get_tar_members(tar: tarfile.TarFile) -> dict[str, tarfile.TarInfo]:
    """Map cleaned member names to the members of a tar file."""
    return {normalize_member_name(member.name): member for member in tar.getmembers()}


def parse_manifest_json(manifest_content: str) -> list[dict[str, Any]] | None:
    """Parse manifest JSON content."""
    try:
        manifest_data = json.loads(manifest_content)
        if not isinstance(manifest_data, list) or len(manifest_data) == 0:
            return None
        return manifest_data
    except json.JSONDecodeError:
        return None


def has_required_fields(
    manifest_entry: dict[str, Any], required_fields: list[str]
) -> bool:
    """Check if manifest entry has all required fields."""
    return all(field in manifest_entry for field in required_fields)


def are_all_layers_exist(layers: list[str], tar_members: Collection[str]) -> bool:
    """Check if all layer files exist in tar members."""
    return all(normalize_member_name(layer) in tar_members for layer in layers)


def validate_manifest_entry(
    manifest_entry: dict[str, Any], tar_members: Collection[str]
) -> None:
    """Validate a single docker save manifest entry.

    Member names are compared after cleaning, as written by ``tar -C dir .``.

    Raises:
        TarReadError: If the entry is malformed or references missing members
    """
    if not isinstance(manifest_entry, dict) or not has_required_fields(
        manifest_entry, ["Config", "Layers"]
    ):
        raise TarReadError("manifest.json entry must have Config and Layers")

    config_path = manifest_entry["Config"]
    if not isinstance(config_path, str):
        raise TarReadError("manifest.json Config must be a path")
    if normalize_member_name(config_path) not in tar_members:
        raise TarReadError(f"Config {config_path} not found in tar file")

    layers = manifest_entry["Layers"]
    if not isinstance(layers, list) or not all(isinstance(layer, str) for layer in layers):
        raise TarReadError("manifest.json Layers must be a list of paths")

    if not are_all_layers_exist(layers, tar_members):
        missing = [
            layer for layer in layers if normalize_member_name(layer) not in tar_members
        ]
        raise TarReadError(f"Layers not found in tar file: {missing}")


def extract_single_manifest_entry(tar: tarfile.TarFile) -> dict[str, Any]:
    """Return the only image entry of a docker save manifest.json.

    Raises:
        TarReadError: If manifest.json is missing, invalid, or lists more
            than one image
    """
    tar_members = get_tar_members(tar)
    if MANIFEST_FILE not in tar_members:
        raise TarReadError("manifest.json not found in tar file")

    manifest_member = tar.extractfile(tar_members[MANIFEST_FILE])
    if manifest_member is None:
        raise TarReadError("Cannot extract manifest.json")

    try:
        manifest_content = manifest_member.read().decode("utf-8")
    except UnicodeDecodeError as e:
        raise TarReadError(f"Cannot decode manifest.json: {e}") from e

    manifest_data = parse_manifest_json(manifest_content)
    if manifest_data is None:
        raise TarReadError("manifest.json must be a non-empty JSON array")
    if len(manifest_data) != 1:
        raise TarReadError(
            f"tarball must contain only a single image, found {len(manifest_data)}"
        )

    entry = manifest_data[0]
    validate_manifest_entry(entry, tar_members)
    return entry
