"""Shared constants for the image digester."""

FORMAT_DOCKER = "docker"
FORMAT_OCI = "oci"
FORMAT_LEGACY = "legacy"
SUPPORTED_FORMATS = (FORMAT_DOCKER, FORMAT_OCI, FORMAT_LEGACY)

# Filenames of the legacy and OCI layouts
MANIFEST_FILE = "manifest.json"
CONFIG_FILE = "config.json"
INDEX_MANIFEST_FILE = "index.json"

DOCKER_MANIFEST_SCHEMA2 = "application/vnd.docker.distribution.manifest.v2+json"
DOCKER_MANIFEST_LIST = "application/vnd.docker.distribution.manifest.list.v2+json"
DOCKER_CONFIG_JSON = "application/vnd.docker.container.image.v1+json"
DOCKER_LAYER = "application/vnd.docker.image.rootfs.diff.tar.gzip"
DOCKER_UNCOMPRESSED_LAYER = "application/vnd.docker.image.rootfs.diff.tar"
OCI_IMAGE_INDEX = "application/vnd.oci.image.index.v1+json"

INDEX_MEDIA_TYPES = (OCI_IMAGE_INDEX, DOCKER_MANIFEST_LIST)

GZIP_MAGIC = b"\x1f\x8b"

DEFAULT_JOBS = 4
