"""Builders for synthetic layers, docker save tarballs and OCI layouts."""

import gzip
import hashlib
import io
import json
import tarfile
from pathlib import Path
from typing import Any, Optional

DOCKER_MANIFEST = "application/vnd.docker.distribution.manifest.v2+json"
DOCKER_CONFIG = "application/vnd.docker.container.image.v1+json"
DOCKER_LAYER = "application/vnd.docker.image.rootfs.diff.tar.gzip"
OCI_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
OCI_CONFIG = "application/vnd.oci.image.config.v1+json"
OCI_LAYER = "application/vnd.oci.image.layer.v1.tar+gzip"
OCI_INDEX = "application/vnd.oci.image.index.v1+json"


def sha256(data: bytes) -> str:
    return f"sha256:{hashlib.sha256(data).hexdigest()}"


def make_tar(files: dict[str, bytes]) -> bytes:
    """Create an uncompressed tar with fixed metadata."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w") as tar:
        for name, content in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            info.mtime = 0
            tar.addfile(info, fileobj=io.BytesIO(content))
    return buffer.getvalue()


def gzip_bytes(data: bytes) -> bytes:
    return gzip.compress(data, mtime=0)


def write_layer(path: Path, files: dict[str, bytes]) -> tuple[str, str, int]:
    """Write a gzipped layer and return (diff_id, digest, size)."""
    uncompressed = make_tar(files)
    compressed = gzip_bytes(uncompressed)
    path.write_bytes(compressed)
    return sha256(uncompressed), sha256(compressed), len(compressed)


def make_config(diff_ids: list[str], history: Optional[list[dict]] = None) -> dict[str, Any]:
    config: dict[str, Any] = {
        "architecture": "amd64",
        "os": "linux",
        "created": "1970-01-01T00:00:00Z",
        "config": {
            "Entrypoint": ["/app/server"],
            "Env": ["PATH=/usr/local/bin:/usr/bin:/bin"],
        },
        "rootfs": {"type": "layers", "diff_ids": diff_ids},
    }
    if history is not None:
        config["history"] = history
    return config


def expected_manifest(config_bytes: bytes, layers: list[tuple[str, int, str]]) -> bytes:
    """Schema 2 manifest bytes for (media_type, size, digest) layers."""
    manifest = {
        "schemaVersion": 2,
        "mediaType": DOCKER_MANIFEST,
        "config": {
            "mediaType": DOCKER_CONFIG,
            "size": len(config_bytes),
            "digest": sha256(config_bytes),
        },
        "layers": [
            {"mediaType": media_type, "size": size, "digest": digest}
            for media_type, size, digest in layers
        ],
    }
    return json.dumps(manifest, separators=(",", ":")).encode("utf-8")


def add_bytes(tar: tarfile.TarFile, name: str, content: bytes) -> None:
    info = tarfile.TarInfo(name)
    info.size = len(content)
    tar.addfile(info, fileobj=io.BytesIO(content))


def write_docker_tar(
    path: Path,
    layers: list[bytes],
    history: Optional[list[dict]] = None,
    compress: bool = True,
    layer_sources: Optional[dict[str, dict]] = None,
    extra_entries: int = 0,
    member_prefix: str = "",
) -> dict[str, Any]:
    """Write a docker save tarball from uncompressed layer tars.

    member_prefix is prepended to every member name but not to the names
    manifest.json lists, as `tar -C dir .` does with "./".

    Returns a dict with the config bytes, diff_ids and stored layer blobs.
    """
    diff_ids = [sha256(layer) for layer in layers]
    blobs = [gzip_bytes(layer) if compress else layer for layer in layers]
    config_bytes = json.dumps(make_config(diff_ids, history)).encode("utf-8")
    config_name = f"{hashlib.sha256(config_bytes).hexdigest()}.json"
    layer_names = [f"layer{idx}/layer.tar" for idx in range(len(blobs))]

    entry: dict[str, Any] = {
        "Config": config_name,
        "RepoTags": ["example/app:latest"],
        "Layers": layer_names,
    }
    if layer_sources:
        entry["LayerSources"] = layer_sources

    with tarfile.open(path, "w") as tar:
        manifest = json.dumps([entry] * (1 + extra_entries)).encode()
        add_bytes(tar, member_prefix + "manifest.json", manifest)
        add_bytes(tar, member_prefix + config_name, config_bytes)
        for name, blob in zip(layer_names, blobs):
            add_bytes(tar, member_prefix + name, blob)

    return {"config": config_bytes, "diff_ids": diff_ids, "blobs": blobs}


def write_blob(layout: Path, data: bytes) -> str:
    digest = sha256(data)
    blob_dir = layout / "blobs" / "sha256"
    blob_dir.mkdir(parents=True, exist_ok=True)
    (blob_dir / digest.split(":", 1)[1]).write_bytes(data)
    return digest


def write_oci_layout(layout: Path, layers: list[bytes], nested: bool = False) -> bytes:
    """Write an OCI layout holding one image; return the manifest bytes."""
    layout.mkdir(parents=True, exist_ok=True)
    (layout / "oci-layout").write_text('{"imageLayoutVersion": "1.0.0"}')

    diff_ids = [sha256(layer) for layer in layers]
    config_bytes = json.dumps(make_config(diff_ids)).encode()
    config_digest = write_blob(layout, config_bytes)

    layer_descriptors = []
    for layer in layers:
        blob = gzip_bytes(layer)
        layer_descriptors.append(
            {"mediaType": OCI_LAYER, "digest": write_blob(layout, blob), "size": len(blob)}
        )

    manifest_bytes = json.dumps(
        {
            "schemaVersion": 2,
            "mediaType": OCI_MANIFEST,
            "config": {"mediaType": OCI_CONFIG, "digest": config_digest, "size": len(config_bytes)},
            "layers": layer_descriptors,
        },
        indent=2,
    ).encode()
    manifest_descriptor = {
        "mediaType": OCI_MANIFEST,
        "digest": write_blob(layout, manifest_bytes),
        "size": len(manifest_bytes),
    }

    if nested:
        inner_index = json.dumps(
            {"schemaVersion": 2, "mediaType": OCI_INDEX, "manifests": [manifest_descriptor]}
        ).encode()
        manifest_descriptor = {
            "mediaType": OCI_INDEX,
            "digest": write_blob(layout, inner_index),
            "size": len(inner_index),
        }

    (layout / "index.json").write_text(
        json.dumps({"schemaVersion": 2, "manifests": [manifest_descriptor]})
    )
    return manifest_bytes
