"""Digest calculation and validation utilities."""

import hashlib
import re
from dataclasses import dataclass
from typing import Any, Union

from ..exceptions import DigestInputError

# Regex pattern for valid digest format (algorithm:hex)
DIGEST_PATTERN = re.compile(r"^[a-z0-9]+:[a-f0-9]+$")


@dataclass(frozen=True)
class Digest:
    """A content digest, rendered as ``algorithm:hex``."""

    algorithm: str
    hex: str

    def __str__(self) -> str:
        return f"{self.algorithm}:{self.hex}"

    @classmethod
    def parse(cls, digest: str) -> "Digest":
        """Parse an ``algorithm:hex`` string.

        Raises:
            ValueError: If digest format is invalid
        """
        if not validate_digest(digest):
            raise ValueError(f"Invalid digest format: {digest}")
        algorithm, hex_value = digest.split(":", 1)
        return cls(algorithm=algorithm, hex=hex_value)


def calculate_digest(data: Union[bytes, bytearray], algorithm: str = "sha256") -> str:
    """Calculate digest of data.

    Args:
        data: Data to hash
        algorithm: Hash algorithm (default: sha256)

    Returns:
        Digest string in format "algorithm:hex"

    Raises:
        ValueError: If algorithm is not supported
        ValueError: If data is not bytes-like
    """
    if not isinstance(data, (bytes, bytearray)):
        raise ValueError("Data must be bytes or bytearray")

    if algorithm not in hashlib.algorithms_available:
        raise ValueError(f"Unsupported algorithm: {algorithm}")

    hasher = hashlib.new(algorithm)
    hasher.update(data)
    return f"{algorithm}:{hasher.hexdigest()}"


def validate_digest(digest: str) -> bool:
    """Validate digest format.

    Args:
        digest: Digest string to validate

    Returns:
        True if valid digest format
    """
    if not isinstance(digest, str):
        return False

    if not DIGEST_PATTERN.match(digest):
        return False

    # Check if algorithm is valid
    algorithm, _ = digest.split(":", 1)
    return algorithm in ["sha256", "sha512", "sha1", "md5"]


def verify_digest(data: Union[bytes, bytearray], expected_digest: str) -> bool:
    """Verify data matches expected digest.

    Args:
        data: Data to verify
        expected_digest: Expected digest string

    Returns:
        True if data matches digest

    Raises:
        ValueError: If digest format is invalid
    """
    if not validate_digest(expected_digest):
        raise ValueError(f"Invalid digest format: {expected_digest}")

    algorithm, _ = expected_digest.split(":", 1)
    actual_digest = calculate_digest(data, algorithm)
    return actual_digest == expected_digest


def digest_bytes(data: Union[bytes, bytearray]) -> Digest:
    """Return the sha256 Digest of data."""
    return Digest.parse(calculate_digest(data))


def image_digest(image: Any) -> Digest:
    """Return the digest of a loaded image.

    The digest of an image is the sha256 of its raw manifest bytes, exactly
    as they were stored or assembled.

    Args:
        image: Object exposing ``raw_manifest`` bytes

    Returns:
        Digest of the manifest

    Raises:
        DigestInputError: If the image has no manifest bytes
    """
    raw_manifest = getattr(image, "raw_manifest", None)
    if not isinstance(raw_manifest, (bytes, bytearray)):
        raise DigestInputError("Image has no manifest bytes to digest")
    return digest_bytes(raw_manifest)

