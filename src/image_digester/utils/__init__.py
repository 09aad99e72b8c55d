"""Utility functions for the image digester."""

from .digest import Digest, calculate_digest, digest_bytes, image_digest, validate_digest

__all__ = ["Digest", "calculate_digest", "digest_bytes", "image_digest", "validate_digest"]
