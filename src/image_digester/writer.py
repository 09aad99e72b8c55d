"""Digest file output."""

import os
from pathlib import Path

import aiofiles

from .exceptions import DigestWriteError
from .utils.digest import Digest

# Applied before umask
DIGEST_FILE_MODE = 0o777


def _opener(path: str, flags: int) -> int:
    return os.open(path, flags, DIGEST_FILE_MODE)


async def write_digest(digest: Digest, dst: Path) -> None:
    """Write digest to dst as ``algorithm:hex``, creating or truncating it.

    Args:
        digest: Image manifest digest
        dst: Destination of the digest file

    Raises:
        DigestWriteError: If the file cannot be written
    """
    try:
        async with aiofiles.open(dst, "w", encoding="ascii", opener=_opener) as f:
            await f.write(str(digest))
    except OSError as e:
        raise DigestWriteError(f"Unable to write digest file to {dst}: {e}") from e
