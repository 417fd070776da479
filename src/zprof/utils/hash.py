import hashlib
import os
from pathlib import Path

CHUNK_SIZE = 8192


def hash_bytes(data: bytes) -> str:
    """returns the sha256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def hash_file(path: Path) -> str:
    """
    returns the sha256 hex digest of a file's content, following symlinks.

    raises:
        OSError: if the file cannot be read
    """
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def hash_link(path: Path) -> str:
    """returns the sha256 hex digest of a symlink's target string (the link is not followed)."""
    return hash_bytes(os.readlink(path).encode())
