"""Checksum utilities for package artifacts."""

import hashlib
import hmac
from pathlib import Path

DEFAULT_CHECKSUM_ALGORITHM = "sha256"


def split_checksum(checksum: str) -> tuple[str, str]:
    """Split an ``algorithm:hexdigest`` string.

    Args:
        checksum: Checksum string; a bare digest is treated as sha256

    Returns:
        Tuple of (algorithm, hexdigest)
    """
    if ":" in checksum:
        algorithm, digest = checksum.split(":", 1)
        return algorithm.lower(), digest.lower()
    return DEFAULT_CHECKSUM_ALGORITHM, checksum.lower()


def new_hasher(algorithm: str = DEFAULT_CHECKSUM_ALGORITHM) -> "hashlib._Hash":
    """Create a hash object, rejecting unknown algorithms.

    Raises:
        ValueError: If the algorithm is not supported by hashlib
    """
    try:
        return hashlib.new(algorithm)
    except ValueError as e:
        raise ValueError(f"Unsupported checksum algorithm: {algorithm}") from e


def hash_file(path: Path | str, algorithm: str = DEFAULT_CHECKSUM_ALGORITHM, chunk_size: int = 1 << 20) -> str:
    """Compute hash of a file.

    Args:
        path: Path to the file
        algorithm: Hash algorithm to use
        chunk_size: Size of chunks to read

    Returns:
        Hex digest of the file hash
    """
    hasher = new_hasher(algorithm)
    with open(path, "rb") as f:
        while chunk := f.read(chunk_size):
            hasher.update(chunk)
    return hasher.hexdigest()


def digests_match(expected: str, actual: str) -> bool:
    """Compare two hex digests in constant time."""
    return hmac.compare_digest(expected.lower(), actual.lower())


def short_hash(digest: str, length: int = 12) -> str:
    """Truncate a digest for display purposes."""
    _, value = split_checksum(digest)
    return value[:length]
