"""
Content digests for hash identity mode.

The digest names line up with the coreutils/toybox ``*sum`` commands so a
local digest and a device digest of the same bytes compare equal.
"""

from __future__ import annotations

import hashlib
import logging
from enum import Enum, auto
from pathlib import Path
from typing import Optional

import xxhash


class HashAlgorithm(Enum):
    """Supported hash algorithms."""
    MD5 = auto()
    SHA1 = auto()
    SHA256 = auto()
    SHA512 = auto()
    XXH64 = auto()  # Local only; no device command produces it

    @property
    def command(self) -> Optional[str]:
        """Device command printing this digest, if any."""
        return _DEVICE_COMMANDS.get(self)

    @property
    def digest_length(self) -> int:
        """Length of the hex digest."""
        return _DIGEST_LENGTHS[self]

    @classmethod
    def from_string(cls, value: str) -> 'HashAlgorithm':
        try:
            return cls[value.upper().replace('-', '')]
        except KeyError:
            raise ValueError(f"Unknown hash algorithm: {value}") from None

    def new_hasher(self):
        if self is HashAlgorithm.XXH64:
            return xxhash.xxh64()
        return hashlib.new(self.name.lower())


_DEVICE_COMMANDS = {
    HashAlgorithm.MD5: 'md5sum',
    HashAlgorithm.SHA1: 'sha1sum',
    HashAlgorithm.SHA256: 'sha256sum',
    HashAlgorithm.SHA512: 'sha512sum',
}

_DIGEST_LENGTHS = {
    HashAlgorithm.MD5: 32,
    HashAlgorithm.SHA1: 40,
    HashAlgorithm.SHA256: 64,
    HashAlgorithm.SHA512: 128,
    HashAlgorithm.XXH64: 16,
}


class HashingService:
    """Hashes local files in fixed-size chunks."""

    def __init__(
        self,
        default_algorithm: HashAlgorithm = HashAlgorithm.MD5,
        chunk_size: int = 65536
    ):
        self.default_algorithm = default_algorithm
        self.chunk_size = chunk_size

    def hash_file(
        self,
        path: Path | str,
        algorithm: Optional[HashAlgorithm] = None
    ) -> str:
        """
        Compute the lowercase hex digest of a file.

        Raises:
            OSError: if the file cannot be read
        """
        hasher = (algorithm or self.default_algorithm).new_hasher()

        with open(path, 'rb') as f:
            while chunk := f.read(self.chunk_size):
                hasher.update(chunk)

        return hasher.hexdigest()

    def try_hash_file(
        self,
        path: Path | str,
        algorithm: Optional[HashAlgorithm] = None
    ) -> Optional[str]:
        """Hash a file, returning None when it cannot be read."""
        try:
            return self.hash_file(path, algorithm)
        except OSError as e:
            logging.warning(f"HashingService - Could not hash {path}: {e}")
            return None
