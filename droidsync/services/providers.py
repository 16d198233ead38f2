"""
Storage providers: the two sides of a sync.

A provider enumerates the files under its sync root and applies transfer,
delete and rename operations to them. The engine only talks to the
StorageProvider interface; LocalProvider is backed by the filesystem and
AdbProvider (see adb.py) by a device shell.
"""

from __future__ import annotations

import logging
import os
import stat
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import Iterable, Optional

from droidsync.core.errors import ActionFailed
from droidsync.core.models import RawEntry
from droidsync.services.hashing import HashAlgorithm, HashingService


def join_relative(*parts: str) -> str:
    """Join root-relative path segments with '/' ignoring empty parts."""
    return '/'.join(p.strip('/') for p in parts if p and p.strip('/'))


def parent_of(relative_path: str) -> str:
    parent = str(PurePosixPath(relative_path).parent)
    return '' if parent == '.' else parent


class StorageProvider(ABC):
    """
    Enumeration and transport capability for one side of a sync.

    All paths are relative to the provider's root and use '/' separators.
    """

    name: str = "provider"

    @property
    @abstractmethod
    def root(self) -> str:
        """The sync root as the user would write it."""
        pass

    @abstractmethod
    def exists(self) -> bool:
        """Check if the sync root exists and is a directory."""
        pass

    @abstractmethod
    def list_entries(self, scan_root: str = '', recursive: bool = True) -> list[RawEntry]:
        """
        Enumerate entries beneath ``scan_root``.

        Unreadable entries are skipped. A scan root that does not exist
        yields an empty list.
        """
        pass

    @abstractmethod
    def supports_algorithm(self, algorithm: HashAlgorithm) -> bool:
        pass

    @abstractmethod
    def hash_file(self, path: str, algorithm: HashAlgorithm) -> Optional[str]:
        """Hex digest of a file, or None if it cannot be read."""
        pass

    def hash_files(
        self,
        paths: Iterable[str],
        algorithm: HashAlgorithm
    ) -> dict[str, Optional[str]]:
        """Hash several files. Providers may batch this into fewer calls."""
        return {path: self.hash_file(path, algorithm) for path in paths}

    @abstractmethod
    def delete(self, path: str) -> None:
        pass

    @abstractmethod
    def rename(self, old_path: str, new_path: str) -> None:
        pass

    @abstractmethod
    def make_dirs(self, path: str) -> None:
        """Create a directory and any missing parents."""
        pass

    @abstractmethod
    def set_modified_time(self, path: str, modified_time: int) -> bool:
        """Best-effort timestamp update. Returns False on failure."""
        pass

    @abstractmethod
    def pull(self, path: str, local_target: Path) -> int:
        """Copy a provider file to a local filesystem path. Returns bytes."""
        pass

    @abstractmethod
    def push(self, local_source: Path, path: str) -> int:
        """
        Copy a local filesystem file into the provider. Returns bytes.

        The parent directory is created by the caller (see ensure_parent).
        """
        pass

    def ensure_parent(self, path: str) -> None:
        parent = parent_of(path)
        if parent:
            self.make_dirs(parent)


class LocalProvider(StorageProvider):
    """Provider backed by a directory on the local filesystem."""

    name = "local"

    def __init__(
        self,
        root: Path | str,
        hashing: Optional[HashingService] = None,
        buffer_size: int = 65536
    ):
        self._root = Path(root).expanduser()
        self.hashing = hashing or HashingService()
        self.buffer_size = buffer_size

    @property
    def root(self) -> str:
        return str(self._root)

    @property
    def root_path(self) -> Path:
        return self._root

    def exists(self) -> bool:
        return self._root.is_dir()

    def local_path(self, path: str) -> Path:
        """Absolute filesystem path for a root-relative path."""
        if not path:
            return self._root
        if '..' in path.split('/'):
            raise ActionFailed(path, "path escapes the sync root")
        return self._root.joinpath(*path.split('/'))

    def list_entries(self, scan_root: str = '', recursive: bool = True) -> list[RawEntry]:
        start = self.local_path(scan_root)
        if not start.is_dir():
            logging.debug(f"LocalProvider - Scan root not found: {start}")
            return []

        entries: list[RawEntry] = []

        def on_walk_error(error: OSError) -> None:
            logging.warning(f"LocalProvider - Walk error at {error.filename}: {error.strerror}")

        for dirpath, dirnames, filenames in os.walk(start, topdown=True, onerror=on_walk_error):
            current = Path(dirpath)
            rel_dir = current.relative_to(self._root).as_posix()
            rel_dir = '' if rel_dir == '.' else rel_dir

            dirnames.sort()
            filenames.sort()

            for name in dirnames + filenames:
                entry = self._stat_entry(current / name, join_relative(rel_dir, name))
                if entry is not None:
                    entries.append(entry)

            if not recursive:
                dirnames.clear()

        return entries

    def _stat_entry(self, full_path: Path, relative_path: str) -> Optional[RawEntry]:
        try:
            st = full_path.lstat()
        except OSError as e:
            logging.warning(f"LocalProvider - Could not stat {full_path}: {e}")
            return None

        if stat.S_ISDIR(st.st_mode):
            return RawEntry(relative_path, 0, int(st.st_mtime), True)
        if stat.S_ISREG(st.st_mode):
            return RawEntry(relative_path, st.st_size, int(st.st_mtime), False)

        # Symlinks, sockets, devices
        logging.debug(f"LocalProvider - Skipping non-regular entry {full_path}")
        return None

    def supports_algorithm(self, algorithm: HashAlgorithm) -> bool:
        return True

    def hash_file(self, path: str, algorithm: HashAlgorithm) -> Optional[str]:
        return self.hashing.try_hash_file(self.local_path(path), algorithm)

    def delete(self, path: str) -> None:
        self.local_path(path).unlink()

    def rename(self, old_path: str, new_path: str) -> None:
        self.ensure_parent(new_path)
        os.replace(self.local_path(old_path), self.local_path(new_path))

    def make_dirs(self, path: str) -> None:
        self.local_path(path).mkdir(parents=True, exist_ok=True)

    def set_modified_time(self, path: str, modified_time: int) -> bool:
        try:
            os.utime(self.local_path(path), (modified_time, modified_time))
            return True
        except OSError as e:
            logging.debug(f"LocalProvider - Could not set mtime on {path}: {e}")
            return False

    def pull(self, path: str, local_target: Path) -> int:
        return self._copy_file(self.local_path(path), Path(local_target))

    def push(self, local_source: Path, path: str) -> int:
        return self._copy_file(Path(local_source), self.local_path(path))

    def _copy_file(self, source: Path, dest: Path) -> int:
        """
        Copy a file from source to destination.

        Returns bytes copied.
        """
        dest.parent.mkdir(parents=True, exist_ok=True)

        bytes_copied = 0

        with open(source, 'rb') as src:
            with open(dest, 'wb') as dst:
                while chunk := src.read(self.buffer_size):
                    dst.write(chunk)
                    bytes_copied += len(chunk)

        return bytes_copied
