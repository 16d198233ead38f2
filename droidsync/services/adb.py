"""
Android Debug Bridge transport.

Provides:
- adb executable discovery and configuration
- Device listing
- Shell command execution with argument quoting
- AdbProvider, the device side of a sync
"""

from __future__ import annotations

import logging
import os
import posixpath
import re
import shlex
import shutil
import stat
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional

from droidsync.core.errors import ActionFailed, ConfigInvalid, ProviderUnavailable
from droidsync.core.models import RawEntry
from droidsync.services.hashing import HashAlgorithm
from droidsync.services.providers import StorageProvider


COMMON_ADB_PATHS = [
    "/opt/homebrew/bin/adb",                      # Homebrew on Apple Silicon
    "/usr/local/bin/adb",                         # Homebrew on Intel
    "/opt/local/bin/adb",                         # MacPorts
    "~/Library/Android/sdk/platform-tools/adb",   # Android Studio (macOS)
    "~/Android/Sdk/platform-tools/adb",           # Android Studio (Linux)
]

# adb's own failures, as opposed to a failing remote command
_TRANSPORT_ERROR = re.compile(
    r"^(?:adb: )?error: (?:device|no devices|closed|protocol fault|more than one|cannot connect)",
    re.MULTILINE,
)

# Keeps a single shell command line well below device ARG_MAX
MAX_COMMAND_LENGTH = 32 * 1024


@dataclass
class CommandOutput:
    """Captured output of one adb invocation."""
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def message(self) -> str:
        text = self.stderr.strip() or self.stdout.strip()
        return text or f"exit code {self.returncode}"


CommandRunner = Callable[[list[str], float], CommandOutput]


@dataclass
class AdbDevice:
    """A device as reported by `adb devices`."""
    id: str
    status: str

    @property
    def is_ready(self) -> bool:
        return self.status == "device"


@dataclass
class DirectoryListing:
    """One line of `ls -la` output on the device."""
    name: str
    permissions: str
    size: str
    date: str
    is_directory: bool


def find_adb_path() -> Optional[str]:
    """Look for adb in common install locations."""
    for candidate in COMMON_ADB_PATHS:
        expanded = os.path.expanduser(candidate)
        if expanded.startswith('~'):
            continue
        if Path(expanded).exists():
            return expanded
    return None


def run_subprocess(args: list[str], timeout: float) -> CommandOutput:
    """Default command runner."""
    completed = subprocess.run(args, capture_output=True, timeout=timeout)
    return CommandOutput(
        returncode=completed.returncode,
        stdout=completed.stdout.decode('utf-8', errors='replace'),
        stderr=completed.stderr.decode('utf-8', errors='replace'),
    )


def parse_devices(output: str) -> list[AdbDevice]:
    """Parse `adb devices` output, skipping the header line."""
    devices = []
    for line in output.splitlines()[1:]:
        parts = line.split()
        if len(parts) >= 2:
            devices.append(AdbDevice(id=parts[0], status=parts[1]))
    return devices


def parse_ls_line(line: str) -> Optional[DirectoryListing]:
    """
    Parse a single line of Android `ls -la` output.

    Format: permissions [links] owner group size date time name
    Example: drwxrwx--- 2 root sdcard_rw 3488 2025-02-01 06:31 DCIM
    """
    parts = line.split()
    if len(parts) < 7:
        return None

    permissions = parts[0]

    # The time field is the first one containing ':'
    time_idx = next((i for i, p in enumerate(parts) if ':' in p), None)
    if time_idx is None or time_idx + 1 >= len(parts):
        return None

    name = ' '.join(parts[time_idx + 1:])
    if name in ('.', '..', ''):
        return None

    date_part = parts[time_idx - 1] if time_idx > 0 else ''
    size = parts[time_idx - 2] if time_idx >= 2 else '0'

    return DirectoryListing(
        name=name,
        permissions=permissions,
        size=size,
        date=f"{date_part} {parts[time_idx]}",
        is_directory=permissions.startswith('d'),
    )


_SUM_ESCAPES = {'\\': '\\', 'n': '\n', 'r': '\r'}


def parse_sum_line(line: str, digest_length: int) -> Optional[tuple[str, str]]:
    """
    Parse one `md5sum`/`sha*sum` output line into (digest, name).

    A name containing a backslash or newline is printed escaped, with a
    leading '\\' on the line.
    """
    escaped = line.startswith('\\')
    if escaped:
        line = line[1:]

    digest = line[:digest_length]
    separator = line[digest_length:digest_length + 2]
    name = line[digest_length + 2:]
    if separator not in ('  ', ' *') or not re.fullmatch(r'[0-9a-fA-F]{%d}' % digest_length, digest):
        return None

    if escaped:
        name = re.sub(r'\\(.)', lambda m: _SUM_ESCAPES.get(m.group(1), m.group(1)), name)
    return digest.lower(), name


class AdbBridge:
    """
    Runs adb commands against one device.

    The adb executable path is resolved lazily and cached on the instance:
    configured path, then common install locations, then plain `adb`.
    """

    def __init__(
        self,
        adb_path: Optional[str] = None,
        serial: Optional[str] = None,
        timeout: float = 120.0,
        runner: Optional[CommandRunner] = None
    ):
        self._adb_path: Optional[str] = None
        self.serial = serial
        self.timeout = timeout
        self._runner = runner or run_subprocess
        if adb_path:
            self.set_adb_path(adb_path)

    @property
    def adb_command(self) -> str:
        """The adb executable to invoke."""
        if self._adb_path is None:
            self._adb_path = find_adb_path() or shutil.which('adb') or 'adb'
            logging.debug(f"AdbBridge - Using adb at {self._adb_path}")
        return self._adb_path

    def set_adb_path(self, path: str) -> None:
        """Use a specific adb executable."""
        expanded = os.path.expanduser(path)
        if not Path(expanded).exists():
            raise ConfigInvalid(f"ADB executable not found at specified path: {path}")
        self._adb_path = expanded

    def run(self, args: list[str], timeout: Optional[float] = None) -> CommandOutput:
        """
        Run adb with the given arguments.

        Raises:
            ProviderUnavailable: adb is missing, timed out, or could not
                reach the device
        """
        command = [self.adb_command]
        if self.serial:
            command += ['-s', self.serial]
        command += args

        try:
            output = self._runner(command, timeout or self.timeout)
        except FileNotFoundError:
            raise ProviderUnavailable("ADB is not installed or not in PATH") from None
        except subprocess.TimeoutExpired:
            raise ProviderUnavailable(f"adb {args[0]} timed out") from None
        except OSError as e:
            raise ProviderUnavailable(f"Failed to execute adb command: {e}") from e

        if not output.ok and _TRANSPORT_ERROR.search(output.stderr):
            logging.error(f"AdbBridge - Transport failure: {output.stderr.strip()}")
            raise ProviderUnavailable(output.stderr.strip())

        return output

    def shell(self, command: str, timeout: Optional[float] = None) -> CommandOutput:
        """Run a shell command line on the device."""
        logging.debug(f"AdbBridge - shell: {command}")
        return self.run(['shell', command], timeout)

    def devices(self) -> list[AdbDevice]:
        """List devices known to the adb server (ignores the serial)."""
        try:
            output = self._runner([self.adb_command, 'devices'], self.timeout)
        except (OSError, subprocess.TimeoutExpired) as e:
            raise ProviderUnavailable(f"Failed to execute adb command: {e}") from e
        if not output.ok:
            raise ProviderUnavailable(f"ADB command failed: {output.message}")
        return parse_devices(output.stdout)

    def is_available(self) -> bool:
        """Check if adb can be executed."""
        try:
            output = self._runner([self.adb_command, 'version'], self.timeout)
        except (OSError, subprocess.TimeoutExpired):
            return False
        return output.ok

    def list_directory(self, path: str) -> list[DirectoryListing]:
        """List one device directory with `ls -la`."""
        output = self.shell(f"ls -la {shlex.quote(path)}")
        if not output.ok:
            raise ProviderUnavailable(f"ADB ls command failed: {output.message}")

        listing = []
        for line in output.stdout.splitlines():
            if not line.strip() or line.startswith('total'):
                continue
            entry = parse_ls_line(line)
            if entry is not None:
                listing.append(entry)
        return listing


def _batches(paths: list[str], prefix_length: int) -> Iterator[list[str]]:
    """Split quoted paths into command lines of bounded length."""
    batch: list[str] = []
    length = prefix_length
    for path in paths:
        quoted = shlex.quote(path)
        if batch and length + len(quoted) + 1 > MAX_COMMAND_LENGTH:
            yield batch
            batch = []
            length = prefix_length
        batch.append(path)
        length += len(quoted) + 1
    if batch:
        yield batch


class AdbProvider(StorageProvider):
    """Provider backed by a directory on an Android device."""

    name = "remote"

    def __init__(self, bridge: AdbBridge, root: str):
        self.bridge = bridge
        root = root.replace('\\', '/')
        self._root = root.rstrip('/') or '/'

    @property
    def root(self) -> str:
        return self._root

    def remote_path(self, path: str) -> str:
        """Absolute device path for a root-relative path."""
        if not path:
            return self._root
        return posixpath.join(self._root, path)

    def _relative(self, absolute: str) -> Optional[str]:
        prefix = self._root if self._root.endswith('/') else self._root + '/'
        if not absolute.startswith(prefix):
            return None
        return absolute[len(prefix):] or None

    def exists(self) -> bool:
        output = self.bridge.shell(f"[ -d {shlex.quote(self._root)} ] && echo ok")
        return output.stdout.strip() == 'ok'

    def list_entries(self, scan_root: str = '', recursive: bool = True) -> list[RawEntry]:
        start = shlex.quote(self.remote_path(scan_root))
        depth = '' if recursive else ' -maxdepth 1'
        # Errors for unreadable subtrees go to /dev/null; `true` keeps the
        # exit status for adb-level failures only.
        command = (
            f"[ -d {start} ] && find {start} -mindepth 1{depth} "
            f"-exec stat -c '%s %Y %f %n' {{}} + 2>/dev/null; true"
        )
        output = self.bridge.shell(command)
        if not output.ok:
            raise ProviderUnavailable(f"Listing {self.remote_path(scan_root)} failed: {output.message}")

        entries = []
        for line in output.stdout.splitlines():
            entry = self._parse_stat_line(line)
            if entry is not None:
                entries.append(entry)
        return entries

    def _parse_stat_line(self, line: str) -> Optional[RawEntry]:
        parts = line.split(' ', 3)
        if len(parts) != 4:
            return None
        size, mtime, mode, absolute = parts
        try:
            size_value = int(size)
            mtime_value = int(mtime)
            mode_value = int(mode, 16)
        except ValueError:
            logging.debug(f"AdbProvider - Unparsable stat line: {line!r}")
            return None

        relative = self._relative(absolute)
        if relative is None:
            return None

        if stat.S_ISDIR(mode_value):
            return RawEntry(relative, 0, mtime_value, True)
        if stat.S_ISREG(mode_value):
            return RawEntry(relative, size_value, mtime_value, False)
        return None

    def supports_algorithm(self, algorithm: HashAlgorithm) -> bool:
        return algorithm.command is not None

    def hash_file(self, path: str, algorithm: HashAlgorithm) -> Optional[str]:
        return self.hash_files([path], algorithm).get(path)

    def hash_files(
        self,
        paths: Iterable[str],
        algorithm: HashAlgorithm
    ) -> dict[str, Optional[str]]:
        """Hash files in as few shell round-trips as possible."""
        if algorithm.command is None:
            raise ConfigInvalid(f"{algorithm.name} is not available on the device")

        paths = list(paths)
        digests: dict[str, Optional[str]] = {path: None for path in paths}
        prefix = f"cd {shlex.quote(self._root)} && {algorithm.command} --"
        suffix = " 2>/dev/null; true"

        for batch in _batches(paths, len(prefix) + len(suffix)):
            command = prefix + ' ' + ' '.join(shlex.quote(p) for p in batch) + suffix
            output = self.bridge.shell(command)
            if not output.ok:
                raise ProviderUnavailable(f"Hashing failed: {output.message}")

            for line in output.stdout.splitlines():
                parsed = parse_sum_line(line, algorithm.digest_length)
                if parsed is not None and parsed[1] in digests:
                    digests[parsed[1]] = parsed[0]

        missing = [path for path, digest in digests.items() if digest is None]
        if missing:
            logging.warning(f"AdbProvider - {len(missing)} file(s) could not be hashed")
            logging.debug(f"AdbProvider - Unhashed: {missing}")
        return digests

    def _run_action(self, path: str, command: str) -> None:
        output = self.bridge.shell(command)
        if not output.ok:
            raise ActionFailed(path, output.message)

    def delete(self, path: str) -> None:
        self._run_action(path, f"rm -- {shlex.quote(self.remote_path(path))}")

    def rename(self, old_path: str, new_path: str) -> None:
        self.ensure_parent(new_path)
        self._run_action(
            new_path,
            f"mv -f -- {shlex.quote(self.remote_path(old_path))} "
            f"{shlex.quote(self.remote_path(new_path))}"
        )

    def make_dirs(self, path: str) -> None:
        self._run_action(path, f"mkdir -p -- {shlex.quote(self.remote_path(path))}")

    def set_modified_time(self, path: str, modified_time: int) -> bool:
        output = self.bridge.shell(
            f"touch -m -d @{int(modified_time)} -- {shlex.quote(self.remote_path(path))}"
        )
        if not output.ok:
            logging.debug(f"AdbProvider - Could not set mtime on {path}: {output.message}")
        return output.ok

    def pull(self, path: str, local_target: Path) -> int:
        local_target = Path(local_target)
        local_target.parent.mkdir(parents=True, exist_ok=True)
        output = self.bridge.run(['pull', self.remote_path(path), str(local_target)])
        if not output.ok:
            raise ActionFailed(path, output.message)
        return local_target.stat().st_size

    def push(self, local_source: Path, path: str) -> int:
        local_source = Path(local_source)
        output = self.bridge.run(['push', str(local_source), self.remote_path(path)])
        if not output.ok:
            raise ActionFailed(path, output.message)
        return local_source.stat().st_size
