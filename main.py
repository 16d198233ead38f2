"""
Main entry point for droidsync.

This module handles:
- Command line argument parsing
- Logging configuration
- Settings loading
- Running plan/sync through the background workers
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from PyQt6.QtCore import QCoreApplication, QTimer

from droidsync import __version__
from droidsync.core.errors import ConfigInvalid, ProviderUnavailable
from droidsync.core.folder.sync import SyncEngine, SyncOptions
from droidsync.core.models import IdentityMode, SyncDirection, SyncPlan, SyncProgress, SyncRunResult
from droidsync.services.adb import AdbBridge, AdbProvider
from droidsync.services.hashing import HashAlgorithm, HashingService
from droidsync.services.providers import LocalProvider
from droidsync.services.settings import ApplicationSettings, SettingsManager
from droidsync.workers.sync_worker import SyncWorker
from droidsync.workers.base_worker import WorkerThread


# =============================================================================
# Constants
# =============================================================================

APP_NAME = "droidsync"
APP_VERSION = __version__

LOGS_DIR = Path.home() / ".cache" / APP_NAME / "logs"

DIRECTION_CHOICES = {
    'local-to-remote': SyncDirection.LOCAL_TO_REMOTE,
    'remote-to-local': SyncDirection.REMOTE_TO_LOCAL,
    'both': SyncDirection.BIDIRECTIONAL,
}

MODE_CHOICES = {
    'attributes': IdentityMode.PATH_ATTRIBUTES,
    'content': IdentityMode.CONTENT_HASH,
}


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class CommandLineArgs:
    """Parsed command line arguments."""
    command: str = "plan"
    local_path: Optional[str] = None
    remote_path: Optional[str] = None
    device: Optional[str] = None
    direction: Optional[SyncDirection] = None
    identity_mode: Optional[IdentityMode] = None
    hash_algorithm: Optional[HashAlgorithm] = None
    delete_missing: Optional[bool] = None
    patterns: list[str] = field(default_factory=list)
    adb_path: Optional[str] = None
    config_file: Optional[str] = None
    log_level: str = "INFO"
    debug: bool = False


# =============================================================================
# Logging Setup
# =============================================================================

class LogFormatter(logging.Formatter):
    """Custom log formatter with colors for console."""

    COLORS = {
        logging.INFO: '\033[32m',      # Green
        logging.WARNING: '\033[33m',   # Yellow
        logging.ERROR: '\033[31m',     # Red
        logging.CRITICAL: '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def __init__(self, use_colors: bool = True):
        super().__init__(
            fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)

        if self.use_colors:
            color = self.COLORS.get(record.levelno, '')
            return f"{color}{formatted}{self.RESET}"

        return formatted


def setup_logging(level: str = "INFO", log_file: Optional[Path] = None) -> logging.Logger:
    """
    Configure application logging.

    Args:
        level: Log level string
        log_file: Optional file path for logging

    Returns:
        Root logger instance
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    # Console handler; stdout is kept for plan/progress output
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(LogFormatter(use_colors=True))
    root_logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(
            log_file,
            encoding='utf-8'
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(LogFormatter(use_colors=False))
        root_logger.addHandler(file_handler)

    return root_logger


# =============================================================================
# Argument Parsing
# =============================================================================

def parse_arguments(args: Optional[List[str]] = None) -> CommandLineArgs:
    """
    Parse command line arguments.

    Args:
        args: Arguments to parse (defaults to sys.argv)

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description='Synchronize a local folder with a folder on an Android device.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s devices
  %(prog)s plan ~/Phone/DCIM /sdcard/DCIM --direction both
  %(prog)s sync ~/Music /sdcard/Music --pattern "*.mp3" --delete-missing
  %(prog)s sync ~/Photos /sdcard --pattern Pictures --mode content
        """
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('--adb', metavar='PATH', help='Path to the adb executable')
    common.add_argument('-s', '--device', metavar='SERIAL', help='Device serial')
    common.add_argument('-c', '--config', metavar='FILE', help='Settings file')
    common.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        default='INFO',
        help='Log level'
    )
    common.add_argument('--debug', action='store_true', help='Debug logging to a log file')

    sync_args = argparse.ArgumentParser(add_help=False)
    sync_args.add_argument('local', help='Local directory')
    sync_args.add_argument('remote', help='Directory on the device, e.g. /sdcard/DCIM')
    sync_args.add_argument(
        '-d', '--direction',
        choices=list(DIRECTION_CHOICES),
        help='Which way files flow (default from settings)'
    )
    sync_args.add_argument(
        '-m', '--mode',
        choices=list(MODE_CHOICES),
        help='File identity: path+size+mtime or content hash'
    )
    sync_args.add_argument(
        '--hash',
        choices=[a.name.lower() for a in HashAlgorithm],
        help='Hash algorithm for content mode'
    )
    sync_args.add_argument(
        '--delete-missing',
        action='store_true',
        default=None,
        help='Delete destination files missing on the source (one-way only)'
    )
    sync_args.add_argument(
        '-p', '--pattern',
        action='append',
        default=[],
        metavar='GLOB',
        help='Only sync matching files; a plain directory name includes everything below it'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)
    subparsers.add_parser('devices', parents=[common], help='List connected devices')
    subparsers.add_parser('check', parents=[common], help='Check that adb is available')
    subparsers.add_parser('plan', parents=[common, sync_args], help='Preview sync actions')
    subparsers.add_parser('sync', parents=[common, sync_args], help='Synchronize')

    parser.add_argument(
        '--version',
        action='version',
        version=f'{APP_NAME} {APP_VERSION}'
    )

    parsed = parser.parse_args(args)

    result = CommandLineArgs()
    result.command = parsed.command
    result.device = parsed.device
    result.adb_path = parsed.adb
    result.config_file = parsed.config
    result.debug = parsed.debug
    result.log_level = 'DEBUG' if parsed.debug else parsed.log_level

    if parsed.command in ('plan', 'sync'):
        result.local_path = parsed.local
        result.remote_path = parsed.remote
        result.patterns = parsed.pattern
        result.delete_missing = parsed.delete_missing
        if parsed.direction:
            result.direction = DIRECTION_CHOICES[parsed.direction]
        if parsed.mode:
            result.identity_mode = MODE_CHOICES[parsed.mode]
        if parsed.hash:
            result.hash_algorithm = HashAlgorithm.from_string(parsed.hash)

    return result


# =============================================================================
# Setup
# =============================================================================

def build_options(args: CommandLineArgs, settings: ApplicationSettings) -> SyncOptions:
    """Stored defaults overridden by command line flags."""
    options = settings.to_sync_options()
    if args.direction is not None:
        options.direction = args.direction
    if args.identity_mode is not None:
        options.identity_mode = args.identity_mode
    if args.hash_algorithm is not None:
        options.hash_algorithm = args.hash_algorithm
    if args.delete_missing is not None:
        options.delete_missing = args.delete_missing
    if args.patterns:
        options.patterns = list(args.patterns)
    return options


def build_bridge(args: CommandLineArgs, settings: ApplicationSettings) -> AdbBridge:
    return AdbBridge(
        adb_path=args.adb_path or settings.adb.adb_path or None,
        serial=args.device or settings.adb.device_serial or None,
        timeout=settings.adb.command_timeout,
    )


def build_engine(
    args: CommandLineArgs,
    settings: ApplicationSettings,
    options: SyncOptions
) -> SyncEngine:
    local = LocalProvider(
        args.local_path or settings.sync.local_root,
        HashingService(options.hash_algorithm),
    )
    remote = AdbProvider(build_bridge(args, settings), args.remote_path or settings.sync.remote_root)
    return SyncEngine(local, remote, options)


# =============================================================================
# Output
# =============================================================================

def format_size(size: int) -> str:
    value = float(size)
    for unit in ('B', 'KB', 'MB', 'GB'):
        if value < 1024 or unit == 'GB':
            return f"{value:.0f} {unit}" if unit == 'B' else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


def print_plan(plan: SyncPlan) -> None:
    for action in plan.actions:
        print(f"  {action}")
    print(f"{plan.summary.total_actions} action(s): {plan.summary} "
          f"- {format_size(plan.summary.total_transfer_bytes)} to transfer")


def print_progress(progress: SyncProgress) -> None:
    if progress.current_path:
        print(f"[{progress.completed_count}/{progress.total_count}] {progress.current_path}")


def print_result(result: SyncRunResult) -> None:
    print(f"{result.success_count} succeeded, {result.skipped_count} skipped, "
          f"{result.error_count} failed ({format_size(result.bytes_transferred)})")
    for message in result.errors:
        print(f"  error: {message}")
    if result.cancelled:
        print("Cancelled.")


# =============================================================================
# Commands
# =============================================================================

def cmd_devices(args: CommandLineArgs, settings: ApplicationSettings) -> int:
    devices = build_bridge(args, settings).devices()
    if not devices:
        print("No devices attached.")
    for device in devices:
        print(f"{device.id}\t{device.status}")
    return 0


def cmd_check(args: CommandLineArgs, settings: ApplicationSettings) -> int:
    bridge = build_bridge(args, settings)
    if bridge.is_available():
        print(f"adb found: {bridge.adb_command}")
        return 0
    print("ADB is not installed or not in PATH")
    return 1


def cmd_plan(args: CommandLineArgs, settings: ApplicationSettings) -> int:
    options = build_options(args, settings)
    engine = build_engine(args, settings, options)
    print_plan(engine.plan_sync(options))
    return 0


def cmd_sync(args: CommandLineArgs, settings: ApplicationSettings) -> int:
    """Run the sync worker on its own thread under a Qt event loop."""
    options = build_options(args, settings)
    engine = build_engine(args, settings, options)

    app = QCoreApplication.instance() or QCoreApplication([APP_NAME])
    worker = SyncWorker(engine, options=options)
    thread = WorkerThread(worker)

    worker.sync_progress.connect(print_progress)
    worker.signals.status.connect(lambda message: logging.info(message))
    thread.finished.connect(app.quit)

    # Ctrl+C cancels between actions
    signal.signal(signal.SIGINT, lambda signum, frame: thread.cancel())
    timer = QTimer()
    timer.timeout.connect(lambda: None)  # Lets Python handle signals
    timer.start(200)

    thread.start()
    app.exec()
    thread.wait()
    timer.stop()

    if thread.error:
        kind, message = thread.error
        print(f"Sync failed ({kind}): {message}")
        return 1

    result = thread.result
    if result is None:
        print("Cancelled before any action ran.")
        return 1

    print_result(result)
    if args.device:
        SettingsManager(Path(args.config_file) if args.config_file else None).add_recent_device(args.device)
    return 0 if result.success else 1


COMMANDS = {
    'devices': cmd_devices,
    'check': cmd_check,
    'plan': cmd_plan,
    'sync': cmd_sync,
}


# =============================================================================
# Main Function
# =============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    """
    Application main entry point.

    Returns:
        Exit code (0 for success)
    """
    args = parse_arguments(argv)

    log_file = LOGS_DIR / f"{APP_NAME}_{datetime.now():%Y%m%d}.log" if args.debug else None
    logger = setup_logging(args.log_level, log_file)
    logger.debug(f"Starting {APP_NAME} v{APP_VERSION}")

    settings = SettingsManager(Path(args.config_file) if args.config_file else None).settings

    try:
        return COMMANDS[args.command](args, settings)
    except ConfigInvalid as e:
        logger.error(f"Invalid configuration: {e}")
        return 1
    except ProviderUnavailable as e:
        logger.error(f"Device unavailable: {e}")
        return 1
    except InterruptedError:
        logger.warning("Cancelled")
        return 1


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == '__main__':
    sys.exit(main())
