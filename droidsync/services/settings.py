"""
Application settings management.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, asdict
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from droidsync.core.folder.sync import SyncOptions
from droidsync.core.models import IdentityMode, SyncDirection
from droidsync.services.hashing import HashAlgorithm


@dataclass
class SyncSettings:
    """Default options for a sync run."""
    direction: SyncDirection = SyncDirection.LOCAL_TO_REMOTE
    identity_mode: IdentityMode = IdentityMode.PATH_ATTRIBUTES
    delete_missing: bool = False
    hash_algorithm: HashAlgorithm = HashAlgorithm.MD5
    preserve_timestamps: bool = True
    patterns: list[str] = field(default_factory=list)
    local_root: str = ""
    remote_root: str = "/sdcard"


@dataclass
class AdbSettings:
    """Settings for the adb transport."""
    adb_path: str = ""
    device_serial: str = ""
    command_timeout: float = 120.0


@dataclass
class ApplicationSettings:
    """Main application settings container."""
    sync: SyncSettings = field(default_factory=SyncSettings)
    adb: AdbSettings = field(default_factory=AdbSettings)

    recent_devices: list[str] = field(default_factory=list)
    recent_devices_limit: int = 5

    def to_sync_options(self) -> SyncOptions:
        """Build engine options from the stored defaults."""
        return SyncOptions(
            direction=self.sync.direction,
            identity_mode=self.sync.identity_mode,
            delete_missing=self.sync.delete_missing,
            patterns=list(self.sync.patterns),
            hash_algorithm=self.sync.hash_algorithm,
            preserve_timestamps=self.sync.preserve_timestamps,
        )


class SettingsManager:
    """Manager for loading/saving application settings."""

    def __init__(self, settings_path: Optional[Path] = None):
        self.settings_path = settings_path or self._get_default_path()
        self._settings: Optional[ApplicationSettings] = None

    @staticmethod
    def _get_default_path() -> Path:
        """Get the default settings file path."""
        if os.name == 'nt':
            # Windows
            app_data = os.environ.get('APPDATA', os.path.expanduser('~'))
            return Path(app_data) / 'droidsync' / 'settings.json'
        else:
            # Linux/Mac
            config_home = os.environ.get('XDG_CONFIG_HOME',
                                         os.path.expanduser('~/.config'))
            return Path(config_home) / 'droidsync' / 'settings.json'

    @property
    def settings(self) -> ApplicationSettings:
        """Get current settings, loading from disk if needed."""
        if self._settings is None:
            self._settings = self.load()
        return self._settings

    def load(self) -> ApplicationSettings:
        """Load settings from disk, falling back to defaults."""
        if not self.settings_path.exists():
            return ApplicationSettings()

        try:
            with open(self.settings_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("settings root is not an object")
            return self._from_dict(data)
        except (OSError, ValueError) as e:
            logging.warning(f"SettingsManager - Could not load {self.settings_path}: {e}")
            return ApplicationSettings()

    def save(self, settings: Optional[ApplicationSettings] = None) -> bool:
        """Save settings to disk."""
        settings = settings or self._settings
        if settings is None:
            return False

        try:
            self.settings_path.parent.mkdir(parents=True, exist_ok=True)

            with open(self.settings_path, 'w', encoding='utf-8') as f:
                json.dump(self._to_dict(settings), f, indent=2)

            self._settings = settings
            return True

        except OSError as e:
            logging.error(f"SettingsManager - Could not save {self.settings_path}: {e}")
            return False

    def reset(self) -> ApplicationSettings:
        """Reset to default settings."""
        self._settings = ApplicationSettings()
        self.save()
        return self._settings

    def add_recent_device(self, serial: str) -> None:
        """Add a device serial to the recent devices list."""
        settings = self.settings
        recent = settings.recent_devices

        if serial in recent:
            recent.remove(serial)
        recent.insert(0, serial)
        settings.recent_devices = recent[:settings.recent_devices_limit]

        self.save()

    def _to_dict(self, settings: ApplicationSettings) -> dict:
        """Convert settings to dictionary for JSON serialization."""
        def convert(obj: Any) -> Any:
            if isinstance(obj, Enum):
                return obj.name
            elif isinstance(obj, list):
                return [convert(item) for item in obj]
            elif isinstance(obj, dict):
                return {k: convert(v) for k, v in obj.items()}
            else:
                return obj

        return convert(asdict(settings))

    def _from_dict(self, data: dict) -> ApplicationSettings:
        """
        Convert dictionary back to settings objects.

        Values of the wrong type are replaced by their defaults.
        """
        def get_enum(enum_class: type, value: Any, default: Enum) -> Enum:
            if isinstance(value, str):
                try:
                    return enum_class[value]
                except KeyError:
                    logging.warning(f"SettingsManager - Unknown {enum_class.__name__} '{value}'")
            return default

        def get_section(name: str) -> dict:
            section = data.get(name, {})
            if not isinstance(section, dict):
                logging.warning(f"SettingsManager - Ignoring malformed '{name}' section")
                return {}
            return section

        def get_value(section: dict, key: str, default: Any) -> Any:
            value = section.get(key, default)
            if isinstance(default, float) and isinstance(value, int) and not isinstance(value, bool):
                return float(value)
            if type(value) is not type(default):
                logging.warning(f"SettingsManager - Ignoring malformed value for '{key}'")
                return default
            return value

        def get_strings(section: dict, key: str) -> list[str]:
            return [str(item) for item in get_value(section, key, [])]

        sync_defaults = SyncSettings()
        sync_data = get_section('sync')
        sync = SyncSettings(
            direction=get_enum(SyncDirection, sync_data.get('direction'), sync_defaults.direction),
            identity_mode=get_enum(IdentityMode, sync_data.get('identity_mode'), sync_defaults.identity_mode),
            delete_missing=get_value(sync_data, 'delete_missing', sync_defaults.delete_missing),
            hash_algorithm=get_enum(HashAlgorithm, sync_data.get('hash_algorithm'), sync_defaults.hash_algorithm),
            preserve_timestamps=get_value(sync_data, 'preserve_timestamps', sync_defaults.preserve_timestamps),
            patterns=get_strings(sync_data, 'patterns'),
            local_root=get_value(sync_data, 'local_root', sync_defaults.local_root),
            remote_root=get_value(sync_data, 'remote_root', sync_defaults.remote_root),
        )

        adb_defaults = AdbSettings()
        adb_data = get_section('adb')
        adb = AdbSettings(
            adb_path=get_value(adb_data, 'adb_path', adb_defaults.adb_path),
            device_serial=get_value(adb_data, 'device_serial', adb_defaults.device_serial),
            command_timeout=get_value(adb_data, 'command_timeout', adb_defaults.command_timeout),
        )

        defaults = ApplicationSettings()
        return ApplicationSettings(
            sync=sync,
            adb=adb,
            recent_devices=get_strings(data, 'recent_devices'),
            recent_devices_limit=get_value(data, 'recent_devices_limit', defaults.recent_devices_limit),
        )
