"""
Exceptions raised by the synchronization engine and its providers.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all sync errors."""
    pass


class ConfigInvalid(SyncError):
    """
    Sync options are unusable (malformed pattern, missing root, ...).

    Raised before any transport call is made.
    """
    pass


class ProviderUnavailable(SyncError):
    """An enumeration or transport call itself failed (e.g. device gone)."""
    pass


class ActionFailed(SyncError):
    """A single copy/update/delete/rename could not be applied."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path
        self.message = message
