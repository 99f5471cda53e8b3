from __future__ import annotations

from typing import List, Optional


class ConfigurationError(Exception):
    """Raised when the agent cannot continue because of its configuration."""


class SecretFileError(ConfigurationError, OSError):
    """Raised when a ``*_FILE`` reference names a file that cannot be read."""


class MissingPathError(ConfigurationError):
    """Raised when a required file or directory does not exist."""


class StorageConfigMissingError(ConfigurationError):
    """Raised when rclone has no configuration for the requested remote."""


class PreflightError(ConfigurationError):
    """Raised after the preflight when one or more remotes were unreachable."""

    def __init__(self, message: str, failures: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.failures = failures or []


class NotificationConfigError(ConfigurationError):
    """Raised when an enabled notification channel is missing required settings."""


class DispatchError(Exception):
    """Raised by notification transports; never propagated past a channel."""
