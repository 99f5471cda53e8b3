"""Vaultwarden backup agent: configuration, notifications and storage preflight."""

from __future__ import annotations

from .config import BackupConfig, ConfigurationError, load_config  # noqa: F401
from .resolver import VariableResolver  # noqa: F401
