from __future__ import annotations

import os
from typing import Callable, Dict

import pytest

from vaultwarden_backup.resolver import VariableResolver


@pytest.fixture
def make_resolver() -> Callable[..., VariableResolver]:
    def _factory(**pool: str) -> VariableResolver:
        return VariableResolver(pool)

    return _factory


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Dict[str, str]:
    """Strip every variable the agent reads from the process environment."""
    prefixes = (
        "CRON",
        "RCLONE_",
        "ZIP_",
        "BACKUP_",
        "TIMEZONE",
        "DATA_",
        "DB_TYPE",
        "PG_",
        "MYSQL_",
        "PING_URL",
        "MAIL_",
        "NTFY_",
        "DOTENV_",
        "ENV_FILE",
    )
    for key in list(os.environ):
        if key.startswith(prefixes):
            monkeypatch.delenv(key, raising=False)
    return dict(os.environ)
