from __future__ import annotations

import logging
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

from .env_file import DOTENV_PREFIX, build_pool
from .errors import SecretFileError

LOG = logging.getLogger(__name__)

FILE_SUFFIX = "_FILE"


class VariableResolver:
    """Resolves named settings from the native environment and the env file.

    Candidates are checked in this order, and the first non-empty one wins:

    1. ``NAME`` from the native environment.
    2. ``NAME_FILE`` from the native environment, naming a file whose content is the value.
    3. ``DOTENV_NAME_FILE`` from the env file, resolved like (2).
    4. ``DOTENV_NAME`` from the env file.

    Resolved values are remembered so that every later lookup and every
    subprocess started with :meth:`exported_environ` sees one canonical value.
    The lookup pool itself is never modified.
    """

    def __init__(self, pool: Mapping[str, str]) -> None:
        self._pool: Mapping[str, str] = MappingProxyType(dict(pool))
        self._resolved: Dict[str, str] = {}

    @classmethod
    def from_environment(
        cls,
        env_file: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "VariableResolver":
        return cls(build_pool(env_file=env_file, environ=environ))

    @staticmethod
    def candidates(name: str) -> Tuple[Tuple[str, bool], ...]:
        """Return ``(variable, is_file_reference)`` pairs in precedence order."""
        file_name = f"{name}{FILE_SUFFIX}"
        return (
            (name, False),
            (file_name, True),
            (f"{DOTENV_PREFIX}{file_name}", True),
            (f"{DOTENV_PREFIX}{name}", False),
        )

    def resolve(self, name: str, *, strip_newlines: bool = False) -> str:
        if name in self._resolved:
            value = self._resolved[name]
            return value.rstrip("\r\n") if strip_newlines else value

        value = ""
        for candidate, is_file in self.candidates(name):
            raw = self._pool.get(candidate, "")
            if not raw:
                continue
            value = self._read_secret(candidate, raw) if is_file else raw
            break

        self._resolved[name] = value
        return value.rstrip("\r\n") if strip_newlines else value

    def get(self, name: str, default: str = "") -> str:
        """Resolve ``name`` for configuration use, falling back to ``default`` when empty."""
        return self.resolve(name, strip_newlines=True) or default

    def resolved(self) -> Mapping[str, str]:
        return MappingProxyType(dict(self._resolved))

    def exported_environ(self) -> Dict[str, str]:
        """Native environment overlaid with every resolved value, for subprocesses."""
        env = dict(self._pool)
        env.update(self._resolved)
        return env

    @staticmethod
    def _read_secret(variable: str, path: str) -> str:
        try:
            # Bytes that are not UTF-8 survive as surrogates, as os.environ keeps them.
            return Path(path).read_bytes().decode("utf-8", errors="surrogateescape")
        except OSError as exc:
            LOG.error("Cannot read %s referenced by %s: %s", path, variable, exc)
            raise SecretFileError(f"cannot read {path} referenced by {variable}: {exc}") from exc

