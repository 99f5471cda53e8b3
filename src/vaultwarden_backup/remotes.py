from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Tuple

from .resolver import VariableResolver

LOG = logging.getLogger(__name__)

DEFAULT_REMOTE_NAME = "BitwardenBackup"
DEFAULT_REMOTE_DIR = "/BitwardenBackup/"


@dataclass(frozen=True)
class RemoteTarget:
    """One rclone destination, addressed as ``name:directory``."""

    name: str
    directory: str

    @classmethod
    def from_pair(cls, name: str, directory: str) -> "RemoteTarget":
        # Trailing separators are stripped from the joined form, so a bare "/"
        # leaves an empty directory (the remote root).
        joined = f"{name}:{directory}".rstrip("/")
        remote_name, _, remote_dir = joined.partition(":")
        return cls(name=remote_name, directory=remote_dir)

    @property
    def path(self) -> str:
        return f"{self.name}:{self.directory}"

    def __str__(self) -> str:
        return self.path


def enumerate_remotes(resolver: VariableResolver) -> List[RemoteTarget]:
    """Discover remotes from ``RCLONE_REMOTE_NAME_<i>`` / ``RCLONE_REMOTE_DIR_<i>`` pairs.

    Index 0 is the unsuffixed pair, falling back to the ``_0`` names and then to
    the built-in defaults, so the result always holds at least one remote.
    Discovery stops at the first index where either half of the pair is empty;
    later indices are ignored even when fully populated.
    """
    remotes: List[RemoteTarget] = []
    index = 0
    while True:
        name, directory = _resolve_pair(resolver, index)
        if not name or not directory:
            LOG.debug("No complete remote pair at index %s; stopping", index)
            break
        remotes.append(RemoteTarget.from_pair(name, directory))
        index += 1
    return remotes


def _resolve_pair(resolver: VariableResolver, index: int) -> Tuple[str, str]:
    if index == 0:
        name = resolver.get("RCLONE_REMOTE_NAME") or resolver.get("RCLONE_REMOTE_NAME_0", DEFAULT_REMOTE_NAME)
        directory = resolver.get("RCLONE_REMOTE_DIR") or resolver.get("RCLONE_REMOTE_DIR_0", DEFAULT_REMOTE_DIR)
        return name, directory
    return resolver.get(f"RCLONE_REMOTE_NAME_{index}"), resolver.get(f"RCLONE_REMOTE_DIR_{index}")
