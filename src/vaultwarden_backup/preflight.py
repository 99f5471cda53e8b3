from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Callable, List, Mapping, Optional, Sequence, Union

from .errors import MissingPathError, PreflightError, StorageConfigMissingError
from .remotes import RemoteTarget

LOG = logging.getLogger(__name__)

Runner = Callable[..., "subprocess.CompletedProcess[str]"]

RCLONE_TIMEOUT = 120

RCLONE_SETUP_HINT = (
    "Please configure rclone first, check "
    "https://github.com/ttionya/vaultwarden-backup/blob/master/README.md#backup"
)


class RcloneError(Exception):
    """Raised when an rclone command fails."""


class RcloneClient:
    """Thin wrapper over the ``rclone`` binary used by the preflight."""

    def __init__(
        self,
        global_flags: Sequence[str] = (),
        env: Optional[Mapping[str, str]] = None,
        runner: Runner = subprocess.run,
        binary: str = "rclone",
        timeout: float = RCLONE_TIMEOUT,
    ) -> None:
        self._global_flags = list(global_flags)
        self._env = dict(env) if env is not None else None
        self._runner = runner
        self._binary = binary
        self._timeout = timeout

    def _run(self, *args: str) -> "subprocess.CompletedProcess[str]":
        cmd = [self._binary, *self._global_flags, *args]
        LOG.debug("Running %s", " ".join(cmd))
        try:
            return self._runner(
                cmd,
                env=self._env,
                text=True,
                capture_output=True,
                check=False,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise RcloneError(f"{self._binary} {args[0]} did not finish within {self._timeout}s") from exc
        except OSError as exc:
            raise RcloneError(f"cannot run {self._binary}: {exc}") from exc

    def config_exists(self, name: str) -> bool:
        try:
            result = self._run("config", "show", name)
        except RcloneError as exc:
            LOG.error("%s", exc)
            return False
        return result.returncode == 0

    def mkdir(self, remote: RemoteTarget) -> None:
        result = self._run("mkdir", remote.path)
        if result.returncode != 0:
            raise RcloneError((result.stderr or "").strip() or f"exit status {result.returncode}")


def require_directory(path: Union[str, Path]) -> Path:
    directory = Path(path)
    if not directory.is_dir():
        LOG.error("cannot access %s: No such directory", directory)
        raise MissingPathError(f"cannot access {directory}: No such directory")
    return directory


def check_connectivity(
    remotes: Sequence[RemoteTarget],
    rclone: RcloneClient,
    profile_name: Optional[str] = None,
) -> None:
    """Make sure every remote is reachable before any backup work starts.

    A missing rclone profile fails immediately. Remotes are then checked one at
    a time with ``rclone mkdir``; every failure is logged, and
    :class:`PreflightError` is raised only once all remotes have been tried.
    """
    if not remotes:
        raise StorageConfigMissingError("no rclone remotes configured")

    name = profile_name or remotes[0].name
    if not rclone.config_exists(name):
        LOG.error("rclone configuration information not found for '%s'", name)
        LOG.info(RCLONE_SETUP_HINT)
        raise StorageConfigMissingError(f"rclone configuration information not found for '{name}'")

    failures: List[str] = []
    for remote in remotes:
        try:
            rclone.mkdir(remote)
        except RcloneError as exc:
            LOG.error("storage system connection failure [%s]: %s", remote.path, exc)
            failures.append(remote.path)
        else:
            LOG.info("storage system connection ok [%s]", remote.path)

    if failures:
        raise PreflightError(
            f"storage system connection failure for {', '.join(failures)}",
            failures=failures,
        )
