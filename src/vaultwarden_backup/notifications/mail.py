from __future__ import annotations

import logging
import subprocess
from typing import Callable, List, Mapping, Optional

from vaultwarden_backup.config import MailPolicy, split_arguments
from vaultwarden_backup.errors import DispatchError

from .events import Outcome, wants

LOG = logging.getLogger(__name__)

MAIL_TIMEOUT = 60

Runner = Callable[..., "subprocess.CompletedProcess[str]"]


class MailNotifier:
    """Sends notifications through the ``mail`` binary (s-nail)."""

    def __init__(
        self,
        policy: MailPolicy,
        runner: Runner = subprocess.run,
        env: Optional[Mapping[str, str]] = None,
        binary: str = "mail",
        timeout: float = MAIL_TIMEOUT,
    ) -> None:
        self._policy = policy
        self._runner = runner
        self._env = dict(env) if env is not None else None
        self._binary = binary
        self._timeout = timeout

    def notify(self, outcome: Outcome, subject: str, body: str) -> None:
        if not self._policy.enabled:
            return
        if not wants(
            outcome,
            on_success=self._policy.notify_on_success,
            on_failure=self._policy.notify_on_failure,
        ):
            return
        try:
            self.send(subject, body)
        except DispatchError as exc:
            LOG.error("Mail sending has failed: %s", exc)

    def build_command(self, subject: str) -> List[str]:
        cmd = [self._binary]
        if self._policy.debug:
            cmd.append("-v")
        cmd.extend(["-s", subject])
        cmd.extend(split_arguments(self._policy.smtp_variables, "MAIL_SMTP_VARIABLES"))
        cmd.append(self._policy.to)
        return cmd

    def send(self, subject: str, body: str) -> None:
        if not self._policy.to:
            raise DispatchError("no mail recipient configured")

        try:
            cmd = self.build_command(subject)
        except ValueError as exc:
            raise DispatchError(str(exc)) from exc

        try:
            self._runner(
                cmd,
                input=body,
                env=self._env,
                text=True,
                capture_output=True,
                check=True,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise DispatchError(f"mail did not finish within {self._timeout}s") from exc
        except subprocess.CalledProcessError as exc:
            raise DispatchError(f"mail exited with {exc.returncode}: {(exc.stderr or '').strip()}") from exc
        except OSError as exc:
            raise DispatchError(f"cannot run {self._binary}: {exc}") from exc
        except UnicodeError as exc:
            raise DispatchError(f"cannot encode mail for {self._binary}: {exc}") from exc
        LOG.info("Mail has been sent successfully to %s", self._policy.to)
