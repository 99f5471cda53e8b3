from __future__ import annotations

import base64
import logging
from typing import Dict, Optional

import requests

from vaultwarden_backup.config import NtfyPolicy
from vaultwarden_backup.errors import DispatchError, NotificationConfigError

from .events import Outcome, wants

LOG = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class NtfyNotifier:
    """Publishes notifications to an ntfy topic."""

    def __init__(
        self,
        policy: NtfyPolicy,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._policy = policy
        self._session = session or requests.Session()
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

        priority = (
            self._policy.priority_success if outcome == Outcome.SUCCESS else self._policy.priority_failure
        )
        try:
            self.send(subject, body, priority)
        except DispatchError as exc:
            LOG.error("ntfy sending has failed: %s", exc)

    @property
    def url(self) -> str:
        return f"{self._policy.server.rstrip('/')}/{self._policy.topic}"

    def build_headers(self, subject: str, priority: str) -> Dict[str, str]:
        headers = {"Title": subject, "X-Priority": priority}
        if self._policy.password:
            credentials = f"{self._policy.username}:{self._policy.password}".encode("utf-8")
            headers["Authorization"] = f"Basic {base64.b64encode(credentials).decode('ascii')}"
        elif self._policy.token:
            headers["Authorization"] = f"Bearer {self._policy.token}"
        return headers

    def send(self, subject: str, body: str, priority: str) -> None:
        if not self._policy.server:
            # Enabled without a server cannot degrade silently.
            raise NotificationConfigError("ntfy is enabled but no NTFY_SERVER is configured")

        try:
            headers = self.build_headers(subject, priority)
            response = self._session.post(
                self.url,
                data=body.encode("utf-8"),
                headers=headers,
                timeout=self._timeout,
            )
        except (requests.RequestException, UnicodeError) as exc:
            raise DispatchError(str(exc)) from exc

        if response.status_code != 200:
            raise DispatchError(
                f"response code {response.status_code}, response body: {response.text}"
            )
        LOG.info("ntfy has been sent successfully to %s", self.url)
