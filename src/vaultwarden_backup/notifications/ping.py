from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Tuple

import requests
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from vaultwarden_backup.config import PingPolicy

from .events import Outcome

LOG = logging.getLogger(__name__)

PING_TIMEOUT = 15
PING_ATTEMPTS = 10
PING_WAIT_SECONDS = 1.0


class PingError(Exception):
    """Raised when the health-check endpoint rejects a ping."""


class PingServerError(PingError):
    """Raised on a 5xx answer; the ping is worth retrying."""


RETRYABLE_ERRORS = (requests.ConnectionError, requests.Timeout, PingServerError)


class PingNotifier:
    """Health-check pings (healthchecks.io style) sent with a plain GET."""

    def __init__(
        self,
        policy: PingPolicy,
        session: Optional[requests.Session] = None,
        timeout: float = PING_TIMEOUT,
        attempts: int = PING_ATTEMPTS,
        wait: float = PING_WAIT_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._policy = policy
        self._session = session or requests.Session()
        self._timeout = timeout
        self._attempts = max(attempts, 1)
        self._wait = wait
        self._sleep = sleep

    def notify(self, outcome: Outcome, subject: str, body: str) -> None:  # noqa: ARG002
        for url, label in self.targets(outcome):
            self.send_ping(url, label)

    def start(self) -> bool:
        return self.send_ping(self._policy.start_url, "start")

    def targets(self, outcome: Outcome) -> List[Tuple[str, str]]:
        if outcome == Outcome.SUCCESS:
            first = (self._policy.success_url, "success")
        else:
            first = (self._policy.failure_url, "failure")
        return [first, (self._policy.completion_url, "completion")]

    def send_ping(self, url: str, label: str) -> bool:
        if not url:
            return False

        retrying = Retrying(
            reraise=True,
            stop=stop_after_attempt(self._attempts),
            wait=wait_fixed(self._wait),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            before_sleep=before_sleep_log(LOG, logging.DEBUG),
            sleep=self._sleep,
        )
        try:
            retrying(self._get, url)
        except (requests.RequestException, PingError) as exc:
            LOG.error("%s ping sending has failed: %s", label, exc)
            return False

        LOG.info("%s ping has been sent successfully", label)
        return True

    def _get(self, url: str) -> None:
        response = self._session.get(url, timeout=self._timeout)
        if response.status_code >= 500:
            raise PingServerError(f"HTTP {response.status_code}")
        if response.status_code >= 400:
            raise PingError(f"HTTP {response.status_code}")
