from __future__ import annotations

import logging
import subprocess
from typing import Dict, Iterable, Mapping, Optional, Protocol

import requests

from vaultwarden_backup.config import NotificationsConfig
from vaultwarden_backup.errors import NotificationConfigError

from .events import Channel, DispatchEvent, Outcome
from .mail import MailNotifier, Runner
from .ntfy import NtfyNotifier
from .ping import PingNotifier

LOG = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(self, outcome: Outcome, subject: str, body: str) -> None:
        ...


class NotificationDispatcher:
    """Routes backup outcomes to the mail, ntfy and ping channels.

    Every channel applies its own enable switch and per-outcome policy. Transport
    failures are logged by the channel and never reach the caller; the only
    error that does is :class:`NotificationConfigError` for an enabled ntfy
    channel without a server.
    """

    def __init__(
        self,
        config: NotificationsConfig,
        *,
        session: Optional[requests.Session] = None,
        runner: Runner = subprocess.run,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        session = session or requests.Session()
        self._ping = PingNotifier(config.ping, session=session)
        self._channels: Dict[Channel, Notifier] = {
            Channel.MAIL: MailNotifier(config.mail, runner=runner, env=env),
            Channel.NTFY: NtfyNotifier(config.ntfy, session=session),
            Channel.PING: self._ping,
        }

    def notify(self, channel: Channel, outcome: Outcome, subject: str, body: str) -> None:
        self._channels[Channel(channel)].notify(Outcome(outcome), subject, body)

    def notify_all(self, event: DispatchEvent, channels: Optional[Iterable[Channel]] = None) -> None:
        """Deliver ``event`` to each channel, even when an earlier channel fails."""
        config_error: Optional[NotificationConfigError] = None
        for channel in list(Channel) if channels is None else channels:
            try:
                self.notify(channel, event.outcome, event.subject, event.body)
            except NotificationConfigError as exc:
                LOG.error("%s notification is misconfigured: %s", Channel(channel).value, exc)
                config_error = exc
            except Exception as exc:  # noqa: BLE001
                LOG.error("%s notification failed: %s", Channel(channel).value, exc)
        if config_error:
            raise config_error

    def ping_start(self) -> bool:
        return self._ping.start()
