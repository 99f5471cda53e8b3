from .dispatcher import NotificationDispatcher, Notifier
from .events import DEFAULT_SUBJECTS, Channel, DispatchEvent, Outcome
from .mail import MailNotifier
from .ntfy import NtfyNotifier
from .ping import PingNotifier

__all__ = [
    "Channel",
    "DEFAULT_SUBJECTS",
    "DispatchEvent",
    "MailNotifier",
    "NotificationDispatcher",
    "Notifier",
    "NtfyNotifier",
    "Outcome",
    "PingNotifier",
]
