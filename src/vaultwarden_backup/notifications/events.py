from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Outcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class Channel(str, Enum):
    MAIL = "mail"
    NTFY = "ntfy"
    PING = "ping"


DEFAULT_SUBJECTS = {
    Outcome.SUCCESS: "vaultwarden Backup Success",
    Outcome.FAILURE: "vaultwarden Backup Failed",
}


@dataclass(frozen=True)
class DispatchEvent:
    """Result of a backup or restore run, handed to every notification channel."""

    outcome: Outcome
    subject: str
    body: str

    @classmethod
    def for_outcome(cls, outcome: Outcome, body: str, subject: str = "") -> "DispatchEvent":
        outcome = Outcome(outcome)
        return cls(outcome=outcome, subject=subject or DEFAULT_SUBJECTS[outcome], body=body)


def wants(outcome: Outcome, *, on_success: bool, on_failure: bool) -> bool:
    if outcome == Outcome.SUCCESS:
        return on_success
    return on_failure
