from __future__ import annotations

import logging
import re
import shlex
from datetime import datetime
from pathlib import Path
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter
from pydantic import BaseModel, BeforeValidator, ConfigDict, ValidationError, field_validator

from .errors import ConfigurationError
from .remotes import RemoteTarget, enumerate_remotes
from .resolver import VariableResolver

LOG = logging.getLogger(__name__)

DEFAULT_CRON = "5 * * * *"
DEFAULT_ZIP_PASSWORD = "WHEREISMYPASSWORD?"
DEFAULT_DATE_FORMAT = "%Y%m%d"
DEFAULT_TIMEZONE = "UTC"
DEFAULT_DATA_DIR = "/bitwarden/data"
DEFAULT_NTFY_TOPIC = "vaultwarden-backup"

_DATE_FORMAT_DISALLOWED = re.compile(r"[^0-9a-zA-Z%_-]")


def parse_flag(value: Any, *, default: bool) -> bool:
    """Parse a ``"true"``/``"false"`` setting, case-insensitively.

    Flags that default on are disabled only by an explicit ``"false"``; flags
    that default off are enabled only by an explicit ``"true"``. Any other
    value, including an empty one, keeps the default.
    """
    if isinstance(value, bool):
        return value
    text = str(value or "").lower()
    if default:
        return text != "false"
    return text == "true"


FlagDefaultOn = Annotated[bool, BeforeValidator(lambda value: parse_flag(value, default=True))]
FlagDefaultOff = Annotated[bool, BeforeValidator(lambda value: parse_flag(value, default=False))]


def normalize_archive_type(value: Any) -> str:
    return "7z" if str(value or "").lower() == "7z" else "zip"


def build_date_format(date: str = "", date_suffix: str = "", file_suffix: str = "") -> str:
    """Return the ``strftime`` format used in backup file names.

    ``file_suffix`` replaces the date tokens entirely when set; path separators
    are always removed.
    """
    tokens = _DATE_FORMAT_DISALLOWED.sub("", f"{date or DEFAULT_DATE_FORMAT}{date_suffix}")
    return (file_suffix or tokens).replace("/", "")


def normalize_timezone(value: Any) -> str:
    name = str(value or "")
    if not name:
        return DEFAULT_TIMEZONE
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        LOG.info("Timezone '%s' not found; using %s", name, DEFAULT_TIMEZONE)
        return DEFAULT_TIMEZONE
    return name


def mask_secret(value: str) -> str:
    return f"{len(value)} Chars"


def split_arguments(value: str, setting: str) -> List[str]:
    """Split a shell-style argument string, reporting unbalanced quotes by setting name."""
    try:
        return shlex.split(value)
    except ValueError as exc:
        raise ValueError(f"{setting} cannot be parsed as arguments: {exc}") from exc


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


# --- Storage -----------------------------------------------------------------


class RcloneConfig(_FrozenModel):
    remotes: Tuple[RemoteTarget, ...]
    global_flag: str = ""

    @field_validator("global_flag")
    @classmethod
    def _check_global_flag(cls, value: str) -> str:
        split_arguments(value, "RCLONE_GLOBAL_FLAG")
        return value

    @field_validator("remotes")
    @classmethod
    def _require_remotes(cls, value: Tuple[RemoteTarget, ...]) -> Tuple[RemoteTarget, ...]:
        if not value:
            raise ValueError("At least one rclone remote must be configured.")
        return value

    @property
    def profile_name(self) -> str:
        return self.remotes[0].name

    def global_flags(self) -> List[str]:
        return split_arguments(self.global_flag, "RCLONE_GLOBAL_FLAG")


# --- Archive -----------------------------------------------------------------


class ArchiveConfig(_FrozenModel):
    enabled: FlagDefaultOn = True
    type: Literal["zip", "7z"] = "zip"
    password: str = DEFAULT_ZIP_PASSWORD
    date_format: str = DEFAULT_DATE_FORMAT
    keep_days: int = 0

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> str:
        return normalize_archive_type(value)

    @field_validator("keep_days", mode="before")
    @classmethod
    def _parse_keep_days(cls, value: Any) -> int:
        text = str(value if value is not None else "").strip() or "0"
        try:
            days = int(text)
        except ValueError:
            LOG.warning("BACKUP_KEEP_DAYS '%s' is not a number; keeping backups forever", text)
            return 0
        if days < 0:
            LOG.warning("BACKUP_KEEP_DAYS '%s' is negative; keeping backups forever", text)
            return 0
        return days

    def file_stamp(self, when: datetime) -> str:
        return when.strftime(self.date_format)


# --- Vaultwarden data --------------------------------------------------------


class DataPaths(_FrozenModel):
    data_dir: Path
    db: Path
    config: Path
    rsakey: Path
    attachments: Path
    sends: Path


class DatabaseConfig(_FrozenModel):
    type: Literal["SQLITE", "POSTGRESQL", "MYSQL"] = "SQLITE"
    host: str = ""
    port: str = ""
    name: str = ""
    username: str = ""
    password: str = ""

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> str:
        upper = str(value or "").upper()
        return upper if upper in ("POSTGRESQL", "MYSQL") else "SQLITE"

    def masked_url(self) -> Optional[str]:
        if self.type == "SQLITE":
            return None
        scheme = self.type.lower()
        return (
            f"{scheme}://{self.username}:***({len(self.password)} Chars)"
            f"@{self.host}:{self.port}/{self.name}"
        )


# --- Notifications -----------------------------------------------------------


class PingPolicy(_FrozenModel):
    completion_url: str = ""
    start_url: str = ""
    success_url: str = ""
    failure_url: str = ""


class MailPolicy(_FrozenModel):
    enabled: bool = False
    to: str = ""
    smtp_variables: str = ""
    notify_on_success: FlagDefaultOn = True
    notify_on_failure: FlagDefaultOn = True
    debug: FlagDefaultOff = False

    @field_validator("smtp_variables")
    @classmethod
    def _check_smtp_variables(cls, value: str) -> str:
        split_arguments(value, "MAIL_SMTP_VARIABLES")
        return value


class NtfyPolicy(_FrozenModel):
    enabled: FlagDefaultOff = False
    server: str = ""
    topic: str = DEFAULT_NTFY_TOPIC
    username: str = ""
    password: str = ""
    token: str = ""
    priority_success: str = "3"
    priority_failure: str = "5"
    notify_on_success: FlagDefaultOn = True
    notify_on_failure: FlagDefaultOn = True


class NotificationsConfig(_FrozenModel):
    mail: MailPolicy = MailPolicy()
    ntfy: NtfyPolicy = NtfyPolicy()
    ping: PingPolicy = PingPolicy()


class BackupConfig(_FrozenModel):
    cron: str = DEFAULT_CRON
    timezone: str = DEFAULT_TIMEZONE
    rclone: RcloneConfig
    archive: ArchiveConfig = ArchiveConfig()
    data: DataPaths
    database: DatabaseConfig = DatabaseConfig()
    notifications: NotificationsConfig = NotificationsConfig()

    @field_validator("cron", mode="before")
    @classmethod
    def _validate_cron(cls, value: Any) -> str:
        expression = str(value or "") or DEFAULT_CRON
        if not croniter.is_valid(expression):
            LOG.warning("Invalid cron expression '%s'; using '%s'", expression, DEFAULT_CRON)
            return DEFAULT_CRON
        return expression

    @field_validator("timezone", mode="before")
    @classmethod
    def _validate_timezone(cls, value: Any) -> str:
        return normalize_timezone(value)

    def summary(self) -> Dict[str, Any]:
        """Display form of the configuration with every secret reduced to its length."""
        mail = self.notifications.mail
        ntfy = self.notifications.ntfy
        ping = self.notifications.ping

        summary: Dict[str, Any] = {
            "data": {key: str(value) for key, value in self.data.model_dump().items()},
            "db_type": self.database.type,
        }
        db_url = self.database.masked_url()
        if db_url:
            summary["db_url"] = db_url
        summary.update(
            {
                "cron": self.cron,
                "rclone_remotes": [remote.path for remote in self.rclone.remotes],
                "rclone_global_flag": self.rclone.global_flag,
                "zip_enable": self.archive.enabled,
                "zip_password": mask_secret(self.archive.password),
                "zip_type": self.archive.type,
                "backup_file_date_format": self.archive.date_format,
                "backup_file_example": f"[filename].{self.archive.file_stamp(datetime.now(ZoneInfo(self.timezone)))}.[ext]",
                "backup_keep_days": self.archive.keep_days,
                "timezone": self.timezone,
            }
        )
        pings = {
            "ping_url": ping.completion_url,
            "ping_url_when_start": ping.start_url,
            "ping_url_when_success": ping.success_url,
            "ping_url_when_failure": ping.failure_url,
        }
        summary.update({key: url for key, url in pings.items() if url})

        summary["mail_smtp_enable"] = mail.enabled
        if mail.enabled:
            summary["mail"] = {
                "to": mail.to,
                "when_success": mail.notify_on_success,
                "when_failure": mail.notify_on_failure,
            }

        summary["ntfy"] = {
            "enable": ntfy.enabled,
            "server": ntfy.server,
            "topic": ntfy.topic,
            "username": ntfy.username,
            "password": mask_secret(ntfy.password),
            "token": mask_secret(ntfy.token),
            "priority_success": ntfy.priority_success,
            "priority_failure": ntfy.priority_failure,
            "when_success": ntfy.notify_on_success,
            "when_failure": ntfy.notify_on_failure,
        }
        return summary


# --- Loading -----------------------------------------------------------------


def _data_paths(resolver: VariableResolver) -> Dict[str, str]:
    data_dir = resolver.get("DATA_DIR", DEFAULT_DATA_DIR)
    return {
        "data_dir": data_dir,
        "db": resolver.get("DATA_DB", f"{data_dir}/db.sqlite3"),
        "config": f"{data_dir}/config.json",
        "rsakey": resolver.get("DATA_RSAKEY", f"{data_dir}/rsa_key"),
        "attachments": resolver.get("DATA_ATTACHMENTS", f"{data_dir}/attachments"),
        "sends": resolver.get("DATA_SENDS", f"{data_dir}/sends"),
    }


def _database(resolver: VariableResolver) -> Dict[str, str]:
    db_type = resolver.get("DB_TYPE").upper()
    if db_type == "POSTGRESQL":
        return {
            "type": db_type,
            "host": resolver.get("PG_HOST"),
            "port": resolver.get("PG_PORT", "5432"),
            "name": resolver.get("PG_DBNAME", "vaultwarden"),
            "username": resolver.get("PG_USERNAME", "vaultwarden"),
            "password": resolver.get("PG_PASSWORD"),
        }
    if db_type == "MYSQL":
        return {
            "type": db_type,
            "host": resolver.get("MYSQL_HOST"),
            "port": resolver.get("MYSQL_PORT", "3306"),
            "name": resolver.get("MYSQL_DATABASE", "vaultwarden"),
            "username": resolver.get("MYSQL_USERNAME", "vaultwarden"),
            "password": resolver.get("MYSQL_PASSWORD"),
        }
    return {"type": "SQLITE"}


def _notifications(resolver: VariableResolver) -> Dict[str, Dict[str, Any]]:
    mail_to = resolver.get("MAIL_TO")
    return {
        "ping": {
            "completion_url": resolver.get("PING_URL"),
            "start_url": resolver.get("PING_URL_WHEN_START"),
            "success_url": resolver.get("PING_URL_WHEN_SUCCESS"),
            "failure_url": resolver.get("PING_URL_WHEN_FAILURE"),
        },
        "mail": {
            # Without a recipient the channel is off rather than misconfigured.
            "enabled": parse_flag(resolver.get("MAIL_SMTP_ENABLE"), default=False) and bool(mail_to),
            "to": mail_to,
            "smtp_variables": resolver.get("MAIL_SMTP_VARIABLES"),
            "notify_on_success": resolver.get("MAIL_WHEN_SUCCESS"),
            "notify_on_failure": resolver.get("MAIL_WHEN_FAILURE"),
            "debug": resolver.get("MAIL_DEBUG"),
        },
        "ntfy": {
            "enabled": resolver.get("NTFY_ENABLE"),
            "server": resolver.get("NTFY_SERVER"),
            "topic": resolver.get("NTFY_TOPIC", DEFAULT_NTFY_TOPIC),
            "username": resolver.get("NTFY_USERNAME"),
            "password": resolver.get("NTFY_PASSWORD"),
            "token": resolver.get("NTFY_TOKEN"),
            "priority_success": resolver.get("NTFY_PRIORITY_SUCCESS", "3"),
            "priority_failure": resolver.get("NTFY_PRIORITY_FAILURE", "5"),
            "notify_on_success": resolver.get("NTFY_WHEN_SUCCESS"),
            "notify_on_failure": resolver.get("NTFY_WHEN_FAILURE"),
        },
    }


def load_config(resolver: VariableResolver) -> BackupConfig:
    """Resolve every setting once and build the immutable configuration.

    Unreadable ``*_FILE`` references propagate as :class:`SecretFileError`;
    anything pydantic rejects is reported as :class:`ConfigurationError`.
    """
    raw = {
        "cron": resolver.get("CRON", DEFAULT_CRON),
        "timezone": resolver.get("TIMEZONE"),
        "rclone": {
            "remotes": tuple(enumerate_remotes(resolver)),
            "global_flag": resolver.get("RCLONE_GLOBAL_FLAG"),
        },
        "archive": {
            "enabled": resolver.get("ZIP_ENABLE"),
            "type": resolver.get("ZIP_TYPE"),
            "password": resolver.get("ZIP_PASSWORD", DEFAULT_ZIP_PASSWORD),
            "date_format": build_date_format(
                date=resolver.get("BACKUP_FILE_DATE"),
                date_suffix=resolver.get("BACKUP_FILE_DATE_SUFFIX"),
                file_suffix=resolver.get("BACKUP_FILE_SUFFIX"),
            ),
            "keep_days": resolver.get("BACKUP_KEEP_DAYS", "0"),
        },
        "data": _data_paths(resolver),
        "database": _database(resolver),
        "notifications": _notifications(resolver),
    }

    try:
        return BackupConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc
