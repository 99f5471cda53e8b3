from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from vaultwarden_backup.config import (
    DEFAULT_CRON,
    ArchiveConfig,
    BackupConfig,
    build_date_format,
    load_config,
    normalize_archive_type,
    normalize_timezone,
    parse_flag,
)
from vaultwarden_backup.errors import ConfigurationError, SecretFileError


@pytest.mark.parametrize(
    "value, default, expected",
    [
        ("", True, True),
        ("false", True, False),
        ("FALSE", True, False),
        ("no", True, True),
        ("", False, False),
        ("true", False, True),
        ("True", False, True),
        ("yes", False, False),
    ],
)
def test_parse_flag_default_direction(value: str, default: bool, expected: bool) -> None:
    assert parse_flag(value, default=default) is expected


@pytest.mark.parametrize(
    "value, expected",
    [("7Z", "7z"), ("7z", "7z"), ("zip", "zip"), ("", "zip"), ("anything", "zip")],
)
def test_archive_type_normalization(value: str, expected: str) -> None:
    assert normalize_archive_type(value) == expected


def test_date_format_strips_disallowed_characters() -> None:
    assert build_date_format(date="%Y/%m/%d!") == "%Y%m%d"
    assert build_date_format() == "%Y%m%d"
    assert build_date_format(date="%Y%m%d", date_suffix="_%H%M%S") == "%Y%m%d_%H%M%S"


def test_file_suffix_overrides_date_tokens() -> None:
    assert build_date_format(date="%Y", file_suffix="%Y/%m.%d") == "%Y%m.%d"


def test_timezone_fallback() -> None:
    assert normalize_timezone("Mars/Olympus") == "UTC"
    assert normalize_timezone("") == "UTC"
    assert normalize_timezone("../etc/passwd") == "UTC"
    assert normalize_timezone("Europe/Berlin") == "Europe/Berlin"


def test_defaults_when_nothing_is_set(make_resolver) -> None:
    config = load_config(make_resolver())

    assert config.cron == DEFAULT_CRON
    assert config.timezone == "UTC"
    assert config.archive.enabled is True
    assert config.archive.type == "zip"
    assert config.archive.password == "WHEREISMYPASSWORD?"
    assert config.archive.date_format == "%Y%m%d"
    assert config.archive.keep_days == 0
    assert config.rclone.profile_name == "BitwardenBackup"
    assert config.rclone.global_flags() == []
    assert config.data.data_dir == Path("/bitwarden/data")
    assert config.data.db == Path("/bitwarden/data/db.sqlite3")
    assert config.data.config == Path("/bitwarden/data/config.json")
    assert config.database.type == "SQLITE"
    assert config.database.masked_url() is None


def test_channel_switches_default_off_and_fields_default_on(make_resolver) -> None:
    notifications = load_config(make_resolver()).notifications

    assert notifications.mail.enabled is False
    assert notifications.mail.notify_on_success is True
    assert notifications.mail.notify_on_failure is True
    assert notifications.mail.debug is False
    assert notifications.ntfy.enabled is False
    assert notifications.ntfy.notify_on_success is True
    assert notifications.ntfy.notify_on_failure is True
    assert notifications.ntfy.topic == "vaultwarden-backup"
    assert (notifications.ntfy.priority_success, notifications.ntfy.priority_failure) == ("3", "5")


def test_mail_requires_recipient(make_resolver) -> None:
    without_recipient = load_config(make_resolver(MAIL_SMTP_ENABLE="TRUE"))
    with_recipient = load_config(make_resolver(MAIL_SMTP_ENABLE="true", MAIL_TO="ops@example.com"))

    assert without_recipient.notifications.mail.enabled is False
    assert with_recipient.notifications.mail.enabled is True


def test_explicit_values_are_normalized(make_resolver) -> None:
    config = load_config(
        make_resolver(
            ZIP_ENABLE="False",
            ZIP_TYPE="7Z",
            BACKUP_KEEP_DAYS="14",
            TIMEZONE="Asia/Shanghai",
            CRON="0 2 * * *",
            NTFY_ENABLE="TRUE",
            NTFY_WHEN_SUCCESS="false",
            MAIL_WHEN_FAILURE="FALSE",
            RCLONE_GLOBAL_FLAG="--config /config/rclone.conf -v",
        )
    )

    assert config.archive.enabled is False
    assert config.archive.type == "7z"
    assert config.archive.keep_days == 14
    assert config.timezone == "Asia/Shanghai"
    assert config.cron == "0 2 * * *"
    assert config.notifications.ntfy.enabled is True
    assert config.notifications.ntfy.notify_on_success is False
    assert config.notifications.mail.notify_on_failure is False
    assert config.rclone.global_flags() == ["--config", "/config/rclone.conf", "-v"]


def test_soft_fallbacks(make_resolver) -> None:
    config = load_config(make_resolver(CRON="every day", BACKUP_KEEP_DAYS="soon", TIMEZONE="Mars/Olympus"))

    assert config.cron == DEFAULT_CRON
    assert config.archive.keep_days == 0
    assert config.timezone == "UTC"


def test_database_settings(make_resolver) -> None:
    config = load_config(
        make_resolver(DB_TYPE="postgresql", PG_HOST="db", PG_PASSWORD="secret")
    )

    assert config.database.type == "POSTGRESQL"
    assert config.database.masked_url() == "postgresql://vaultwarden:***(6 Chars)@db:5432/vaultwarden"

    mysql = load_config(make_resolver(DB_TYPE="MySQL", MYSQL_HOST="mariadb", MYSQL_PORT="3307")).database
    assert mysql.masked_url() == "mysql://vaultwarden:***(0 Chars)@mariadb:3307/vaultwarden"


def test_data_paths_follow_data_dir(make_resolver) -> None:
    data = load_config(make_resolver(DATA_DIR="/srv/vw", DATA_ATTACHMENTS="/mnt/attachments/")).data

    assert data.db == Path("/srv/vw/db.sqlite3")
    assert data.rsakey == Path("/srv/vw/rsa_key")
    assert data.attachments == Path("/mnt/attachments")
    assert data.sends == Path("/srv/vw/sends")


def test_secret_file_errors_propagate(make_resolver, tmp_path: Path) -> None:
    with pytest.raises(SecretFileError):
        load_config(make_resolver(ZIP_PASSWORD_FILE=str(tmp_path / "missing")))


def test_config_is_immutable(make_resolver) -> None:
    config = load_config(make_resolver())

    with pytest.raises(ValidationError):
        config.cron = "* * * * *"


def test_archive_file_stamp() -> None:
    from datetime import datetime

    archive = ArchiveConfig(date_format="%Y%m%d_%H")

    assert archive.file_stamp(datetime(2024, 5, 6, 7)) == "20240506_07"


def test_summary_masks_secrets(make_resolver) -> None:
    config: BackupConfig = load_config(
        make_resolver(
            ZIP_PASSWORD="hunter2",
            NTFY_PASSWORD="ntfy-secret",
            DB_TYPE="postgresql",
            PG_PASSWORD="pg-secret",
            PING_URL="https://hc.example/ping/abc",
        )
    )

    rendered = yaml.safe_dump(config.summary())

    for secret in ("hunter2", "ntfy-secret", "pg-secret"):
        assert secret not in rendered
    summary = config.summary()
    assert summary["zip_password"] == "7 Chars"
    assert summary["rclone_remotes"] == ["BitwardenBackup:/BitwardenBackup"]
    assert summary["ping_url"] == "https://hc.example/ping/abc"
    assert "ping_url_when_start" not in summary
    assert "mail" not in summary


def test_negative_keep_days_keeps_backups_forever(make_resolver) -> None:
    assert load_config(make_resolver(BACKUP_KEEP_DAYS="-3")).archive.keep_days == 0


def test_quoted_arguments_are_split_like_a_shell(make_resolver) -> None:
    config = load_config(
        make_resolver(
            RCLONE_GLOBAL_FLAG="--config '/config/my rclone.conf'",
            MAIL_TO="ops@example.com",
            MAIL_SMTP_VARIABLES="-S 'smtp-auth-password=it s'",
        )
    )

    assert config.rclone.global_flags() == ["--config", "/config/my rclone.conf"]
    assert config.notifications.mail.smtp_variables == "-S 'smtp-auth-password=it s'"


@pytest.mark.parametrize(
    "setting, value",
    [
        ("RCLONE_GLOBAL_FLAG", "--config '/config/rclone.conf"),
        ("MAIL_SMTP_VARIABLES", "-S smtp-auth-password=it's"),
    ],
)
def test_unbalanced_quotes_are_configuration_errors(make_resolver, setting: str, value: str) -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        load_config(make_resolver(MAIL_TO="ops@example.com", **{setting: value}))

    assert setting in str(excinfo.value)
