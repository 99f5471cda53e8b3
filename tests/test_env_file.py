from __future__ import annotations

from pathlib import Path

from vaultwarden_backup.env_file import build_pool, read_env_file


def _write(path: Path, content: str) -> Path:
    path.write_text(content, encoding="utf-8")
    return path


def test_read_env_file_prefixes_entries_and_skips_comments(tmp_path: Path) -> None:
    env_file = _write(
        tmp_path / ".env",
        "# backup settings\n\nRCLONE_REMOTE_NAME=offsite\nZIP_PASSWORD=\"two words\"\n",
    )

    assert read_env_file(env_file) == {
        "DOTENV_RCLONE_REMOTE_NAME": "offsite",
        "DOTENV_ZIP_PASSWORD": "two words",
    }


def test_read_env_file_missing_file_is_empty(tmp_path: Path) -> None:
    assert read_env_file(tmp_path / "absent.env") == {}


def test_build_pool_never_overrides_native_variables(tmp_path: Path) -> None:
    env_file = _write(tmp_path / ".env", "FOO=from-file\nBAR=from-file\n")
    environ = {"FOO": "native", "DOTENV_BAR": "native-dotenv"}

    pool = build_pool(env_file=env_file, environ=environ)

    assert pool["FOO"] == "native"
    assert pool["DOTENV_FOO"] == "from-file"
    assert pool["DOTENV_BAR"] == "native-dotenv"
    assert "BAR" not in pool


def test_build_pool_uses_env_file_variable(tmp_path: Path) -> None:
    env_file = _write(tmp_path / "custom.env", "CRON=0 3 * * *\n")

    pool = build_pool(environ={"ENV_FILE": str(env_file)})

    assert pool["DOTENV_CRON"] == "0 3 * * *"
