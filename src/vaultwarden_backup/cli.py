from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Optional, Sequence, Tuple

import yaml

from .config import BackupConfig, ConfigurationError, load_config
from .env_file import DEFAULT_ENV_FILE
from .errors import NotificationConfigError
from .logger import configure_logging
from .notifications import Channel, DispatchEvent, NotificationDispatcher, Outcome
from .preflight import RcloneClient, check_connectivity, require_directory
from .resolver import VariableResolver

ALL_CHANNELS = "all"


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Vaultwarden backup agent helper CLI.")
    parser.add_argument(
        "--env-file",
        default=os.getenv("ENV_FILE", DEFAULT_ENV_FILE),
        help="Optional KEY=VALUE file read as a secondary configuration source.",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Log level (default INFO).",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("config", help="Print the resolved configuration with secrets masked.")
    commands.add_parser("preflight", help="Check the data directory and every rclone remote.")

    notify = commands.add_parser("notify", help="Send a backup outcome notification.")
    notify.add_argument("--outcome", required=True, choices=[outcome.value for outcome in Outcome])
    notify.add_argument(
        "--channel",
        default=ALL_CHANNELS,
        choices=[channel.value for channel in Channel] + [ALL_CHANNELS],
        help="Channel to notify (default: every channel).",
    )
    notify.add_argument("--subject", default="", help="Subject; defaults to the standard outcome subject.")
    notify.add_argument("--body", default="", help="Message body.")

    ping = commands.add_parser("ping", help="Send a health-check ping.")
    ping.add_argument("stage", choices=["start"] + [outcome.value for outcome in Outcome])
    return parser.parse_args(argv)


def load_configuration(env_file: str) -> Tuple[VariableResolver, BackupConfig]:
    try:
        resolver = VariableResolver.from_environment(env_file=env_file)
        return resolver, load_config(resolver)
    except ConfigurationError as exc:
        raise SystemExit(f"Configuration error: {exc}") from exc


def show_config(config: BackupConfig) -> int:
    print(yaml.safe_dump(config.summary(), sort_keys=False, default_flow_style=False), end="")
    return 0


def run_preflight(config: BackupConfig, resolver: VariableResolver) -> int:
    rclone = RcloneClient(config.rclone.global_flags(), env=resolver.exported_environ())
    try:
        require_directory(config.data.data_dir)
        check_connectivity(config.rclone.remotes, rclone, profile_name=config.rclone.profile_name)
    except ConfigurationError as exc:
        logging.error("Preflight failed: %s", exc)
        return 1
    logging.info("Preflight passed for %d remote(s)", len(config.rclone.remotes))
    return 0


def send_notification(dispatcher: NotificationDispatcher, args: argparse.Namespace) -> int:
    event = DispatchEvent.for_outcome(Outcome(args.outcome), body=args.body, subject=args.subject)
    channels = None if args.channel == ALL_CHANNELS else [Channel(args.channel)]
    try:
        dispatcher.notify_all(event, channels)
    except NotificationConfigError:
        return 1
    return 0


def send_ping(dispatcher: NotificationDispatcher, stage: str) -> int:
    if stage == "start":
        dispatcher.ping_start()
    else:
        dispatcher.notify(Channel.PING, Outcome(stage), "", "")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)

    resolver, config = load_configuration(args.env_file)

    if args.command == "config":
        return show_config(config)
    if args.command == "preflight":
        return run_preflight(config, resolver)

    dispatcher = NotificationDispatcher(config.notifications, env=resolver.exported_environ())
    if args.command == "notify":
        return send_notification(dispatcher, args)
    return send_ping(dispatcher, args.stage)


if __name__ == "__main__":
    sys.exit(main())
