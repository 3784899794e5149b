from __future__ import annotations

import argparse
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from allyverify.app import initialise_database, list_alliances_for_cli, run_bot
from allyverify.config import ConfigurationError, configure_logging

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Alliance IGN verification bot")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: %(default)s)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("run", help="Connect to Discord and handle verifications")

    init_db = subparsers.add_parser("init-db", help="Create or upgrade the database schema")
    init_db.add_argument(
        "--database-uri",
        type=str,
        help="SQLAlchemy URI to migrate instead of the configured database",
    )

    alliances = subparsers.add_parser("alliances", help="Inspect alliance mappings")
    alliances_sub = alliances.add_subparsers(dest="alliances_command", required=True)
    alliances_list = alliances_sub.add_parser("list", help="List the mappings of a server")
    alliances_list.add_argument(
        "--guild-id",
        type=_parse_snowflake,
        required=True,
        help="Discord server (guild) id",
    )

    return parser.parse_args(list(argv))


def _parse_snowflake(value: str) -> int:
    stripped = value.strip()
    if not (stripped.isascii() and stripped.isdigit()):
        raise argparse.ArgumentTypeError(f"Not a Discord id: {value!r}")
    return int(stripped)


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.getLevelNamesMapping()[parsed_args.log_level])

    try:
        if parsed_args.command == "run":
            run_bot()
        elif parsed_args.command == "init-db":
            initialise_database(database_uri=parsed_args.database_uri)
        elif parsed_args.command == "alliances" and parsed_args.alliances_command == "list":
            mappings = list_alliances_for_cli(parsed_args.guild_id)
            if not mappings:
                print("No alliances configured.")  # noqa: T201
            for mapping in mappings:
                approvers = ",".join(str(role_id) for role_id in mapping.approver_role_ids) or "-"
                state = "enabled" if mapping.enabled else "disabled"
                print(  # noqa: T201
                    f"{mapping.role_id}\t{mapping.prefix}\t{mapping.approval_channel_id}\t"
                    f"{approvers}\t{state}"
                )
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301
    except ConfigurationError:
        log.exception("Configuration error")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
