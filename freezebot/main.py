"""Freezebot entry point.

Modes: daemon (scheduler loop) and one-shot commands against the store.
Usage: freezebot [daemon|freeze|unfreeze|unlock|refresh|status] [options].
"""

import argparse
import logging
import sys
from pathlib import Path

from freezebot.config import AppConfig, load_config
from freezebot.errors import FreezeBotError
from freezebot.freezer.messages import format_time
from freezebot.logging import FreezeBotLogging
from freezebot.models import RefreshResult, Repository
from freezebot.utils import parse_datetime, parse_duration

SUBCOMMANDS = ("daemon", "freeze", "unfreeze", "unlock", "refresh", "status")


def _duration_arg(value: str):
    try:
        return parse_duration(value)
    except FreezeBotError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _datetime_arg(value: str):
    try:
        return parse_datetime(value)
    except FreezeBotError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _repository_arg(value: str) -> str:
    try:
        return Repository.parse(value).full_name
    except FreezeBotError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=Path("config.yaml"),
        help="Path to YAML config file",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only load and validate config, then exit",
    )


def _target(parser: argparse.ArgumentParser, actor: bool = True) -> None:
    parser.add_argument("repository", type=_repository_arg, help="Repository as owner/name")
    parser.add_argument("--installation", "-i", type=int, default=0, help="GitHub App installation id")
    if actor:
        parser.add_argument("--actor", "-a", default="freezebot-cli", help="User recorded as initiator")
        parser.add_argument("--issue", type=int, default=None, help="Issue/PR number to acknowledge on")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="freezebot",
        description="Freezebot - repository freeze windows enforced through PR check runs",
    )
    sub = parser.add_subparsers(dest="subcommand")

    daemon = sub.add_parser("daemon", help="Run the scheduler loop")
    _common(daemon)

    freeze = sub.add_parser("freeze", help="Freeze a repository now or at --start")
    _common(freeze)
    _target(freeze)
    freeze.add_argument("--start", type=_datetime_arg, default=None, help="ISO 8601 start (default: now)")
    window = freeze.add_mutually_exclusive_group()
    window.add_argument("--end", type=_datetime_arg, default=None, help="ISO 8601 end")
    window.add_argument("--duration", "-d", type=_duration_arg, default=None, help="e.g. 2h, 30m, PT2H30M")
    freeze.add_argument("--reason", "-r", default=None)
    freeze.add_argument("--branch", "-b", default=None, help="Only block PRs targeting this branch")

    unfreeze = sub.add_parser("unfreeze", help="End the active freeze")
    _common(unfreeze)
    _target(unfreeze)

    unlock = sub.add_parser("unlock", help="Let one PR merge during the active freeze")
    _common(unlock)
    _target(unlock)
    unlock.add_argument("pr_number", type=int)

    refresh = sub.add_parser("refresh", help="Re-sync check runs (one repository, or every active freeze)")
    _common(refresh)
    refresh.add_argument("repository", nargs="?", type=_repository_arg, default=None)
    refresh.add_argument("--installation", "-i", type=int, default=0)

    status = sub.add_parser("status", help="Show active and scheduled freezes")
    _common(status)
    _target(status, actor=False)
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI; no subcommand means daemon."""
    argv = list(argv if argv is not None else sys.argv[1:])
    if not argv or argv[0] not in SUBCOMMANDS and argv[0] not in ("-h", "--help"):
        argv.insert(0, "daemon")
    return build_parser().parse_args(argv)


def _print_result(repository: str, result: RefreshResult) -> None:
    print(
        f"{repository}: {result.successful_updates}/{result.total_prs} updated, "
        f"{result.failed_updates} failed"
    )
    for error in result.errors:
        print(f"  - {error}")


def run_command(args: argparse.Namespace, config: AppConfig) -> int:
    """Execute a one-shot command against the configured store and gateway."""
    from freezebot.daemon import build_services

    services = build_services(config)
    manager = services.manager
    try:
        if args.subcommand == "freeze":
            record = manager.create_freeze(
                args.installation,
                args.repository,
                args.actor,
                start=args.start,
                end=args.end,
                duration=args.duration,
                reason=args.reason,
                branch=args.branch,
                issue_number=args.issue,
            )
            print(
                f"Freeze {record.id} {record.status.value}: {record.repository} "
                f"{format_time(record.started_at)} -> {format_time(record.expires_at)}"
            )
        elif args.subcommand == "unfreeze":
            ended = manager.end_freeze(args.installation, args.repository, args.actor, issue_number=args.issue)
            print(f"Ended {len(ended)} freeze(s) for {args.repository}")
        elif args.subcommand == "unlock":
            manager.unlock_pr(
                args.installation, args.repository, args.pr_number, args.actor, issue_number=args.issue
            )
            print(f"PR #{args.pr_number} in {args.repository} unlocked")
        elif args.subcommand == "refresh":
            if args.repository:
                _print_result(
                    args.repository,
                    services.synchronizer.resync_repository(args.installation, args.repository),
                )
            else:
                results = services.synchronizer.refresh_all_active()
                if not results:
                    print("No active freezes")
                for repository, result in results.items():
                    _print_result(repository, result)
        elif args.subcommand == "status":
            print(manager.status_message(args.installation, args.repository))
    finally:
        services.close()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point: dispatch to daemon or a one-shot command."""
    args = parse_args(argv)

    config_path = args.config
    if not config_path.is_file() and config_path == Path("config.yaml"):
        if Path("config.example.yaml").is_file():
            config_path = Path("config.example.yaml")
            logging.basicConfig(level=logging.INFO)
            logging.getLogger("freezebot").warning("config.yaml not found, using config.example.yaml")

    config = load_config(config_path)

    if args.check:
        auth = "app" if config.github.app_id is not None else "token"
        print("Config OK:", config.store.backend, config.store.path, auth)
        return 0

    if args.subcommand == "daemon":
        from freezebot.daemon import run_daemon

        try:
            run_daemon(config)
        except KeyboardInterrupt:
            return 0
        except Exception as e:
            logging.getLogger("freezebot.daemon").exception("Fatal error: %s", e)
            return 1
        return 0

    FreezeBotLogging(config.logging).setup()
    try:
        return run_command(args, config)
    except FreezeBotError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
