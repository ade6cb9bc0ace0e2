"""Tests for the freezebot CLI (argument parsing and command dispatch)."""

from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import patch

import pytest

from freezebot.config import AppConfig, StoreConfig
from freezebot.daemon import build_services
from freezebot.main import main, parse_args
from freezebot.models import FreezeStatus
from freezebot.store import YamlFreezeStore


class TestParseArgs:
    def test_no_subcommand_means_daemon(self) -> None:
        args = parse_args([])
        assert args.subcommand == "daemon"
        assert args.config == Path("config.yaml")

    def test_check_flag_alone(self) -> None:
        args = parse_args(["--check", "-c", "x.yaml"])
        assert args.subcommand == "daemon"
        assert args.check
        assert args.config == Path("x.yaml")

    def test_freeze_options(self) -> None:
        args = parse_args(
            [
                "freeze",
                "owner/repo",
                "-i",
                "7",
                "--actor",
                "alice",
                "--duration",
                "30m",
                "--branch",
                "main",
                "--reason",
                "release",
            ]
        )
        assert args.subcommand == "freeze"
        assert args.repository == "owner/repo"
        assert args.installation == 7
        assert args.duration == timedelta(minutes=30)
        assert args.end is None
        assert args.branch == "main"

    def test_freeze_start_and_end(self) -> None:
        args = parse_args(["freeze", "o/r", "--start", "2025-03-10T12:00:00Z", "--end", "2025-03-10T14:00:00Z"])
        assert args.start == datetime(2025, 3, 10, 12, tzinfo=UTC)
        assert args.end == datetime(2025, 3, 10, 14, tzinfo=UTC)

    def test_end_and_duration_mutually_exclusive(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["freeze", "o/r", "--end", "2025-03-10T14:00:00Z", "--duration", "1h"])

    def test_bad_duration_is_usage_error(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["freeze", "o/r", "--duration", "soon"])

    def test_repository_normalized_and_validated(self) -> None:
        assert parse_args(["status", " owner/repo "]).repository == "owner/repo"
        with pytest.raises(SystemExit):
            parse_args(["unlock", "../..", "3"])

    def test_unlock_and_refresh(self) -> None:
        unlock = parse_args(["unlock", "o/r", "12", "--actor", "bob"])
        assert unlock.pr_number == 12
        refresh = parse_args(["refresh"])
        assert refresh.repository is None


class TestMain:
    def test_check_prints_config_ok(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("store:\n  backend: sqlite\n  path: f.db\n", encoding="utf-8")
        assert main(["--check", "--config", str(path)]) == 0
        assert "Config OK: sqlite f.db token" in capsys.readouterr().out

    def test_commands_run_against_store(
        self, tmp_path: Path, gateway, capsys: pytest.CaptureFixture[str]
    ) -> None:
        config = AppConfig(store=StoreConfig(backend="yaml", path=str(tmp_path / "store")))
        gateway.add_pr("owner/repo", 3)

        def services(cfg):
            return build_services(cfg, gateway=gateway)

        with patch("freezebot.main.load_config", return_value=config), patch(
            "freezebot.daemon.build_services", side_effect=services
        ):
            assert main(["freeze", "owner/repo", "-i", "1", "--actor", "alice", "-d", "1h"]) == 0
            assert main(["status", "owner/repo", "-i", "1"]) == 0
            assert main(["unlock", "owner/repo", "3", "-i", "1", "--actor", "bob"]) == 0
            assert main(["refresh", "owner/repo", "-i", "1"]) == 0
            assert main(["unfreeze", "owner/repo", "-i", "1", "--actor", "alice"]) == 0
            assert main(["unfreeze", "owner/repo", "-i", "1", "--actor", "alice"]) == 1

        captured = capsys.readouterr()
        assert "Freeze " in captured.out
        assert "🔒 Active" in captured.out
        assert "PR #3 in owner/repo unlocked" in captured.out
        assert "owner/repo: 1/1 updated, 0 failed" in captured.out
        assert "Ended 1 freeze(s) for owner/repo" in captured.out
        assert "No active freeze for owner/repo" in captured.err

        records = YamlFreezeStore(tmp_path / "store").list_freezes()
        assert [r.status for r in records] == [FreezeStatus.ENDED]
