"""Tests for freezebot.models (FreezeRecord windows, transitions, Repository)."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from freezebot.errors import ValidationError
from freezebot.models import (
    ALLOWED_TRANSITIONS,
    FreezeRecord,
    FreezeStatus,
    RefreshResult,
    Repository,
    intervals_overlap,
)

NOW = datetime(2025, 3, 10, 12, 0, 0, tzinfo=UTC)


def _freeze(start_h: float, end_h: float | None, **kwargs) -> FreezeRecord:
    return FreezeRecord(
        repository="owner/repo",
        installation_id=1,
        started_at=NOW + timedelta(hours=start_h),
        expires_at=NOW + timedelta(hours=end_h) if end_h is not None else None,
        initiated_by="alice",
        **kwargs,
    )


class TestIntervalsOverlap:
    """Half-open interval intersection with None as +infinity."""

    @pytest.mark.parametrize(
        ("new_start", "new_end", "expected"),
        [
            (1, 3, True),  # starts inside existing
            (-1, 1, True),  # ends inside existing
            (-1, 5, True),  # contains existing
            (0.5, 1.5, True),  # contained by existing
            (2, 4, False),  # starts exactly at existing end
            (-2, 0, False),  # ends exactly at existing start
            (3, 5, False),  # entirely after
        ],
    )
    def test_against_bounded_window(self, new_start: float, new_end: float, expected: bool) -> None:
        existing = _freeze(0, 2)
        assert existing.overlaps(NOW + timedelta(hours=new_start), NOW + timedelta(hours=new_end)) is expected

    def test_unbounded_existing_blocks_everything_after_its_start(self) -> None:
        existing = _freeze(0, None)
        assert existing.overlaps(NOW + timedelta(days=365), NOW + timedelta(days=366))
        assert not existing.overlaps(NOW - timedelta(hours=2), NOW)

    def test_unbounded_new_window(self) -> None:
        assert intervals_overlap(NOW, NOW + timedelta(hours=1), NOW - timedelta(days=1), None)
        assert not intervals_overlap(NOW, NOW + timedelta(hours=1), NOW + timedelta(hours=1), None)


class TestFreezeRecord:
    def test_defaults(self) -> None:
        record = _freeze(0, 2)
        assert record.status == FreezeStatus.ACTIVE
        assert record.id
        assert record.branch is None
        assert record.ended_at is None

    def test_naive_and_offset_datetimes_normalized_to_utc(self) -> None:
        plus_two = timezone(timedelta(hours=2))
        record = FreezeRecord(
            repository="o/r",
            installation_id=1,
            started_at=datetime(2025, 3, 10, 14, 0, tzinfo=plus_two),
            expires_at=datetime(2025, 3, 10, 14, 0),
            initiated_by="bob",
        )
        assert record.started_at == NOW
        assert record.started_at.tzinfo == UTC
        assert record.expires_at == datetime(2025, 3, 10, 14, 0, tzinfo=UTC)

    def test_is_effective_inside_window(self) -> None:
        record = _freeze(-1, 1)
        assert record.is_effective(NOW)

    def test_is_effective_false_at_and_after_expiry(self) -> None:
        record = _freeze(-2, 0)
        assert not record.is_effective(NOW)
        assert not record.is_effective(NOW + timedelta(minutes=1))

    def test_is_effective_false_before_start_or_when_not_active(self) -> None:
        assert not _freeze(1, 2).is_effective(NOW)
        assert not _freeze(-1, 1, status=FreezeStatus.ENDED).is_effective(NOW)
        assert not _freeze(-1, 1, status=FreezeStatus.SCHEDULED).is_effective(NOW)

    def test_unbounded_active_is_always_effective_after_start(self) -> None:
        assert _freeze(-1, None).is_effective(NOW + timedelta(days=30))

    def test_applies_to_branch(self) -> None:
        assert _freeze(0, 1).applies_to_branch("anything")
        scoped = _freeze(0, 1, branch="main")
        assert scoped.applies_to_branch("main")
        assert not scoped.applies_to_branch("dev")

    def test_json_round_trip_keeps_status(self) -> None:
        record = _freeze(0, 1, status=FreezeStatus.SCHEDULED, reason="release")
        restored = FreezeRecord.model_validate(record.model_dump(mode="json"))
        assert restored == record


class TestTransitions:
    @pytest.mark.parametrize(
        ("source", "target"),
        [
            (FreezeStatus.SCHEDULED, FreezeStatus.ACTIVE),
            (FreezeStatus.SCHEDULED, FreezeStatus.ENDED),
            (FreezeStatus.ACTIVE, FreezeStatus.ENDED),
            (FreezeStatus.ACTIVE, FreezeStatus.EXPIRED),
        ],
    )
    def test_allowed(self, source: FreezeStatus, target: FreezeStatus) -> None:
        assert _freeze(0, 1, status=source).can_transition_to(target)

    @pytest.mark.parametrize(
        ("source", "target"),
        [
            (FreezeStatus.ACTIVE, FreezeStatus.SCHEDULED),
            (FreezeStatus.ENDED, FreezeStatus.ACTIVE),
            (FreezeStatus.EXPIRED, FreezeStatus.ACTIVE),
            (FreezeStatus.SCHEDULED, FreezeStatus.EXPIRED),
        ],
    )
    def test_rejected(self, source: FreezeStatus, target: FreezeStatus) -> None:
        assert not _freeze(0, 1, status=source).can_transition_to(target)

    def test_terminal_statuses_have_no_exits(self) -> None:
        assert ALLOWED_TRANSITIONS[FreezeStatus.ENDED] == frozenset()
        assert ALLOWED_TRANSITIONS[FreezeStatus.EXPIRED] == frozenset()


class TestRepository:
    def test_parse(self) -> None:
        repo = Repository.parse("octo/widgets")
        assert repo.owner == "octo"
        assert repo.name == "widgets"
        assert repo.full_name == "octo/widgets"
        assert str(repo) == "octo/widgets"

    def test_parse_strips_whitespace(self) -> None:
        assert Repository.parse(" octo/widgets ").full_name == "octo/widgets"

    @pytest.mark.parametrize("bad", ["", "noslash", "a/b/c", "/name", "owner/", "../repo", "owner/.."])
    def test_parse_rejects_malformed(self, bad: str) -> None:
        with pytest.raises(ValidationError):
            Repository.parse(bad)


class TestRefreshResult:
    def test_counters(self) -> None:
        result = RefreshResult(total_prs=2)
        result.record_success()
        result.record_failure("PR #2: boom")
        assert result.successful_updates == 1
        assert result.failed_updates == 1
        assert result.errors == ["PR #2: boom"]
        assert not result.ok

    def test_empty_is_ok(self) -> None:
        assert RefreshResult().ok
