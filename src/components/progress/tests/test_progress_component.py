"""
Unit tests for the Progress component.
"""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta

import pytest

from src.adapters.clock import FrozenClock
from src.components.progress import (
    MAX_COUNT_CHANGE,
    InMemoryProgressRepo,
    MemberProgress,
    ProgressKey,
    ProgressLedger,
    build_leaderboard,
    classify_member,
)
from src.core.errors import InvalidInputError, InvalidStateError

GROUP = "grp-1"
WEEK = "weekly-2025-03-07"


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2025, 3, 10, 12, 0, tzinfo=UTC))


@pytest.fixture
def repo() -> InMemoryProgressRepo:
    return InMemoryProgressRepo()


@pytest.fixture
def ledger(repo: InMemoryProgressRepo, clock: FrozenClock) -> ProgressLedger:
    return ProgressLedger(repo, clock)


# --- Increment / Decrement ---


class TestIncrementDecrement:
    def test_increment_appends_next_index(self, ledger: ProgressLedger) -> None:
        assert ledger.increment("alice", GROUP, WEEK) == 1
        assert ledger.increment("alice", GROUP, WEEK) == 2
        assert ledger.count_for("alice", GROUP, WEEK) == 2

    def test_keys_are_independent(self, ledger: ProgressLedger) -> None:
        ledger.increment("alice", GROUP, WEEK)
        ledger.increment("bob", GROUP, WEEK)
        ledger.increment("alice", GROUP, "weekly-2025-03-14")
        ledger.increment("alice", "grp-2", WEEK)
        assert ledger.count_for("alice", GROUP, WEEK) == 1
        assert ledger.count_for("bob", GROUP, WEEK) == 1

    def test_decrement_removes_highest_index(
        self, ledger: ProgressLedger, repo: InMemoryProgressRepo
    ) -> None:
        for _ in range(3):
            ledger.increment("alice", GROUP, WEEK)
        assert ledger.decrement("alice", GROUP, WEEK) == 2

        live = ledger.list_events("alice", GROUP)
        assert sorted(e.index for e in live) == [1, 2]
        reversed_events = [
            e for e in ledger.list_events("alice", GROUP, include_reversed=True) if not e.is_live
        ]
        assert [e.index for e in reversed_events] == [3]

    def test_decrement_at_zero_fails(self, ledger: ProgressLedger) -> None:
        with pytest.raises(InvalidStateError):
            ledger.decrement("alice", GROUP, WEEK)

    def test_index_reused_after_decrement(self, ledger: ProgressLedger) -> None:
        ledger.increment("alice", GROUP, WEEK)
        ledger.increment("alice", GROUP, WEEK)
        ledger.decrement("alice", GROUP, WEEK)
        assert ledger.increment("alice", GROUP, WEEK) == 2


class TestSetAbsolute:
    def test_raise_and_lower(self, ledger: ProgressLedger, repo: InMemoryProgressRepo) -> None:
        assert ledger.set_absolute("alice", GROUP, WEEK, 5) == 5
        assert ledger.set_absolute("alice", GROUP, WEEK, 2) == 2
        assert repo.count(ProgressKey("alice", GROUP, WEEK)) == 2

    def test_clamped_at_zero(self, ledger: ProgressLedger) -> None:
        ledger.set_absolute("alice", GROUP, WEEK, 3)
        assert ledger.set_absolute("alice", GROUP, WEEK, -4) == 0

    def test_same_value_is_noop(self, ledger: ProgressLedger) -> None:
        ledger.set_absolute("alice", GROUP, WEEK, 3)
        before = ledger.list_events("alice", GROUP, include_reversed=True)
        assert ledger.set_absolute("alice", GROUP, WEEK, 3) == 3
        assert ledger.list_events("alice", GROUP, include_reversed=True) == before


class TestRecordDelta:
    def test_positive_and_negative(self, ledger: ProgressLedger) -> None:
        assert ledger.record_delta("alice", GROUP, WEEK, 4).count == 4
        out = ledger.record_delta("alice", GROUP, WEEK, -3)
        assert out.count == 1
        assert out.max_index == 1

    def test_zero_delta(self, ledger: ProgressLedger) -> None:
        ledger.record_delta("alice", GROUP, WEEK, 2)
        assert ledger.record_delta("alice", GROUP, WEEK, 0).count == 2

    def test_round_trip_restores_state(self, ledger: ProgressLedger) -> None:
        ledger.record_delta("alice", GROUP, WEEK, 3)
        before = ledger.record_delta("alice", GROUP, WEEK, 0)
        ledger.record_delta("alice", GROUP, WEEK, 1)
        after = ledger.record_delta("alice", GROUP, WEEK, -1)
        assert after == before

    def test_below_zero_rejected_without_change(self, ledger: ProgressLedger) -> None:
        ledger.record_delta("alice", GROUP, WEEK, 2)
        with pytest.raises(InvalidStateError) as exc_info:
            ledger.record_delta("alice", GROUP, WEEK, -3)
        assert exc_info.value.count == 2
        assert ledger.count_for("alice", GROUP, WEEK) == 2
        assert all(e.is_live for e in ledger.list_events("alice", GROUP, include_reversed=True))

    def test_oversized_change_rejected(self, ledger: ProgressLedger) -> None:
        with pytest.raises(InvalidInputError):
            ledger.record_delta("alice", GROUP, WEEK, MAX_COUNT_CHANGE + 1)
        with pytest.raises(InvalidInputError):
            ledger.record_delta("alice", GROUP, WEEK, -(MAX_COUNT_CHANGE + 1))
        with pytest.raises(InvalidInputError):
            ledger.set_absolute("alice", GROUP, WEEK, MAX_COUNT_CHANGE + 1)
        assert ledger.count_for("alice", GROUP, WEEK) == 0

    def test_largest_change_applies_in_one_step(self, ledger: ProgressLedger) -> None:
        out = ledger.record_delta("alice", GROUP, WEEK, MAX_COUNT_CHANGE)
        assert out.count == MAX_COUNT_CHANGE
        assert ledger.record_delta("alice", GROUP, WEEK, -MAX_COUNT_CHANGE).count == 0


class TestListEvents:
    def test_most_recent_first(self, ledger: ProgressLedger, clock: FrozenClock) -> None:
        ledger.increment("alice", GROUP, WEEK)
        clock.advance(timedelta(hours=1))
        ledger.increment("alice", GROUP, WEEK)
        clock.advance(timedelta(hours=1))
        ledger.increment("alice", GROUP, "weekly-2025-03-14")

        events = ledger.list_events("alice", GROUP)
        assert [e.logged_at for e in events] == sorted(
            (e.logged_at for e in events), reverse=True
        )
        assert events[0].cycle_key == "weekly-2025-03-14"

    def test_reversed_hidden_by_default(self, ledger: ProgressLedger, clock: FrozenClock) -> None:
        ledger.increment("alice", GROUP, WEEK)
        clock.advance(timedelta(minutes=5))
        ledger.decrement("alice", GROUP, WEEK)
        assert ledger.list_events("alice", GROUP) == []
        audit = ledger.list_events("alice", GROUP, include_reversed=True)
        assert len(audit) == 1
        assert audit[0].reversed_at == clock.now_utc()

    def test_other_groups_excluded(self, ledger: ProgressLedger) -> None:
        ledger.increment("alice", "grp-2", WEEK)
        assert ledger.list_events("alice", GROUP) == []


class TestMemberProgress:
    def test_members_without_events_count_zero(self, ledger: ProgressLedger) -> None:
        ledger.set_absolute("alice", GROUP, WEEK, 4)
        progress = ledger.member_progress(GROUP, WEEK, {"alice": 5, "bob": 5})
        assert progress == [
            MemberProgress(user_id="alice", goal=5, count=4),
            MemberProgress(user_id="bob", goal=5, count=0),
        ]

    def test_negative_goal_rejected(self, ledger: ProgressLedger) -> None:
        with pytest.raises(InvalidInputError):
            ledger.member_progress(GROUP, WEEK, {"alice": -1})


class TestConcurrency:
    def test_parallel_increments_keep_indices_contiguous(self, ledger: ProgressLedger) -> None:
        def worker() -> None:
            for _ in range(25):
                ledger.increment("alice", GROUP, WEEK)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        events = ledger.list_events("alice", GROUP)
        assert sorted(e.index for e in events) == list(range(1, 201))


# --- Status / Leaderboard ---


class TestClassifyMember:
    @pytest.mark.parametrize(
        ("count", "goal", "expected"),
        [
            (20, 20, "met_goal"),
            (25, 20, "met_goal"),
            (14, 20, "on_track"),
            (13, 20, "at_risk"),
            (0, 0, "met_goal"),
            (0, 10, "at_risk"),
        ],
    )
    def test_status(self, count: int, goal: int, expected: str) -> None:
        assert classify_member(count, goal) == expected


class TestLeaderboard:
    def test_ranked_by_count_then_user(self) -> None:
        entries = build_leaderboard(
            [
                MemberProgress("carol", 20, 12),
                MemberProgress("bob", 20, 15),
                MemberProgress("alice", 20, 15),
                MemberProgress("dave", 20, 22),
            ],
            current_user_id="bob",
        )
        assert [e.user_id for e in entries] == ["dave", "alice", "bob", "carol"]
        assert [e.rank for e in entries] == [1, 2, 3, 4]
        assert entries[0].status == "met_goal"
        assert entries[0].progress_percent == 110
        assert entries[2].is_current_user
        assert entries[3].progress_percent == 60

    def test_ledger_leaderboard(self, ledger: ProgressLedger) -> None:
        ledger.set_absolute("alice", GROUP, WEEK, 3)
        entries = ledger.leaderboard(GROUP, WEEK, {"alice": 4, "bob": 4})
        assert [(e.user_id, e.count, e.status) for e in entries] == [
            ("alice", 3, "on_track"),
            ("bob", 0, "at_risk"),
        ]
