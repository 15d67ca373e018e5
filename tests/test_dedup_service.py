from __future__ import annotations

from services.dedup_service import DedupService


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_same_id_is_accepted_once_within_window() -> None:
    clock = FakeClock()
    dedup = DedupService(window_seconds=300, clock=clock)

    assert dedup.should_process("m-1") is True
    clock.advance(10)
    assert dedup.should_process("m-1") is False


def test_same_id_is_accepted_again_after_window() -> None:
    clock = FakeClock()
    dedup = DedupService(window_seconds=300, clock=clock)

    assert dedup.should_process("m-1") is True
    clock.advance(300)
    assert dedup.should_process("m-1") is True
    clock.advance(1)
    assert dedup.should_process("m-1") is False


def test_missing_id_is_always_accepted() -> None:
    dedup = DedupService(clock=FakeClock())
    assert dedup.should_process(None) is True
    assert dedup.should_process(None) is True
    assert dedup.should_process("") is True
    assert len(dedup) == 0


def test_expired_entries_are_purged_on_insert() -> None:
    clock = FakeClock()
    dedup = DedupService(window_seconds=300, clock=clock)
    for index in range(5):
        dedup.should_process(f"old-{index}")
    clock.advance(301)

    dedup.should_process("fresh")

    assert len(dedup) == 1
    assert "fresh" in dedup
    assert "old-0" not in dedup


def test_duplicate_does_not_refresh_first_seen() -> None:
    clock = FakeClock()
    dedup = DedupService(window_seconds=300, clock=clock)
    dedup.should_process("m-1")
    clock.advance(200)
    assert dedup.should_process("m-1") is False
    clock.advance(100)
    assert dedup.should_process("m-1") is True
