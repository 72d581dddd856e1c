"""Tests for job progress tracking and cancellation."""

import pytest

from dealmonitor.scrapers.progress import ProgressTracker


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tracker(clock):
    return ProgressTracker(clock=clock)


class TestProgressTracker:

    def test_starts_idle(self, tracker):
        snapshot = tracker.snapshot()
        assert snapshot.status == "idle"
        assert snapshot.elapsed_ms == 0
        assert not tracker.is_running

    def test_reset_starts_a_run(self, tracker, clock):
        tracker.reset()
        tracker.update(current_page=2, total_pages=5, current_website="Summit Outfitters")
        clock.now += 1.5

        snapshot = tracker.snapshot()
        assert snapshot.status == "running"
        assert snapshot.current_page == 2
        assert snapshot.current_website == "Summit Outfitters"
        assert snapshot.elapsed_ms == 1500

    def test_snapshot_is_a_copy(self, tracker):
        tracker.reset()
        snapshot = tracker.snapshot()
        tracker.update(new_deals=3)
        assert snapshot.new_deals == 0

    def test_unknown_field(self, tracker):
        tracker.reset()
        with pytest.raises(AttributeError):
            tracker.update(bogus=1)
        with pytest.raises(AttributeError):
            tracker.update(status="done")

    def test_complete(self, tracker):
        tracker.reset()
        tracker.track_unique_product("a:1")
        tracker.track_unique_product("a:1")
        tracker.track_unique_product("b")
        tracker.update(current_website="Summit Outfitters")
        tracker.complete(total_products=10, new_deals=2)

        snapshot = tracker.snapshot()
        assert snapshot.status == "done"
        assert snapshot.total_products == 10
        assert snapshot.new_deals == 2
        assert snapshot.unique_products == 2
        assert snapshot.current_website is None

    def test_cancel_only_while_running(self, tracker):
        assert tracker.cancel() is False
        tracker.reset()
        assert tracker.cancel() is True
        assert tracker.is_cancelled
        assert tracker.status == "cancelled"
        assert tracker.cancel() is False

    def test_terminal_state_is_frozen(self, tracker):
        tracker.reset()
        tracker.cancel()
        tracker.update(new_deals=5)
        tracker.complete(total_products=1, new_deals=1)
        tracker.fail("late")

        snapshot = tracker.snapshot()
        assert snapshot.status == "cancelled"
        assert snapshot.new_deals == 0
        assert snapshot.error_message is None

    def test_reset_clears_cancellation(self, tracker):
        tracker.reset()
        tracker.cancel()
        tracker.reset()
        assert not tracker.is_cancelled
        assert tracker.is_running
        assert tracker.unique_product_count == 0

    def test_fail(self, tracker):
        tracker.reset()
        tracker.fail("database unavailable")
        snapshot = tracker.snapshot()
        assert snapshot.status == "error"
        assert snapshot.error_message == "database unavailable"
        assert snapshot.to_dict()["status"] == "error"
