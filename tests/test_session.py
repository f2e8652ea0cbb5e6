"""Tests for per-session retry tracking."""

from datetime import timedelta

from voice_navigation.core.session import RetryTracker


class TestRetryTracker:
    def test_counts_are_one_based(self):
        tracker = RetryTracker(max_attempts=3)
        assert tracker.increment("s1", "blah") == 1
        assert tracker.increment("s1", "blah") == 2
        assert tracker.get_count("s1", "blah") == 2

    def test_keys_are_per_session_and_message(self):
        tracker = RetryTracker()
        tracker.increment("s1", "blah")
        tracker.increment("s2", "blah")
        tracker.increment("s1", "other")
        assert len(tracker) == 3
        assert RetryTracker.make_key("s1", "blah") in tracker

    def test_clear(self):
        tracker = RetryTracker()
        tracker.increment("s1", "blah")
        assert tracker.clear("s1", "blah")
        assert not tracker.clear("s1", "blah")
        assert tracker.get_count("s1", "blah") == 0

    def test_clear_session(self):
        tracker = RetryTracker()
        tracker.increment("s1", "a")
        tracker.increment("s1", "b")
        tracker.increment("s2", "a")
        assert tracker.clear_session("s1") == 2
        assert tracker.keys() == ["s2_a"]

    def test_session_details(self):
        tracker = RetryTracker()
        tracker.increment("s1", "blah")
        session = tracker.get_session("s1", "blah")
        assert session.to_dict()["count"] == 1
        assert session.last_attempt >= session.first_attempt

    def test_idle_counters_expire(self):
        tracker = RetryTracker(session_timeout_minutes=30)
        tracker.increment("s1", "blah")
        tracker.increment("s2", "blah")
        tracker.get_session("s1", "blah").last_attempt -= timedelta(hours=1)

        assert tracker.get_count("s1", "blah") == 0
        assert tracker.increment("s1", "blah") == 1

        tracker.get_session("s2", "blah").last_attempt -= timedelta(hours=1)
        assert tracker.cleanup_expired() == 1
        assert tracker.keys() == ["s1_blah"]

    def test_oldest_counter_is_evicted_at_capacity(self):
        tracker = RetryTracker(max_sessions=2)
        tracker.increment("s1", "a")
        tracker.increment("s2", "a")
        tracker.get_session("s1", "a").last_attempt -= timedelta(seconds=5)

        tracker.increment("s3", "a")
        assert len(tracker) == 2
        assert "s1_a" not in tracker
