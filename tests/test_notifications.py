from datetime import datetime, timezone

from teleprompter.notifications import Notifier


class TestNotifier:
    def setup_method(self):
        self.notifier = Notifier()

    def test_timestamps_are_utc_aware(self):
        before = datetime.now(timezone.utc)
        notification = self.notifier.success("Set as default")

        assert notification.created_at.tzinfo is not None
        assert notification.created_at.utcoffset().total_seconds() == 0
        assert notification.created_at >= before
        assert notification.to_dict()["created_at"].endswith("+00:00")

    def test_drain_empties_queue_in_order(self):
        self.notifier.success("Saved")
        self.notifier.warning("Could not save your script position")
        self.notifier.error("Failed to set default")

        assert [n.level for n in self.notifier.pending] == ["success", "warning", "error"]
        drained = self.notifier.drain()

        assert [n.message for n in drained] == [
            "Saved",
            "Could not save your script position",
            "Failed to set default",
        ]
        assert self.notifier.drain() == []
        assert self.notifier.pending == []
