"""Tests for the notification bus and its stream."""

import pytest

from docintel.schemas.notifications import NotificationStatus
from docintel.services.notification_bus import NotificationBus, notification_stream


class TestNotificationBus:
    """Tests for NotificationBus."""

    def test_recent_is_newest_first_and_per_customer(self, clock):
        bus = NotificationBus(clock=clock)
        bus.publish(7, "a.xlsx", NotificationStatus.PROCESSING, "Analyzing")
        clock.advance(5)
        bus.publish(8, "b.docx", NotificationStatus.PROCESSING)
        clock.advance(5)
        bus.publish(7, "a.xlsx", NotificationStatus.COMPLETE, "Done")

        recent = bus.recent(7)

        assert [event.status for event in recent] == [NotificationStatus.COMPLETE, NotificationStatus.PROCESSING]
        assert all(event.customer_id == 7 for event in recent)

    def test_duplicates_within_window_collapse(self, clock):
        """Same customer, file and status inside the window is stored once."""
        bus = NotificationBus(dedup_window=2.0, clock=clock)

        first = bus.publish(7, "a.xlsx", NotificationStatus.PROCESSING)
        clock.advance(1)
        second = bus.publish(7, "a.xlsx", NotificationStatus.PROCESSING)
        clock.advance(3)
        third = bus.publish(7, "a.xlsx", NotificationStatus.PROCESSING)

        assert first is not None
        assert second is None
        assert third is not None
        assert len(bus) == 2

    def test_capacity_drops_oldest(self, clock):
        bus = NotificationBus(capacity=3, clock=clock)
        for index in range(5):
            bus.publish(7, f"file-{index}.txt", NotificationStatus.COMPLETE)

        assert len(bus) == 3
        assert [event.filename for event in bus.recent(7)] == ["file-4.txt", "file-3.txt", "file-2.txt"]

    def test_serializes_with_camel_case_keys(self, clock):
        bus = NotificationBus(clock=clock)
        event = bus.publish(7, "a.xlsx", NotificationStatus.ERROR, "Failed to extract metadata: boom")

        payload = event.model_dump(mode="json", by_alias=True)

        assert payload["customerId"] == 7
        assert payload["status"] == "error"


class TestNotificationStream:
    """Tests for notification_stream."""

    @pytest.mark.asyncio
    async def test_connect_snapshot_then_new_events(self, clock):
        """The stream announces itself, sends the tracked file's state, then polls."""
        bus = NotificationBus(clock=clock)
        bus.publish(7, "a.xlsx", NotificationStatus.PROCESSING, "Analyzing document metadata...")

        async def sleep_and_publish(seconds):
            await clock.sleep(seconds)
            bus.publish(7, "a.xlsx", NotificationStatus.COMPLETE, "Metadata extracted successfully for a.xlsx")
            bus.publish(8, "other.txt", NotificationStatus.COMPLETE)

        messages = [
            message
            async for message in notification_stream(
                bus, 7, tracked_filename="a.xlsx", sleep=sleep_and_publish, max_polls=1
            )
        ]

        assert messages[0] == {"type": "connected", "customerId": 7}
        assert messages[1]["notification"]["status"] == "processing"
        assert [m["notification"]["status"] for m in messages[2:]] == ["complete"]

    @pytest.mark.asyncio
    async def test_stale_snapshot_is_skipped(self, clock):
        bus = NotificationBus(clock=clock)
        bus.publish(7, "a.xlsx", NotificationStatus.COMPLETE)
        clock.advance(60)

        messages = [
            message
            async for message in notification_stream(
                bus, 7, tracked_filename="a.xlsx", snapshot_window=5.0, sleep=clock.sleep, max_polls=1
            )
        ]

        assert messages == [{"type": "connected", "customerId": 7}]

    @pytest.mark.asyncio
    async def test_events_with_equal_timestamps_are_all_delivered(self, clock):
        """Events published on different polls at the same clock reading each arrive once."""
        bus = NotificationBus(clock=clock)
        published = iter(
            [
                ("a.xlsx", NotificationStatus.PROCESSING),
                ("a.xlsx", NotificationStatus.COMPLETE),
                ("b.xlsx", NotificationStatus.ERROR),
            ]
        )

        async def publish_without_advancing(seconds):
            filename, status = next(published)
            bus.publish(7, filename, status)

        messages = [
            message
            async for message in notification_stream(bus, 7, sleep=publish_without_advancing, max_polls=3)
        ]

        delivered = [(m["notification"]["filename"], m["notification"]["status"]) for m in messages[1:]]
        assert delivered == [("a.xlsx", "processing"), ("a.xlsx", "complete"), ("b.xlsx", "error")]
        assert [m["notification"]["sequence"] for m in messages[1:]] == [1, 2, 3]
