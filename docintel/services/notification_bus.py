"""Bounded, deduplicating log of ingestion and extraction progress events."""

import asyncio
import time
from collections import deque
from typing import Any, AsyncIterator, Awaitable, Callable, Deque, Dict, List, Optional

from docintel.schemas.notifications import Notification, NotificationStatus
from docintel.utils.logging import get_logger

LOGGER = get_logger(__name__)


class NotificationBus:
    """Newest-first ring buffer of notifications.

    Appends are the only mutation; the oldest entries fall off once the
    buffer is full. Identical (customer, filename, status) events published
    within ``dedup_window`` seconds of each other collapse into one.
    """

    def __init__(
        self,
        capacity: int = 100,
        dedup_window: float = 2.0,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the bus.

        Args:
            capacity: Maximum number of retained notifications
            dedup_window: Seconds within which duplicates are dropped
            clock: Wall clock returning epoch seconds (injectable for tests)
        """
        self.capacity = capacity
        self.dedup_window = dedup_window
        self.clock = clock
        self._events: Deque[Notification] = deque(maxlen=capacity)
        self._sequence = 0

    def __len__(self) -> int:
        return len(self._events)

    @property
    def last_sequence(self) -> int:
        """Sequence number of the most recently published notification."""
        return self._sequence

    def publish(
        self,
        customer_id: int,
        filename: str,
        status: NotificationStatus,
        message: Optional[str] = None,
    ) -> Optional[Notification]:
        """Record an event.

        Returns:
            The stored notification, or None if it was a duplicate
        """
        now = self.clock()
        status = NotificationStatus(status)

        for existing in self._events:
            if now - existing.timestamp > self.dedup_window:
                break
            if (
                existing.customer_id == customer_id
                and existing.filename == filename
                and existing.status == status
            ):
                LOGGER.debug(
                    "Skipping duplicate notification",
                    extra={"customer_id": customer_id, "file_name": filename, "status": status.value},
                )
                return None

        self._sequence += 1
        notification = Notification(
            customer_id=customer_id,
            filename=filename,
            status=status,
            message=message,
            timestamp=now,
            sequence=self._sequence,
        )
        self._events.appendleft(notification)
        LOGGER.info(
            "Notification published",
            extra={"customer_id": customer_id, "file_name": filename, "status": status.value},
        )
        return notification

    def recent(self, customer_id: int, limit: int = 20) -> List[Notification]:
        """Latest notifications for a customer, newest first."""
        return [event for event in self._events if event.customer_id == customer_id][:limit]

    def since(self, customer_id: int, after_sequence: int) -> List[Notification]:
        """Notifications for a customer published after ``after_sequence``, oldest first."""
        newer = [
            event for event in self._events if event.customer_id == customer_id and event.sequence > after_sequence
        ]
        return list(reversed(newer))

    def latest_for_file(self, customer_id: int, filename: str, max_age: float) -> Optional[Notification]:
        """Most recent notification for one file, if younger than max_age seconds."""
        now = self.clock()
        for event in self._events:
            if event.customer_id == customer_id and event.filename == filename:
                return event if now - event.timestamp <= max_age else None
        return None


async def notification_stream(
    bus: NotificationBus,
    customer_id: int,
    tracked_filename: Optional[str] = None,
    poll_interval: float = 2.0,
    snapshot_window: float = 5.0,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    max_polls: Optional[int] = None,
) -> AsyncIterator[Dict[str, Any]]:
    """Yield stream messages for one customer until the consumer stops.

    The first message announces the connection. If a tracked filename is
    given and it has a notification younger than ``snapshot_window``, that
    snapshot follows. Afterwards every poll yields the notifications
    published since the previous poll.

    Args:
        bus: Notification bus to read from
        customer_id: Customer to follow
        tracked_filename: Optional file whose latest state is sent first
        poll_interval: Seconds between polls
        snapshot_window: Max age of the initial snapshot in seconds
        sleep: Awaitable sleep (injectable for tests)
        max_polls: Stop after this many polls (None streams forever)
    """
    last_seen = bus.last_sequence
    yield {"type": "connected", "customerId": customer_id}

    if tracked_filename:
        snapshot = bus.latest_for_file(customer_id, tracked_filename, snapshot_window)
        if snapshot is not None:
            yield {"type": "notification", "notification": snapshot.model_dump(mode="json", by_alias=True)}

    polls = 0
    while max_polls is None or polls < max_polls:
        await sleep(poll_interval)
        polls += 1
        for event in bus.since(customer_id, last_seen):
            last_seen = max(last_seen, event.sequence)
            yield {"type": "notification", "notification": event.model_dump(mode="json", by_alias=True)}
