"""
Event processing engine
Turns transit and purchase events into bucketed counter updates
"""
from datetime import datetime, timezone
from typing import List, Optional
from zoneinfo import ZoneInfo
import logging

from travelstats.config import settings
from travelstats.models.events import Event, PurchaseEvent, TransitEvent
from travelstats.core.storage import RedisStorage

logger = logging.getLogger(__name__)


class EventProcessor:
    """
    Process events and update statistics counters
    """

    def __init__(self, storage: RedisStorage, tz: Optional[str] = None):
        """
        Initialize event processor

        Args:
            storage: Redis storage instance
            tz: Timezone used to bucket event timestamps (default: settings.EVENT_TIMEZONE)
        """
        self.storage = storage
        self.tz = ZoneInfo(tz or settings.EVENT_TIMEZONE)

    def local_time(self, timestamp: datetime) -> datetime:
        """
        Convert an event timestamp to the bucketing timezone

        Naive timestamps are taken as UTC.
        """
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return timestamp.astimezone(self.tz)

    def process_event(self, event: Event) -> None:
        """
        Process a single event

        Args:
            event: Event to process
        """
        moment = self.local_time(event.timestamp)

        if isinstance(event, TransitEvent):
            self.storage.record_transit(event.username, moment)
        elif isinstance(event, PurchaseEvent):
            self.storage.record_purchase(event.username, moment, event.quantity, event.amount)
        else:
            raise ValueError(f"Unsupported event: {type(event).__name__}")

        logger.debug(f"Processed {event.event_type} event for {event.username} at {moment.isoformat()}")

    def process_batch(self, events: List[Event]) -> int:
        """
        Process multiple events as one unit

        All counter updates are committed together. If storage fails, none
        of the batch is counted and the whole batch can be resubmitted.

        Args:
            events: List of events

        Returns:
            Number of processed events
        """
        transits = []
        purchases = []
        for event in events:
            moment = self.local_time(event.timestamp)
            if isinstance(event, TransitEvent):
                transits.append((event.username, moment))
            elif isinstance(event, PurchaseEvent):
                purchases.append((event.username, moment, event.quantity, event.amount))
            else:
                raise ValueError(f"Unsupported event: {type(event).__name__}")

        self.storage.record_batch(transits, purchases)
        logger.debug(f"Processed batch of {len(transits)} transits and {len(purchases)} purchases")

        return len(events)
