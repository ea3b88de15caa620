from datetime import date, datetime, time, timedelta
import logging

from ..core.database import Store
from ..models.slot import Slot

logger = logging.getLogger(__name__)


class SlotGenerator:
    """Materializes the weekly opening template into slots.

    Running it twice over overlapping dates creates a second set of slots
    for the same windows; nothing checks for existing ones.
    """

    def __init__(
        self,
        store: Store,
        days: int = 7,
        opening_hour: int = 9,
        closing_hour: int = 17,
        slot_minutes: int = 30,
    ):
        if slot_minutes <= 0:
            raise ValueError("slot_minutes must be positive")
        if not 0 <= opening_hour < closing_hour <= 24:
            raise ValueError("opening_hour must come before closing_hour")
        self.store = store
        self.days = days
        self.opening_hour = opening_hour
        self.closing_hour = closing_hour
        self.slot_length = timedelta(minutes=slot_minutes)

    def windows(self, start_date: date):
        """Yield ``(start_at, end_at)`` for every slot from ``start_date``."""
        for offset in range(self.days):
            day = start_date + timedelta(days=offset)
            # Monday is 0; skip Saturday and Sunday
            if day.weekday() >= 5:
                continue

            start_at = datetime.combine(day, time(self.opening_hour))
            closing = datetime.combine(day, time.min) + timedelta(hours=self.closing_hour)
            while start_at + self.slot_length <= closing:
                yield start_at, start_at + self.slot_length
                start_at += self.slot_length

    def generate(self, start_date: date) -> int:
        """Create the slots for the week starting at ``start_date``.

        Returns the number of slots created.
        """
        slots = [Slot(start_at=s, end_at=e) for s, e in self.windows(start_date)]
        with self.store.atomic() as session:
            session.add_all(slots)

        logger.info(f"Generated {len(slots)} slots from {start_date}")
        return len(slots)
