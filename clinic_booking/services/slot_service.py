from datetime import date, datetime, time
from typing import List
import logging

from ..core.database import Store
from ..models.booking import Booking
from ..models.slot import Slot

logger = logging.getLogger(__name__)

# Last representable instant of a day at millisecond precision
END_OF_DAY = time(23, 59, 59, 999000)


class SlotService:
    def __init__(self, store: Store):
        self.store = store

    def list_available(self, from_date: date, to_date: date) -> List[Slot]:
        """Unbooked slots starting between ``from_date`` and the end of ``to_date``.

        Both dates are inclusive. The result is ordered by start time and
        reflects the moment of the query; a slot listed here may be booked
        by the time the caller tries to reserve it.
        """
        range_start = datetime.combine(from_date, time.min)
        range_end = datetime.combine(to_date, END_OF_DAY)

        with self.store.reading() as session:
            slots = (
                session.query(Slot)
                .outerjoin(Booking, Booking.slot_id == Slot.id)
                .filter(
                    Slot.start_at >= range_start,
                    Slot.start_at <= range_end,
                    Booking.id.is_(None),
                )
                .order_by(Slot.start_at.asc(), Slot.id.asc())
                .all()
            )

        logger.debug(f"{len(slots)} open slots between {from_date} and {to_date}")
        return slots
