from datetime import datetime
from typing import List, Optional
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import contains_eager, joinedload

from ..core.database import Store
from ..core.errors import (
    AppError, AuthenticationError, InternalError,
    SlotAlreadyBooked, SlotExpired, SlotNotFound
)
from ..models.booking import Booking
from ..models.slot import Slot
from ..models.user import User

logger = logging.getLogger(__name__)


def _is_unique_violation(exc: IntegrityError) -> bool:
    # SQLite: "UNIQUE constraint failed", PostgreSQL: "violates unique constraint"
    return "unique" in str(exc.orig).lower()


class BookingService:
    """Reserves slots and lists the resulting bookings."""

    def __init__(self, store: Store):
        self.store = store

    def reserve(self, user_id: int, slot_id: int, now: Optional[datetime] = None) -> Booking:
        """Book ``slot_id`` for ``user_id`` as a single atomic unit of work.

        Every slot-state check happens inside the transaction. The unique
        constraint on ``bookings.slot_id`` settles any race that slips past
        the checks: the losing insert is reported as ``SlotAlreadyBooked``.

        Raises ``SlotNotFound``, ``SlotExpired``, ``SlotAlreadyBooked`` or,
        for any other store failure, ``InternalError``.
        """
        now = now or datetime.now()

        try:
            with self.store.atomic() as session:
                # Row lock on backends that support it; SQLite ignores it
                slot = (
                    session.query(Slot)
                    .filter(Slot.id == slot_id)
                    .with_for_update()
                    .first()
                )
                if slot is None:
                    raise SlotNotFound()

                if slot.start_at <= now:
                    raise SlotExpired()

                existing = session.query(Booking).filter(Booking.slot_id == slot.id).first()
                if existing is not None:
                    raise SlotAlreadyBooked()

                user = session.get(User, user_id)
                if user is None:
                    raise AuthenticationError("User not found")

                # Foreign keys only: setting Booking.slot would make the backref
                # unlink any rival booking already on the slot
                booking = Booking(user_id=user.id, slot_id=slot.id, created_at=now)
                session.add(booking)
                try:
                    session.flush()
                except IntegrityError as exc:
                    if _is_unique_violation(exc):
                        raise SlotAlreadyBooked() from exc
                    raise

                session.refresh(booking, ["slot", "user"])
        except AppError as exc:
            logger.info(f"Reservation of slot {slot_id} by user {user_id} refused: {exc.code}")
            raise
        except SQLAlchemyError as exc:
            # A unique violation can also surface at commit time
            if isinstance(exc, IntegrityError) and _is_unique_violation(exc):
                logger.info(f"Reservation of slot {slot_id} by user {user_id} lost the race")
                raise SlotAlreadyBooked() from exc
            logger.exception(f"Reservation of slot {slot_id} failed")
            raise InternalError() from exc

        logger.info(f"User {user_id} booked slot {slot_id} (booking {booking.id})")
        return booking

    def list_my_bookings(self, user_id: int) -> List[Booking]:
        """Bookings owned by ``user_id``, earliest slot first."""
        with self.store.reading() as session:
            return (
                session.query(Booking)
                .join(Booking.slot)
                .options(contains_eager(Booking.slot))
                .filter(Booking.user_id == user_id)
                .order_by(Slot.start_at.asc(), Booking.id.asc())
                .all()
            )

    def list_all_bookings(self) -> List[Booking]:
        """Every booking with its slot and owner, earliest slot first."""
        with self.store.reading() as session:
            return (
                session.query(Booking)
                .join(Booking.slot)
                .options(contains_eager(Booking.slot), joinedload(Booking.user))
                .order_by(Slot.start_at.asc(), Booking.id.asc())
                .all()
            )
