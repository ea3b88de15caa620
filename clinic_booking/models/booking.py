from sqlalchemy import Column, Integer, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base

class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    slot_id = Column(Integer, ForeignKey("slots.id"), nullable=False)

    created_at = Column(DateTime, nullable=False, server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="bookings")
    slot = relationship("Slot", back_populates="booking")

    __table_args__ = (
        # Only one booking can ever reference a slot
        UniqueConstraint("slot_id", name="uq_booking_slot"),
    )

    def __repr__(self):
        return f"<Booking(id={self.id}, user_id={self.user_id}, slot_id={self.slot_id})>"
