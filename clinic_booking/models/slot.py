from sqlalchemy import Column, Integer, DateTime, CheckConstraint
from sqlalchemy.orm import relationship

from ..core.database import Base

class Slot(Base):
    __tablename__ = "slots"

    id = Column(Integer, primary_key=True, index=True)
    start_at = Column(DateTime, nullable=False, index=True)
    end_at = Column(DateTime, nullable=False)

    # At most one booking per slot, see Booking.slot_id
    booking = relationship("Booking", back_populates="slot", uselist=False)

    __table_args__ = (
        CheckConstraint("end_at > start_at", name="ck_slot_ends_after_start"),
    )

    def __repr__(self):
        return f"<Slot(id={self.id}, start_at='{self.start_at}', end_at='{self.end_at}')>"
