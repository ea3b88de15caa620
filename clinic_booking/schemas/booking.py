from datetime import datetime

from pydantic import Field

from .auth import UserSummary
from .base import APIModel
from .slot import SlotResponse


class BookSlotRequest(APIModel):
    slot_id: int = Field(..., gt=0)


class BookingResponse(APIModel):
    id: int
    user_id: int
    slot_id: int
    created_at: datetime
    slot: SlotResponse


class BookingWithUserResponse(BookingResponse):
    user: UserSummary
