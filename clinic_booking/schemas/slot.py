from datetime import datetime

from .base import APIModel


class SlotResponse(APIModel):
    id: int
    start_at: datetime
    end_at: datetime
