from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ..deps import get_slot_service
from ...core.errors import MissingParameters, ValidationError
from ...schemas.slot import SlotResponse
from ...services.slot_service import SlotService

router = APIRouter(tags=["Slots"])

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"

def _parse_date(name: str, value: Optional[str]) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(
            "Invalid date format (YYYY-MM-DD)",
            details=[{"field": name, "message": f"{value!r} is not a calendar date"}]
        )

@router.get("/slots", response_model=List[SlotResponse])
def list_slots(
    from_: Optional[str] = Query(None, alias="from", pattern=DATE_PATTERN),
    to: Optional[str] = Query(None, pattern=DATE_PATTERN),
    slot_service: SlotService = Depends(get_slot_service)
):
    """List unbooked slots between two dates, both inclusive."""
    if not from_ or not to:
        raise MissingParameters()

    slots = slot_service.list_available(_parse_date("from", from_), _parse_date("to", to))
    return [SlotResponse.model_validate(slot) for slot in slots]
