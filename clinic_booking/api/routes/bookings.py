from typing import List

from fastapi import APIRouter, Depends, status

from ..deps import get_admin_user, get_booking_service, get_patient_user
from ...models.user import User
from ...schemas.booking import BookSlotRequest, BookingResponse, BookingWithUserResponse
from ...services.booking_service import BookingService

router = APIRouter(tags=["Bookings"])

@router.post("/book", response_model=BookingWithUserResponse, status_code=status.HTTP_201_CREATED)
def book_slot(
    booking_data: BookSlotRequest,
    current_user: User = Depends(get_patient_user),
    booking_service: BookingService = Depends(get_booking_service)
):
    """Reserve a slot for the calling patient."""
    booking = booking_service.reserve(current_user.id, booking_data.slot_id)
    return BookingWithUserResponse.model_validate(booking)

@router.get("/my-bookings", response_model=List[BookingResponse])
def my_bookings(
    current_user: User = Depends(get_patient_user),
    booking_service: BookingService = Depends(get_booking_service)
):
    """Bookings of the calling patient, earliest first."""
    bookings = booking_service.list_my_bookings(current_user.id)
    return [BookingResponse.model_validate(b) for b in bookings]

@router.get("/all-bookings", response_model=List[BookingWithUserResponse])
def all_bookings(
    _: User = Depends(get_admin_user),
    booking_service: BookingService = Depends(get_booking_service)
):
    """Every booking with its patient (admin only)."""
    bookings = booking_service.list_all_bookings()
    return [BookingWithUserResponse.model_validate(b) for b in bookings]
