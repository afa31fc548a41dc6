"""Booking router - Admin event endpoints, quote review and calendar files"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ...auth import AdminUser, get_current_admin
from ...database import get_db
from .schemas import BookingResponse, BulkDeleteRequest, DuplicateRequest, EventUpdate, StatusChange
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Bookings"])


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db)


# ============================================================================
# ADMIN EVENTS
# ============================================================================


@router.get("/admin/events")
async def list_events(
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    client: Optional[str] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    sort: str = Query("event_date"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    admin: AdminUser = Depends(get_current_admin),
    service: BookingService = Depends(get_booking_service),
):
    """Filtered list of bookings with client list and status counts"""
    return service.list_events(status, search, client, date_from, date_to, sort, order, limit, offset)


@router.post("/admin/events/bulk-delete")
async def bulk_delete_events(
    data: BulkDeleteRequest,
    admin: AdminUser = Depends(get_current_admin),
    service: BookingService = Depends(get_booking_service),
):
    logger.info(f"🗑️ {admin.email} bulk deleting {len(data.ids)} events")
    return await service.bulk_delete(data.ids)


@router.post("/admin/events/duplicate")
async def duplicate_event(
    data: DuplicateRequest,
    admin: AdminUser = Depends(get_current_admin),
    service: BookingService = Depends(get_booking_service),
):
    return await service.duplicate(data.bookingId)


@router.get("/admin/events/{booking_id}")
async def get_event(
    booking_id: str,
    admin: AdminUser = Depends(get_current_admin),
    service: BookingService = Depends(get_booking_service),
):
    """Booking with assignments, client approval, document links and next action"""
    return service.get_event_details(booking_id)


@router.patch("/admin/events/{booking_id}")
async def update_event(
    booking_id: str,
    data: EventUpdate,
    admin: AdminUser = Depends(get_current_admin),
    service: BookingService = Depends(get_booking_service),
):
    booking = service.update_event(booking_id, data)
    return {"success": True, "booking": BookingResponse.model_validate(booking)}


@router.post("/admin/events/{booking_id}/status")
async def change_event_status(
    booking_id: str,
    data: StatusChange,
    admin: AdminUser = Depends(get_current_admin),
    service: BookingService = Depends(get_booking_service),
):
    logger.info(f"🔄 {admin.email} moving booking {booking_id} to {data.status}")
    booking = service.change_status(booking_id, data.status)
    return {"success": True, "status": booking.status}


@router.delete("/admin/events/{booking_id}")
async def delete_event(
    booking_id: str,
    admin: AdminUser = Depends(get_current_admin),
    service: BookingService = Depends(get_booking_service),
):
    logger.info(f"🗑️ {admin.email} deleting booking {booking_id}")
    return await service.delete_event(booking_id)


# ============================================================================
# PUBLIC TOKEN LOOKUPS
# ============================================================================


@router.get("/review-quote")
async def review_quote(
    token: Optional[str] = Query(None),
    service: BookingService = Depends(get_booking_service),
):
    """Booking for the owner's quote review page, by approval token"""
    booking = service.get_by_approval_token(token)
    return {"booking": BookingResponse.model_validate(booking)}


@router.get("/generate-ics")
async def generate_ics(
    token: Optional[str] = Query(None),
    booking_id: Optional[str] = Query(None),
    service: BookingService = Depends(get_booking_service),
):
    """Calendar file for a booking (contractor links)"""
    content, filename = service.build_ics(token, booking_id)
    return Response(
        content=content,
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
