"""Reminder router - Admin reminder tools and cron endpoints"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ...auth import AdminUser, get_current_admin, verify_cron_secret
from ...database import get_db
from .service import (
    ReminderService,
    run_contractor_payment_check,
    run_contractor_reminders,
    run_recurrence_reminders,
    run_status_automation,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Reminders"])


class SendReminderRequest(BaseModel):
    assignmentId: str


def get_reminder_service(db: Session = Depends(get_db)) -> ReminderService:
    """Dependency injection for ReminderService"""
    return ReminderService(db)


@router.get("/admin/reminders/upcoming")
async def upcoming_reminders(
    admin: AdminUser = Depends(get_current_admin),
    service: ReminderService = Depends(get_reminder_service),
):
    """Accepted jobs in the coming weeks with their reminder status"""
    return service.upcoming()


@router.post("/admin/reminders/send")
async def send_reminder(
    data: SendReminderRequest,
    admin: AdminUser = Depends(get_current_admin),
    service: ReminderService = Depends(get_reminder_service),
):
    logger.info(f"📧 {admin.email} sending reminder for assignment {data.assignmentId}")
    return await service.send_now(data.assignmentId)


# ============================================================================
# CRON
# ============================================================================


@router.get("/cron/contractor-reminders", dependencies=[Depends(verify_cron_secret)])
async def cron_contractor_reminders(db: Session = Depends(get_db)):
    return await run_contractor_reminders(db)


@router.get("/cron/recurrence-reminders", dependencies=[Depends(verify_cron_secret)])
async def cron_recurrence_reminders(db: Session = Depends(get_db)):
    return await run_recurrence_reminders(db)


@router.get("/cron/check-contractor-payments", dependencies=[Depends(verify_cron_secret)])
async def cron_check_contractor_payments(db: Session = Depends(get_db)):
    return await run_contractor_payment_check(db)


@router.get("/cron/status-automation", dependencies=[Depends(verify_cron_secret)])
async def cron_status_automation(db: Session = Depends(get_db)):
    return run_status_automation(db)
