"""Inquiry router - Public form endpoints"""

import asyncio
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from ...auth import AdminUser, get_current_admin
from ...config import INQUIRY_WORKER_ENABLED
from ...database import get_db
from ...rate_limiter import create_rate_limiter
from .schemas import (
    BacklineInquiry,
    ContactMessage,
    ContractorInquiry,
    FullSystemInquiry,
    InquiryDocumentsUpdate,
    InquirySubmitted,
)
from .service import InquiryService, process_inquiry_task

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Inquiries"])

inquiry_rate_limit = create_rate_limiter(key_prefix="inquiry")
contact_rate_limit = create_rate_limiter(key_prefix="contact")


def get_inquiry_service(db: Session = Depends(get_db)) -> InquiryService:
    """Dependency injection for InquiryService"""
    return InquiryService(db)


async def queue_inquiry_processing(inquiry_id: str, background_tasks: BackgroundTasks) -> None:
    """Enqueue quote preparation on the worker, or run it after the response"""
    if INQUIRY_WORKER_ENABLED:
        try:
            from arq import create_pool

            from ...worker import get_redis_settings

            pool = await asyncio.wait_for(create_pool(get_redis_settings()), timeout=5.0)
            try:
                job = await pool.enqueue_job("process_inquiry_job", inquiry_id)
            finally:
                await pool.aclose()
            logger.info(f"📤 Queued inquiry {inquiry_id} as job {job.job_id if job else None}")
            return
        except Exception as e:
            logger.warning(f"⚠️ Could not queue inquiry {inquiry_id}, processing in-process: {e}")
    background_tasks.add_task(process_inquiry_task, inquiry_id)


@router.post("/inquiry", response_model=InquirySubmitted, dependencies=[Depends(inquiry_rate_limit)])
async def submit_inquiry(
    data: FullSystemInquiry,
    background_tasks: BackgroundTasks,
    service: InquiryService = Depends(get_inquiry_service),
):
    """Sound system inquiry; the quote is prepared in the background"""
    inquiry = service.submit_fullsystem(data)
    await queue_inquiry_processing(inquiry.id, background_tasks)
    return InquirySubmitted(message="Inquiry submitted successfully", inquiryId=inquiry.id)


@router.post("/inquiry/backline", response_model=InquirySubmitted, dependencies=[Depends(inquiry_rate_limit)])
async def submit_backline_inquiry(
    data: BacklineInquiry,
    background_tasks: BackgroundTasks,
    service: InquiryService = Depends(get_inquiry_service),
):
    inquiry = service.submit_backline(data)
    await queue_inquiry_processing(inquiry.id, background_tasks)
    return InquirySubmitted(message="Backline inquiry submitted successfully", inquiryId=inquiry.id)


@router.post("/inquiry/contractor", response_model=InquirySubmitted, dependencies=[Depends(inquiry_rate_limit)])
async def submit_contractor_inquiry(
    data: ContractorInquiry,
    service: InquiryService = Depends(get_inquiry_service),
):
    if not await service.send_contractor_inquiry(data):
        raise HTTPException(status_code=500, detail="Failed to submit inquiry")
    return InquirySubmitted(message="Contractor inquiry submitted successfully")


@router.post("/contact", response_model=InquirySubmitted, dependencies=[Depends(contact_rate_limit)])
async def submit_contact_form(
    data: ContactMessage,
    service: InquiryService = Depends(get_inquiry_service),
):
    if not await service.send_contact_message(data):
        raise HTTPException(status_code=500, detail="Failed to send message")
    return InquirySubmitted(message="Message sent successfully")


@router.post("/admin/inquiries/{inquiry_id}/documents")
async def record_inquiry_documents(
    inquiry_id: str,
    data: InquiryDocumentsUpdate,
    admin: AdminUser = Depends(get_current_admin),
    service: InquiryService = Depends(get_inquiry_service),
):
    """Record the quote sheet / PDF produced for an inquiry"""
    inquiry = service.record_documents(inquiry_id, data)
    return {
        "success": True,
        "inquiryId": inquiry.id,
        "status": inquiry.status,
        "quoteSheetId": inquiry.quote_sheet_id,
        "quotePdfFileId": inquiry.quote_pdf_file_id,
    }
