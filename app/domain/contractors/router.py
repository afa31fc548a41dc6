"""Contractor router - Crew selection, job responses and the contractor directory"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import AdminUser, get_current_admin
from ...database import get_db
from ...shared.links import redirect_to, result_redirect
from .schemas import (
    AssignmentUpdate,
    ContractorCreate,
    ContractorResponse,
    ContractorUpdate,
    NotifyContractorsRequest,
    SelectContractorsRequest,
)
from .service import ContractorService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Contractors"])


def get_contractor_service(db: Session = Depends(get_db)) -> ContractorService:
    """Dependency injection for ContractorService"""
    return ContractorService(db)


# ============================================================================
# CREW SELECTION
# ============================================================================


@router.get("/select-contractors")
async def get_selection(
    token: Optional[str] = Query(None),
    service: ContractorService = Depends(get_contractor_service),
):
    """Booking, active contractors and current assignments for the selection page"""
    return service.get_selection(token)


@router.post("/select-contractors")
async def save_selection(
    data: SelectContractorsRequest,
    service: ContractorService = Depends(get_contractor_service),
):
    return await service.save_selection(data)


@router.post("/notify-contractors")
async def notify_contractors(
    data: NotifyContractorsRequest,
    service: ContractorService = Depends(get_contractor_service),
):
    """Email a job offer to every selected contractor not yet notified"""
    return await service.notify(data)


# ============================================================================
# CONTRACTOR LINKS
# ============================================================================


@router.get("/contractor-respond")
async def contractor_respond(
    token: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    service: ContractorService = Depends(get_contractor_service),
):
    try:
        params = await service.respond(token, action)
    except Exception as e:
        logger.error(f"❌ Error processing contractor response: {e}", exc_info=True)
        service.db.rollback()
        params = {"type": "error", "error": "server_error"}
    result_type = params.pop("type")
    return result_redirect(result_type, **params)


@router.get("/accept-job")
async def accept_job(
    token: Optional[str] = Query(None),
    contractor: Optional[str] = Query(None),
    service: ContractorService = Depends(get_contractor_service),
):
    """First contractor to click gets the job"""
    try:
        params = await service.accept_job(token, contractor)
    except Exception as e:
        logger.error(f"❌ Error accepting job: {e}", exc_info=True)
        service.db.rollback()
        params = {"error": "server_error"}
    return redirect_to("/accept-job", **params)


# ============================================================================
# ADMIN
# ============================================================================


@router.get("/admin/contractors", response_model=list[ContractorResponse])
async def list_contractors(
    active_only: bool = Query(False),
    admin: AdminUser = Depends(get_current_admin),
    service: ContractorService = Depends(get_contractor_service),
):
    return service.list_contractors(active_only)


@router.post("/admin/contractors", response_model=ContractorResponse, status_code=201)
async def create_contractor(
    data: ContractorCreate,
    admin: AdminUser = Depends(get_current_admin),
    service: ContractorService = Depends(get_contractor_service),
):
    return service.create_contractor(data)


@router.patch("/admin/contractors/{contractor_id}", response_model=ContractorResponse)
async def update_contractor(
    contractor_id: str,
    data: ContractorUpdate,
    admin: AdminUser = Depends(get_current_admin),
    service: ContractorService = Depends(get_contractor_service),
):
    return service.update_contractor(contractor_id, data)


@router.patch("/admin/assignments/{assignment_id}")
async def update_assignment(
    assignment_id: str,
    data: AssignmentUpdate,
    admin: AdminUser = Depends(get_current_admin),
    service: ContractorService = Depends(get_contractor_service),
):
    """Only the reminder date can be changed"""
    assignment = service.update_assignment(assignment_id, data)
    return {"success": True, "assignment": service.assignment_response(assignment)}
