import uuid
from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from app.core.dependencies import get_complaint_service, require_supplier_staff
from app.db.schema import ComplaintStatus
from app.models.auth import Actor
from app.models.complaint import (
    ComplaintCreate, ComplaintPage, ComplaintRead, ComplaintResolve
)
from app.services.complaint import ComplaintService

router = APIRouter()


@router.post(
    "",
    response_model=ComplaintRead,
    status_code=status.HTTP_201_CREATED,
    summary="Open Complaint"
)
def create_complaint(
    data: ComplaintCreate,
    actor: Actor = Depends(require_supplier_staff),
    service: ComplaintService = Depends(get_complaint_service)
):
    complaint = service.create_complaint(actor, data)
    return ComplaintRead.model_validate(complaint)


@router.get(
    "",
    response_model=ComplaintPage,
    summary="List Complaints"
)
def list_complaints(
    complaint_status: Optional[ComplaintStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    actor: Actor = Depends(require_supplier_staff),
    service: ComplaintService = Depends(get_complaint_service)
):
    complaints, total = service.list_complaints(
        actor.supplier_id, complaint_status, page, page_size)
    return ComplaintPage(
        data=[ComplaintRead.model_validate(c) for c in complaints],
        page=page,
        page_size=page_size,
        total=total
    )


@router.get(
    "/{complaint_id}",
    response_model=ComplaintRead,
    summary="Get Complaint"
)
def get_complaint(
    complaint_id: uuid.UUID,
    actor: Actor = Depends(require_supplier_staff),
    service: ComplaintService = Depends(get_complaint_service)
):
    complaint = service.get_complaint(actor, complaint_id)
    return ComplaintRead.model_validate(complaint)


@router.post(
    "/{complaint_id}/escalate",
    response_model=ComplaintRead,
    summary="Escalate Complaint",
    description="Hands an open complaint to management and notes it in the conversation."
)
def escalate_complaint(
    complaint_id: uuid.UUID,
    actor: Actor = Depends(require_supplier_staff),
    service: ComplaintService = Depends(get_complaint_service)
):
    complaint = service.escalate_complaint(actor, complaint_id)
    return ComplaintRead.model_validate(complaint)


@router.post(
    "/{complaint_id}/resolve",
    response_model=ComplaintRead,
    summary="Resolve Complaint"
)
def resolve_complaint(
    complaint_id: uuid.UUID,
    data: ComplaintResolve,
    actor: Actor = Depends(require_supplier_staff),
    service: ComplaintService = Depends(get_complaint_service)
):
    complaint = service.resolve_complaint(actor, complaint_id, data.resolution)
    return ComplaintRead.model_validate(complaint)
