"""
ROUTES: LEADS
=============

Creation, assignment and the accept/decline answer of the assignee.

An assignment that finds no eligible seller is not an error: the response
carries `outcome = "no_eligible_seller"` (or `"released"` after a decline)
so the UI can tell the user nobody is currently available.
"""

from datetime import datetime
from typing import Optional, List
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from leadflow.domain.entities import AssignmentState, LeadSource, User
from leadflow.api.dependencies import (
    get_assignment_service,
    get_current_user,
    require_manager,
)
from leadflow.infrastructure.services.assignment_service import (
    AssignmentOutcome,
    AssignmentResult,
    LeadAssignmentService,
)


router = APIRouter(prefix="/leads", tags=["Leads"])


# ==========================================
# SCHEMAS (Pydantic)
# ==========================================

class LeadCreate(BaseModel):
    source: LeadSource
    facility: Optional[str] = Field(None, max_length=100)
    contact_name: str = Field(..., min_length=1, max_length=255)
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    vehicle_title: str = Field(..., min_length=1, max_length=255)
    vehicle_link: Optional[str] = None
    listing_id: Optional[str] = None
    message: Optional[str] = None


class LeadResponse(BaseModel):
    id: int
    source: str
    facility: Optional[str]
    contact_name: str
    vehicle_title: str
    status: str
    assignment_state: AssignmentState
    assigned_to_id: Optional[int]
    assigned_at: Optional[datetime]
    accept_status: Optional[str]
    accepted_at: Optional[datetime]
    declined_at: Optional[datetime]
    decline_reason: Optional[str]
    reminder_sent_at_6h: Optional[datetime]
    reminder_sent_at_11h: Optional[datetime]
    timeout_notified_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class AssignmentResponse(BaseModel):
    lead: LeadResponse
    outcome: AssignmentOutcome
    seller_id: Optional[int] = None
    previous_seller_id: Optional[int] = None
    message: str


class DeclineRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class ManualAssignRequest(BaseModel):
    user_id: int


class ActivityResponse(BaseModel):
    id: int
    lead_id: int
    user_id: Optional[int]
    action: str
    from_value: Optional[str]
    to_value: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


_OUTCOME_MESSAGES = {
    AssignmentOutcome.ASSIGNED: "Lead assigned",
    AssignmentOutcome.REASSIGNED: "Lead passed on to the next seller",
    AssignmentOutcome.RELEASED: "No other seller available, lead returned to the unassigned pool",
    AssignmentOutcome.NO_ELIGIBLE_SELLER: "No seller currently available",
}


def _assignment_response(result: AssignmentResult) -> AssignmentResponse:
    return AssignmentResponse(
        lead=LeadResponse.model_validate(result.lead),
        outcome=result.outcome,
        seller_id=result.seller_id,
        previous_seller_id=result.previous_seller_id,
        message=_OUTCOME_MESSAGES[result.outcome],
    )


# ==========================================
# ROUTES
# ==========================================

@router.post("", response_model=AssignmentResponse, status_code=status.HTTP_201_CREATED)
async def create_lead(
    payload: LeadCreate,
    user: User = Depends(get_current_user),
    service: LeadAssignmentService = Depends(get_assignment_service),
):
    """Creates a lead and runs the facility rotation on it."""
    data = payload.model_dump()
    data["source"] = payload.source.value

    result = await service.create_lead(data)
    return _assignment_response(result)


@router.get("/pending-acceptance", response_model=List[LeadResponse])
async def list_pending_acceptance(
    assignee_id: Optional[int] = Query(None),
    user: User = Depends(get_current_user),
    service: LeadAssignmentService = Depends(get_assignment_service),
):
    """Managers may look at anyone's queue; sellers only see their own."""
    if not user.is_manager:
        assignee_id = user.id

    return await service.list_pending_acceptance(assignee_id)


@router.get("/{lead_id}", response_model=LeadResponse)
async def get_lead(
    lead_id: int,
    user: User = Depends(get_current_user),
    service: LeadAssignmentService = Depends(get_assignment_service),
):
    """Current state of a lead (managers, or its assignee)."""
    return await service.get_lead_for_viewer(lead_id, user)


@router.post("/{lead_id}/assign", response_model=AssignmentResponse)
async def auto_assign_lead(
    lead_id: int,
    user: User = Depends(get_current_user),
    service: LeadAssignmentService = Depends(get_assignment_service),
):
    result = await service.auto_assign(lead_id, acting_user_id=user.id)
    return _assignment_response(result)


@router.patch("/{lead_id}/assign", response_model=LeadResponse)
async def manual_assign_lead(
    lead_id: int,
    payload: ManualAssignRequest,
    manager: User = Depends(require_manager),
    service: LeadAssignmentService = Depends(get_assignment_service),
):
    return await service.manual_reassign(lead_id, manager.id, payload.user_id)


@router.post("/{lead_id}/accept", response_model=LeadResponse)
async def accept_lead(
    lead_id: int,
    user: User = Depends(get_current_user),
    service: LeadAssignmentService = Depends(get_assignment_service),
):
    return await service.accept(lead_id, user.id)


@router.post("/{lead_id}/decline", response_model=AssignmentResponse)
async def decline_lead(
    lead_id: int,
    payload: Optional[DeclineRequest] = None,
    user: User = Depends(get_current_user),
    service: LeadAssignmentService = Depends(get_assignment_service),
):
    reason = payload.reason if payload else None
    result = await service.decline(lead_id, user.id, reason)
    return _assignment_response(result)


@router.get("/{lead_id}/activity", response_model=List[ActivityResponse])
async def lead_activity(
    lead_id: int,
    user: User = Depends(get_current_user),
    service: LeadAssignmentService = Depends(get_assignment_service),
):
    """Audit trail of the lead, newest first (managers, or its assignee)."""
    return await service.get_lead_activity(lead_id, viewer=user)
