"""Travel request API routes — existence check, then policy, then lifecycle service."""
import logging
from typing import Optional
from fastapi import APIRouter, Query, status

from app.dependencies import CurrentUser, DBSession
from app.policies.travel_request_policy import authorize
from app.repositories.filters import TravelRequestFilters
from app.schemas.travel_request import (
    MessageOut,
    PaginationMeta,
    TravelRequestApprove,
    TravelRequestCancel,
    TravelRequestCreate,
    TravelRequestEnvelope,
    TravelRequestOut,
    TravelRequestPage,
    TravelRequestUpdate,
)
from app.services import travel_request_service as service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/", response_model=TravelRequestPage)
def list_travel_requests(
    db: DBSession,
    actor: CurrentUser,
    status_filter: Optional[str] = Query(None, alias="status"),
    destination: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    start_date_from: Optional[str] = Query(None),
    start_date_to: Optional[str] = Query(None),
    created_from: Optional[str] = Query(None),
    created_to: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1),
):
    """List requests: admins see all, users only their own. Newest first."""
    authorize("view_any", actor)
    filters = TravelRequestFilters.from_query({
        "status": status_filter,
        "destination": destination,
        "start_date": start_date,
        "end_date": end_date,
        "start_date_from": start_date_from,
        "start_date_to": start_date_to,
        "created_from": created_from,
        "created_to": created_to,
    })
    result = service.list_for(db, actor, filters=filters, page=page, per_page=per_page)
    return TravelRequestPage(
        data=[TravelRequestOut.model_validate(item) for item in result.items],
        meta=PaginationMeta(**result.meta()),
    )


@router.post("/", response_model=TravelRequestEnvelope, status_code=status.HTTP_201_CREATED)
def create_travel_request(payload: TravelRequestCreate, db: DBSession, actor: CurrentUser):
    """Submit a new request on behalf of the authenticated user."""
    authorize("create", actor)
    travel_request = service.create(db, actor, payload)
    return TravelRequestEnvelope(
        message="Travel request created successfully",
        data=TravelRequestOut.model_validate(travel_request),
    )


@router.get("/{request_id}", response_model=TravelRequestEnvelope)
def get_travel_request(request_id: str, db: DBSession, actor: CurrentUser):
    """Fetch one request (owner or admin)."""
    travel_request = service.get_by_id(db, request_id)
    authorize("view", actor, travel_request)
    return TravelRequestEnvelope(data=TravelRequestOut.model_validate(travel_request))


@router.put("/{request_id}", response_model=TravelRequestEnvelope)
@router.patch("/{request_id}", response_model=TravelRequestEnvelope)
def update_travel_request(request_id: str, payload: TravelRequestUpdate, db: DBSession, actor: CurrentUser):
    """Edit destination, dates or notes while the request is still pending (owner only)."""
    travel_request = service.get_by_id(db, request_id)
    authorize("update", actor, travel_request)
    updated = service.update(db, travel_request, payload)
    return TravelRequestEnvelope(
        message="Travel request updated successfully",
        data=TravelRequestOut.model_validate(updated),
    )


@router.delete("/{request_id}", response_model=MessageOut)
def delete_travel_request(request_id: str, db: DBSession, actor: CurrentUser):
    """Soft-delete a pending request (owner only)."""
    travel_request = service.get_by_id(db, request_id)
    authorize("delete", actor, travel_request)
    service.delete(db, travel_request)
    return MessageOut(message="Travel request deleted successfully")


@router.post("/{request_id}/approve", response_model=TravelRequestEnvelope)
def approve_travel_request(
    request_id: str,
    db: DBSession,
    actor: CurrentUser,
    payload: Optional[TravelRequestApprove] = None,
):
    """Approve a pending request (admin only)."""
    travel_request = service.get_by_id(db, request_id)
    authorize("approve", actor, travel_request)
    approved = service.approve(
        db,
        travel_request,
        actor,
        expected_version=payload.version if payload else None,
    )
    return TravelRequestEnvelope(
        message="Travel request approved successfully",
        data=TravelRequestOut.model_validate(approved),
    )


@router.post("/{request_id}/cancel", response_model=TravelRequestEnvelope)
def cancel_travel_request(
    request_id: str,
    db: DBSession,
    actor: CurrentUser,
    payload: Optional[TravelRequestCancel] = None,
):
    """Cancel a request that has not been approved (owner or admin)."""
    travel_request = service.get_by_id(db, request_id)
    authorize("cancel", actor, travel_request)
    cancelled = service.cancel(
        db,
        travel_request,
        actor,
        reason=payload.reason if payload else None,
        expected_version=payload.version if payload else None,
    )
    return TravelRequestEnvelope(
        message="Travel request cancelled successfully",
        data=TravelRequestOut.model_validate(cancelled),
    )
