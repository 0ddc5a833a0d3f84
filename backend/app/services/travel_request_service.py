"""Travel request lifecycle service.

Responsibilities:
- Scope listings by role (admins see everything, others only their own)
- Derive owner, requester name and initial status from the actor on create
- Date consistency: start date not in the past, end date after start date
- Optional optimistic locking via the version column
- Emit RequestCreated / RequestApproved / RequestCancelled after each write

Authorization is decided by ``app.policies.travel_request_policy``; the
approve/cancel/update/delete functions here assume the caller already
checked it.
"""
import logging
from datetime import date, datetime
from typing import Any, Optional

import pytz
from sqlalchemy.orm import Session

from app.config import settings
from app.events.dispatcher import EventDispatcher, dispatcher as default_dispatcher
from app.events.types import RequestApproved, RequestCancelled, RequestCreated
from app.exceptions import Conflict, NotFound, ValidationFailed
from app.models.travel_request import TravelRequest, TravelRequestStatus
from app.models.user import User
from app.repositories import travel_request_repository as repository
from app.repositories.filters import TravelRequestFilters
from app.repositories.travel_request_repository import Page
from app.schemas.travel_request import TravelRequestCreate, TravelRequestOut, TravelRequestUpdate

logger = logging.getLogger(__name__)

END_DATE_MESSAGE = "The return date must be after the departure date."
START_DATE_MESSAGE = "The departure date must be today or a future date."
DESTINATION_MESSAGE = "The destination is required."


def local_today() -> date:
    """Current calendar date in the configured application timezone."""
    return datetime.now(pytz.timezone(settings.APP_TIMEZONE)).date()


def snapshot(travel_request: TravelRequest) -> dict[str, Any]:
    """JSON-safe copy of the resource, as carried by domain events."""
    return TravelRequestOut.model_validate(travel_request).model_dump(mode="json")


def _check_version(travel_request: TravelRequest, expected: Optional[int]) -> None:
    if expected is not None and expected != travel_request.version:
        raise Conflict(
            f"Version mismatch: expected {travel_request.version}, got {expected}. Re-fetch and retry."
        )


def _validate_dates(
    start_date: date,
    end_date: date,
    check_start: bool,
) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    if check_start and start_date < local_today():
        errors["start_date"] = [START_DATE_MESSAGE]
    if end_date <= start_date:
        errors["end_date"] = [END_DATE_MESSAGE]
    return errors


def list_for(
    db: Session,
    actor: User,
    filters: Optional[TravelRequestFilters] = None,
    page: int = 1,
    per_page: Optional[int] = None,
) -> Page:
    """Newest-first page of requests visible to ``actor``."""
    per_page = min(per_page or settings.DEFAULT_PER_PAGE, settings.MAX_PER_PAGE)
    owner_id = None if actor.is_admin else actor.user_id
    return repository.list_requests(db, filters=filters, page=page, per_page=per_page, owner_id=owner_id)


def get_by_id(db: Session, request_id: str) -> TravelRequest:
    """Fetch a live request. Ownership is not checked here."""
    travel_request = repository.find_by_id(db, request_id)
    if travel_request is None:
        raise NotFound("Travel request not found")
    return travel_request


def create(
    db: Session,
    actor: User,
    payload: TravelRequestCreate,
    events: EventDispatcher = default_dispatcher,
) -> TravelRequest:
    """Create a request owned by ``actor`` in the ``requested`` state."""
    errors: dict[str, list[str]] = {}
    destination = (payload.destination or "").strip()
    if not destination:
        errors["destination"] = [DESTINATION_MESSAGE]
    errors.update(_validate_dates(payload.start_date, payload.end_date, check_start=True))
    if errors:
        logger.info("Rejected travel request from user %s: %s", actor.user_id, sorted(errors))
        raise ValidationFailed(errors)

    travel_request = repository.create(db, {
        "user_id": actor.user_id,
        "requester_name": actor.name,
        "destination": destination,
        "start_date": payload.start_date,
        "end_date": payload.end_date,
        "notes": payload.notes,
        "status": TravelRequestStatus.requested,
    })
    logger.info("Created travel request %s to '%s' for user %s", travel_request.id, destination, actor.user_id)
    events.dispatch(RequestCreated(travel_request=snapshot(travel_request)))
    return travel_request


def update(db: Session, travel_request: TravelRequest, payload: TravelRequestUpdate) -> TravelRequest:
    """Apply the allow-listed fields of ``payload``; all-or-nothing."""
    _check_version(travel_request, payload.version)
    changes = payload.changes()

    errors: dict[str, list[str]] = {}
    if "destination" in changes:
        destination = (changes["destination"] or "").strip()
        if not destination:
            errors["destination"] = [DESTINATION_MESSAGE]
        changes["destination"] = destination
    for field in ("start_date", "end_date"):
        if field in changes and changes[field] is None:
            errors[field] = [f"The {field.replace('_', ' ')} cannot be empty."]

    if not errors and ("start_date" in changes or "end_date" in changes):
        start_date = changes.get("start_date", travel_request.start_date)
        end_date = changes.get("end_date", travel_request.end_date)
        errors.update(_validate_dates(start_date, end_date, check_start="start_date" in changes))

    if errors:
        logger.info("Rejected update of travel request %s: %s", travel_request.id, sorted(errors))
        raise ValidationFailed(errors)

    if not changes:
        return travel_request

    updated = repository.update(db, travel_request, changes)
    logger.info("Updated travel request %s (%s)", updated.id, ", ".join(sorted(changes)))
    return updated


def delete(db: Session, travel_request: TravelRequest) -> bool:
    """Soft-delete. No event is emitted."""
    deleted = repository.soft_delete(db, travel_request)
    if deleted:
        logger.info("Soft-deleted travel request %s", travel_request.id)
    return deleted


def approve(
    db: Session,
    travel_request: TravelRequest,
    actor: User,
    expected_version: Optional[int] = None,
    events: EventDispatcher = default_dispatcher,
) -> TravelRequest:
    _check_version(travel_request, expected_version)
    approved = repository.approve(db, travel_request, actor.user_id)
    logger.info("Travel request %s approved by %s", approved.id, actor.user_id)
    events.dispatch(RequestApproved(travel_request=snapshot(approved)))
    return approved


def cancel(
    db: Session,
    travel_request: TravelRequest,
    actor: User,
    reason: Optional[str] = None,
    expected_version: Optional[int] = None,
    events: EventDispatcher = default_dispatcher,
) -> TravelRequest:
    _check_version(travel_request, expected_version)
    cancelled = repository.cancel(db, travel_request, actor.user_id, reason)
    logger.info("Travel request %s cancelled by %s (reason: %s)", cancelled.id, actor.user_id, reason)
    events.dispatch(RequestCancelled(travel_request=snapshot(cancelled)))
    return cancelled
