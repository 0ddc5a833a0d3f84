"""Travel request persistence — query composition, pagination and soft delete.

No business rules live here: callers decide *whether* a write is allowed,
this module only knows *how* to perform it.
"""
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.orm import Session, joinedload
from sqlalchemy.orm.exc import StaleDataError

from app.config import settings
from app.exceptions import Conflict
from app.models.travel_request import TravelRequest, TravelRequestStatus
from app.repositories.filters import TravelRequestFilters, build_filters

logger = logging.getLogger(__name__)


@dataclass
class Page:
    """One page of results plus the metadata needed to render pagination."""

    items: list[Any]
    total: int
    current_page: int
    per_page: int

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page)) if self.per_page else 1

    def meta(self) -> dict[str, int]:
        return {
            "current_page": self.current_page,
            "last_page": self.last_page,
            "per_page": self.per_page,
            "total": self.total,
        }


def _with_relations(query):
    return query.options(
        joinedload(TravelRequest.user),
        joinedload(TravelRequest.approver),
        joinedload(TravelRequest.canceller),
    )


def list_requests(
    db: Session,
    filters: Optional[TravelRequestFilters] = None,
    page: int = 1,
    per_page: Optional[int] = None,
    owner_id: Optional[str] = None,
) -> Page:
    """Return non-deleted requests, newest first, optionally scoped to one owner."""
    page = max(1, page)
    per_page = max(1, per_page or settings.DEFAULT_PER_PAGE)

    query = db.query(TravelRequest).filter(TravelRequest.deleted_at.is_(None))
    if owner_id is not None:
        query = query.filter(TravelRequest.user_id == owner_id)
    predicates = build_filters(filters)
    if predicates:
        query = query.filter(*predicates)

    total = query.count()
    logger.debug("Listing travel requests: owner=%s total=%d page=%d", owner_id or "*", total, page)
    items = (
        _with_relations(query)
        .order_by(TravelRequest.created_at.desc(), TravelRequest.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return Page(items=items, total=total, current_page=page, per_page=per_page)


def find_by_id(db: Session, request_id: str, with_trashed: bool = False) -> Optional[TravelRequest]:
    """Fetch a request with owner/approver/canceller loaded, or None."""
    query = _with_relations(db.query(TravelRequest)).filter(TravelRequest.id == request_id)
    if not with_trashed:
        query = query.filter(TravelRequest.deleted_at.is_(None))
    return query.first()


def _refresh(db: Session, travel_request: TravelRequest) -> TravelRequest:
    # Reload columns and relations expired by the commit
    return find_by_id(db, travel_request.id, with_trashed=True)


def _commit(db: Session, travel_request: TravelRequest) -> None:
    request_id = travel_request.id
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        logger.info("Travel request %s changed underneath this write", request_id)
        raise Conflict("The travel request was modified by another request. Re-fetch and retry.")


def create(db: Session, data: dict[str, Any]) -> TravelRequest:
    travel_request = TravelRequest(**data)
    db.add(travel_request)
    db.commit()
    return _refresh(db, travel_request)


def update(db: Session, travel_request: TravelRequest, data: dict[str, Any]) -> TravelRequest:
    for name, value in data.items():
        setattr(travel_request, name, value)
    _commit(db, travel_request)
    return _refresh(db, travel_request)


def soft_delete(db: Session, travel_request: TravelRequest) -> bool:
    if travel_request.deleted_at is not None:
        return False
    travel_request.deleted_at = datetime.now(timezone.utc)
    _commit(db, travel_request)
    return True


def approve(db: Session, travel_request: TravelRequest, approved_by: str) -> TravelRequest:
    return update(db, travel_request, {
        "status": TravelRequestStatus.approved,
        "approved_by": approved_by,
    })


def cancel(
    db: Session,
    travel_request: TravelRequest,
    cancelled_by: str,
    reason: Optional[str] = None,
) -> TravelRequest:
    return update(db, travel_request, {
        "status": TravelRequestStatus.cancelled,
        "cancelled_by": cancelled_by,
        "cancelled_reason": reason,
    })
