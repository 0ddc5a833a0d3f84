"""Authorization rules for travel requests.

Pure decision functions over (actor, request). They never touch the
database and never raise; ``authorize`` is the single place that turns a
denial into ``Forbidden`` so every route applies the same rules.

Rules:
- view any / create: any authenticated actor
- view: admin or owner
- update / delete: owner, and only while the request is still ``requested``
- approve: admin, and only from ``requested``
- cancel: admin or owner, as long as the request is not approved
"""
import logging
from typing import Optional

from app.exceptions import Forbidden
from app.models.travel_request import TravelRequest, TravelRequestStatus
from app.models.user import User

logger = logging.getLogger(__name__)

_FROZEN_STATUSES = (TravelRequestStatus.approved, TravelRequestStatus.cancelled)


def _is_owner(actor: User, request: TravelRequest) -> bool:
    return actor.user_id == request.user_id


def can_view_any(actor: User) -> bool:
    return True


def can_view(actor: User, request: TravelRequest) -> bool:
    return actor.is_admin or _is_owner(actor, request)


def can_create(actor: User) -> bool:
    return True


def can_update(actor: User, request: TravelRequest) -> bool:
    return _is_owner(actor, request) and request.status not in _FROZEN_STATUSES


def can_delete(actor: User, request: TravelRequest) -> bool:
    return can_update(actor, request)


def can_approve(actor: User, request: TravelRequest) -> bool:
    return actor.is_admin and request.status == TravelRequestStatus.requested


def can_cancel(actor: User, request: TravelRequest) -> bool:
    if request.status == TravelRequestStatus.approved:
        return False
    return actor.is_admin or _is_owner(actor, request)


_RULES = {
    "view_any": lambda actor, request: can_view_any(actor),
    "create": lambda actor, request: can_create(actor),
    "view": can_view,
    "update": can_update,
    "delete": can_delete,
    "approve": can_approve,
    "cancel": can_cancel,
}


def authorize(action: str, actor: User, request: Optional[TravelRequest] = None) -> None:
    """Raise ``Forbidden`` unless ``actor`` may perform ``action``."""
    try:
        rule = _RULES[action]
    except KeyError:
        raise ValueError(f"Unknown travel request action: {action}") from None

    if rule(actor, request):
        return

    logger.warning(
        "Denied '%s' on travel request %s for user %s",
        action,
        request.id if request is not None else "-",
        actor.user_id,
    )
    raise Forbidden()
