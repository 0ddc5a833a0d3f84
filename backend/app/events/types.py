"""Domain events emitted by the lifecycle and auth services.

Each event carries a JSON-safe snapshot taken at emission time, so
listeners never reach back into a database session that may already be
closed.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DomainEvent:
    occurred_at: datetime = field(default_factory=_now, kw_only=True)

    @property
    def name(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class TravelRequestEvent(DomainEvent):
    travel_request: dict[str, Any]

    @property
    def request_id(self) -> str:
        return self.travel_request["id"]


@dataclass(frozen=True)
class RequestCreated(TravelRequestEvent):
    pass


@dataclass(frozen=True)
class RequestApproved(TravelRequestEvent):
    pass


@dataclass(frozen=True)
class RequestCancelled(TravelRequestEvent):
    pass


@dataclass(frozen=True)
class UserRegistered(DomainEvent):
    user: dict[str, Any]
