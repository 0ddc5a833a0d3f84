"""Pydantic schemas for TravelRequests.

Input schemas are allow-lists: owner, status, approver and canceller are
not fields, so a client payload can never set them. Unknown keys are
dropped on parse.
"""
from __future__ import annotations
from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, Field

from app.models.travel_request import TravelRequestStatus
from app.schemas.user import UserSummary


class TravelRequestCreate(BaseModel):
    destination: str = Field(..., max_length=255)
    start_date: date
    end_date: date
    notes: Optional[str] = None

    model_config = {"extra": "ignore"}


class TravelRequestUpdate(BaseModel):
    destination: Optional[str] = Field(None, max_length=255)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    notes: Optional[str] = None
    version: Optional[int] = None  # optimistic locking, opt-in

    model_config = {"extra": "ignore"}

    def changes(self) -> dict:
        """Fields the client actually sent, minus the lock token."""
        return self.model_dump(exclude_unset=True, exclude={"version"})


class TravelRequestApprove(BaseModel):
    version: Optional[int] = None

    model_config = {"extra": "ignore"}


class TravelRequestCancel(BaseModel):
    reason: Optional[str] = None
    version: Optional[int] = None

    model_config = {"extra": "ignore"}


class TravelRequestOut(BaseModel):
    id: str
    user_id: str
    requester_name: str
    destination: str
    start_date: date
    end_date: date
    status: TravelRequestStatus
    notes: Optional[str] = None
    approved_by: Optional[str] = None
    cancelled_by: Optional[str] = None
    cancelled_reason: Optional[str] = None
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user: Optional[UserSummary] = None
    approver: Optional[UserSummary] = None
    canceller: Optional[UserSummary] = None

    model_config = {"from_attributes": True}


class TravelRequestEnvelope(BaseModel):
    message: Optional[str] = None
    data: TravelRequestOut


class PaginationMeta(BaseModel):
    current_page: int
    last_page: int
    per_page: int
    total: int


class TravelRequestPage(BaseModel):
    data: list[TravelRequestOut]
    meta: PaginationMeta


class MessageOut(BaseModel):
    message: str
