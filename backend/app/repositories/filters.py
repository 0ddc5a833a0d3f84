"""Filter builder — turns optional query parameters into SQL predicates."""
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

import pytz
from pydantic import BaseModel, ValidationError, field_validator

from app.config import settings
from app.exceptions import ValidationFailed
from app.models.travel_request import TravelRequest, TravelRequestStatus

FILTER_KEYS = (
    "status",
    "destination",
    "start_date",
    "end_date",
    "start_date_from",
    "start_date_to",
    "created_from",
    "created_to",
)


class TravelRequestFilters(BaseModel):
    """Optional listing filters. Empty values never restrict the result set."""

    status: Optional[TravelRequestStatus] = None
    destination: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    start_date_from: Optional[date] = None
    start_date_to: Optional[date] = None
    created_from: Optional[date] = None
    created_to: Optional[date] = None

    model_config = {"extra": "ignore"}

    @field_validator("*", mode="before")
    @classmethod
    def _blank_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @classmethod
    def from_query(cls, params: dict) -> "TravelRequestFilters":
        """Parse a mapping of query strings, reporting bad values per key."""
        try:
            return cls.model_validate({k: params.get(k) for k in FILTER_KEYS})
        except ValidationError as exc:
            errors: dict[str, list[str]] = {}
            for err in exc.errors():
                field = str(err["loc"][0]) if err["loc"] else "filters"
                errors.setdefault(field, []).append(err["msg"])
            raise ValidationFailed(errors, message="Invalid filters")


def _start_of(day: date) -> datetime:
    """Midnight of ``day`` in the application timezone, expressed in UTC."""
    local = pytz.timezone(settings.APP_TIMEZONE).localize(datetime.combine(day, time.min))
    return local.astimezone(timezone.utc)


def build_filters(filters: Optional[TravelRequestFilters]) -> list:
    """Return the predicates for every non-empty filter; callers AND them."""
    if filters is None:
        return []

    predicates = []
    if filters.status is not None:
        predicates.append(TravelRequest.status == filters.status)
    if filters.destination:
        predicates.append(TravelRequest.destination.icontains(filters.destination, autoescape=True))
    if filters.start_date is not None:
        predicates.append(TravelRequest.start_date >= filters.start_date)
    if filters.end_date is not None:
        predicates.append(TravelRequest.end_date <= filters.end_date)
    if filters.start_date_from is not None:
        predicates.append(TravelRequest.start_date >= filters.start_date_from)
    if filters.start_date_to is not None:
        predicates.append(TravelRequest.start_date <= filters.start_date_to)
    # Creation bounds are inclusive whole days in APP_TIMEZONE
    if filters.created_from is not None:
        predicates.append(TravelRequest.created_at >= _start_of(filters.created_from))
    if filters.created_to is not None:
        predicates.append(TravelRequest.created_at < _start_of(filters.created_to + timedelta(days=1)))
    return predicates
