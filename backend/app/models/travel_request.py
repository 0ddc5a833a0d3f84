"""TravelRequest ORM model."""
import uuid
import enum
from datetime import datetime, timezone
from sqlalchemy import Column, String, Text, Date, DateTime, Integer, ForeignKey, Index, Enum as SAEnum
from sqlalchemy.orm import relationship
from app.database import Base


class TravelRequestStatus(str, enum.Enum):
    requested = "requested"
    approved = "approved"
    cancelled = "cancelled"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TravelRequest(Base):
    __tablename__ = "travel_requests"
    __table_args__ = (
        Index("ix_travel_requests_user_created", "user_id", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    requester_name = Column(String(255), nullable=False)
    destination = Column(String(255), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(
        SAEnum(TravelRequestStatus),
        nullable=False,
        default=TravelRequestStatus.requested,
        index=True,
    )
    notes = Column(Text, nullable=True)
    approved_by = Column(String(36), ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    cancelled_by = Column(String(36), ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    cancelled_reason = Column(Text, nullable=True)
    version = Column(Integer, nullable=False)
    # Python-side defaults keep sub-second ordering on SQLite
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", foreign_keys=[user_id], back_populates="travel_requests")
    approver = relationship("User", foreign_keys=[approved_by])
    canceller = relationship("User", foreign_keys=[cancelled_by])

    # UPDATEs match on the loaded version and bump it; a moved row raises StaleDataError
    __mapper_args__ = {"version_id_col": version}

    @property
    def is_trashed(self) -> bool:
        return self.deleted_at is not None
