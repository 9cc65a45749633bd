"""
Booking model: one reservation of a resource for a same-day time window.

Key design decisions:
- Wall-clock `start_time`/`end_time` on a single `booking_date`, no overnight spans
- Status kept as a string with a CHECK constraint; rows are never deleted
- Composite index on (resource_id, booking_date, status) serves the
  admission snapshot query
- On PostgreSQL the migration adds an exclusion constraint so overlapping
  pending/approved rows cannot be committed even if two writers race
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Time,
)
from sqlalchemy.orm import relationship

from labbook.db.base import Base, TimestampMixin
from labbook.domain.types import BookingRecord, BookingStatus


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    resource_id = Column(
        Integer, ForeignKey("resources.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    requester_id = Column(String(64), nullable=False, index=True)
    booking_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    purpose = Column(String(500), nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)
    decision_comment = Column(String(1000), nullable=True)

    resource = relationship("Resource", back_populates="bookings")

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="check_booking_window"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'cancelled')",
            name="check_booking_status",
        ),
        Index("ix_bookings_resource_date_status", "resource_id", "booking_date", "status"),
    )

    def to_record(self) -> BookingRecord:
        return BookingRecord(
            id=self.id,
            resource_id=self.resource_id,
            requester_id=self.requester_id,
            booking_date=self.booking_date,
            start_time=self.start_time,
            end_time=self.end_time,
            purpose=self.purpose,
            status=BookingStatus(self.status),
            decision_comment=self.decision_comment,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, resource={self.resource_id}, "
            f"date={self.booking_date}, {self.start_time}-{self.end_time}, status={self.status})>"
        )
