"""
Resource model: a bookable machine or piece of lab equipment.

Key design decisions:
- `active = false` puts the machine under maintenance; admission rejects it
- Rows are never deleted while bookings reference them (FK is RESTRICT)
- Index on (department, name) serves the common filtered listing
"""

from sqlalchemy import Boolean, Column, Index, Integer, JSON, String
from sqlalchemy.orm import relationship

from labbook.db.base import Base, TimestampMixin
from labbook.domain.types import ResourceState


class Resource(Base, TimestampMixin):
    __tablename__ = "resources"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    description = Column(String(1000), nullable=True)
    location = Column(String(200), nullable=True)
    department = Column(String(100), nullable=False)
    specifications = Column(JSON, nullable=True)
    image_url = Column(String(500), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    requires_training = Column(Boolean, nullable=False, default=False)

    bookings = relationship("Booking", back_populates="resource", passive_deletes="all")

    __table_args__ = (
        Index("ix_resources_department_name", "department", "name"),
    )

    def to_state(self) -> ResourceState:
        return ResourceState(
            id=self.id,
            active=bool(self.active),
            requires_training=bool(self.requires_training),
        )

    def __repr__(self) -> str:
        return f"<Resource(id={self.id}, name={self.name}, active={self.active})>"
