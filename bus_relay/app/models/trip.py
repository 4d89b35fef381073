"""
Trip database model.

A trip binds one driver, one bus and one route for a bounded driving session.
"""

from sqlalchemy import Column, Integer, String, DateTime, Enum, Index
from sqlalchemy.sql import func
from bus_relay.app.db.session import Base
from bus_relay.app.models.trip_enums import TripStatus


class Trip(Base):
    """
    Trip model.

    At most one ACTIVE trip exists per (driver_id, bus_number); the Trip Store
    reuses an open trip instead of creating a second one.
    """
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    driver_id = Column(String(64), nullable=False, index=True)
    bus_number = Column(String(64), nullable=False, index=True)
    route_id = Column(String(64), nullable=True)

    status = Column(Enum(TripStatus), default=TripStatus.ACTIVE, nullable=False, index=True)

    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=True)  # NULL while active
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_trips_status_end_time", "status", "end_time"),
    )

    def __repr__(self):
        return f"<Trip(id={self.id}, bus_number={self.bus_number}, status='{self.status.value}')>"
