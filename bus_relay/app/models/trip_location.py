"""
Trip Location database model.

Stores the GPS breadcrumb trail of a trip. Rows are appended while the trip is
active and pruned down to the latest one once the trip has ended.
"""

from sqlalchemy import Column, Integer, Float, ForeignKey, DateTime
from sqlalchemy.sql import func
from bus_relay.app.db.session import Base


class TripLocation(Base):
    """
    Trip Location model.

    Samples are stored as received; out-of-order timestamps are kept as-is.
    """
    __tablename__ = "trip_locations"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    trip_id = Column(Integer, ForeignKey('trips.id'), nullable=False, index=True)

    # GPS coordinates
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    accuracy_meters = Column(Float, nullable=True)  # GPS accuracy in meters

    # Timing
    recorded_at = Column(DateTime(timezone=True), nullable=False)  # When GPS was recorded
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)  # When inserted to DB

    def __repr__(self):
        return f"<TripLocation(trip_id={self.trip_id}, lat={self.latitude}, lng={self.longitude})>"
