from sqlalchemy import Column, Integer, Date, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from carpool.core.database import Base
import sqlalchemy as sa
import enum


class PassengerType(str, enum.Enum):
    parent = "parent"
    child = "child"


class RideDirection(str, enum.Enum):
    home_to_poi = "home_to_poi"
    poi_to_home = "poi_to_home"


class RideStatus(str, enum.Enum):
    open = "open"
    accepted = "accepted"
    completed = "completed"
    cancelled = "cancelled"


def _enum_column_type(enum_cls, name):
    return sa.Enum(
        enum_cls,
        name=name,
        values_callable=lambda obj: [e.value for e in obj]
    )


class RideRequest(Base):
    __tablename__ = "ride_requests"

    id = Column(Integer, primary_key=True, index=True)
    group_id = Column(Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False)
    requester_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    # passenger_id points at users.id for parent rides and children.id for child rides
    passenger_type = Column(_enum_column_type(PassengerType, "passenger_type"), nullable=False)
    passenger_id = Column(Integer, nullable=False)

    direction = Column(_enum_column_type(RideDirection, "ride_direction"), nullable=False)
    poi_id = Column(Integer, ForeignKey("pois.id"), nullable=False)
    ride_date = Column(Date, nullable=False)

    status = Column(_enum_column_type(RideStatus, "ride_status"), nullable=False, default=RideStatus.open)
    accepter_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    accepted_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_ride_requests_group_date", "group_id", "ride_date"),
        # At most one live request per passenger, destination, direction and day
        Index(
            "uq_ride_requests_active",
            "group_id", "requester_id", "passenger_type", "passenger_id",
            "direction", "poi_id", "ride_date",
            unique=True,
            postgresql_where=sa.text("status != 'cancelled'"),
            sqlite_where=sa.text("status != 'cancelled'"),
        ),
    )

    group = relationship("Group")
    poi = relationship("POI")
    requester = relationship("User", foreign_keys=[requester_id])
    accepter = relationship("User", foreign_keys=[accepter_id])
