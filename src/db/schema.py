"""SQLAlchemy ORM models for rides and the profiles taking part in them."""

from datetime import datetime

from sqlalchemy import Boolean, Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from .utils import utc_now


class Base(DeclarativeBase):
    pass


class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    full_name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(String, nullable=False)
    gender: Mapped[str | None] = mapped_column(String, nullable=True)
    user_type: Mapped[str | None] = mapped_column(String, nullable=True)
    current_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String, nullable=True)
    parent_phone_number: Mapped[str | None] = mapped_column(String, nullable=True)
    accept_opposite_gender: Mapped[bool] = mapped_column(Boolean, default=True)
    accept_seniors: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(default=lambda: utc_now())
    updated_at: Mapped[datetime] = mapped_column(
        default=lambda: utc_now(),
        onupdate=lambda: utc_now(),
    )


class Ride(Base):
    __tablename__ = "rides"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    driver_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="scheduled")
    start_address: Mapped[str] = mapped_column(String, default="")
    start_lat: Mapped[float] = mapped_column(Float, nullable=False)
    start_lng: Mapped[float] = mapped_column(Float, nullable=False)
    end_address: Mapped[str] = mapped_column(String, default="")
    end_lat: Mapped[float] = mapped_column(Float, nullable=False)
    end_lng: Mapped[float] = mapped_column(Float, nullable=False)
    available_seats: Mapped[int] = mapped_column(Integer, default=1)
    scheduled_time: Mapped[datetime | None] = mapped_column(nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=lambda: utc_now())
    updated_at: Mapped[datetime] = mapped_column(
        default=lambda: utc_now(),
        onupdate=lambda: utc_now(),
    )

    driver: Mapped[Profile] = relationship(foreign_keys=[driver_id])
    requests: Mapped[list["RideRequest"]] = relationship(
        back_populates="ride", order_by="RideRequest.created_at"
    )

    __table_args__ = (Index("idx_ride_status", "status"),)


class RideRequest(Base):
    __tablename__ = "ride_requests"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    ride_id: Mapped[str] = mapped_column(ForeignKey("rides.id"), nullable=False)
    passenger_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    pickup_address: Mapped[str] = mapped_column(String, default="")
    pickup_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    pickup_lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=lambda: utc_now())

    ride: Mapped[Ride] = relationship(back_populates="requests")
    passenger: Mapped[Profile] = relationship(foreign_keys=[passenger_id])

    __table_args__ = (Index("idx_ride_request_ride_status", "ride_id", "status"),)


class SchemaMetadata(Base):
    __tablename__ = "schema_metadata"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str] = mapped_column(String, nullable=False)
