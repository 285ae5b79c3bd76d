from __future__ import annotations

from datetime import date, datetime, time
from typing import Optional

from sqlalchemy import CheckConstraint, Column, Enum, ForeignKey, Index, Table, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql.sqltypes import BigInteger, Boolean, Date, DateTime, Float, Integer, SmallInteger, String, Time

from .domain.entities import BookingStatus, HostSelectionPolicy


class Base(DeclarativeBase):
    pass


def _enum_column(enum_cls: type) -> Enum:
    return Enum(
        enum_cls,
        values_callable=lambda members: [e.value for e in members],
        native_enum=False,
    )


event_type_members = Table(
    "event_type_members",
    Base.metadata,
    Column("event_type_id", ForeignKey("event_types.id"), primary_key=True),
    Column("host_id", ForeignKey("hosts.id"), primary_key=True),
)

booking_hosts = Table(
    "booking_hosts",
    Base.metadata,
    Column("booking_id", ForeignKey("bookings.id"), primary_key=True),
    Column("host_id", ForeignKey("hosts.id"), primary_key=True),
    Index("idx_booking_hosts_host", "host_id"),
)


class Host(Base):
    __tablename__ = "hosts"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    working_hours: Mapped[list["WorkingHours"]] = relationship(back_populates="host")
    date_overrides: Mapped[list["DateOverride"]] = relationship(back_populates="host")


class WorkingHours(Base):
    __tablename__ = "working_hours"
    __table_args__ = (
        CheckConstraint("weekday BETWEEN 0 AND 6", name="chk_working_hours_weekday"),
        CheckConstraint("start_time <> end_time", name="chk_working_hours_time"),
        Index("idx_working_hours_host", "host_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    host_id: Mapped[int] = mapped_column(ForeignKey("hosts.id"), nullable=False)
    weekday: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    timezone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    host: Mapped["Host"] = relationship(back_populates="working_hours")


class DateOverride(Base):
    """One row per override window; a row without times marks the date unavailable."""

    __tablename__ = "date_overrides"
    __table_args__ = (
        CheckConstraint(
            "(starts_at IS NULL AND ends_at IS NULL) OR starts_at < ends_at",
            name="chk_date_overrides_time",
        ),
        Index("idx_date_overrides_host_date", "host_id", "date"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    host_id: Mapped[int] = mapped_column(ForeignKey("hosts.id"), nullable=False)
    on_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    starts_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    ends_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)

    host: Mapped["Host"] = relationship(back_populates="date_overrides")


class EventType(Base):
    __tablename__ = "event_types"
    __table_args__ = (
        CheckConstraint("length_minutes >= 1", name="chk_event_types_length"),
        CheckConstraint("slot_interval_minutes IS NULL OR slot_interval_minutes >= 1", name="chk_event_types_interval"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    length_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    slot_interval_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    buffer_before_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    buffer_after_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    minimum_notice_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    scheduling_type: Mapped[HostSelectionPolicy] = mapped_column(
        _enum_column(HostSelectionPolicy),
        nullable=False,
        default=HostSelectionPolicy.ANY_OF,
    )
    fall_back_to_members: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    hosts: Mapped[list["EventTypeHost"]] = relationship(back_populates="event_type")
    members: Mapped[list["Host"]] = relationship(secondary=event_type_members)


class EventTypeHost(Base):
    __tablename__ = "event_type_hosts"
    __table_args__ = (UniqueConstraint("event_type_id", "host_id", name="uq_event_type_hosts"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    event_type_id: Mapped[int] = mapped_column(ForeignKey("event_types.id"), nullable=False)
    host_id: Mapped[int] = mapped_column(ForeignKey("hosts.id"), nullable=False)
    is_fixed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    weight: Mapped[float] = mapped_column(Float, nullable=False, default=100.0)

    event_type: Mapped["EventType"] = relationship(back_populates="hosts")
    host: Mapped["Host"] = relationship()


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("starts_at < ends_at", name="chk_bookings_time"),
        Index("idx_bookings_time", "starts_at", "ends_at"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    event_type_id: Mapped[Optional[int]] = mapped_column(ForeignKey("event_types.id"), nullable=True)
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        _enum_column(BookingStatus),
        nullable=False,
        default=BookingStatus.CONFIRMED,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    hosts: Mapped[list["Host"]] = relationship(secondary=booking_hosts)


class SlotHold(Base):
    __tablename__ = "slot_holds"
    __table_args__ = (
        CheckConstraint("starts_at < ends_at", name="chk_slot_holds_time"),
        UniqueConstraint("event_type_id", "starts_at", "ends_at", name="uq_slot_holds_key"),
        UniqueConstraint("token", name="uq_slot_holds_token"),
        Index("idx_slot_holds_holder", "holder_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    event_type_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    holder_id: Mapped[str] = mapped_column(String(255), nullable=False)
    token: Mapped[str] = mapped_column(String(64), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
