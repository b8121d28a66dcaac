# Relational schema for series, cancelled occurrences and overrides

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..models.series import OccurrenceException, OccurrenceOverride, Series


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class SeriesRecord(Base):
    """
    Recurring or single event definition.
    ``rrule`` holds the RRULE value only; ``dtstart`` is the anchor.
    """

    __tablename__ = "calendar_event_series"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    calendar_id: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(String(1024), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    dtstart: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")
    rrule: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    until: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_calendar_event_series_calendar", "calendar_id"),
        Index("ix_calendar_event_series_range", "dtstart", "until"),
    )


class ExdateRecord(Base):
    """Cancelled occurrence, keyed by the original (unmoved) start."""

    __tablename__ = "calendar_event_exdate"

    series_id: Mapped[str] = mapped_column(
        ForeignKey("calendar_event_series.id", ondelete="CASCADE"), primary_key=True
    )
    exdate: Mapped[datetime] = mapped_column(DateTime(timezone=True), primary_key=True)


class OverrideRecord(Base):
    """Per-occurrence change of content and/or timing, keyed by the original start."""

    __tablename__ = "calendar_event_override"

    series_id: Mapped[str] = mapped_column(
        ForeignKey("calendar_event_series.id", ondelete="CASCADE"), primary_key=True
    )
    original_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), primary_key=True)
    title: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    start_override: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    end_override: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    all_day: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


def series_from_record(record: SeriesRecord, default_duration_minutes: int = 60) -> Series:
    return Series(
        id=record.id,
        calendar_id=record.calendar_id,
        title=record.title,
        description=record.description,
        anchor_start=record.dtstart,
        duration_minutes=(
            record.duration_minutes
            if record.duration_minutes is not None
            else default_duration_minutes
        ),
        timezone=record.timezone,
        recurrence_rule=record.rrule,
        recurrence_end=record.until,
    )


def series_to_record(series: Series) -> SeriesRecord:
    return SeriesRecord(
        id=series.id,
        calendar_id=series.calendar_id,
        title=series.title,
        description=series.description,
        dtstart=series.anchor_start,
        duration_minutes=series.duration_minutes,
        timezone=series.timezone,
        rrule=series.recurrence_rule,
        until=series.recurrence_end,
    )


def exception_from_record(record: ExdateRecord) -> OccurrenceException:
    return OccurrenceException(series_id=record.series_id, original_start=record.exdate)


def override_from_record(record: OverrideRecord) -> OccurrenceOverride:
    return OccurrenceOverride(
        series_id=record.series_id,
        original_start=record.original_start,
        title=record.title,
        description=record.description,
        start_override=record.start_override,
        end_override=record.end_override,
        duration_minutes=record.duration_minutes,
        all_day=record.all_day,
    )


def override_to_record(override: OccurrenceOverride) -> OverrideRecord:
    return OverrideRecord(
        series_id=override.series_id,
        original_start=override.original_start,
        title=override.title,
        description=override.description,
        start_override=override.start_override,
        end_override=override.end_override,
        duration_minutes=override.duration_minutes,
        all_day=override.all_day,
    )
