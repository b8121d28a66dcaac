"""Recurring event series and their per-occurrence exceptions and overrides."""

from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..utils.date_utils import canonical_instant
from ..utils.exceptions import OverrideShiftError

# (series_id, original_start) with original_start canonicalized
OccurrenceKey = tuple[str, datetime]


class Series(BaseModel):
    """A recurring or single event definition."""

    id: str
    calendar_id: str
    title: str
    description: Optional[str] = None

    anchor_start: datetime
    duration_minutes: int = Field(default=60, ge=0)
    timezone: str = "UTC"  # carried through for display only

    # RFC 5545 RRULE text without DTSTART, e.g. "FREQ=WEEKLY;BYDAY=MO"
    recurrence_rule: Optional[str] = None
    recurrence_end: Optional[datetime] = None

    model_config = {"frozen": True}

    @field_validator("anchor_start", "recurrence_end")
    @classmethod
    def _canonical(cls, value: Optional[datetime]) -> Optional[datetime]:
        return canonical_instant(value) if value is not None else None

    @field_validator("recurrence_rule")
    @classmethod
    def _blank_rule_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _check_recurrence_end(self) -> "Series":
        if self.recurrence_end is not None and self.recurrence_end < self.anchor_start:
            raise ValueError("recurrence_end must not be before anchor_start")
        return self

    @property
    def is_recurring(self) -> bool:
        return self.recurrence_rule is not None

    @property
    def duration(self) -> timedelta:
        return timedelta(minutes=self.duration_minutes)


class OccurrenceException(BaseModel):
    """Cancels the occurrence a series would produce at ``original_start``."""

    series_id: str
    original_start: datetime

    model_config = {"frozen": True}

    @field_validator("original_start")
    @classmethod
    def _canonical(cls, value: datetime) -> datetime:
        return canonical_instant(value)

    @property
    def key(self) -> OccurrenceKey:
        return (self.series_id, self.original_start)


class OccurrenceOverride(BaseModel):
    """Replaces content and/or timing of the occurrence at ``original_start``."""

    series_id: str
    original_start: datetime

    title: Optional[str] = None
    description: Optional[str] = None
    start_override: Optional[datetime] = None
    end_override: Optional[datetime] = None
    duration_minutes: Optional[int] = Field(default=None, ge=0)
    all_day: bool = False

    model_config = {"frozen": True}

    @field_validator("original_start")
    @classmethod
    def _canonical(cls, value: datetime) -> datetime:
        return canonical_instant(value)

    @field_validator("start_override", "end_override")
    @classmethod
    def _canonical_optional(cls, value: Optional[datetime]) -> Optional[datetime]:
        return canonical_instant(value) if value is not None else None

    @field_validator("all_day", mode="before")
    @classmethod
    def _unset_all_day(cls, value):
        return False if value is None else value

    @property
    def key(self) -> OccurrenceKey:
        return (self.series_id, self.original_start)

    @property
    def shift(self) -> timedelta:
        """Absolute distance the override moves the occurrence start."""
        if self.start_override is None:
            return timedelta(0)
        return abs(self.start_override - self.original_start)

    def resolve_times(
        self, default_duration: timedelta
    ) -> tuple[datetime, datetime]:
        """
        Compute final (start, end) for the overridden occurrence.

        End resolution: ``end_override``, else the overridden start plus the
        override's ``duration_minutes``, else plus the series default duration.
        """
        start = self.start_override or self.original_start
        if self.end_override is not None:
            end = self.end_override
        elif self.duration_minutes is not None:
            end = start + timedelta(minutes=self.duration_minutes)
        else:
            end = start + default_duration
        return start, end


def validate_override_shift(override: OccurrenceOverride, max_shift: timedelta) -> None:
    """
    Enforce the maximum supported override shift.

    The loader pads its exception/override fetch window by the same bound,
    so an override moving further than this could be missed at range edges.

    Raises:
        OverrideShiftError: If the override moves the start beyond ``max_shift``
    """
    if override.shift > max_shift:
        raise OverrideShiftError(
            f"Override for {override.series_id} at {override.original_start.isoformat()} "
            f"moves the start by {override.shift}, more than the allowed {max_shift}"
        )
