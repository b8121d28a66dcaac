"""Query boundary: validate range parameters and shape the response.

Mirrors the ``GET /api/events/range?start=...&end=...&calendarId=...``
contract used by calendar views: invalid parameters are rejected before the
engine is touched, and the response is ``{"events": [...]}`` with camelCase
keys and ISO-8601 UTC timestamps.
"""

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .expansion.engine import OccurrenceEngine
from .expansion.expander import SeriesFailure
from .models.occurrence import Occurrence
from .utils.date_utils import parse_instant
from .utils.exceptions import InvalidRangeError

logger = logging.getLogger(__name__)


class RangeQuery(BaseModel):
    """Validated query range."""

    start: datetime
    end: datetime
    calendar_id: Optional[str] = Field(default=None, alias="calendarId")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("start", "end", mode="before")
    @classmethod
    def _parse(cls, value):
        if value is None:
            raise ValueError("is required")
        if not isinstance(value, (str, datetime)):
            raise ValueError(f"expected an ISO-8601 timestamp, got {type(value).__name__}")
        try:
            return parse_instant(value)
        except InvalidRangeError as e:
            raise ValueError(str(e)) from e

    @field_validator("calendar_id", mode="before")
    @classmethod
    def _blank_calendar(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _check_order(self) -> "RangeQuery":
        if self.end < self.start:
            raise ValueError("end must not be before start")
        return self

    @classmethod
    def from_params(cls, params: Mapping[str, Optional[str]]) -> "RangeQuery":
        """
        Build from request parameters (``start``, ``end``, ``calendarId``).

        Raises:
            InvalidRangeError: If the parameters are missing or invalid
        """
        if not params.get("start") or not params.get("end"):
            raise InvalidRangeError("start and end are required")
        try:
            return cls.model_validate(
                {
                    "start": params.get("start"),
                    "end": params.get("end"),
                    "calendarId": params.get("calendarId"),
                }
            )
        except ValidationError as e:
            messages = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'range'}: {err['msg']}"
                for err in e.errors()
            )
            raise InvalidRangeError(messages) from e


class EventsResponse(BaseModel):
    """Response body for a range query."""

    events: list[Occurrence] = Field(default_factory=list)
    failed_series: list[str] = Field(default_factory=list)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


def query_events(engine: OccurrenceEngine, params: Mapping[str, Optional[str]]) -> EventsResponse:
    """
    Answer a range query.

    Raises:
        InvalidRangeError: For missing or invalid range parameters
        StorageUnavailableError: If the storage backend fails
    """
    query = RangeQuery.from_params(params)
    result = engine.query(query.start, query.end, query.calendar_id)
    return EventsResponse(
        events=result.occurrences,
        failed_series=_failed_ids(result.failures),
    )


def _failed_ids(failures: list[SeriesFailure]) -> list[str]:
    return sorted(f.series_id for f in failures)
