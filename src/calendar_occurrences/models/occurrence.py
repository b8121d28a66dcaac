"""Concrete occurrence produced by expanding a series."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel

from ..utils.date_utils import format_instant


def occurrence_id(series_id: str, original_start: datetime) -> str:
    """Stable occurrence identity; never depends on override state."""
    return f"{series_id}:{format_instant(original_start)}"


class Occurrence(BaseModel):
    """One concrete, time-bound instance of a series (final, post-override values)."""

    id: str
    series_id: str
    calendar_id: str
    title: str
    description: Optional[str] = None
    start: datetime
    end: datetime
    all_day: bool = False

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @field_serializer("start", "end", when_used="json")
    def _serialize_instant(self, value: datetime) -> str:
        return format_instant(value)

    @property
    def sort_key(self) -> tuple[datetime, str]:
        return (self.start, self.id)

    def intersects(self, range_start: datetime, range_end: datetime) -> bool:
        """Inclusive intersection with ``[range_start, range_end]``."""
        return self.end >= range_start and self.start <= range_end

    def to_dict(self) -> dict:
        """Serialize with camelCase keys and ISO-8601 UTC timestamps."""
        return self.model_dump(by_alias=True, mode="json")
