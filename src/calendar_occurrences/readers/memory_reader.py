"""In-memory series reader, optionally loaded from a YAML file."""

import logging
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from ..models.series import OccurrenceException, OccurrenceOverride, Series
from ..utils.exceptions import StorageUnavailableError
from .base import SeriesReader

logger = logging.getLogger(__name__)


class MemorySeriesReader(SeriesReader):
    """Serve series, exceptions and overrides from in-memory lists."""

    def __init__(
        self,
        series: Iterable[Series] = (),
        exceptions: Iterable[OccurrenceException] = (),
        overrides: Iterable[OccurrenceOverride] = (),
    ):
        self.series = list(series)
        self.exceptions = list(exceptions)
        self.overrides = list(overrides)

    @classmethod
    def from_yaml(cls, path: Path) -> "MemorySeriesReader":
        """
        Load records from a YAML file with ``series``, ``exceptions`` and
        ``overrides`` sections (lists of mappings using the model field names).

        Raises:
            StorageUnavailableError: If the file cannot be read or holds invalid records
        """
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise StorageUnavailableError(f"Failed to read data file {path}: {e}") from e

        try:
            reader = cls(
                series=[Series(**item) for item in data.get("series", [])],
                exceptions=[OccurrenceException(**item) for item in data.get("exceptions", [])],
                overrides=[OccurrenceOverride(**item) for item in data.get("overrides", [])],
            )
        except (ValidationError, TypeError) as e:
            raise StorageUnavailableError(f"Invalid record in data file {path}: {e}") from e

        logger.info(
            f"Loaded {len(reader.series)} series, {len(reader.exceptions)} exceptions, "
            f"{len(reader.overrides)} overrides from {path}"
        )
        return reader

    def fetch_series(
        self,
        window_start: datetime,
        window_end: datetime,
        calendar_id: Optional[str] = None,
    ) -> list[Series]:
        return [
            s
            for s in self.series
            if s.anchor_start <= window_end
            and (s.recurrence_end is None or s.recurrence_end >= window_start)
            and (calendar_id is None or s.calendar_id == calendar_id)
        ]

    def fetch_exceptions(
        self,
        series_ids: list[str],
        window_start: datetime,
        window_end: datetime,
    ) -> list[OccurrenceException]:
        wanted = set(series_ids)
        return [
            x
            for x in self.exceptions
            if x.series_id in wanted and window_start <= x.original_start <= window_end
        ]

    def fetch_overrides(
        self,
        series_ids: list[str],
        window_start: datetime,
        window_end: datetime,
    ) -> list[OccurrenceOverride]:
        wanted = set(series_ids)
        return [
            o
            for o in self.overrides
            if o.series_id in wanted and window_start <= o.original_start <= window_end
        ]
