"""Occurrence engine: load candidate series for a range and expand them."""

import logging
from datetime import datetime, timedelta
from typing import Optional

from ..config import AppConfig
from ..readers.base import SeriesReader
from .expander import ExpansionResult, OccurrenceExpander
from .loader import DEFAULT_PAD, SeriesLoader

logger = logging.getLogger(__name__)


class OccurrenceEngine:
    """Single request/response pipeline: SeriesLoader -> OccurrenceExpander."""

    def __init__(
        self,
        reader: SeriesReader,
        pad: timedelta = DEFAULT_PAD,
        max_workers: int = 1,
    ):
        """
        Initialize engine.

        Args:
            reader: Storage backend
            pad: Maximum supported override shift, used as load/enumeration padding
            max_workers: Thread pool size for per-series expansion
        """
        self.loader = SeriesLoader(reader, pad=pad)
        self.expander = OccurrenceExpander(pad=pad, max_workers=max_workers)

    @classmethod
    def from_config(cls, config: AppConfig, reader: SeriesReader) -> "OccurrenceEngine":
        return cls(reader, pad=config.pad, max_workers=config.expansion_workers)

    def query(
        self,
        range_start: datetime,
        range_end: datetime,
        calendar_id: Optional[str] = None,
    ) -> ExpansionResult:
        """
        Compute the occurrences intersecting ``[range_start, range_end]``.

        The range is expected to be validated already (see ``api.RangeQuery``).

        Raises:
            StorageUnavailableError: If loading fails; nothing is expanded
        """
        loaded = self.loader.load(range_start, range_end, calendar_id)
        return self.expander.expand(
            loaded.series,
            loaded.exceptions,
            loaded.overrides,
            loaded.range_start,
            loaded.range_end,
        )
