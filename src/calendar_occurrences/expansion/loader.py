"""Series loader: fetch everything needed to expand one query range."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from ..models.series import OccurrenceException, OccurrenceOverride, Series
from ..readers.base import SeriesReader
from ..utils.date_utils import canonical_instant

logger = logging.getLogger(__name__)

# One calendar week each side. Must be at least the largest override shift
# allowed at write time, otherwise an occurrence moved into the range from
# an original start outside the padded window is never loaded.
DEFAULT_PAD = timedelta(days=7)


@dataclass
class LoadedSeries:
    """Candidate series plus the exceptions and overrides that can affect them."""

    range_start: datetime
    range_end: datetime
    window_start: datetime
    window_end: datetime
    series: list[Series] = field(default_factory=list)
    exceptions: list[OccurrenceException] = field(default_factory=list)
    overrides: list[OccurrenceOverride] = field(default_factory=list)


class SeriesLoader:
    """Load candidate series and their exceptions/overrides from a reader."""

    def __init__(self, reader: SeriesReader, pad: timedelta = DEFAULT_PAD):
        """
        Initialize loader.

        Args:
            reader: Storage backend
            pad: Padding around the query range for all three fetches
        """
        if pad < timedelta(0):
            raise ValueError("pad must not be negative")
        self.reader = reader
        self.pad = pad

    def window(self, range_start: datetime, range_end: datetime) -> tuple[datetime, datetime]:
        """Padded window (start, end) used for a query range."""
        return (
            canonical_instant(range_start) - self.pad,
            canonical_instant(range_end) + self.pad,
        )

    def load(
        self,
        range_start: datetime,
        range_end: datetime,
        calendar_id: Optional[str] = None,
    ) -> LoadedSeries:
        """
        Load everything needed to expand ``[range_start, range_end]``.

        Storage failures propagate unchanged; there is no retry here.

        Args:
            range_start: Start of the query range
            range_end: End of the query range
            calendar_id: Only series of this calendar (None for all)

        Returns:
            LoadedSeries with the window that was used
        """
        range_start = canonical_instant(range_start)
        range_end = canonical_instant(range_end)
        window_start, window_end = self.window(range_start, range_end)

        loaded = LoadedSeries(
            range_start=range_start,
            range_end=range_end,
            window_start=window_start,
            window_end=window_end,
        )

        with self.reader.snapshot():
            loaded.series = self.reader.fetch_series(window_start, window_end, calendar_id)
            if not loaded.series:
                logger.info("No candidate series in range")
                return loaded

            series_ids = [s.id for s in loaded.series]
            loaded.exceptions = self.reader.fetch_exceptions(series_ids, window_start, window_end)
            loaded.overrides = self.reader.fetch_overrides(series_ids, window_start, window_end)

        logger.info(
            f"Loaded {len(loaded.series)} series, {len(loaded.exceptions)} exceptions, "
            f"{len(loaded.overrides)} overrides for {range_start.isoformat()} - {range_end.isoformat()}"
        )
        return loaded
