"""Occurrence expander: turn series definitions into concrete occurrences."""

import logging
from collections.abc import Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from ..models.occurrence import Occurrence, occurrence_id
from ..models.series import (
    OccurrenceException,
    OccurrenceKey,
    OccurrenceOverride,
    Series,
)
from ..utils.date_utils import canonical_instant
from ..utils.exceptions import RecurrenceRuleError
from .loader import DEFAULT_PAD
from .recurrence import RecurrenceRule

logger = logging.getLogger(__name__)


@dataclass
class SeriesFailure:
    """A series that could not be expanded."""

    series_id: str
    error: str


@dataclass
class SeriesResult:
    """Outcome of expanding one series: occurrences or a failure, never both."""

    series_id: str
    occurrences: list[Occurrence] = field(default_factory=list)
    failure: Optional[SeriesFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass
class ExpansionResult:
    """Sorted occurrences for a query plus everything worth reporting."""

    occurrences: list[Occurrence] = field(default_factory=list)
    failures: list[SeriesFailure] = field(default_factory=list)
    conflicts: list[OccurrenceKey] = field(default_factory=list)
    oversized_overrides: list[OccurrenceKey] = field(default_factory=list)


class OccurrenceIndex:
    """Exceptions and overrides keyed by (series_id, original_start)."""

    def __init__(
        self,
        exceptions: Iterable[OccurrenceException],
        overrides: Iterable[OccurrenceOverride],
    ):
        self.cancelled: set[OccurrenceKey] = {x.key for x in exceptions}
        self.overrides: dict[OccurrenceKey, OccurrenceOverride] = {}
        for override in overrides:
            self.overrides[override.key] = override

        # Exception wins; the override is kept only for reporting
        self.conflicts: list[OccurrenceKey] = sorted(
            self.cancelled.intersection(self.overrides)
        )

    def is_cancelled(self, key: OccurrenceKey) -> bool:
        return key in self.cancelled

    def override_for(self, key: OccurrenceKey) -> Optional[OccurrenceOverride]:
        return self.overrides.get(key)


class OccurrenceExpander:
    """Expand series into occurrences intersecting a query range."""

    def __init__(
        self,
        pad: timedelta = DEFAULT_PAD,
        max_workers: int = 1,
        max_override_shift: Optional[timedelta] = None,
    ):
        """
        Initialize expander.

        Args:
            pad: Original starts are enumerated this far outside the range so
                overrides can move occurrences in; use the loader's pad
            max_workers: Expand series on a thread pool when greater than 1
            max_override_shift: Report overrides moving further than this
                (defaults to ``pad``)
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.pad = pad
        self.max_workers = max_workers
        self.max_override_shift = pad if max_override_shift is None else max_override_shift

    def expand(
        self,
        series: list[Series],
        exceptions: list[OccurrenceException],
        overrides: list[OccurrenceOverride],
        range_start: datetime,
        range_end: datetime,
    ) -> ExpansionResult:
        """
        Expand series into occurrences intersecting ``[range_start, range_end]``.

        A series whose rule cannot be evaluated contributes no occurrences and
        is reported in ``failures``; the others are unaffected.

        Returns:
            ExpansionResult with occurrences sorted by (start, id)
        """
        range_start = canonical_instant(range_start)
        range_end = canonical_instant(range_end)
        window_start = range_start - self.pad
        window_end = range_end + self.pad

        index = OccurrenceIndex(exceptions, overrides)
        result = ExpansionResult(conflicts=list(index.conflicts))

        for series_id, original_start in index.conflicts:
            logger.warning(
                f"Series {series_id} has both an exception and an override at "
                f"{original_start.isoformat()}; the occurrence stays cancelled"
            )

        for key, override in sorted(index.overrides.items()):
            if override.shift > self.max_override_shift:
                result.oversized_overrides.append(key)
                logger.warning(
                    f"Override for {key[0]} at {key[1].isoformat()} moves the start by "
                    f"{override.shift}, beyond the supported {self.max_override_shift}"
                )

        def expand_one(s: Series) -> SeriesResult:
            return self._expand_series(s, index, range_start, range_end, window_start, window_end)

        if self.max_workers > 1 and len(series) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                series_results = list(executor.map(expand_one, series))
        else:
            series_results = [expand_one(s) for s in series]

        for series_result in series_results:
            if series_result.ok:
                result.occurrences.extend(series_result.occurrences)
            else:
                result.failures.append(series_result.failure)

        result.occurrences.sort(key=lambda o: o.sort_key)

        logger.info(
            f"Expanded {len(series)} series into {len(result.occurrences)} occurrences"
            + (f", {len(result.failures)} series failed" if result.failures else "")
        )
        return result

    def _expand_series(
        self,
        series: Series,
        index: OccurrenceIndex,
        range_start: datetime,
        range_end: datetime,
        window_start: datetime,
        window_end: datetime,
    ) -> SeriesResult:
        result = SeriesResult(series_id=series.id)

        try:
            original_starts = list(self._original_starts(series, window_start, window_end))
        except RecurrenceRuleError as e:
            logger.warning(f"Skipping series {series.id}: {e}")
            result.failure = SeriesFailure(series_id=series.id, error=str(e))
            return result
        except (ValueError, OverflowError) as e:
            logger.warning(f"Skipping series {series.id}: recurrence evaluation failed: {e}")
            result.failure = SeriesFailure(
                series_id=series.id, error=f"Recurrence evaluation failed: {e}"
            )
            return result

        for original_start in original_starts:
            key = (series.id, original_start)
            if index.is_cancelled(key):
                continue

            override = index.override_for(key)
            # Padded originals only count when an override may have moved them
            if (
                series.is_recurring
                and override is None
                and not range_start <= original_start <= range_end
            ):
                continue

            occurrence = self._build_occurrence(series, original_start, override)
            # Clip on final times so moved occurrences are judged where they are shown
            if occurrence.intersects(range_start, range_end):
                result.occurrences.append(occurrence)

        logger.debug(f"Series {series.id}: {len(result.occurrences)} occurrences")
        return result

    @staticmethod
    def _original_starts(
        series: Series,
        window_start: datetime,
        window_end: datetime,
    ) -> Iterator[datetime]:
        if not series.is_recurring:
            anchor = series.anchor_start
            if anchor <= window_end and anchor + series.duration >= window_start:
                yield anchor
            return

        rule = RecurrenceRule(series.recurrence_rule)
        yield from rule.iter_starts(
            series.anchor_start,
            window_start,
            window_end,
            recurrence_end=series.recurrence_end,
        )

    @staticmethod
    def _build_occurrence(
        series: Series,
        original_start: datetime,
        override: Optional[OccurrenceOverride],
    ) -> Occurrence:
        if override is None:
            return Occurrence(
                id=occurrence_id(series.id, original_start),
                series_id=series.id,
                calendar_id=series.calendar_id,
                title=series.title,
                description=series.description,
                start=original_start,
                end=original_start + series.duration,
                all_day=False,
            )

        start, end = override.resolve_times(series.duration)
        return Occurrence(
            id=occurrence_id(series.id, original_start),
            series_id=series.id,
            calendar_id=series.calendar_id,
            title=override.title if override.title is not None else series.title,
            description=(
                override.description
                if override.description is not None
                else series.description
            ),
            start=start,
            end=end,
            all_day=override.all_day,
        )
