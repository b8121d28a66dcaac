"""Tests for the series loader and the engine pipeline."""

from __future__ import annotations

from datetime import timedelta

import pytest

from calendar_occurrences.config import AppConfig
from calendar_occurrences.expansion.engine import OccurrenceEngine
from calendar_occurrences.expansion.loader import DEFAULT_PAD, SeriesLoader
from calendar_occurrences.readers.memory_reader import MemorySeriesReader
from calendar_occurrences.utils.exceptions import StorageUnavailableError

from factories import make_exception, make_override, make_series, utc


class RecordingReader(MemorySeriesReader):
    """Memory reader that remembers the windows it was asked for."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls = []
        self.snapshots = 0

    def snapshot(self):
        self.snapshots += 1
        return super().snapshot()

    def fetch_series(self, window_start, window_end, calendar_id=None):
        self.calls.append(("series", window_start, window_end, calendar_id))
        return super().fetch_series(window_start, window_end, calendar_id)

    def fetch_exceptions(self, series_ids, window_start, window_end):
        self.calls.append(("exceptions", sorted(series_ids), window_start, window_end))
        return super().fetch_exceptions(series_ids, window_start, window_end)

    def fetch_overrides(self, series_ids, window_start, window_end):
        self.calls.append(("overrides", sorted(series_ids), window_start, window_end))
        return super().fetch_overrides(series_ids, window_start, window_end)


class BrokenReader(MemorySeriesReader):
    def fetch_series(self, window_start, window_end, calendar_id=None):
        raise StorageUnavailableError("database is down")


# ---------------------------------------------------------------------------
#  SeriesLoader
# ---------------------------------------------------------------------------


def test_loader_pads_all_fetches_by_a_week():
    reader = RecordingReader(series=[make_series()])
    SeriesLoader(reader).load(utc(2024, 1, 10), utc(2024, 1, 20))

    window = (utc(2024, 1, 3), utc(2024, 1, 27))
    assert DEFAULT_PAD == timedelta(days=7)
    assert reader.calls == [
        ("series", *window, None),
        ("exceptions", ["weekly"], *window),
        ("overrides", ["weekly"], *window),
    ]
    assert reader.snapshots == 1


def test_loader_selects_series_by_anchor_and_recurrence_end():
    series = [
        make_series(series_id="current"),
        make_series(series_id="future", anchor_start=utc(2024, 3, 1)),
        make_series(series_id="ended", anchor_start=utc(2023, 1, 2), recurrence_end=utc(2023, 6, 1)),
        make_series(series_id="ends_inside", anchor_start=utc(2023, 1, 2), recurrence_end=utc(2024, 1, 5)),
    ]
    loaded = SeriesLoader(MemorySeriesReader(series=series)).load(utc(2024, 1, 1), utc(2024, 1, 31))

    assert sorted(s.id for s in loaded.series) == ["current", "ends_inside"]


def test_loader_filters_by_calendar():
    series = [make_series(series_id="mine"), make_series(series_id="theirs", calendar_id="cal_2")]
    loaded = SeriesLoader(MemorySeriesReader(series=series)).load(
        utc(2024, 1, 1), utc(2024, 1, 31), calendar_id="cal_2"
    )
    assert [s.id for s in loaded.series] == ["theirs"]


def test_loader_restricts_exceptions_and_overrides_to_window_and_series():
    reader = MemorySeriesReader(
        series=[make_series()],
        exceptions=[
            make_exception(utc(2024, 1, 8, 10)),
            make_exception(utc(2024, 3, 4, 10)),
            make_exception(utc(2024, 1, 8, 10), series_id="unloaded"),
        ],
        overrides=[
            make_override(utc(2023, 12, 25, 10), title="padded"),
            make_override(utc(2023, 11, 6, 10), title="too early"),
        ],
    )
    loaded = SeriesLoader(reader).load(utc(2024, 1, 1), utc(2024, 1, 22))

    assert [x.original_start for x in loaded.exceptions] == [utc(2024, 1, 8, 10)]
    assert [o.title for o in loaded.overrides] == ["padded"]


def test_loader_skips_record_fetches_without_series():
    reader = RecordingReader()
    loaded = SeriesLoader(reader).load(utc(2024, 1, 1), utc(2024, 1, 22))

    assert loaded.series == []
    assert [call[0] for call in reader.calls] == ["series"]


def test_loader_rejects_negative_pad():
    with pytest.raises(ValueError):
        SeriesLoader(MemorySeriesReader(), pad=timedelta(days=-1))


def test_storage_failure_propagates():
    engine = OccurrenceEngine(BrokenReader())
    with pytest.raises(StorageUnavailableError):
        engine.query(utc(2024, 1, 1), utc(2024, 1, 22))


# ---------------------------------------------------------------------------
#  OccurrenceEngine
# ---------------------------------------------------------------------------


def test_engine_applies_exceptions_and_overrides():
    reader = MemorySeriesReader(
        series=[make_series()],
        exceptions=[make_exception(utc(2024, 1, 8, 10))],
        overrides=[make_override(utc(2024, 1, 15, 10), start_override=utc(2024, 1, 16, 9))],
    )
    result = OccurrenceEngine(reader).query(utc(2024, 1, 1), utc(2024, 1, 22))

    assert [(o.id, o.start) for o in result.occurrences] == [
        ("weekly:2024-01-01T10:00:00Z", utc(2024, 1, 1, 10)),
        ("weekly:2024-01-15T10:00:00Z", utc(2024, 1, 16, 9)),
    ]


def test_identity_is_stable_when_override_changes_between_queries():
    override = make_override(utc(2024, 1, 8, 10), start_override=utc(2024, 1, 9, 10))
    reader = MemorySeriesReader(series=[make_series()], overrides=[override])
    engine = OccurrenceEngine(reader)

    first = {o.id: o for o in engine.query(utc(2024, 1, 1), utc(2024, 1, 22)).occurrences}

    reader.overrides = [override.model_copy(update={"start_override": utc(2024, 1, 11, 15)})]
    second = {o.id: o for o in engine.query(utc(2024, 1, 5), utc(2024, 1, 30)).occurrences}

    key = "weekly:2024-01-08T10:00:00Z"
    assert first[key].start == utc(2024, 1, 9, 10)
    assert second[key].start == utc(2024, 1, 11, 15)


def test_engine_from_config(clean_env):
    clean_env.setenv("MAX_OVERRIDE_SHIFT_DAYS", "2")
    clean_env.setenv("EXPANSION_WORKERS", "3")
    engine = OccurrenceEngine.from_config(AppConfig(), MemorySeriesReader())

    assert engine.loader.pad == timedelta(days=2)
    assert engine.expander.pad == timedelta(days=2)
    assert engine.expander.max_workers == 3


def test_engine_is_idempotent():
    reader = MemorySeriesReader(
        series=[make_series(), make_series(series_id="daily", recurrence_rule="FREQ=DAILY;COUNT=10")],
        overrides=[make_override(utc(2024, 1, 3, 10), series_id="daily", title="Moved", start_override=utc(2024, 1, 1, 10))],
    )
    engine = OccurrenceEngine(reader, max_workers=2)

    first = [o.to_dict() for o in engine.query(utc(2024, 1, 1), utc(2024, 1, 22)).occurrences]
    second = [o.to_dict() for o in engine.query(utc(2024, 1, 1), utc(2024, 1, 22)).occurrences]

    assert first == second
    # Same start as the weekly occurrence; tie broken by id
    assert [o["id"] for o in first[:2]] == ["daily:2024-01-01T10:00:00Z", "daily:2024-01-03T10:00:00Z"]
