"""CLI entry point for the occurrence engine."""

import argparse
import json
import logging
import sys
from datetime import datetime
from itertools import groupby
from pathlib import Path

import pytz

from .api import EventsResponse, query_events
from .config import AppConfig, load_config
from .expansion.engine import OccurrenceEngine
from .readers.base import SeriesReader
from .readers.memory_reader import MemorySeriesReader
from .readers.sql_reader import SqlSeriesReader
from .storage.db import create_session_factory, create_store_engine, init_db
from .utils.date_utils import format_instant, month_grid_window
from .utils.exceptions import (
    CalendarOccurrencesError,
    InvalidRangeError,
    StorageUnavailableError,
)
from .utils.logging import setup_logging
from .writers.sql_writer import SqlSeriesWriter

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INVALID_RANGE = 2


def _import_records(data_file: Path, writer: SqlSeriesWriter, logger: logging.Logger) -> None:
    """Copy every record of a YAML data file into the database."""
    source = MemorySeriesReader.from_yaml(data_file)
    for series in source.series:
        writer.save_series(series)
    for exception in source.exceptions:
        writer.add_exception(exception)
    for override in source.overrides:
        writer.save_override(override)
    logger.info(
        f"Imported {len(source.series)} series, {len(source.exceptions)} exceptions, "
        f"{len(source.overrides)} overrides"
    )


def _create_reader(args, config: AppConfig, logger: logging.Logger) -> SeriesReader:
    """Create the series reader selected by the arguments and configuration."""
    data_file = args.data or config.data_file
    if data_file:
        return MemorySeriesReader.from_yaml(Path(data_file))

    engine = create_store_engine(args.database_url or config.database_url)
    session_factory = create_session_factory(engine)

    if args.init_db:
        init_db(engine)
    if args.import_file:
        writer = SqlSeriesWriter(session_factory, max_override_shift=config.max_override_shift)
        _import_records(Path(args.import_file), writer, logger)

    return SqlSeriesReader(session_factory, config.default_duration_minutes)


def _resolve_range(args) -> dict[str, str]:
    """Turn --start/--end or --month into query parameters."""
    if args.month:
        try:
            month = datetime.strptime(args.month, "%Y-%m")
        except ValueError as e:
            raise InvalidRangeError(
                f"Invalid month: {args.month}. Use YYYY-MM (e.g., 2024-01)"
            ) from e
        start, end = month_grid_window(month.year, month.month, args.week_start)
        params = {"start": format_instant(start), "end": format_instant(end)}
    elif args.start or args.end:
        params = {"start": args.start, "end": args.end}
    else:
        now = datetime.now(pytz.utc)
        start, end = month_grid_window(now.year, now.month, args.week_start)
        params = {"start": format_instant(start), "end": format_instant(end)}

    if args.calendar:
        params["calendarId"] = args.calendar
    return params


def _print_agenda(response: EventsResponse) -> None:
    """Print occurrences grouped by day of their start."""
    if not response.events:
        print("No events in range")
    for day, occurrences in groupby(response.events, key=lambda o: o.start.date()):
        print(f"\n{day.strftime('%a %Y-%m-%d')}")
        for occ in occurrences:
            if occ.all_day:
                when = "all day    "
            else:
                when = f"{occ.start.strftime('%H:%M')}-{occ.end.strftime('%H:%M')}"
            print(f"  {when}  {occ.title}  [{occ.id}]")
            if occ.description:
                print(f"               {occ.description}")

    if response.failed_series:
        print(f"\nSkipped {len(response.failed_series)} series with invalid recurrence rules:")
        for series_id in response.failed_series:
            print(f"  - {series_id}")


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Expand recurring calendar events into the occurrences within a time range"
    )
    parser.add_argument("--start", type=str, help="Range start (ISO-8601, e.g. 2024-01-01T00:00Z)")
    parser.add_argument("--end", type=str, help="Range end (ISO-8601, inclusive)")
    parser.add_argument(
        "--month",
        type=str,
        default=None,
        help="Query the 6-week month grid for YYYY-MM instead of --start/--end",
    )
    parser.add_argument(
        "--week-start",
        type=int,
        default=6,
        choices=range(7),
        help="First weekday of the month grid (0=Monday ... 6=Sunday, default: 6)",
    )
    parser.add_argument("--calendar", type=str, help="Only events of this calendar ID")
    parser.add_argument("--data", type=str, help="YAML data file (instead of the database)")
    parser.add_argument("--database-url", type=str, help="SQLAlchemy database URL (overrides config)")
    parser.add_argument("--init-db", action="store_true", help="Create database tables")
    parser.add_argument(
        "--import",
        dest="import_file",
        type=str,
        help="Import series, exceptions and overrides from a YAML file into the database",
    )
    parser.add_argument("--workers", type=int, default=None, help="Parallel expansion workers")
    parser.add_argument("--json", action="store_true", help="Print the response as JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    args = parser.parse_args()

    try:
        config = load_config()
    except CalendarOccurrencesError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    log_level = "DEBUG" if args.verbose else config.log_level
    logger = setup_logging(level=log_level, log_file=config.log_file)

    try:
        reader = _create_reader(args, config, logger)

        if (args.init_db or args.import_file) and not (args.start or args.end or args.month):
            return EXIT_OK

        params = _resolve_range(args)

        engine = OccurrenceEngine.from_config(config, reader)
        if args.workers:
            engine.expander.max_workers = max(1, args.workers)

        response = query_events(engine, params)

        if args.json:
            print(json.dumps(response.to_dict(), indent=2))
        else:
            _print_agenda(response)
        return EXIT_OK

    except InvalidRangeError as e:
        logger.error(f"Invalid range: {e}")
        return EXIT_INVALID_RANGE
    except StorageUnavailableError as e:
        logger.error(f"Calendar storage unavailable: {e}")
        return EXIT_FAILURE
    except CalendarOccurrencesError as e:
        logger.error(f"Occurrence engine error: {e}")
        return EXIT_FAILURE
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
