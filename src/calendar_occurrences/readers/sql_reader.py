"""Relational series reader using SQLAlchemy."""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..models.series import OccurrenceException, OccurrenceOverride, Series
from ..storage.schema import (
    ExdateRecord,
    OverrideRecord,
    SeriesRecord,
    exception_from_record,
    override_from_record,
    series_from_record,
)
from ..utils.exceptions import StorageUnavailableError
from .base import SeriesReader

logger = logging.getLogger(__name__)


class SqlSeriesReader(SeriesReader):
    """Read series, exceptions and overrides from the relational store."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        default_duration_minutes: int = 60,
    ):
        """
        Initialize SQL reader.

        Args:
            session_factory: SQLAlchemy session factory
            default_duration_minutes: Duration for series stored without one
        """
        self.session_factory = session_factory
        self.default_duration_minutes = default_duration_minutes
        # Open snapshot session, per thread so concurrent queries never share one
        self._local = threading.local()

    @property
    def _session(self) -> Optional[Session]:
        return getattr(self._local, "session", None)

    @contextmanager
    def snapshot(self) -> Iterator[None]:
        """Run all reads inside one read-only transaction."""
        if self._session is not None:
            yield
            return

        try:
            session = self.session_factory()
        except SQLAlchemyError as e:
            raise StorageUnavailableError(f"Failed to open database session: {e}") from e

        self._local.session = session
        try:
            with session.begin():
                yield
        except SQLAlchemyError as e:
            raise StorageUnavailableError(f"Database snapshot failed: {e}") from e
        finally:
            self._local.session = None
            session.close()

    @contextmanager
    def _reading(self) -> Iterator[Session]:
        if self._session is not None:
            yield self._session
            return
        with self.session_factory() as session:
            yield session

    def fetch_series(
        self,
        window_start: datetime,
        window_end: datetime,
        calendar_id: Optional[str] = None,
    ) -> list[Series]:
        query = select(SeriesRecord).where(
            SeriesRecord.dtstart <= window_end,
            or_(SeriesRecord.until.is_(None), SeriesRecord.until >= window_start),
        )
        if calendar_id:
            query = query.where(SeriesRecord.calendar_id == calendar_id)

        try:
            with self._reading() as session:
                records = session.scalars(query).all()
                return [
                    series_from_record(r, self.default_duration_minutes) for r in records
                ]
        except SQLAlchemyError as e:
            raise StorageUnavailableError(f"Failed to fetch series: {e}") from e

    def fetch_exceptions(
        self,
        series_ids: list[str],
        window_start: datetime,
        window_end: datetime,
    ) -> list[OccurrenceException]:
        if not series_ids:
            return []

        query = select(ExdateRecord).where(
            ExdateRecord.series_id.in_(series_ids),
            ExdateRecord.exdate.between(window_start, window_end),
        )
        try:
            with self._reading() as session:
                return [exception_from_record(r) for r in session.scalars(query).all()]
        except SQLAlchemyError as e:
            raise StorageUnavailableError(f"Failed to fetch exceptions: {e}") from e

    def fetch_overrides(
        self,
        series_ids: list[str],
        window_start: datetime,
        window_end: datetime,
    ) -> list[OccurrenceOverride]:
        if not series_ids:
            return []

        query = select(OverrideRecord).where(
            OverrideRecord.series_id.in_(series_ids),
            OverrideRecord.original_start.between(window_start, window_end),
        )
        try:
            with self._reading() as session:
                return [override_from_record(r) for r in session.scalars(query).all()]
        except SQLAlchemyError as e:
            raise StorageUnavailableError(f"Failed to fetch overrides: {e}") from e
