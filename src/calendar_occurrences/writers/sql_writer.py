"""Relational series writer using SQLAlchemy."""

import logging
from datetime import datetime, timedelta

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..models.series import (
    OccurrenceException,
    OccurrenceOverride,
    Series,
    validate_override_shift,
)
from ..storage.schema import (
    ExdateRecord,
    OverrideRecord,
    SeriesRecord,
    override_to_record,
    series_to_record,
)
from ..utils.date_utils import canonical_instant
from ..utils.exceptions import StorageUnavailableError
from .base import SeriesWriter

logger = logging.getLogger(__name__)


class SqlSeriesWriter(SeriesWriter):
    """Write series, exceptions and overrides to the relational store."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        max_override_shift: timedelta = timedelta(days=7),
    ):
        """
        Initialize SQL writer.

        Args:
            session_factory: SQLAlchemy session factory
            max_override_shift: Largest allowed move of an override's start
        """
        self.session_factory = session_factory
        self.max_override_shift = max_override_shift

    def save_series(self, series: Series) -> str:
        try:
            with self.session_factory.begin() as session:
                session.merge(series_to_record(series))
        except SQLAlchemyError as e:
            raise StorageUnavailableError(f"Failed to save series {series.id}: {e}") from e

        logger.debug(f"Saved series {series.id}")
        return series.id

    def delete_series(self, series_id: str) -> None:
        try:
            with self.session_factory.begin() as session:
                session.execute(delete(ExdateRecord).where(ExdateRecord.series_id == series_id))
                session.execute(delete(OverrideRecord).where(OverrideRecord.series_id == series_id))
                session.execute(delete(SeriesRecord).where(SeriesRecord.id == series_id))
        except SQLAlchemyError as e:
            raise StorageUnavailableError(f"Failed to delete series {series_id}: {e}") from e

        logger.debug(f"Deleted series {series_id}")

    def add_exception(self, exception: OccurrenceException) -> None:
        try:
            with self.session_factory.begin() as session:
                session.execute(
                    delete(ExdateRecord).where(
                        ExdateRecord.series_id == exception.series_id,
                        ExdateRecord.exdate == exception.original_start,
                    )
                )
                session.add(
                    ExdateRecord(
                        series_id=exception.series_id,
                        exdate=exception.original_start,
                    )
                )
        except SQLAlchemyError as e:
            raise StorageUnavailableError(
                f"Failed to cancel occurrence {exception.series_id} "
                f"at {exception.original_start.isoformat()}: {e}"
            ) from e

    def delete_exception(self, series_id: str, original_start: datetime) -> None:
        try:
            with self.session_factory.begin() as session:
                session.execute(
                    delete(ExdateRecord).where(
                        ExdateRecord.series_id == series_id,
                        ExdateRecord.exdate == canonical_instant(original_start),
                    )
                )
        except SQLAlchemyError as e:
            raise StorageUnavailableError(f"Failed to delete exception of {series_id}: {e}") from e

    def save_override(self, override: OccurrenceOverride) -> None:
        validate_override_shift(override, self.max_override_shift)

        try:
            with self.session_factory.begin() as session:
                session.execute(
                    delete(OverrideRecord).where(
                        OverrideRecord.series_id == override.series_id,
                        OverrideRecord.original_start == override.original_start,
                    )
                )
                session.add(override_to_record(override))
        except SQLAlchemyError as e:
            raise StorageUnavailableError(
                f"Failed to save override {override.series_id} "
                f"at {override.original_start.isoformat()}: {e}"
            ) from e

    def delete_override(self, series_id: str, original_start: datetime) -> None:
        try:
            with self.session_factory.begin() as session:
                session.execute(
                    delete(OverrideRecord).where(
                        OverrideRecord.series_id == series_id,
                        OverrideRecord.original_start == canonical_instant(original_start),
                    )
                )
        except SQLAlchemyError as e:
            raise StorageUnavailableError(f"Failed to delete override of {series_id}: {e}") from e
