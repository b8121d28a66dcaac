"""Abstract base class for series readers."""

from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Optional

from ..models.series import OccurrenceException, OccurrenceOverride, Series


class SeriesReader(ABC):
    """Read side of the storage backend holding series, exceptions and overrides."""

    @contextmanager
    def snapshot(self) -> Iterator[None]:
        """
        Group several reads into one consistent view.

        Backends without transactions can keep this default no-op.
        """
        yield

    @abstractmethod
    def fetch_series(
        self,
        window_start: datetime,
        window_end: datetime,
        calendar_id: Optional[str] = None,
    ) -> list[Series]:
        """
        Fetch series that may produce occurrences within a window.

        Selection: ``anchor_start <= window_end`` and
        ``recurrence_end`` unset or ``>= window_start``.

        Args:
            window_start: Start of the window
            window_end: End of the window
            calendar_id: Only series of this calendar (None for all)

        Returns:
            List of Series in no particular order

        Raises:
            StorageUnavailableError: If the backend cannot be read
        """

    @abstractmethod
    def fetch_exceptions(
        self,
        series_ids: list[str],
        window_start: datetime,
        window_end: datetime,
    ) -> list[OccurrenceException]:
        """
        Fetch cancellations of the given series whose original start is in the window.

        Raises:
            StorageUnavailableError: If the backend cannot be read
        """

    @abstractmethod
    def fetch_overrides(
        self,
        series_ids: list[str],
        window_start: datetime,
        window_end: datetime,
    ) -> list[OccurrenceOverride]:
        """
        Fetch overrides of the given series whose original start is in the window.

        Raises:
            StorageUnavailableError: If the backend cannot be read
        """
