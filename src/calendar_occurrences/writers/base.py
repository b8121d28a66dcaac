"""Abstract base class for series writers."""

from abc import ABC, abstractmethod
from datetime import datetime

from ..models.series import OccurrenceException, OccurrenceOverride, Series


class SeriesWriter(ABC):
    """Authoring side of the storage backend."""

    @abstractmethod
    def save_series(self, series: Series) -> str:
        """
        Create or replace a series.

        Returns:
            Series ID

        Raises:
            StorageUnavailableError: If the write fails
        """

    @abstractmethod
    def delete_series(self, series_id: str) -> None:
        """
        Delete a series together with its exceptions and overrides.

        Raises:
            StorageUnavailableError: If the write fails
        """

    @abstractmethod
    def add_exception(self, exception: OccurrenceException) -> None:
        """
        Cancel one occurrence.

        Raises:
            StorageUnavailableError: If the write fails
        """

    @abstractmethod
    def delete_exception(self, series_id: str, original_start: datetime) -> None:
        """
        Restore a cancelled occurrence.

        Raises:
            StorageUnavailableError: If the write fails
        """

    @abstractmethod
    def save_override(self, override: OccurrenceOverride) -> None:
        """
        Create or replace the override of one occurrence.

        Raises:
            OverrideShiftError: If the override moves the start too far
            StorageUnavailableError: If the write fails
        """

    @abstractmethod
    def delete_override(self, series_id: str, original_start: datetime) -> None:
        """
        Remove the override of one occurrence.

        Raises:
            StorageUnavailableError: If the write fails
        """
