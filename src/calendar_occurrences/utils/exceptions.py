"""Custom exceptions for the occurrence engine."""


class CalendarOccurrencesError(Exception):
    """Base exception for occurrence engine errors."""


class InvalidRangeError(CalendarOccurrencesError):
    """Raised when query range bounds are missing, unparseable or inverted."""


class StorageUnavailableError(CalendarOccurrencesError):
    """Raised when the storage backend cannot be read or written."""


class RecurrenceRuleError(CalendarOccurrencesError):
    """Raised when a recurrence rule cannot be parsed or evaluated."""


class OverrideShiftError(CalendarOccurrencesError):
    """Raised when an override moves an occurrence further than allowed."""


class ConfigurationError(CalendarOccurrencesError):
    """Raised when configuration is invalid."""
