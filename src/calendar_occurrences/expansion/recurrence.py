"""Recurrence-rule evaluation.

Rules are RFC 5545 RRULE values (``FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE``),
parsed and iterated by python-dateutil. A stored rule never carries its own
DTSTART: the series anchor is always passed in, so the two cannot disagree.
"""

import logging
from collections.abc import Iterator
from datetime import datetime
from typing import Optional

import pytz
from dateutil.rrule import rrule, rrulestr

from ..utils.date_utils import canonical_instant
from ..utils.exceptions import RecurrenceRuleError

logger = logging.getLogger(__name__)

# Anchor used when validating a rule that is not yet attached to a series
_VALIDATION_ANCHOR = datetime(2000, 1, 1, tzinfo=pytz.utc)


class RecurrenceRule:
    """A parsed recurrence rule, evaluated against an externally supplied anchor."""

    def __init__(self, text: str):
        """
        Args:
            text: RRULE value, with or without the ``RRULE:`` prefix

        Raises:
            RecurrenceRuleError: If the text is structurally invalid
        """
        self.text = text
        self.body = self._normalize(text)
        self.parts = self._split_parts(self.body)

    @classmethod
    def parse(cls, text: str) -> "RecurrenceRule":
        """Parse and fully validate a rule without a series anchor."""
        rule = cls(text)
        rule.build(_VALIDATION_ANCHOR)
        return rule

    @property
    def frequency(self) -> str:
        return self.parts["FREQ"]

    @staticmethod
    def _normalize(text: str) -> str:
        if text is None or not text.strip():
            raise RecurrenceRuleError("Empty recurrence rule")

        lines = [line.strip() for line in text.strip().splitlines() if line.strip()]
        if len(lines) != 1:
            raise RecurrenceRuleError(
                f"Expected a single RRULE line, got {len(lines)} lines"
            )

        body = lines[0]
        if "DTSTART" in body.upper():
            raise RecurrenceRuleError(
                "Recurrence rule must not embed DTSTART; the series anchor is used"
            )
        if body.upper().startswith("RRULE:"):
            body = body[len("RRULE:"):]
        if ":" in body:
            raise RecurrenceRuleError(f"Unsupported recurrence property: {body}")
        return body.upper()

    @staticmethod
    def _split_parts(body: str) -> dict[str, str]:
        parts: dict[str, str] = {}
        for part in body.split(";"):
            if not part:
                continue
            name, sep, value = part.partition("=")
            if not sep or not value:
                raise RecurrenceRuleError(f"Malformed rule part '{part}'")
            parts[name] = value

        if "FREQ" not in parts:
            raise RecurrenceRuleError("Recurrence rule has no FREQ")
        if "COUNT" in parts and "UNTIL" in parts:
            raise RecurrenceRuleError("COUNT and UNTIL must not both be set")

        interval = parts.get("INTERVAL")
        if interval is not None and (not interval.isdigit() or int(interval) < 1):
            raise RecurrenceRuleError(f"INTERVAL must be a positive integer, got '{interval}'")
        return parts

    def build(self, anchor: datetime) -> rrule:
        """
        Build the dateutil rule anchored at ``anchor``.

        Raises:
            RecurrenceRuleError: If dateutil rejects the rule
        """
        try:
            built = rrulestr(self.body, dtstart=anchor)
        except (ValueError, TypeError, KeyError) as e:
            raise RecurrenceRuleError(f"Invalid recurrence rule '{self.text}': {e}") from e

        if not isinstance(built, rrule):
            raise RecurrenceRuleError(f"Expected a single rule, got {type(built).__name__}")
        return built

    def iter_starts(
        self,
        anchor: datetime,
        window_start: datetime,
        window_end: datetime,
        recurrence_end: Optional[datetime] = None,
    ) -> Iterator[datetime]:
        """
        Lazily yield canonical occurrence starts within ``[window_start, window_end]``.

        Stops at whichever comes first: ``window_end``, the rule's own
        COUNT/UNTIL, or ``recurrence_end``. Each call starts a fresh iteration.

        Raises:
            RecurrenceRuleError: On first iteration, if the rule cannot be built
        """
        built = self.build(canonical_instant(anchor))
        upper = window_end if recurrence_end is None else min(window_end, recurrence_end)

        for start in built.xafter(window_start, inc=True):
            if start > upper:
                return
            yield canonical_instant(start)

    def __repr__(self) -> str:
        return f"RecurrenceRule({self.body!r})"
