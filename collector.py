"""
collector.py - Deferred failure collection.

Evaluation never raises per cell. Every failed check is recorded here and
the whole list is surfaced once, by `finalize()`, as an
AggregatedAssertionError. A session owns exactly one collector.
"""

from __future__ import annotations

from typing import Optional

from errors import AggregatedAssertionError
from logging_config import get_logger
from models import Violation

logger = get_logger(__name__)


class FailureCollector:
    """Mutable, ordered log of violations."""

    def __init__(self) -> None:
        self._violations: list[Violation] = []

    def record(self, location: str, message: str) -> Violation:
        violation = Violation(location=location, message=message)
        self._violations.append(violation)
        logger.debug("violation_recorded | location=%s | message=%r", location, message)
        return violation

    @property
    def violations(self) -> list[Violation]:
        return list(self._violations)

    def __len__(self) -> int:
        return len(self._violations)

    def __bool__(self) -> bool:
        return bool(self._violations)

    def aggregated(self) -> Optional[AggregatedAssertionError]:
        """The error finalize() would raise, or None when nothing was recorded."""
        if not self._violations:
            return None
        return AggregatedAssertionError(self._violations)

    def finalize(self) -> None:
        """Raise AggregatedAssertionError when anything was recorded."""
        error = self.aggregated()
        if error is not None:
            raise error
