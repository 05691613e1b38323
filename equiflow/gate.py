"""Daily notes acknowledgment gate."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from .contracts import DailyNotes

logger = logging.getLogger(__name__)


class DailyNotesGate:
    """Holds the day's notes until the caretaker has read them.

    Acknowledgment is purely local: it is never sent to the store and is
    forgotten with the gate.
    """

    def __init__(self, notes: Optional[DailyNotes] = None) -> None:
        self.notes = notes
        self._acknowledged = False

    @property
    def acknowledged(self) -> bool:
        return self._acknowledged

    def requires_acknowledgment(self, now: Optional[datetime] = None) -> bool:
        if self._acknowledged or self.notes is None:
            return False
        return self.notes.has_content(now)

    def acknowledge(self) -> None:
        if not self._acknowledged:
            logger.info(
                f"Daily notes acknowledged for stable "
                f"{self.notes.stable_id if self.notes else '-'}"
            )
        self._acknowledged = True
