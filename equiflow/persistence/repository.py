"""Repository abstractions for routine state and horse rosters."""

from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from ..contracts import (
    CompleteStepBody,
    DailyNotes,
    Horse,
    RoutineInstance,
    RoutineTemplate,
)


class RoutineRepository(Protocol):
    """Gateway to the authoritative routine store.

    Every method is a single remote round trip. Implementations do not retry.
    """

    async def fetch_templates(self, organization_id: str) -> list[RoutineTemplate]:
        """Return the organization's routine templates."""

    async def fetch_template(self, template_id: str) -> RoutineTemplate:
        """Return a single template."""

    async def fetch_instances(
        self, stable_id: str, day: Optional[date] = None
    ) -> list[RoutineInstance]:
        """Return the stable's instances, optionally for one day."""

    async def fetch_instance(self, instance_id: str) -> RoutineInstance:
        """Return a single instance."""

    async def start_instance(
        self, instance_id: str, daily_notes_acknowledged: bool = False
    ) -> RoutineInstance:
        """Move a scheduled instance to started. No-op if already started."""

    async def complete_step(
        self, instance_id: str, step_id: str, body: CompleteStepBody
    ) -> RoutineInstance:
        """Submit a step result and return the recomputed instance."""

    async def complete_instance(
        self, instance_id: str, notes: Optional[str] = None
    ) -> RoutineInstance:
        """Mark the instance completed."""

    async def cancel_instance(self, instance_id: str, reason: str) -> RoutineInstance:
        """Cancel a non-terminal instance."""

    async def restart_instance(self, instance_id: str) -> RoutineInstance:
        """Return a cancelled instance to scheduled."""

    async def fetch_daily_notes(
        self, stable_id: str, day: date
    ) -> Optional[DailyNotes]:
        """Return the day's notes, or ``None`` when there are none."""


class HorseDirectory(Protocol):
    """Source of horse rosters used by the horse context resolver."""

    async def fetch_horses(self, stable_id: str) -> list[Horse]:
        """Return the horses assigned to a stable."""

    async def get_horses_by_ids(self, horse_ids: Sequence[str]) -> list[Horse]:
        """Return the horses with the given ids, omitting unknown ids."""

    async def get_horses_by_groups(
        self, stable_id: str, group_ids: Sequence[str]
    ) -> list[Horse]:
        """Return the stable's horses belonging to any of the groups."""
