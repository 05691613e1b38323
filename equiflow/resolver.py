"""Resolve which horses a routine step applies to."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from .contracts import Horse, HorseContext, RoutineStep
from .errors import RosterLoadError
from .persistence.repository import HorseDirectory

logger = logging.getLogger(__name__)


class HorseRoster:
    """Cache of horses per stable, shared across the steps of one run."""

    def __init__(self) -> None:
        self._horses: Dict[str, List[Horse]] = {}

    def get(self, stable_id: str) -> Optional[List[Horse]]:
        horses = self._horses.get(stable_id)
        return list(horses) if horses is not None else None

    def put(self, stable_id: str, horses: Sequence[Horse]) -> None:
        self._horses[stable_id] = list(horses)

    def invalidate(self, stable_id: Optional[str] = None) -> None:
        if stable_id is None:
            self._horses.clear()
        else:
            self._horses.pop(stable_id, None)

    async def ensure_loaded(
        self, stable_id: str, directory: HorseDirectory
    ) -> List[Horse]:
        """Return the stable's roster, fetching it once if not cached."""
        cached = self.get(stable_id)
        if cached is not None:
            return cached
        try:
            horses = await directory.fetch_horses(stable_id)
        except Exception as e:
            raise RosterLoadError(f"Failed to load horses for stable {stable_id}: {e}") from e
        self.put(stable_id, horses)
        logger.debug(f"Loaded {len(horses)} horses for stable {stable_id}")
        return list(horses)


class HorseContextResolver:
    """Turn a step's horse context into an ordered list of horses.

    Roster failures never abort a routine: they are logged and the step is
    treated as having no applicable horses.
    """

    def __init__(
        self, directory: HorseDirectory, roster: Optional[HorseRoster] = None
    ) -> None:
        self.directory = directory
        self.roster = roster if roster is not None else HorseRoster()

    async def resolve(self, step: RoutineStep, stable_id: str) -> List[Horse]:
        try:
            horses = await self._resolve(step, stable_id)
        except Exception as e:
            logger.warning(
                f"Could not resolve horses for step {step.id} ({step.horse_context.value}): {e}"
            )
            return []

        horse_filter = step.horse_filter
        if horse_filter and horse_filter.exclude_horse_ids and step.horse_context in (
            HorseContext.ALL,
            HorseContext.GROUPS,
        ):
            excluded = set(horse_filter.exclude_horse_ids)
            horses = [horse for horse in horses if horse.id not in excluded]
        return horses

    async def _resolve(self, step: RoutineStep, stable_id: str) -> List[Horse]:
        context = step.horse_context
        horse_filter = step.horse_filter

        if context == HorseContext.NONE:
            return []

        if context == HorseContext.ALL:
            roster = await self.roster.ensure_loaded(stable_id, self.directory)
            return [horse for horse in roster if horse.is_active]

        if context == HorseContext.GROUPS:
            group_ids = set(horse_filter.group_ids) if horse_filter else set()
            if not group_ids:
                return []
            roster = await self.roster.ensure_loaded(stable_id, self.directory)
            return [
                horse
                for horse in roster
                if horse.is_active and horse.horse_group_id in group_ids
            ]

        # SPECIFIC
        horse_ids = list(horse_filter.horse_ids) if horse_filter else []
        if not horse_ids:
            return []
        cached = self.roster.get(stable_id)
        if cached is not None:
            by_id = {horse.id: horse for horse in cached}
            missing = [i for i in horse_ids if i not in by_id]
            if not missing:
                return [by_id[i] for i in horse_ids]
        found = {horse.id: horse for horse in await self.directory.get_horses_by_ids(horse_ids)}
        return [found[i] for i in horse_ids if i in found]
