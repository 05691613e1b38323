"""In-memory implementation of the routine repository."""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from typing import Dict, Iterable, Optional, Sequence, Tuple, Union

from ..contracts import (
    CompleteStepBody,
    DailyNotes,
    Horse,
    HorseStepProgress,
    RoutineAssignmentType,
    RoutineInstance,
    RoutineInstanceStatus,
    RoutineProgress,
    RoutineTemplate,
    StepProgress,
    StepStatus,
    utcnow,
)
from ..errors import InvalidTransitionError, NotFoundError
from ..progress import percent_complete, recompute_progress, summarize_step
from .repository import HorseDirectory, RoutineRepository

logger = logging.getLogger(__name__)

_ACTIVE_STATUSES = (RoutineInstanceStatus.STARTED, RoutineInstanceStatus.IN_PROGRESS)


class InMemoryRoutineRepository(RoutineRepository, HorseDirectory):
    """Keep templates, instances, daily notes and horses in local memory.

    Applies the same transition rules and progress recomputation as the
    remote store, which makes it suitable for tests and offline demos. Data
    is not persisted across process restarts.
    """

    def __init__(self, actor: str = "local-user") -> None:
        self.actor = actor
        self._templates: Dict[str, RoutineTemplate] = {}
        self._instances: Dict[str, RoutineInstance] = {}
        self._daily_notes: Dict[Tuple[str, str], DailyNotes] = {}
        self._horses: Dict[str, Horse] = {}

    # ------------------------------------------------------------------
    # Seeding
    def add_template(self, template: RoutineTemplate) -> RoutineTemplate:
        self._templates[template.id] = template
        return template

    def add_horses(self, horses: Iterable[Horse]) -> None:
        for horse in horses:
            self._horses[horse.id] = horse

    def set_daily_notes(self, notes: DailyNotes) -> None:
        self._daily_notes[(notes.stable_id, notes.date)] = notes

    def schedule_instance(
        self,
        template_id: str,
        stable_id: str,
        scheduled_date: Union[datetime, date],
        instance_id: Optional[str] = None,
        assigned_to: Optional[str] = None,
        start_time: Optional[str] = None,
    ) -> RoutineInstance:
        """Create a scheduled instance embedding the template's steps."""
        template = self._templates.get(template_id)
        if template is None:
            raise NotFoundError(f"Routine template {template_id} not found")

        steps = template.sorted_steps()
        progress = RoutineProgress(
            steps_total=len(steps),
            step_progress={step.id: StepProgress(step_id=step.id) for step in steps},
        )
        instance = RoutineInstance(
            id=instance_id or str(uuid.uuid4()),
            template_id=template.id,
            template_name=template.name,
            organization_id=template.organization_id,
            stable_id=stable_id,
            template=template.snapshot(),
            scheduled_date=scheduled_date,
            scheduled_start_time=start_time or template.default_start_time,
            estimated_duration=template.estimated_duration,
            assigned_to=assigned_to,
            assignment_type=(
                RoutineAssignmentType.MANUAL if assigned_to else RoutineAssignmentType.AUTO
            ),
            progress=progress,
            points_value=template.points_value,
        )
        self._instances[instance.id] = instance
        return instance.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Helpers
    def _get(self, instance_id: str) -> RoutineInstance:
        instance = self._instances.get(instance_id)
        if instance is None:
            raise NotFoundError(f"Routine instance {instance_id} not found")
        return instance

    def _store(self, instance: RoutineInstance) -> RoutineInstance:
        self._instances[instance.id] = instance
        return instance.model_copy(deep=True)

    def _require_active(self, instance: RoutineInstance, action: str) -> None:
        if instance.status not in _ACTIVE_STATUSES:
            raise InvalidTransitionError(
                f"Cannot {action} routine with status: {instance.status.value}"
            )

    # ------------------------------------------------------------------
    # Repository API
    async def fetch_templates(self, organization_id: str) -> list[RoutineTemplate]:
        return [
            template.model_copy(deep=True)
            for template in self._templates.values()
            if template.organization_id == organization_id
        ]

    async def fetch_template(self, template_id: str) -> RoutineTemplate:
        template = self._templates.get(template_id)
        if template is None:
            raise NotFoundError(f"Routine template {template_id} not found")
        return template.model_copy(deep=True)

    async def fetch_instances(
        self, stable_id: str, day: Optional[date] = None
    ) -> list[RoutineInstance]:
        matches = [
            instance
            for instance in self._instances.values()
            if instance.stable_id == stable_id
            and (day is None or instance.scheduled_day == day)
        ]
        matches.sort(key=lambda i: (i.scheduled_day, i.scheduled_start_time))
        return [instance.model_copy(deep=True) for instance in matches]

    async def fetch_instance(self, instance_id: str) -> RoutineInstance:
        return self._get(instance_id).model_copy(deep=True)

    async def start_instance(
        self, instance_id: str, daily_notes_acknowledged: bool = False
    ) -> RoutineInstance:
        instance = self._get(instance_id)
        if instance.status in _ACTIVE_STATUSES:
            logger.debug(f"Routine {instance_id} already started; returning current state")
            return instance.model_copy(deep=True)
        if instance.status != RoutineInstanceStatus.SCHEDULED:
            raise InvalidTransitionError(
                f"Cannot start routine with status: {instance.status.value}"
            )

        now = utcnow()
        steps = instance.template.sorted_steps() if instance.template else []
        update = {
            "status": RoutineInstanceStatus.STARTED,
            "started_at": now,
            "started_by": self.actor,
            "daily_notes_acknowledged": daily_notes_acknowledged,
            "current_step_id": steps[0].id if steps else None,
            "current_step_order": 1,
        }
        if not instance.assigned_to:
            update["assigned_to"] = self.actor
            update["assignment_type"] = RoutineAssignmentType.SELF
        return self._store(instance.model_copy(update=update))

    async def complete_step(
        self, instance_id: str, step_id: str, body: CompleteStepBody
    ) -> RoutineInstance:
        instance = self._get(instance_id)
        self._require_active(instance, "update progress for")
        if instance.template and step_id not in {s.id for s in instance.template.steps}:
            raise NotFoundError(f"Step {step_id} not found in routine {instance_id}")

        now = utcnow()
        current = instance.progress.step_progress.get(step_id) or StepProgress(
            step_id=step_id
        )
        changes: dict = {"status": body.status}
        if current.started_at is None:
            changes["started_at"] = now
        if body.status in (StepStatus.COMPLETED, StepStatus.SKIPPED):
            changes["completed_at"] = now
        if body.general_notes:
            changes["general_notes"] = body.general_notes
        if body.photo_urls:
            changes["photo_urls"] = list(body.photo_urls)
        if body.horse_progress:
            merged = dict(current.horse_progress)
            for horse_id, submitted in body.horse_progress.items():
                merged[horse_id] = self._stamp(submitted, merged.get(horse_id), now)
            changes["horse_progress"] = merged

        step_progress = dict(instance.progress.step_progress)
        step_progress[step_id] = summarize_step(current.model_copy(update=changes))
        progress = recompute_progress(
            instance.progress.model_copy(update={"step_progress": step_progress})
        )
        logger.debug(
            f"Step {step_id} of routine {instance_id} now {body.status.value}; "
            f"{progress.percent_complete}% complete"
        )
        return self._store(
            instance.model_copy(
                update={
                    "status": RoutineInstanceStatus.IN_PROGRESS,
                    "progress": progress,
                    "current_step_id": step_id,
                }
            )
        )

    def _stamp(
        self,
        submitted: HorseStepProgress,
        existing: Optional[HorseStepProgress],
        now: datetime,
    ) -> HorseStepProgress:
        if submitted.is_finalized:
            return submitted.model_copy(
                update={
                    "completed_at": submitted.completed_at or now,
                    "completed_by": submitted.completed_by or self.actor,
                }
            )
        if existing is not None:
            return submitted.model_copy(
                update={
                    "completed_at": existing.completed_at,
                    "completed_by": existing.completed_by,
                }
            )
        return submitted

    async def complete_instance(
        self, instance_id: str, notes: Optional[str] = None
    ) -> RoutineInstance:
        instance = self._get(instance_id)
        self._require_active(instance, "complete")
        total = instance.progress.steps_total
        progress = instance.progress.model_copy(
            update={
                "steps_completed": total,
                "percent_complete": percent_complete(total, total),
            }
        )
        return self._store(
            instance.model_copy(
                update={
                    "status": RoutineInstanceStatus.COMPLETED,
                    "completed_at": utcnow(),
                    "completed_by": self.actor,
                    "progress": progress,
                    "points_awarded": instance.points_value,
                    "notes": notes,
                }
            )
        )

    async def cancel_instance(self, instance_id: str, reason: str) -> RoutineInstance:
        instance = self._get(instance_id)
        if instance.is_terminal:
            raise InvalidTransitionError(
                f"Cannot cancel routine with status: {instance.status.value}"
            )
        return self._store(
            instance.model_copy(
                update={
                    "status": RoutineInstanceStatus.CANCELLED,
                    "cancelled_at": utcnow(),
                    "cancelled_by": self.actor,
                    "cancellation_reason": reason,
                }
            )
        )

    async def restart_instance(self, instance_id: str) -> RoutineInstance:
        instance = self._get(instance_id)
        if instance.status != RoutineInstanceStatus.CANCELLED:
            raise InvalidTransitionError(
                "Can only restart cancelled routines. "
                f"Current status: {instance.status.value}"
            )
        return self._store(
            instance.model_copy(
                update={
                    "status": RoutineInstanceStatus.SCHEDULED,
                    "cancelled_at": None,
                    "cancelled_by": None,
                    "cancellation_reason": None,
                }
            )
        )

    async def fetch_daily_notes(
        self, stable_id: str, day: date
    ) -> Optional[DailyNotes]:
        notes = self._daily_notes.get((stable_id, day.isoformat()))
        return notes.model_copy(deep=True) if notes else None

    # ------------------------------------------------------------------
    # Horse directory
    async def fetch_horses(self, stable_id: str) -> list[Horse]:
        return [h for h in self._horses.values() if h.current_stable_id == stable_id]

    async def get_horses_by_ids(self, horse_ids: Sequence[str]) -> list[Horse]:
        return [self._horses[i] for i in horse_ids if i in self._horses]

    async def get_horses_by_groups(
        self, stable_id: str, group_ids: Sequence[str]
    ) -> list[Horse]:
        wanted = set(group_ids)
        return [
            horse
            for horse in await self.fetch_horses(stable_id)
            if horse.horse_group_id in wanted
        ]
