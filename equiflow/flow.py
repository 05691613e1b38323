"""Routine flow orchestration.

``RoutineFlow`` walks a caretaker through one routine instance: it starts the
instance, gates on the day's notes, resumes at the first unfinished step,
submits each step to the repository and completes the instance at the end.
Every change of position is published as a ``FlowState`` value.
"""

from __future__ import annotations

import logging
from typing import Annotated, Callable, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .config import EquiflowConfig, MessagesConfig, load_config
from .contracts import (
    BlanketAction,
    CompleteStepBody,
    DailyNotes,
    EmbeddedRoutineTemplate,
    Horse,
    HorseNotes,
    HorseStepProgress,
    RoutineInstance,
    RoutineInstanceStatus,
    RoutineStep,
    StepStatus,
)
from . import progress as pm
from .errors import NotFoundError
from .gate import DailyNotesGate
from .persistence.repository import RoutineRepository
from .resolver import HorseContextResolver
from .utils.locks import KeyedLock

logger = logging.getLogger(__name__)


class _State(BaseModel):
    model_config = ConfigDict(frozen=True)


class Loading(_State):
    kind: Literal["loading"] = "loading"


class DailyNotesAcknowledgment(_State):
    kind: Literal["daily_notes_acknowledgment"] = "daily_notes_acknowledgment"
    notes: DailyNotes


class StepExecution(_State):
    kind: Literal["step_execution"] = "step_execution"
    step_index: int
    step: RoutineStep
    total_steps: int
    horses: List[Horse] = Field(default_factory=list)
    horse_progress: Dict[str, HorseStepProgress] = Field(default_factory=dict)


class Completing(_State):
    kind: Literal["completing"] = "completing"


class Completed(_State):
    kind: Literal["completed"] = "completed"
    instance: Optional[RoutineInstance] = None


class Error(_State):
    kind: Literal["error"] = "error"
    message: str
    detail: Optional[str] = None


FlowState = Annotated[
    Union[Loading, DailyNotesAcknowledgment, StepExecution, Completing, Completed, Error],
    Field(discriminator="kind"),
]

Listener = Callable[[FlowState], None]


class RoutineFlow:
    """Drive a single routine instance from start to completion."""

    def __init__(
        self,
        instance_id: str,
        repository: RoutineRepository,
        resolver: Optional[HorseContextResolver] = None,
        config: Optional[EquiflowConfig] = None,
        locks: Optional[KeyedLock] = None,
        actor: Optional[str] = None,
    ) -> None:
        self.instance_id = instance_id
        self.repository = repository
        self.resolver = resolver or HorseContextResolver(repository)  # type: ignore[arg-type]
        self.messages: MessagesConfig = (config or load_config()).messages
        self.locks = locks or KeyedLock()
        self.actor = actor

        self._state: FlowState = Loading()
        self._listeners: List[Listener] = []
        self._instance: Optional[RoutineInstance] = None
        self._template: Optional[EmbeddedRoutineTemplate] = None
        self._steps: List[RoutineStep] = []
        self._current_index = 0
        self._horses: List[Horse] = []
        self._progress: Dict[str, HorseStepProgress] = {}
        self._gate = DailyNotesGate()
        self._submitting = False

    # ------------------------------------------------------------------
    # Observation
    @property
    def state(self) -> FlowState:
        return self._state

    @property
    def instance(self) -> Optional[RoutineInstance]:
        return self._instance

    @property
    def steps(self) -> List[RoutineStep]:
        return list(self._steps)

    @property
    def current_step_index(self) -> int:
        return self._current_index

    @property
    def daily_notes(self) -> Optional[DailyNotes]:
        return self._gate.notes

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` on every state change. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, state: FlowState) -> FlowState:
        self._state = state
        for listener in list(self._listeners):
            listener(state)
        return state

    def _fail(self, message: str, error: Exception) -> FlowState:
        logger.error(f"Routine {self.instance_id}: {message}: {error}")
        return self._set_state(Error(message=message, detail=str(error)))

    # ------------------------------------------------------------------
    # Loading
    async def load(self) -> FlowState:
        """Fetch the instance, start it if needed and move to the first open step."""
        self._set_state(Loading())
        try:
            instance = await self.repository.fetch_instance(self.instance_id)
            if instance.status == RoutineInstanceStatus.COMPLETED:
                self._instance = instance
                logger.info(f"Routine {self.instance_id} is already completed")
                return self._set_state(Completed(instance=instance))
            if instance.is_terminal:
                self._instance = instance
                logger.warning(
                    f"Routine {self.instance_id} cannot run with status {instance.status.value}"
                )
                return self._set_state(
                    Error(
                        message=self.messages.load_failed,
                        detail=f"Routine is {instance.status.value}",
                    )
                )

            was_scheduled = instance.status == RoutineInstanceStatus.SCHEDULED
            if was_scheduled:
                instance = await self.repository.start_instance(self.instance_id)
                logger.info(f"Started routine {self.instance_id}")
            else:
                logger.info(
                    f"Resuming routine {self.instance_id} ({instance.status.value})"
                )
            self._instance = instance
            self._template = await self._load_template(instance)
            self._steps = self._template.sorted_steps()

            notes = None
            if was_scheduled:
                notes = await self.repository.fetch_daily_notes(
                    instance.stable_id, instance.scheduled_day
                )
        except Exception as e:
            return self._fail(self.messages.load_failed, e)

        self._gate = DailyNotesGate(notes)
        if self._gate.requires_acknowledgment():
            logger.info(f"Routine {self.instance_id} waiting for daily notes acknowledgment")
            return self._set_state(DailyNotesAcknowledgment(notes=notes))
        return await self._enter_steps()

    async def _load_template(self, instance: RoutineInstance) -> EmbeddedRoutineTemplate:
        if instance.template is not None and instance.template.steps:
            return instance.template
        templates = await self.repository.fetch_templates(instance.organization_id)
        for template in templates:
            if template.id == instance.template_id:
                return template.snapshot()
        raise NotFoundError(f"Routine template {instance.template_id} not found")

    async def acknowledge_daily_notes(self) -> FlowState:
        """Confirm the daily notes were read and continue to step execution."""
        if not isinstance(self._state, DailyNotesAcknowledgment):
            logger.warning(
                f"Routine {self.instance_id}: acknowledgment ignored in state {self._state.kind}"
            )
            return self._state
        self._gate.acknowledge()
        return await self._enter_steps()

    def horse_notes(self, horse_id: str) -> HorseNotes:
        """Return the day's notes and alerts concerning one horse."""
        if self._gate.notes is None:
            return HorseNotes()
        return self._gate.notes.notes_for_horse(horse_id)

    def has_critical_alerts(self) -> bool:
        return self._gate.notes is not None and self._gate.notes.has_critical_alerts()

    # ------------------------------------------------------------------
    # Step execution
    async def _enter_steps(self) -> FlowState:
        assert self._instance is not None
        self._current_index = pm.resume_index(self._steps, self._instance.progress)
        return await self._show_current_step()

    async def _show_current_step(self) -> FlowState:
        assert self._instance is not None
        if self._current_index >= len(self._steps):
            return await self._finalize()

        step = self._steps[self._current_index]
        self._horses = await self.resolver.resolve(step, self._instance.stable_id)
        existing = self._instance.step_progress_for(step.id)
        self._progress = pm.seed_progress(
            self._horses, existing.horse_progress if existing else None
        )
        logger.info(
            f"Routine {self.instance_id} at step {self._current_index + 1}/"
            f"{len(self._steps)} '{step.name}' with {len(self._horses)} horses"
        )
        return self._publish_step()

    def _publish_step(self) -> FlowState:
        return self._set_state(
            StepExecution(
                step_index=self._current_index,
                step=self._steps[self._current_index],
                total_steps=len(self._steps),
                horses=list(self._horses),
                horse_progress=dict(self._progress),
            )
        )

    def _mutate(
        self,
        action: str,
        update: Callable[[pm.HorseProgressMap], Dict[str, HorseStepProgress]],
        horse_id: Optional[str] = None,
    ) -> FlowState:
        if not isinstance(self._state, StepExecution):
            logger.warning(
                f"Routine {self.instance_id}: {action} ignored in state {self._state.kind}"
            )
            return self._state
        if self._submitting:
            logger.warning(
                f"Routine {self.instance_id}: {action} ignored while step is being saved"
            )
            return self._state
        if horse_id is not None and horse_id not in self._progress:
            logger.warning(
                f"Routine {self.instance_id}: {action} ignored for horse {horse_id} "
                f"outside step {self._state.step.id}"
            )
            return self._state
        self._progress = update(self._progress)
        return self._publish_step()

    def mark_horse_done(self, horse_id: str) -> FlowState:
        return self._mutate(
            "mark done",
            lambda p: pm.mark_done(p, horse_id, completed_by=self.actor),
            horse_id,
        )

    def mark_horse_skipped(self, horse_id: str, reason: Optional[str] = None) -> FlowState:
        reason = reason if reason and reason.strip() else self.messages.default_skip_reason
        return self._mutate(
            "mark skipped",
            lambda p: pm.mark_skipped(p, horse_id, reason, completed_by=self.actor),
            horse_id,
        )

    def update_horse_notes(self, horse_id: str, notes: Optional[str]) -> FlowState:
        return self._mutate(
            "update notes", lambda p: pm.set_notes(p, horse_id, notes), horse_id
        )

    def set_feeding_confirmed(self, horse_id: str, confirmed: bool = True) -> FlowState:
        return self._mutate(
            "confirm feeding",
            lambda p: pm.set_feeding_confirmed(p, horse_id, confirmed),
            horse_id,
        )

    def set_medication_given(self, horse_id: str) -> FlowState:
        return self._mutate(
            "medication given", lambda p: pm.set_medication_given(p, horse_id), horse_id
        )

    def set_medication_skipped(self, horse_id: str) -> FlowState:
        return self._mutate(
            "medication skipped", lambda p: pm.set_medication_skipped(p, horse_id), horse_id
        )

    def set_blanket_action(
        self, horse_id: str, action: Union[BlanketAction, str]
    ) -> FlowState:
        return self._mutate(
            "blanket action", lambda p: pm.set_blanket_action(p, horse_id, action), horse_id
        )

    def mark_all_remaining_as_done(self) -> FlowState:
        return self._mutate(
            "mark all done",
            lambda p: pm.mark_all_remaining_done(p, self._horses, completed_by=self.actor),
        )

    def can_proceed(self) -> bool:
        if not isinstance(self._state, StepExecution):
            return False
        return pm.can_proceed(self._state.step, self._horses, self._progress)

    def can_skip(self) -> bool:
        if not isinstance(self._state, StepExecution) or self._template is None:
            return False
        return self._template.allow_skip_steps

    async def complete_current_step(self, notes: Optional[str] = None) -> FlowState:
        """Submit the whole horse progress map for the current step and advance.

        ``can_proceed`` is not checked here; the store decides whether the
        submission is acceptable.
        """
        return await self._submit(
            lambda: CompleteStepBody(
                status=StepStatus.COMPLETED,
                horse_progress=dict(self._progress) or None,
                general_notes=notes,
            )
        )

    async def skip_current_step(self, reason: Optional[str] = None) -> FlowState:
        """Submit the current step as skipped, without horse progress, and advance."""
        return await self._submit(
            lambda: CompleteStepBody(status=StepStatus.SKIPPED, general_notes=reason)
        )

    async def _submit(self, build_body: Callable[[], CompleteStepBody]) -> FlowState:
        if not isinstance(self._state, StepExecution):
            logger.warning(
                f"Routine {self.instance_id}: submission ignored in state {self._state.kind}"
            )
            return self._state
        step_index = self._current_index
        step = self._steps[step_index]

        async with self.locks.hold(self.instance_id):
            if self._current_index != step_index or not isinstance(self._state, StepExecution):
                logger.info(
                    f"Routine {self.instance_id}: dropping stale submission for step {step.id}"
                )
                return self._state

            body = build_body()
            self._submitting = True
            try:
                instance = await self.repository.complete_step(self.instance_id, step.id, body)
            except Exception as e:
                return self._fail(self.messages.submit_failed, e)
            finally:
                self._submitting = False

            self._instance = instance
            logger.info(
                f"Routine {self.instance_id} step {step.id} {body.status.value}; "
                f"{instance.progress.percent_complete}% complete"
            )
            self._current_index = step_index + 1
            return await self._show_current_step()

    async def _finalize(self) -> FlowState:
        self._set_state(Completing())
        try:
            instance = await self.repository.complete_instance(self.instance_id)
        except Exception as e:
            return self._fail(self.messages.finalize_failed, e)
        self._instance = instance
        logger.info(f"Routine {self.instance_id} completed")
        return self._set_state(Completed(instance=instance))
