"""Core data contracts for stable routines."""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WireEnum(str, Enum):
    """String enum that accepts its values case-insensitively."""

    @classmethod
    def _missing_(cls, value: object) -> Optional["WireEnum"]:
        if isinstance(value, str):
            lowered = value.lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return None


class RoutineInstanceStatus(WireEnum):
    SCHEDULED = "scheduled"
    STARTED = "started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    MISSED = "missed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES


_TERMINAL_STATUSES = frozenset(
    {
        RoutineInstanceStatus.COMPLETED,
        RoutineInstanceStatus.CANCELLED,
        RoutineInstanceStatus.MISSED,
    }
)


class StepStatus(WireEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"


class HorseContext(WireEnum):
    """Which horses a step applies to."""

    ALL = "all"
    SPECIFIC = "specific"
    GROUPS = "groups"
    NONE = "none"


class BlanketAction(WireEnum):
    ON = "on"
    OFF = "off"
    UNCHANGED = "unchanged"


class NotePriority(WireEnum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class DailyNoteCategory(WireEnum):
    MEDICATION = "medication"
    HEALTH = "health"
    FEEDING = "feeding"
    BLANKET = "blanket"
    BEHAVIOR = "behavior"
    OTHER = "other"


class RoutineCategory(WireEnum):
    PREPARATION = "preparation"
    FEEDING = "feeding"
    MEDICATION = "medication"
    BLANKET = "blanket"
    TURNOUT = "turnout"
    BRING_IN = "bring_in"
    MUCKING = "mucking"
    WATER = "water"
    HEALTH_CHECK = "health_check"
    SAFETY = "safety"
    CLEANING = "cleaning"
    OTHER = "other"


class RoutineType(WireEnum):
    MORNING = "morning"
    MIDDAY = "midday"
    EVENING = "evening"
    CUSTOM = "custom"


class RoutineAssignmentType(WireEnum):
    AUTO = "auto"
    MANUAL = "manual"
    SELF = "self"
    UNASSIGNED = "unassigned"


class HorseStatus(WireEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class WireModel(BaseModel):
    """Base model using camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        """Serialize to a JSON-compatible dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ----------------------------------------------------------------------
# Horses


class Horse(WireModel):
    """A horse as seen by the routine engine."""

    id: str
    name: str = ""
    current_stable_id: Optional[str] = None
    status: HorseStatus = HorseStatus.ACTIVE
    horse_group_id: Optional[str] = None
    horse_group_name: Optional[str] = None
    special_instructions: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == HorseStatus.ACTIVE


# ----------------------------------------------------------------------
# Templates


class HorseFilter(WireModel):
    """Narrows which horses a step applies to."""

    horse_ids: List[str] = Field(default_factory=list)
    group_ids: List[str] = Field(default_factory=list)
    location_ids: List[str] = Field(default_factory=list)
    exclude_horse_ids: List[str] = Field(default_factory=list)


class RoutineStep(WireModel):
    """One unit of work within a routine."""

    id: str
    order: int
    name: str = ""
    description: Optional[str] = None
    category: RoutineCategory = RoutineCategory.OTHER
    icon: Optional[str] = None
    horse_context: HorseContext = HorseContext.NONE
    horse_filter: Optional[HorseFilter] = None
    show_feeding: bool = False
    show_medication: bool = False
    show_special_instructions: bool = False
    show_blanket_status: bool = False
    requires_confirmation: bool = True
    allow_partial_completion: bool = False
    allow_photo_evidence: bool = False
    estimated_minutes: Optional[int] = None
    feeding_time_id: Optional[str] = None


class EmbeddedRoutineTemplate(WireModel):
    """Frozen copy of a template's steps stored on an instance."""

    name: str = ""
    description: Optional[str] = None
    type: RoutineType = RoutineType.CUSTOM
    estimated_duration: int = 0
    requires_notes_read: bool = True
    allow_skip_steps: bool = True
    steps: List[RoutineStep] = Field(default_factory=list)

    def sorted_steps(self) -> List[RoutineStep]:
        return sorted(self.steps, key=lambda step: step.order)


class RoutineTemplate(WireModel):
    """Reusable, ordered definition of care steps."""

    id: str
    organization_id: str
    stable_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    type: RoutineType = RoutineType.CUSTOM
    icon: Optional[str] = None
    color: Optional[str] = None
    default_start_time: str = "07:00"
    estimated_duration: int = 0
    steps: List[RoutineStep] = Field(default_factory=list)
    requires_notes_read: bool = True
    allow_skip_steps: bool = True
    points_value: int = 1
    is_active: bool = True
    created_at: Optional[datetime] = None
    created_by: Optional[str] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _check_unique_order(self) -> "RoutineTemplate":
        orders = [step.order for step in self.steps]
        if len(orders) != len(set(orders)):
            raise ValueError(f"Step order must be unique within template {self.id}")
        return self

    def sorted_steps(self) -> List[RoutineStep]:
        return sorted(self.steps, key=lambda step: step.order)

    def snapshot(self) -> EmbeddedRoutineTemplate:
        """Return the frozen step snapshot embedded into scheduled instances."""
        return EmbeddedRoutineTemplate(
            name=self.name,
            description=self.description,
            type=self.type,
            estimated_duration=self.estimated_duration,
            requires_notes_read=self.requires_notes_read,
            allow_skip_steps=self.allow_skip_steps,
            steps=[step.model_copy(deep=True) for step in self.sorted_steps()],
        )


# ----------------------------------------------------------------------
# Progress


class HorseStepProgress(WireModel):
    """Per-horse outcome for one step.

    Instances are immutable; updates go through ``model_copy`` so that a
    progress map handed to observers never changes underneath them.
    """

    model_config = ConfigDict(frozen=True)

    horse_id: str
    horse_name: str = ""
    completed: bool = False
    skipped: bool = False
    skip_reason: Optional[str] = None
    notes: Optional[str] = None
    photo_urls: List[str] = Field(default_factory=list)
    feeding_confirmed: Optional[bool] = None
    medication_given: Optional[bool] = None
    medication_skipped: Optional[bool] = None
    blanket_action: Optional[BlanketAction] = None
    completed_at: Optional[datetime] = None
    completed_by: Optional[str] = None

    @model_validator(mode="after")
    def _check_exclusive(self) -> "HorseStepProgress":
        if self.completed and self.skipped:
            raise ValueError(
                f"Horse {self.horse_id} cannot be both completed and skipped"
            )
        return self

    @property
    def is_finalized(self) -> bool:
        return self.completed or self.skipped


class StepProgress(WireModel):
    """Progress of a single step, including per-horse entries."""

    step_id: str
    status: StepStatus = StepStatus.PENDING
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    general_notes: Optional[str] = None
    photo_urls: List[str] = Field(default_factory=list)
    horse_progress: Dict[str, HorseStepProgress] = Field(default_factory=dict)
    horses_completed: int = 0
    horses_total: int = 0


class RoutineProgress(WireModel):
    """Instance-level aggregate of step progress."""

    steps_completed: int = 0
    steps_total: int = 0
    percent_complete: int = 0
    step_progress: Dict[str, StepProgress] = Field(default_factory=dict)


# ----------------------------------------------------------------------
# Instances


class RoutineInstance(WireModel):
    """A scheduled occurrence of a routine template."""

    id: str
    schedule_id: Optional[str] = None
    template_id: str
    template_name: str = ""
    organization_id: str = ""
    stable_id: str
    stable_name: Optional[str] = None
    template: Optional[EmbeddedRoutineTemplate] = None

    scheduled_date: Union[datetime, date]
    scheduled_start_time: str = ""
    estimated_duration: int = 0

    assigned_to: Optional[str] = None
    assigned_to_name: Optional[str] = None
    assignment_type: RoutineAssignmentType = RoutineAssignmentType.AUTO

    status: RoutineInstanceStatus = RoutineInstanceStatus.SCHEDULED
    started_at: Optional[datetime] = None
    started_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    completed_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None

    current_step_id: Optional[str] = None
    current_step_order: Optional[int] = None
    progress: RoutineProgress = Field(default_factory=RoutineProgress)

    points_value: int = 0
    points_awarded: Optional[int] = None
    daily_notes_acknowledged: bool = False
    notes: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def scheduled_day(self) -> date:
        """Calendar day the instance is scheduled for."""
        if isinstance(self.scheduled_date, datetime):
            return self.scheduled_date.date()
        return self.scheduled_date

    def step_progress_for(self, step_id: str) -> Optional[StepProgress]:
        return self.progress.step_progress.get(step_id)


# ----------------------------------------------------------------------
# Daily notes


class HorseDailyNote(WireModel):
    id: str = ""
    horse_id: str
    horse_name: str = ""
    note: str = ""
    priority: NotePriority = NotePriority.INFO
    category: Optional[DailyNoteCategory] = None
    created_by: Optional[str] = None


class DailyAlert(WireModel):
    id: str = ""
    title: str = ""
    message: str = ""
    priority: NotePriority = NotePriority.INFO
    affected_horse_ids: List[str] = Field(default_factory=list)
    affected_horse_names: List[str] = Field(default_factory=list)
    expires_at: Optional[datetime] = None
    created_by: Optional[str] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or utcnow()
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return expires_at < now


class DailyNotes(WireModel):
    """Per-stable, per-date notes and alerts. Read-only for the engine."""

    id: str = ""
    organization_id: str = ""
    stable_id: str
    date: str
    general_notes: Optional[str] = None
    weather_notes: Optional[str] = None
    horse_notes: List[HorseDailyNote] = Field(default_factory=list)
    alerts: List[DailyAlert] = Field(default_factory=list)

    def active_alerts(self, now: Optional[datetime] = None) -> List[DailyAlert]:
        return [alert for alert in self.alerts if not alert.is_expired(now)]

    def has_content(self, now: Optional[datetime] = None) -> bool:
        """Return ``True`` when there is any horse note or live alert."""
        return bool(self.horse_notes) or bool(self.active_alerts(now))

    def has_critical_alerts(self, now: Optional[datetime] = None) -> bool:
        return any(
            alert.priority == NotePriority.CRITICAL
            for alert in self.active_alerts(now)
        )

    def notes_for_horse(self, horse_id: str) -> "HorseNotes":
        return HorseNotes(
            notes=[n for n in self.horse_notes if n.horse_id == horse_id],
            alerts=[a for a in self.alerts if horse_id in a.affected_horse_ids],
        )


class HorseNotes(BaseModel):
    """Notes and alerts concerning a single horse."""

    notes: List[HorseDailyNote] = Field(default_factory=list)
    alerts: List[DailyAlert] = Field(default_factory=list)

    @property
    def has_notes(self) -> bool:
        return bool(self.notes) or bool(self.alerts)


# ----------------------------------------------------------------------
# Requests


class CompleteStepBody(WireModel):
    """Payload submitted when a step is completed or skipped."""

    status: StepStatus = StepStatus.COMPLETED
    horse_progress: Optional[Dict[str, HorseStepProgress]] = None
    general_notes: Optional[str] = None
    photo_urls: Optional[List[str]] = None
