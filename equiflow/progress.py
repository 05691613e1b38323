"""Pure progress computations for routine steps.

Nothing in this module performs I/O. Every function that "changes" a horse
progress map returns a new dict and leaves its argument untouched, so a map
already handed to an observer stays valid.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, Mapping, Optional, Sequence, Union

from .contracts import (
    BlanketAction,
    Horse,
    HorseStepProgress,
    RoutineProgress,
    RoutineStep,
    StepProgress,
    StepStatus,
    utcnow,
)

HorseProgressMap = Mapping[str, HorseStepProgress]

_FINISHED_STEP_STATUSES = (StepStatus.COMPLETED, StepStatus.SKIPPED)


# ----------------------------------------------------------------------
# Queries


def can_proceed(
    step: RoutineStep, horses: Sequence[Horse], progress: HorseProgressMap
) -> bool:
    """Return ``True`` when the step may be marked complete.

    A step with no applicable horses, or one that allows partial completion,
    can always proceed. Otherwise every horse must be completed or skipped.
    """
    if not horses or step.allow_partial_completion:
        return True
    return unmarked_count(horses, progress) == 0


def unmarked_count(horses: Iterable[Horse], progress: HorseProgressMap) -> int:
    count = 0
    for horse in horses:
        entry = progress.get(horse.id)
        if entry is None or not entry.is_finalized:
            count += 1
    return count


def completed_count(horses: Iterable[Horse], progress: HorseProgressMap) -> int:
    return sum(
        1
        for horse in horses
        if (entry := progress.get(horse.id)) is not None and entry.completed
    )


def skipped_count(horses: Iterable[Horse], progress: HorseProgressMap) -> int:
    return sum(
        1
        for horse in horses
        if (entry := progress.get(horse.id)) is not None and entry.skipped
    )


def percent_complete(steps_completed: int, steps_total: int) -> int:
    """Whole-number percentage, rounding halves up."""
    if steps_total <= 0:
        return 0
    # floor(100 * c / t + 0.5) in integer arithmetic
    return (steps_completed * 200 + steps_total) // (2 * steps_total)


def resume_index(steps: Sequence[RoutineStep], progress: RoutineProgress) -> int:
    """Index of the first step, in ``order``, that is not completed.

    Returns ``len(steps)`` when every step is completed.
    """
    ordered = sorted(steps, key=lambda step: step.order)
    for index, step in enumerate(ordered):
        entry = progress.step_progress.get(step.id)
        if entry is None or entry.status != StepStatus.COMPLETED:
            return index
    return len(ordered)


# ----------------------------------------------------------------------
# Seeding and aggregation


def blank_progress(horse: Horse) -> HorseStepProgress:
    return HorseStepProgress(horse_id=horse.id, horse_name=horse.name)


def seed_progress(
    horses: Sequence[Horse], existing: Optional[HorseProgressMap] = None
) -> Dict[str, HorseStepProgress]:
    """Build the working map for a step.

    Entries already recorded for a horse win; horses without one get a blank,
    incomplete entry.
    """
    existing = existing or {}
    seeded: Dict[str, HorseStepProgress] = {}
    for horse in horses:
        entry = existing.get(horse.id)
        seeded[horse.id] = entry if entry is not None else blank_progress(horse)
    return seeded


def summarize_step(step_progress: StepProgress) -> StepProgress:
    """Return a copy with ``horsesCompleted``/``horsesTotal`` recounted."""
    entries = step_progress.horse_progress.values()
    return step_progress.model_copy(
        update={
            "horses_completed": sum(1 for entry in entries if entry.is_finalized),
            "horses_total": len(step_progress.horse_progress),
        }
    )


def recompute_progress(progress: RoutineProgress) -> RoutineProgress:
    """Recount finished steps and the overall percentage."""
    steps_total = progress.steps_total or len(progress.step_progress)
    steps_completed = sum(
        1
        for entry in progress.step_progress.values()
        if entry.status in _FINISHED_STEP_STATUSES
    )
    return progress.model_copy(
        update={
            "steps_completed": steps_completed,
            "steps_total": steps_total,
            "percent_complete": percent_complete(steps_completed, steps_total),
        }
    )


# ----------------------------------------------------------------------
# Mutators (copy-on-write)


def _entry(progress: HorseProgressMap, horse_id: str) -> HorseStepProgress:
    entry = progress.get(horse_id)
    if entry is None:
        return HorseStepProgress(horse_id=horse_id)
    return entry


def _replace(
    progress: HorseProgressMap, horse_id: str, **changes
) -> Dict[str, HorseStepProgress]:
    updated = dict(progress)
    updated[horse_id] = _entry(progress, horse_id).model_copy(update=changes)
    return updated


def mark_done(
    progress: HorseProgressMap,
    horse_id: str,
    now: Optional[datetime] = None,
    completed_by: Optional[str] = None,
) -> Dict[str, HorseStepProgress]:
    changes = {"completed": True, "skipped": False, "completed_at": now or utcnow()}
    if completed_by is not None:
        changes["completed_by"] = completed_by
    return _replace(progress, horse_id, **changes)


def mark_skipped(
    progress: HorseProgressMap,
    horse_id: str,
    reason: str = "",
    now: Optional[datetime] = None,
    completed_by: Optional[str] = None,
) -> Dict[str, HorseStepProgress]:
    changes = {
        "skipped": True,
        "completed": False,
        "skip_reason": reason,
        "completed_at": now or utcnow(),
    }
    if completed_by is not None:
        changes["completed_by"] = completed_by
    return _replace(progress, horse_id, **changes)


def mark_all_remaining_done(
    progress: HorseProgressMap,
    horses: Optional[Sequence[Horse]] = None,
    now: Optional[datetime] = None,
    completed_by: Optional[str] = None,
) -> Dict[str, HorseStepProgress]:
    """Mark every horse that is neither completed nor skipped as done.

    Finalized entries, skips included, are left as they are.
    """
    now = now or utcnow()
    horse_ids = [horse.id for horse in horses] if horses is not None else list(progress)
    updated = dict(progress)
    for horse_id in horse_ids:
        if _entry(updated, horse_id).is_finalized:
            continue
        updated = mark_done(updated, horse_id, now=now, completed_by=completed_by)
    return updated


def set_notes(
    progress: HorseProgressMap, horse_id: str, notes: Optional[str]
) -> Dict[str, HorseStepProgress]:
    return _replace(progress, horse_id, notes=notes)


def set_feeding_confirmed(
    progress: HorseProgressMap, horse_id: str, confirmed: bool = True
) -> Dict[str, HorseStepProgress]:
    return _replace(progress, horse_id, feeding_confirmed=confirmed)


def set_medication_given(
    progress: HorseProgressMap, horse_id: str
) -> Dict[str, HorseStepProgress]:
    return _replace(progress, horse_id, medication_given=True, medication_skipped=False)


def set_medication_skipped(
    progress: HorseProgressMap, horse_id: str
) -> Dict[str, HorseStepProgress]:
    return _replace(progress, horse_id, medication_skipped=True, medication_given=False)


def set_blanket_action(
    progress: HorseProgressMap,
    horse_id: str,
    action: Union[BlanketAction, str],
) -> Dict[str, HorseStepProgress]:
    return _replace(progress, horse_id, blanket_action=BlanketAction(action))
