"""Runs a standard morning routine end to end against the in-memory store."""

from datetime import date

import pytest

from equiflow.contracts import (
    BlanketAction,
    DailyNotes,
    Horse,
    HorseDailyNote,
    HorseFilter,
    RoutineInstanceStatus,
    StepStatus,
)
from equiflow.flow import Completed, DailyNotesAcknowledgment, RoutineFlow, StepExecution
from equiflow.persistence import InMemoryRoutineRepository
from equiflow.resolver import HorseContextResolver, HorseRoster
from equiflow.templates import standard_templates
from equiflow.utils.locks import KeyedLock


@pytest.mark.asyncio
async def test_standard_morning_routine(config):
    repo = InMemoryRoutineRepository(actor="anna")
    repo.add_horses(
        [
            Horse(id="h1", name="Blixt", current_stable_id="stable-1"),
            Horse(id="h2", name="Stjärna", current_stable_id="stable-1"),
            Horse(id="h3", name="Måne", current_stable_id="stable-1"),
        ]
    )
    morning = standard_templates("org-1")[0]
    turnout = morning.sorted_steps()[3]
    turnout.horse_filter = HorseFilter(exclude_horse_ids=["h3"])
    repo.add_template(morning)
    instance = repo.schedule_instance(morning.id, "stable-1", date(2024, 5, 1))
    repo.set_daily_notes(
        DailyNotes(
            stable_id="stable-1",
            date="2024-05-01",
            horse_notes=[HorseDailyNote(horse_id="h3", note="Stays in, lame")],
        )
    )

    flow = RoutineFlow(
        instance.id,
        repo,
        resolver=HorseContextResolver(repo, HorseRoster()),
        config=config,
        locks=KeyedLock(),
        actor="anna",
    )

    state = await flow.load()
    assert isinstance(state, DailyNotesAcknowledgment)
    assert [n.note for n in flow.horse_notes("h3").notes] == ["Stays in, lame"]
    state = await flow.acknowledge_daily_notes()

    # 1. read notes (no horses)
    assert isinstance(state, StepExecution) and state.horses == []
    state = await flow.complete_current_step()

    # 2. feeding
    assert [h.id for h in state.horses] == ["h1", "h2", "h3"]
    for horse in state.horses:
        flow.set_feeding_confirmed(horse.id)
    flow.mark_horse_skipped("h3", "Vet visit")
    flow.mark_all_remaining_as_done()
    assert flow.can_proceed()
    state = await flow.complete_current_step(notes="Hay low")

    # 3. blankets
    flow.set_blanket_action("h1", BlanketAction.OFF)
    state = await flow.complete_current_step()

    # 4. turnout excludes the lame horse
    assert [h.id for h in state.horses] == ["h1", "h2"]
    state = await flow.skip_current_step("Rain")

    # 5. water
    assert state.step.name == "Vattencheck"
    state = await flow.complete_current_step()

    assert isinstance(state, Completed)
    done = state.instance
    assert done.status is RoutineInstanceStatus.COMPLETED
    assert done.progress.percent_complete == 100
    assert done.points_awarded == 3

    feeding = done.step_progress_for("step-2")
    assert feeding.general_notes == "Hay low"
    assert feeding.horses_completed == 3
    assert feeding.horse_progress["h3"].skip_reason == "Vet visit"
    assert feeding.horse_progress["h1"].completed_by == "anna"
    assert done.step_progress_for("step-3").horse_progress["h1"].blanket_action is BlanketAction.OFF
    assert done.step_progress_for("step-4").status is StepStatus.SKIPPED
