"""Walk through a standard morning routine using the in-memory store."""

import asyncio
import logging
from datetime import date

from equiflow import RoutineFlow
from equiflow.config import load_config
from equiflow.contracts import DailyAlert, DailyNotes, Horse, NotePriority
from equiflow.flow import Completed, DailyNotesAcknowledgment, Error, StepExecution
from equiflow.persistence import InMemoryRoutineRepository
from equiflow.templates import standard_templates


async def main():
    """Run every step of the morning routine for a small stable."""
    logging.basicConfig(level=logging.INFO)

    # Seed a local store with horses, the standard templates and today's notes
    repo = InMemoryRoutineRepository(actor="anna")
    repo.add_horses(
        [
            Horse(id="h1", name="Blixt", current_stable_id="stable-1"),
            Horse(id="h2", name="Stjärna", current_stable_id="stable-1"),
        ]
    )
    templates = [repo.add_template(t) for t in standard_templates("org-1")]
    today = date.today()
    instance = repo.schedule_instance(templates[0].id, "stable-1", today)
    repo.set_daily_notes(
        DailyNotes(
            stable_id="stable-1",
            date=today.isoformat(),
            alerts=[
                DailyAlert(
                    title="Hovslagare",
                    message="Blixt ska stå inne till kl 10",
                    priority=NotePriority.WARNING,
                    affected_horse_ids=["h1"],
                )
            ],
        )
    )

    flow = RoutineFlow(instance.id, repo, config=load_config(), actor="anna")
    flow.subscribe(lambda state: print(f"→ {state.kind}"))

    state = await flow.load()
    if isinstance(state, DailyNotesAcknowledgment):
        for alert in state.notes.alerts:
            print(f"⚠️  {alert.title}: {alert.message}")
        state = await flow.acknowledge_daily_notes()

    while isinstance(state, StepExecution):
        print(f"📋 Step {state.step_index + 1}/{state.total_steps}: {state.step.name}")
        if state.step.show_feeding:
            for horse in state.horses:
                flow.set_feeding_confirmed(horse.id)
        flow.mark_all_remaining_as_done()
        state = await flow.complete_current_step()

    if isinstance(state, Completed):
        print(f"✅ Routine done: {state.instance.progress.percent_complete}%")
    elif isinstance(state, Error):
        print(f"❌ {state.message}: {state.detail}")


if __name__ == "__main__":
    asyncio.run(main())
