"""Command line interface for inspecting and administering routines."""

from __future__ import annotations

import asyncio
from datetime import date, datetime
from typing import Optional

import typer

from equiflow.config import load_config
from equiflow.detail import Loaded, RoutineInstanceDetail
from equiflow.errors import EquiflowError, NotFoundError
from equiflow.persistence import get_repository
from equiflow.templates import standard_templates

app = typer.Typer(help="CLI for equiflow stable routines")

# Command groups
routine_app = typer.Typer(help="Commands for routine templates and instances")

app.add_typer(routine_app, name="routine")


@app.callback()
def main() -> None:
    """equiflow CLI entry point."""
    pass


def _run(repo, awaitable):
    """Run ``awaitable`` and close the repository connection afterwards."""

    async def run():
        try:
            return await awaitable
        finally:
            disconnect = getattr(repo, "disconnect", None)
            if disconnect is not None:
                await disconnect()

    return asyncio.run(run())


def _parse_day(value: Optional[str]) -> Optional[date]:
    if value is None:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        typer.secho(f"Invalid date '{value}', expected YYYY-MM-DD", fg=typer.colors.RED)
        raise typer.Exit(code=2)


@routine_app.command("templates")
def routine_templates(
    organization_id: str,
    standard: bool = typer.Option(
        False, help="Show the built-in standard templates instead of stored ones"
    ),
) -> None:
    """
    List routine templates for an organization.

    Example:
        equiflow routine templates org-1
        # Output: org-1-morning    Morgonpass    06:30    5 steps
    """
    if standard:
        templates = standard_templates(organization_id)
    else:
        repo = get_repository()
        try:
            templates = _run(repo, repo.fetch_templates(organization_id))
        except EquiflowError as e:
            typer.secho(f"Failed to fetch templates: {e}", fg=typer.colors.RED)
            raise typer.Exit(code=1)
    if not templates:
        typer.echo("No templates found")
        return
    for template in templates:
        typer.echo(
            f"{template.id}\t{template.name}\t{template.default_start_time}"
            f"\t{len(template.steps)} steps"
        )


@routine_app.command("list")
def routine_list(
    stable_id: str,
    day: Optional[str] = typer.Option(None, "--date", help="Day as YYYY-MM-DD"),
) -> None:
    """
    List routine instances scheduled for a stable.

    Example:
        equiflow routine list stable-1 --date 2024-05-01
        # Output: inst-1    Morgonpass    2024-05-01 06:30    in_progress    40%
    """
    repo = get_repository()
    try:
        instances = _run(repo, repo.fetch_instances(stable_id, _parse_day(day)))
    except EquiflowError as e:
        typer.secho(f"Failed to fetch routines: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    if not instances:
        typer.echo("No routines found")
        return
    for inst in instances:
        typer.echo(
            f"{inst.id}\t{inst.template_name}\t{inst.scheduled_day} {inst.scheduled_start_time}"
            f"\t{inst.status.value}\t{inst.progress.percent_complete}%"
        )


@routine_app.command("show")
def routine_show(instance_id: str) -> None:
    """
    Show a routine instance with per-step progress.

    Example:
        equiflow routine show inst-1
        # Output: Routine inst-1 (Morgonpass): in_progress, 1/5 steps, 20%
        #         - 1. Läs dagens notiser: completed
        #         - 2. Morgonfodring: pending (0/4 horses)
    """
    repo = get_repository()
    try:
        inst = _run(repo, repo.fetch_instance(instance_id))
    except NotFoundError:
        typer.echo("Routine not found")
        raise typer.Exit(code=1)
    except EquiflowError as e:
        typer.secho(f"Failed to fetch routine: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    progress = inst.progress
    typer.echo(
        f"Routine {inst.id} ({inst.template_name}): {inst.status.value}, "
        f"{progress.steps_completed}/{progress.steps_total} steps, "
        f"{progress.percent_complete}%"
    )
    if inst.cancellation_reason:
        typer.echo(f"Cancelled: {inst.cancellation_reason}")
    steps = inst.template.sorted_steps() if inst.template else []
    for step in steps:
        entry = inst.step_progress_for(step.id)
        status = entry.status.value if entry else "pending"
        horses = (
            f" ({entry.horses_completed}/{entry.horses_total} horses)"
            if entry and entry.horses_total
            else ""
        )
        typer.echo(f"- {step.order}. {step.name}: {status}{horses}")


@routine_app.command("cancel")
def routine_cancel(
    instance_id: str,
    reason: Optional[str] = typer.Option(None, help="Why the routine is cancelled"),
) -> None:
    """Cancel a routine instance that has not finished yet."""
    detail = RoutineInstanceDetail(instance_id, get_repository(), config=load_config())

    async def run():
        state = await detail.load()
        if isinstance(state, Loaded):
            state = await detail.cancel(reason)
        return state

    state = _run(detail.repository, run())
    if not isinstance(state, Loaded):
        typer.secho(f"{state.message}: {state.detail}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(f"Routine {instance_id} cancelled: {state.instance.cancellation_reason}")


@routine_app.command("restart")
def routine_restart(instance_id: str) -> None:
    """Return a cancelled routine instance to scheduled."""
    detail = RoutineInstanceDetail(instance_id, get_repository(), config=load_config())
    state = _run(detail.repository, detail.restart())
    if not isinstance(state, Loaded):
        typer.secho(f"{state.message}: {state.detail}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(f"Routine {instance_id} is {state.instance.status.value}")


@app.command("notes")
def daily_notes(
    stable_id: str,
    day: Optional[str] = typer.Option(None, "--date", help="Day as YYYY-MM-DD"),
) -> None:
    """
    Show the daily notes and alerts for a stable.

    Example:
        equiflow notes stable-1 --date 2024-05-01
        # Output: [critical] Hovslagare: Blixt ska inte ut idag
        #         Blixt: Halt på vänster fram
    """
    repo = get_repository()
    try:
        notes = _run(
            repo,
            repo.fetch_daily_notes(stable_id, _parse_day(day) or date.today()),
        )
    except EquiflowError as e:
        typer.secho(f"Failed to fetch daily notes: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    if notes is None or not (notes.has_content() or notes.general_notes):
        typer.echo("No daily notes")
        return
    if notes.general_notes:
        typer.echo(notes.general_notes)
    for alert in notes.active_alerts():
        typer.echo(f"[{alert.priority.value}] {alert.title}: {alert.message}")
    for note in notes.horse_notes:
        typer.echo(f"{note.horse_name or note.horse_id}: {note.note}")


if __name__ == "__main__":
    app()
