"""Tests for routine data contracts."""

from datetime import date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from equiflow.contracts import (
    CompleteStepBody,
    DailyAlert,
    DailyNotes,
    HorseContext,
    HorseDailyNote,
    HorseStepProgress,
    NotePriority,
    RoutineInstance,
    RoutineInstanceStatus,
    RoutineStep,
    RoutineTemplate,
    StepStatus,
)


def test_enums_parse_case_insensitively():
    assert HorseContext("ALL") is HorseContext.ALL
    assert RoutineInstanceStatus("In_Progress") is RoutineInstanceStatus.IN_PROGRESS
    with pytest.raises(ValueError):
        HorseContext("everyone")


def test_terminal_statuses():
    assert RoutineInstanceStatus.COMPLETED.is_terminal
    assert RoutineInstanceStatus.CANCELLED.is_terminal
    assert RoutineInstanceStatus.MISSED.is_terminal
    assert not RoutineInstanceStatus.STARTED.is_terminal
    assert not RoutineInstanceStatus.SCHEDULED.is_terminal


def test_horse_progress_rejects_completed_and_skipped():
    with pytest.raises(ValidationError):
        HorseStepProgress(horse_id="h1", completed=True, skipped=True)


def test_horse_progress_is_immutable():
    entry = HorseStepProgress(horse_id="h1")
    with pytest.raises(ValidationError):
        entry.completed = True


def test_step_parses_camel_case_wire_payload():
    step = RoutineStep.model_validate(
        {
            "id": "s1",
            "order": 1,
            "name": "Morgonfodring",
            "horseContext": "GROUPS",
            "horseFilter": {"groupIds": ["g1"], "excludeHorseIds": ["h9"]},
            "allowPartialCompletion": True,
            "showFeeding": True,
        }
    )
    assert step.horse_context is HorseContext.GROUPS
    assert step.horse_filter.group_ids == ["g1"]
    assert step.horse_filter.exclude_horse_ids == ["h9"]
    assert step.allow_partial_completion is True
    assert step.requires_confirmation is True


def test_template_rejects_duplicate_step_order():
    with pytest.raises(ValidationError):
        RoutineTemplate(
            id="t1",
            organization_id="o1",
            name="Dup",
            steps=[RoutineStep(id="a", order=1), RoutineStep(id="b", order=1)],
        )


def test_template_snapshot_sorts_steps():
    template = RoutineTemplate(
        id="t1",
        organization_id="o1",
        name="Kvällspass",
        allow_skip_steps=False,
        steps=[RoutineStep(id="b", order=2), RoutineStep(id="a", order=1)],
    )
    snapshot = template.snapshot()
    assert [s.id for s in snapshot.steps] == ["a", "b"]
    assert snapshot.allow_skip_steps is False
    assert snapshot.name == "Kvällspass"


def test_instance_scheduled_day_from_timestamp():
    instance = RoutineInstance.model_validate(
        {
            "id": "i1",
            "templateId": "t1",
            "stableId": "s1",
            "scheduledDate": "2024-05-01T06:30:00Z",
            "status": "in_progress",
        }
    )
    assert instance.scheduled_day == date(2024, 5, 1)
    assert instance.status is RoutineInstanceStatus.IN_PROGRESS
    assert not instance.is_terminal
    assert instance.step_progress_for("missing") is None


def test_complete_step_body_serializes_camel_case():
    body = CompleteStepBody(
        horse_progress={"h1": HorseStepProgress(horse_id="h1", completed=True)},
        general_notes="ok",
    )
    wire = body.to_wire()
    assert wire["status"] == "completed"
    assert wire["generalNotes"] == "ok"
    assert wire["horseProgress"]["h1"]["horseId"] == "h1"
    assert "photoUrls" not in wire


def _notes(**kwargs) -> DailyNotes:
    return DailyNotes(stable_id="s1", date="2024-05-01", **kwargs)


def test_daily_notes_without_notes_or_alerts_has_no_content():
    assert not _notes(general_notes="Sunny").has_content()


def test_daily_notes_expired_alert_is_ignored():
    now = datetime(2024, 5, 1, 12, tzinfo=timezone.utc)
    expired = DailyAlert(title="Old", expires_at=now - timedelta(hours=1))
    live = DailyAlert(
        title="Farrier",
        priority=NotePriority.CRITICAL,
        expires_at=datetime(2024, 5, 1, 18),
    )
    assert not _notes(alerts=[expired]).has_content(now)
    notes = _notes(alerts=[expired, live])
    assert notes.active_alerts(now) == [live]
    assert notes.has_critical_alerts(now)


def test_notes_for_horse_collects_notes_and_alerts():
    notes = _notes(
        horse_notes=[
            HorseDailyNote(horse_id="h1", note="Lame"),
            HorseDailyNote(horse_id="h2", note="Fine"),
        ],
        alerts=[DailyAlert(title="Vet", affected_horse_ids=["h1"])],
    )
    horse_notes = notes.notes_for_horse("h1")
    assert [n.note for n in horse_notes.notes] == ["Lame"]
    assert [a.title for a in horse_notes.alerts] == ["Vet"]
    assert horse_notes.has_notes
    assert not notes.notes_for_horse("h3").has_notes
    assert notes.has_content()
    assert StepStatus("SKIPPED") is StepStatus.SKIPPED
