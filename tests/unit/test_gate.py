from equiflow.contracts import DailyAlert, DailyNotes, HorseDailyNote
from equiflow.gate import DailyNotesGate


def _notes(**kwargs) -> DailyNotes:
    return DailyNotes(stable_id="s1", date="2024-05-01", **kwargs)


def test_gate_open_without_notes():
    assert not DailyNotesGate(None).requires_acknowledgment()
    assert not DailyNotesGate(_notes(general_notes="Rain")).requires_acknowledgment()


def test_gate_requires_acknowledgment_for_alerts_and_horse_notes():
    assert DailyNotesGate(_notes(alerts=[DailyAlert(title="Vet")])).requires_acknowledgment()
    gate = DailyNotesGate(_notes(horse_notes=[HorseDailyNote(horse_id="h1", note="Lame")]))
    assert gate.requires_acknowledgment()

    gate.acknowledge()
    assert gate.acknowledged
    assert not gate.requires_acknowledgment()
