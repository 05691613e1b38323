"""Tests for the REST repository using an in-process transport."""

import json
from datetime import date

import httpx
import pytest

from equiflow.contracts import CompleteStepBody, HorseStepProgress, StepStatus
from equiflow.errors import InvalidTransitionError, NotFoundError, RoutineApiError
from equiflow.persistence import HttpRoutineRepository

INSTANCE = {
    "id": "inst-1",
    "templateId": "tpl-1",
    "stableId": "stable-1",
    "scheduledDate": "2024-05-01",
    "status": "in_progress",
    "progress": {"stepsCompleted": 1, "stepsTotal": 2, "percentComplete": 50},
}


def _repo(handler) -> HttpRoutineRepository:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="https://api.test"
    )
    return HttpRoutineRepository("https://api.test", client=client)


@pytest.mark.asyncio
async def test_connect_sets_bearer_token():
    repo = HttpRoutineRepository("https://api.test/", token="abc")
    await repo.connect()
    try:
        assert repo._client.headers["Authorization"] == "Bearer abc"
    finally:
        await repo.disconnect()


@pytest.mark.asyncio
async def test_fetch_instances_passes_date_and_unwraps():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["date"] = request.url.params.get("date")
        return httpx.Response(200, json={"routineInstances": [INSTANCE]})

    instances = await _repo(handler).fetch_instances("stable-1", date(2024, 5, 1))
    assert seen == {"path": "/api/v1/routines/instances/stable/stable-1", "date": "2024-05-01"}
    assert instances[0].id == "inst-1"
    assert instances[0].progress.percent_complete == 50


@pytest.mark.asyncio
async def test_fetch_instance_accepts_raw_and_wrapped_payloads():
    responses = [INSTANCE, {"instance": INSTANCE}]

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=responses.pop(0))

    repo = _repo(handler)
    assert (await repo.fetch_instance("inst-1")).id == "inst-1"
    assert (await repo.fetch_instance("inst-1")).id == "inst-1"


@pytest.mark.asyncio
async def test_complete_step_sends_horse_updates_list():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["method"] = request.method
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"instance": INSTANCE})

    body = CompleteStepBody(
        horse_progress={
            "h1": HorseStepProgress(horse_id="h1", completed=True),
            "h2": HorseStepProgress(horse_id="h2", skipped=True, skip_reason="lame"),
        },
        general_notes="All fed",
    )
    await _repo(handler).complete_step("inst-1", "feed", body)

    assert captured["method"] == "PUT"
    assert captured["path"] == "/api/v1/routines/instances/inst-1/progress"
    sent = captured["body"]
    assert sent["stepId"] == "feed"
    assert sent["status"] == "completed"
    assert sent["generalNotes"] == "All fed"
    assert [u["horseId"] for u in sent["horseUpdates"]] == ["h1", "h2"]
    assert sent["horseUpdates"][1]["skipReason"] == "lame"


@pytest.mark.asyncio
async def test_skip_step_sends_no_horse_updates():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"instance": INSTANCE})

    body = CompleteStepBody(status=StepStatus.SKIPPED, general_notes="No time")
    await _repo(handler).complete_step("inst-1", "water", body)
    assert captured["body"]["status"] == "skipped"
    assert "horseUpdates" not in captured["body"]


@pytest.mark.asyncio
async def test_start_instance_posts_acknowledgment_flag():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"instance": {**INSTANCE, "status": "started"}})

    instance = await _repo(handler).start_instance("inst-1", daily_notes_acknowledged=True)
    assert captured["path"] == "/api/v1/routines/instances/inst-1/start"
    assert captured["body"] == {"instanceId": "inst-1", "dailyNotesAcknowledged": True}
    assert instance.status.value == "started"


@pytest.mark.asyncio
async def test_daily_notes_absent_on_404_or_null():
    responses = [
        httpx.Response(404, json={"error": "Not found"}),
        httpx.Response(200, json={"dailyNotes": None}),
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/v1/stables/stable-1/daily-notes/2024-05-01"
        return responses.pop(0)

    repo = _repo(handler)
    assert await repo.fetch_daily_notes("stable-1", date(2024, 5, 1)) is None
    assert await repo.fetch_daily_notes("stable-1", date(2024, 5, 1)) is None


@pytest.mark.asyncio
async def test_daily_notes_parsed():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "dailyNotes": {
                    "stableId": "stable-1",
                    "date": "2024-05-01",
                    "alerts": [{"title": "Farrier", "priority": "critical"}],
                }
            },
        )

    notes = await _repo(handler).fetch_daily_notes("stable-1", date(2024, 5, 1))
    assert notes.has_critical_alerts()


@pytest.mark.asyncio
async def test_status_errors_map_to_taxonomy():
    responses = [
        httpx.Response(404, json={"error": "Routine instance not found"}),
        httpx.Response(400, json={"error": "Cannot cancel routine with status: completed"}),
        httpx.Response(503, text="unavailable"),
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    repo = _repo(handler)
    with pytest.raises(NotFoundError):
        await repo.fetch_instance("missing")
    with pytest.raises(InvalidTransitionError) as exc:
        await repo.cancel_instance("inst-1", "Sick")
    assert "completed" in exc.value.message
    with pytest.raises(RoutineApiError) as exc:
        await repo.complete_instance("inst-1")
    assert exc.value.status_code == 503


@pytest.mark.asyncio
async def test_transport_error_becomes_api_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RoutineApiError):
        await _repo(handler).fetch_templates("org-1")


@pytest.mark.asyncio
async def test_horse_lookups():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/v1/horses":
            assert request.url.params["stableId"] == "stable-1"
            return httpx.Response(
                200,
                json={
                    "horses": [
                        {"id": "h1", "name": "Blixt", "horseGroupId": "g1"},
                        {"id": "h2", "name": "Stjärna", "horseGroupId": "g2"},
                    ]
                },
            )
        if request.url.path == "/api/v1/horses/h1":
            return httpx.Response(200, json={"horse": {"id": "h1", "name": "Blixt"}})
        return httpx.Response(404, json={"error": "Horse not found"})

    repo = _repo(handler)
    assert [h.id for h in await repo.get_horses_by_ids(["h1", "gone"])] == ["h1"]
    assert [h.id for h in await repo.get_horses_by_groups("stable-1", ["g2"])] == ["h2"]
