"""REST client implementation of the routine repository."""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Any, Optional, Sequence

import httpx

from ..contracts import (
    CompleteStepBody,
    DailyNotes,
    Horse,
    RoutineInstance,
    RoutineTemplate,
)
from ..errors import InvalidTransitionError, NotFoundError, RoutineApiError
from .repository import HorseDirectory, RoutineRepository

logger = logging.getLogger(__name__)

ROUTINES = "/api/v1/routines"


class HttpRoutineRepository(RoutineRepository, HorseDirectory):
    """Talk to the stable management API over HTTP."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._client = client

    async def connect(self) -> None:
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url, headers=headers, timeout=self.timeout
            )

    async def disconnect(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpRoutineRepository":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.disconnect()

    # ------------------------------------------------------------------
    # Transport helpers
    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> Any:
        if self._client is None:
            await self.connect()
        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.TransportError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise RoutineApiError(f"Network error: {e}") from e

        if response.status_code >= 400:
            message = _error_message(response)
            logger.error(f"{method} {path} returned {response.status_code}: {message}")
            if response.status_code == 404:
                raise NotFoundError(message)
            if response.status_code == 400:
                raise InvalidTransitionError(message)
            raise RoutineApiError(message, status_code=response.status_code)

        if not response.content:
            return None
        return response.json()

    # ------------------------------------------------------------------
    # Repository API
    async def fetch_templates(self, organization_id: str) -> list[RoutineTemplate]:
        data = await self._request("GET", f"{ROUTINES}/templates/organization/{organization_id}")
        items = _unwrap(data, "routineTemplates", "templates") or []
        return [RoutineTemplate.model_validate(item) for item in items]

    async def fetch_template(self, template_id: str) -> RoutineTemplate:
        data = await self._request("GET", f"{ROUTINES}/templates/{template_id}")
        return RoutineTemplate.model_validate(_unwrap(data, "routineTemplate", "template"))

    async def fetch_instances(
        self, stable_id: str, day: Optional[date] = None
    ) -> list[RoutineInstance]:
        params = {"date": day.isoformat()} if day else None
        data = await self._request(
            "GET", f"{ROUTINES}/instances/stable/{stable_id}", params=params
        )
        items = _unwrap(data, "routineInstances", "instances") or []
        return [RoutineInstance.model_validate(item) for item in items]

    async def fetch_instance(self, instance_id: str) -> RoutineInstance:
        data = await self._request("GET", f"{ROUTINES}/instances/{instance_id}")
        return _instance(data)

    async def start_instance(
        self, instance_id: str, daily_notes_acknowledged: bool = False
    ) -> RoutineInstance:
        data = await self._request(
            "POST",
            f"{ROUTINES}/instances/{instance_id}/start",
            json={
                "instanceId": instance_id,
                "dailyNotesAcknowledged": daily_notes_acknowledged,
            },
        )
        return _instance(data)

    async def complete_step(
        self, instance_id: str, step_id: str, body: CompleteStepBody
    ) -> RoutineInstance:
        payload: dict = {"instanceId": instance_id, "stepId": step_id, "status": body.status.value}
        if body.general_notes:
            payload["generalNotes"] = body.general_notes
        if body.photo_urls:
            payload["photoUrls"] = list(body.photo_urls)
        if body.horse_progress:
            payload["horseUpdates"] = [
                entry.to_wire() for entry in body.horse_progress.values()
            ]
        data = await self._request(
            "PUT", f"{ROUTINES}/instances/{instance_id}/progress", json=payload
        )
        return _instance(data)

    async def complete_instance(
        self, instance_id: str, notes: Optional[str] = None
    ) -> RoutineInstance:
        data = await self._request(
            "POST", f"{ROUTINES}/instances/{instance_id}/complete", json={"notes": notes}
        )
        return _instance(data)

    async def cancel_instance(self, instance_id: str, reason: str) -> RoutineInstance:
        data = await self._request(
            "POST", f"{ROUTINES}/instances/{instance_id}/cancel", json={"reason": reason}
        )
        return _instance(data)

    async def restart_instance(self, instance_id: str) -> RoutineInstance:
        data = await self._request("POST", f"{ROUTINES}/instances/{instance_id}/restart")
        return _instance(data)

    async def fetch_daily_notes(
        self, stable_id: str, day: date
    ) -> Optional[DailyNotes]:
        try:
            data = await self._request(
                "GET", f"/api/v1/stables/{stable_id}/daily-notes/{day.isoformat()}"
            )
        except NotFoundError:
            return None
        notes = _unwrap(data, "dailyNotes", "notes")
        if not notes:
            return None
        return DailyNotes.model_validate(notes)

    # ------------------------------------------------------------------
    # Horse directory
    async def fetch_horses(self, stable_id: str) -> list[Horse]:
        data = await self._request(
            "GET", "/api/v1/horses", params={"stableId": stable_id, "scope": "stable"}
        )
        items = _unwrap(data, "horses") or []
        return [Horse.model_validate(item) for item in items]

    async def _get_horse(self, horse_id: str) -> Optional[Horse]:
        try:
            data = await self._request("GET", f"/api/v1/horses/{horse_id}")
        except NotFoundError:
            return None
        return Horse.model_validate(_unwrap(data, "horse"))

    async def get_horses_by_ids(self, horse_ids: Sequence[str]) -> list[Horse]:
        found = await asyncio.gather(*(self._get_horse(i) for i in horse_ids))
        return [horse for horse in found if horse is not None]

    async def get_horses_by_groups(
        self, stable_id: str, group_ids: Sequence[str]
    ) -> list[Horse]:
        wanted = set(group_ids)
        return [
            horse
            for horse in await self.fetch_horses(stable_id)
            if horse.horse_group_id in wanted
        ]


def _unwrap(data: Any, *keys: str) -> Any:
    """Return the first enveloped value under ``keys``, or ``data`` itself."""
    if isinstance(data, dict):
        for key in keys:
            if key in data:
                return data[key]
    return data


def _instance(data: Any) -> RoutineInstance:
    return RoutineInstance.model_validate(_unwrap(data, "instance", "routineInstance"))


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)
