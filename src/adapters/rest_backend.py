"""REST backend adapter — implements PersistencePort over the kanban HTTP API.

All transport details (paths under /api/v1, bearer auth, response envelopes,
404 handling) live here. Core modules never import this directly; they
depend on the PersistencePort protocol.
"""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from typing import Any

import httpx

from src.config import settings
from src.core.slot_grid import local_timezone
from src.data.models import (
    Board,
    BusinessHoursConfig,
    CalendarEvent,
    Column,
    Task,
    TimerSession,
)
from src.ports.persistence_port import NotFoundError, PersistenceError

logger = logging.getLogger(__name__)

_API_PREFIX = "/api/v1"


def _parse_datetime(raw: str | None, tz: tzinfo) -> datetime | None:
    """Parse an RFC 3339 timestamp; naive values are taken as local time."""
    if not raw:
        return None
    value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=tz)
    return value


def _unwrap(data: Any, key: str) -> Any:
    """Some endpoints wrap the payload ({"task": {...}}), others don't."""
    if isinstance(data, dict) and isinstance(data.get(key), dict):
        return data[key]
    return data


def _parse_task(data: dict, column_id: int = 0) -> Task:
    """Build a Task; task payloads usually omit column_id, so callers pass it."""
    return Task(
        id=data["id"],
        column_id=data.get("column_id") or column_id,
        title=data.get("title", ""),
        order=data.get("order", 0),
        description=data.get("description") or "",
        estimated_time_minutes=data.get("estimated_time"),
        actual_time_minutes=data.get("actual_time"),
        is_completed=bool(data.get("is_completed", False)),
        due_date=data.get("due_date"),
    )


def _parse_board(data: dict, board_id: int) -> Board:
    board_id = data.get("id") or board_id
    columns = []
    for col in data.get("columns") or []:
        tasks = sorted(
            (_parse_task(t, col["id"]) for t in col.get("tasks") or []),
            key=lambda t: t.order,
        )
        columns.append(Column(
            id=col["id"],
            board_id=col.get("board_id", board_id),
            title=col.get("title", ""),
            order=col.get("order", 0),
            tasks=tasks,
        ))
    return Board(id=board_id, name=data.get("name", ""), columns=columns)


def _parse_event(data: dict, tz: tzinfo) -> CalendarEvent:
    linked = data.get("task")
    return CalendarEvent(
        id=data["id"],
        title=data.get("title", "(no title)"),
        start=_parse_datetime(data["start"], tz),
        end=_parse_datetime(data["end"], tz),
        task_id=data.get("task_id"),
        is_task_based=bool(data.get("is_task_based", False)),
        color=data.get("color") or "#3B82F6",
        linked_task=_parse_task(linked) if isinstance(linked, dict) and linked.get("id") else None,
    )


def _parse_session(data: dict, tz: tzinfo) -> TimerSession:
    task = data.get("task") or {}
    return TimerSession(
        id=data.get("id"),
        task_id=data["task_id"],
        start_time=_parse_datetime(data["start_time"], tz),
        duration_seconds=data.get("duration", 0),
        is_active=bool(data.get("is_active", True)),
        end_time=_parse_datetime(data.get("end_time"), tz),
        task_title=task.get("title") or None,
    )


class RestBackendAdapter:
    """HTTP implementation of PersistencePort."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        tz: tzinfo | None = None,
    ) -> None:
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/") + _API_PREFIX
        self.token = token or settings.API_TOKEN
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self.tz = tz or local_timezone()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict | None = None,
        params: dict | None = None,
    ) -> Any:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"Authorization": f"Bearer {self.token}"},
            ) as client:
                resp = await client.request(method, path, json=json, params=params)
                resp.raise_for_status()
                if resp.status_code == 204 or not resp.content:
                    return None
                return resp.json()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 404:
                raise NotFoundError(f"{method} {path}: not found") from exc
            logger.error("Backend %s %s returned %d", method, path, status)
            raise PersistenceError(f"{method} {path} failed with HTTP {status}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Backend %s %s failed: %s", method, path, exc)
            raise PersistenceError(f"{method} {path} failed: {exc}") from exc

    # Calendar

    async def get_calendar_settings(self) -> BusinessHoursConfig:
        data = await self._request("GET", "/calendar/settings")
        try:
            return BusinessHoursConfig.model_validate(data)
        except ValueError as exc:
            raise PersistenceError(f"Invalid calendar settings: {exc}") from exc

    async def get_events(
        self, range_start: datetime, range_end: datetime
    ) -> list[CalendarEvent]:
        data = await self._request(
            "GET",
            "/calendar/events",
            params={"start": range_start.isoformat(), "end": range_end.isoformat()},
        )
        return [_parse_event(ev, self.tz) for ev in data or []]

    async def create_event_from_task(
        self, task_id: int, start: datetime, end: datetime
    ) -> None:
        await self._request(
            "POST",
            f"/calendar/tasks/{task_id}/events",
            json={"start": start.isoformat(), "end": end.isoformat()},
        )

    async def delete_event(self, event_id: int) -> None:
        await self._request("DELETE", f"/calendar/events/{event_id}")

    # Timer

    async def get_active_timer(self) -> TimerSession | None:
        try:
            data = await self._request("GET", "/timer/active")
        except NotFoundError:
            return None
        if not data:
            return None
        return _parse_session(data, self.tz)

    async def start_timer(self, task_id: int, duration_seconds: int) -> TimerSession:
        data = await self._request(
            "POST", "/timer/start", json={"task_id": task_id, "duration": duration_seconds},
        )
        return _parse_session(data, self.tz)

    async def stop_timer(self, session_id: int) -> TimerSession:
        data = await self._request("PUT", f"/timer/{session_id}/stop")
        return _parse_session(data, self.tz)

    # Board

    async def get_board_with_columns(self, board_id: int) -> Board:
        data = await self._request("GET", f"/boards/{board_id}/columns")
        return _parse_board(_unwrap(data, "board"), board_id)

    async def get_task(self, task_id: int) -> Task:
        data = await self._request("GET", f"/tasks/{task_id}")
        return _parse_task(_unwrap(data, "task"))

    async def update_task(self, task_id: int, fields: dict[str, Any]) -> Task:
        data = await self._request("PUT", f"/tasks/{task_id}", json=fields)
        return _parse_task(_unwrap(data, "task"))

    async def move_task(self, task_id: int, new_column_id: int, new_order: int) -> None:
        await self._request(
            "PUT",
            f"/tasks/{task_id}/move",
            json={"new_column_id": new_column_id, "new_order": new_order},
        )

    async def create_task(
        self, column_id: int, title: str, order: int, **fields: Any
    ) -> Task:
        body = {"column_id": column_id, "title": title, "order": order, **fields}
        data = await self._request("POST", "/tasks", json=body)
        return _parse_task(_unwrap(data, "task"), column_id)

    async def delete_task(self, task_id: int) -> None:
        await self._request("DELETE", f"/tasks/{task_id}")
