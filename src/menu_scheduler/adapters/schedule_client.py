"""Weekly programming service API client."""

from dataclasses import dataclass
from datetime import date
from typing import Protocol, TypeVar

import httpx
from pydantic import BaseModel

from menu_scheduler.adapters.schedule_models import (
    SaveResponse,
    ScheduleData,
    ScheduleResponse,
    TemplatePayload,
    TemplateResponse,
    WeekPayload,
)
from menu_scheduler.domain.errors import RemoteOperationError

_SCHEDULE_PATH = "/api/programacion-semanal"
_TEMPLATES_PATH = "/api/programacion-semanal/plantillas"

ResponseT = TypeVar("ResponseT", bound=BaseModel)


class ScheduleClient(Protocol):
    """Interface for the remote source of truth."""

    async def fetch_schedule(self, scope_id: str, week_start: date) -> ScheduleData:
        """Fetch the week, its available combinations and templates."""

    async def save_schedule(
        self, scope_id: str, week: WeekPayload, *, publish: bool
    ) -> None:
        """Persist the week as a draft or published programming."""

    async def create_template(
        self, scope_id: str, template: TemplatePayload
    ) -> TemplatePayload:
        """Persist a template and return it with its assigned id."""

    async def delete_template(self, template_id: str, scope_id: str) -> None:
        """Delete a template."""


@dataclass
class HttpxScheduleClient(ScheduleClient):
    """HTTPX-backed schedule client. Requests are never retried."""

    base_url: str
    http_client: httpx.AsyncClient
    timeout: float | None = None

    @classmethod
    def create(
        cls, base_url: str, timeout: float | None = None
    ) -> "HttpxScheduleClient":
        """Create a schedule client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            http_client=httpx.AsyncClient(),
            timeout=timeout,
        )

    async def fetch_schedule(self, scope_id: str, week_start: date) -> ScheduleData:
        """Fetch the programming for the week starting on `week_start`."""
        response = await self._request(
            "GET",
            _SCHEDULE_PATH,
            params={"fecha": week_start.isoformat(), "restaurantId": scope_id},
        )
        payload = _parse(response, ScheduleResponse)
        if payload.data is None:
            raise RemoteOperationError("Schedule response did not include data")
        return payload.data

    async def save_schedule(
        self, scope_id: str, week: WeekPayload, *, publish: bool
    ) -> None:
        """Save the week; `publish` marks it as published instead of draft."""
        response = await self._request(
            "POST",
            _SCHEDULE_PATH,
            json={
                "restaurantId": scope_id,
                "semana": week.model_dump(mode="json", by_alias=True),
                "esPublicacion": publish,
            },
        )
        _parse(response, SaveResponse)

    async def create_template(
        self, scope_id: str, template: TemplatePayload
    ) -> TemplatePayload:
        """Create a template."""
        response = await self._request(
            "POST",
            _TEMPLATES_PATH,
            json={
                "restaurantId": scope_id,
                "plantilla": template.model_dump(
                    mode="json", by_alias=True, exclude={"id"}
                ),
            },
        )
        payload = _parse(response, TemplateResponse)
        if payload.plantilla is None:
            raise RemoteOperationError("Template response did not include a template")
        return payload.plantilla

    async def delete_template(self, template_id: str, scope_id: str) -> None:
        """Delete a template by id."""
        response = await self._request(
            "DELETE",
            _TEMPLATES_PATH,
            params={"id": template_id, "restaurantId": scope_id},
        )
        _parse(response, SaveResponse)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, object] | None = None,
    ) -> httpx.Response:
        try:
            return await self.http_client.request(
                method,
                f"{self.base_url}{path}",
                params=params,
                json=json,
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            raise RemoteOperationError(f"{method} {path} failed: {exc}") from exc


def _parse(response: httpx.Response, model: type[ResponseT]) -> ResponseT:
    """Validate a response envelope, treating non-2xx and success=false as errors."""
    if response.is_error:
        raise RemoteOperationError(
            f"HTTP {response.status_code}: {_error_message(response)}"
        )
    try:
        payload = model.model_validate(response.json())
    except ValueError as exc:
        raise RemoteOperationError(f"Malformed response: {exc}") from exc
    if not getattr(payload, "success", False):
        raise RemoteOperationError(
            getattr(payload, "error", None) or "Request was not successful"
        )
    return payload


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return response.reason_phrase
