"""Tests for the HTTPX schedule client."""

import asyncio
import json
from datetime import date

import httpx
import pytest

from menu_scheduler.adapters.schedule_client import HttpxScheduleClient
from menu_scheduler.adapters.schedule_models import TemplatePayload
from menu_scheduler.domain.errors import RemoteOperationError
from tests.conftest import NOW, WEEK_START, empty_week

_SCHEDULE_BODY = {
    "success": True,
    "data": {
        "semana": {
            "fechaInicio": "2024-05-13",
            "fechaFin": "2024-05-19",
            "menusDiarios": [
                {
                    "id": "dm-1",
                    "fecha": "2024-05-13",
                    "dia": "Lunes",
                    "menu": {"id": "m-1", "status": "draft"},
                    "combinaciones": [
                        {
                            "id": "c-1",
                            "proteina": {"id": "p-1", "name": "Pollo"},
                        }
                    ],
                }
            ],
        },
        "combinacionesDisponibles": [
            {"id": "c-1", "proteina": {"id": "p-1", "name": "Pollo"}}
        ],
        "plantillas": None,
    },
}


def _client(handler) -> HttpxScheduleClient:
    transport = httpx.MockTransport(handler)
    return HttpxScheduleClient(
        base_url="https://schedule.test",
        http_client=httpx.AsyncClient(transport=transport),
    )


def test_fetch_schedule_sends_week_and_scope() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_SCHEDULE_BODY)

    client = _client(handler)

    data = asyncio.run(client.fetch_schedule("rest-test-001", WEEK_START))

    assert seen[0].method == "GET"
    assert seen[0].url.path == "/api/programacion-semanal"
    assert seen[0].url.params["fecha"] == "2024-05-13"
    assert seen[0].url.params["restaurantId"] == "rest-test-001"
    assert data.semana.fecha_inicio == date(2024, 5, 13)
    assert data.semana.menus_diarios[0].menu.status == "draft"
    assert data.plantillas == []


def test_save_schedule_posts_week() -> None:
    payloads: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        payloads.append(json.loads(request.content.decode()))
        return httpx.Response(200, json={"success": True})

    client = _client(handler)

    asyncio.run(
        client.save_schedule("rest-test-001", empty_week(WEEK_START), publish=True)
    )

    assert payloads[0]["restaurantId"] == "rest-test-001"
    assert payloads[0]["esPublicacion"] is True
    assert payloads[0]["semana"]["fechaInicio"] == "2024-05-13"
    assert len(payloads[0]["semana"]["menusDiarios"]) == 7


def test_create_template_returns_assigned_id() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content.decode())
        assert "id" not in body["plantilla"]
        assert body["plantilla"]["programacion"] == {"Lunes": ["c-1"]}
        return httpx.Response(
            200,
            json={"success": True, "plantilla": {**body["plantilla"], "id": "tpl-9"}},
        )

    client = _client(handler)
    template = TemplatePayload(
        nombre="Base", programacion={"Lunes": ["c-1"]}, fecha_creacion=NOW
    )

    created = asyncio.run(client.create_template("rest-test-001", template))

    assert created.id == "tpl-9"
    assert created.nombre == "Base"


def test_delete_template_uses_query_params() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "DELETE"
        assert request.url.path == "/api/programacion-semanal/plantillas"
        assert request.url.params["id"] == "tpl-1"
        return httpx.Response(200, json={"success": True})

    asyncio.run(_client(handler).delete_template("tpl-1", "rest-test-001"))


def test_unsuccessful_envelope_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": False, "error": "Semana bloqueada"})

    with pytest.raises(RemoteOperationError, match="Semana bloqueada"):
        asyncio.run(_client(handler).fetch_schedule("rest-test-001", WEEK_START))


def test_http_error_status_raises_with_body_message() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"success": False, "error": "boom"})

    with pytest.raises(RemoteOperationError, match="HTTP 500: boom"):
        asyncio.run(
            _client(handler).save_schedule(
                "rest-test-001", empty_week(WEEK_START), publish=False
            )
        )


def test_malformed_body_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>")

    with pytest.raises(RemoteOperationError, match="Malformed response"):
        asyncio.run(_client(handler).fetch_schedule("rest-test-001", WEEK_START))


def test_transport_error_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RemoteOperationError, match="connection refused"):
        asyncio.run(_client(handler).fetch_schedule("rest-test-001", WEEK_START))


def test_create_uses_managed_session() -> None:
    client = HttpxScheduleClient.create("https://schedule.test/", timeout=5)

    assert client.base_url == "https://schedule.test"
    assert client.timeout == 5
    asyncio.run(client.close())
