"""Tests for schedule payload conversions."""

from datetime import date

from menu_scheduler.adapters.schedule_models import (
    CombinationPayload,
    DailyMenuPayload,
    ScheduleData,
    TemplatePayload,
    combination_from_payload,
    combination_to_payload,
    snapshot_from_week,
    template_from_payload,
    week_from_data,
    week_from_snapshot,
    week_to_payload,
)
from menu_scheduler.domain.schedule import WEEKDAYS
from tests.conftest import NOW, WEEK_START, empty_week, make_combination

_COMBINATION_JSON = {
    "id": 101,
    "name": "Bandeja",
    "proteina": {"id": 7, "name": "Res", "current_price": 9000},
    "acompanamientos": None,
    "special_price": None,
    "special_available_from": "2024-05-13",
}


def test_combination_payload_tolerates_loose_input() -> None:
    payload = CombinationPayload.model_validate(_COMBINATION_JSON)
    combination = combination_from_payload(payload)

    assert combination.id == "101"
    assert combination.proteina.id == "7"
    assert combination.acompanamiento == ()
    assert combination.special_from == date(2024, 5, 13)
    assert combination.price == 9000


def test_template_payload_coerces_programming() -> None:
    payload = TemplatePayload.model_validate(
        {
            "id": "tpl-1",
            "nombre": "Base",
            "programacion": {"miercoles": None, "Lunes": ["c-1"]},
            "fechaCreacion": "2024-05-01T10:00:00Z",
        }
    )
    template = template_from_payload(payload)

    assert template.programming == {"Miércoles": [], "Lunes": ["c-1"]}
    assert template.active is True

    broken = TemplatePayload.model_validate(
        {"nombre": "Rota", "programacion": "x", "fechaCreacion": NOW.isoformat()}
    )
    assert broken.programacion == {}


def test_week_from_data_indexes_day_only_combinations() -> None:
    week = empty_week(WEEK_START)
    day_only = combination_to_payload(make_combination("c-retired"))
    week.menus_diarios[0] = DailyMenuPayload(
        dia="lunes", fecha=WEEK_START, combinaciones=[day_only]
    )
    data = ScheduleData(
        semana=week,
        combinaciones_disponibles=[combination_to_payload(make_combination("c-1"))],
    )

    schedule = week_from_data(data)

    assert schedule.available == ["c-1"]
    assert set(schedule.pool) == {"c-1", "c-retired"}
    assert schedule.bucket("Lunes").combination_ids == ["c-retired"]


def test_week_to_payload_lists_days_in_order() -> None:
    data = ScheduleData(
        semana=empty_week(WEEK_START),
        combinaciones_disponibles=[combination_to_payload(make_combination("c-1"))],
    )
    schedule = week_from_data(data)
    schedule.bucket("Viernes").combination_ids = ["c-1"]

    payload = week_to_payload(schedule)
    wire = payload.model_dump(mode="json", by_alias=True)

    assert [menu.dia for menu in payload.menus_diarios] == list(WEEKDAYS)
    assert wire["fechaInicio"] == "2024-05-13"
    assert wire["menusDiarios"][4]["combinaciones"][0]["id"] == "c-1"


def test_snapshot_round_trip_keeps_pool_only_combinations() -> None:
    data = ScheduleData(
        semana=empty_week(WEEK_START),
        combinaciones_disponibles=[combination_to_payload(make_combination("c-1"))],
    )
    schedule = week_from_data(data)
    schedule.pool["c-old"] = make_combination("c-old")
    schedule.bucket("Martes").combination_ids = ["c-old", "c-1"]

    snapshot = snapshot_from_week(
        "rest-test-001", schedule, has_unsaved_changes=True, selected_day="Martes"
    )
    restored = week_from_snapshot(snapshot)

    assert snapshot.days[1].id == "Martes:c-old|c-1"
    assert restored is not None
    assert restored.available == ["c-1"]
    assert restored.bucket("Martes").combination_ids == ["c-old", "c-1"]
    assert restored.pool["c-old"] == schedule.pool["c-old"]
