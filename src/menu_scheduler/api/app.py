"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import date

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from menu_scheduler.adapters.schedule_models import combination_to_payload
from menu_scheduler.api.models import (
    AddCombinationRequest,
    CopyDayRequest,
    CreateTemplateRequest,
    LoadWeekRequest,
)
from menu_scheduler.app_logging import configure_logging
from menu_scheduler.config import parse_week_date
from menu_scheduler.containers import AppContainer
from menu_scheduler.domain.combinations import Combination
from menu_scheduler.domain.errors import (
    RemoteOperationError,
    ScheduleValidationError,
    TemplateNotFoundError,
)
from menu_scheduler.domain.schedule import WEEKDAYS
from menu_scheduler.services.cache import cache_key
from menu_scheduler.services.engine import SchedulingEngine


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging(
        container.settings.log_level, scope_id=container.settings.restaurant_id
    )
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(ScheduleValidationError)
    async def validation_error(
        request: Request, exc: ScheduleValidationError
    ) -> JSONResponse:
        return JSONResponse(status_code=422, content={"error": str(exc)})

    @app.exception_handler(TemplateNotFoundError)
    async def template_not_found(
        request: Request, exc: TemplateNotFoundError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=404, content={"error": f"Template not found: {exc}"}
        )

    @app.exception_handler(RemoteOperationError)
    async def remote_error(
        request: Request, exc: RemoteOperationError
    ) -> JSONResponse:
        logger.warning("Remote operation failed: %s", exc)
        return JSONResponse(status_code=502, content={"error": str(exc)})

    def engine_of(request: Request) -> SchedulingEngine:
        state_container: AppContainer = request.app.state.container
        return state_container.engine

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/schedule")
    async def get_schedule(
        request: Request, fecha: str | None = None
    ) -> dict[str, object]:
        """Return the loaded week, loading the requested one first if given."""
        engine = engine_of(request)
        week_date = parse_week_date(fecha)
        if week_date is not None:
            await engine.load_week(week_date)
        return _schedule_view(engine)

    @app.post("/schedule/load")
    async def load_schedule(
        payload: LoadWeekRequest, request: Request
    ) -> dict[str, object]:
        engine = engine_of(request)
        await engine.load_week(payload.fecha or engine.today())
        return _schedule_view(engine)

    @app.post("/schedule/reload")
    async def reload_schedule(request: Request) -> dict[str, object]:
        engine = engine_of(request)
        await engine.reload()
        return _schedule_view(engine)

    @app.post("/schedule/previous")
    async def previous_week(request: Request) -> dict[str, object]:
        engine = engine_of(request)
        await engine.previous_week()
        return _schedule_view(engine)

    @app.post("/schedule/next")
    async def next_week(request: Request) -> dict[str, object]:
        engine = engine_of(request)
        await engine.next_week()
        return _schedule_view(engine)

    @app.post("/schedule/current")
    async def current_week(request: Request) -> dict[str, object]:
        engine = engine_of(request)
        await engine.go_to_current_week()
        return _schedule_view(engine)

    @app.post("/schedule/days/{day}/combinations")
    async def add_combination(
        day: str, payload: AddCombinationRequest, request: Request
    ) -> dict[str, object]:
        """Assign an available combination to a day."""
        engine = engine_of(request)
        engine.add_combination_by_id(day, payload.combination_id)
        return _schedule_view(engine)

    @app.delete("/schedule/days/{day}/combinations/{combination_id}")
    async def remove_combination(
        day: str,
        combination_id: str,
        request: Request,
        all_matches: bool = True,
    ) -> dict[str, object]:
        engine = engine_of(request)
        removed = engine.remove_combination(
            day, combination_id, all_matches=all_matches
        )
        return {"removed": removed, **_schedule_view(engine)}

    @app.post("/schedule/days/{day}/copy")
    async def copy_day(
        day: str, payload: CopyDayRequest, request: Request
    ) -> dict[str, object]:
        engine = engine_of(request)
        engine.copy_day(day, payload.target_day)
        return _schedule_view(engine)

    @app.delete("/schedule/days/{day}")
    async def clear_day(day: str, request: Request) -> dict[str, object]:
        engine = engine_of(request)
        engine.clear_day(day)
        return _schedule_view(engine)

    @app.post("/schedule/days/{day}/select")
    async def select_day(day: str, request: Request) -> dict[str, object]:
        engine = engine_of(request)
        engine.select_day(day)
        return _schedule_view(engine)

    @app.post("/schedule/auto")
    async def auto_schedule(request: Request) -> dict[str, object]:
        engine = engine_of(request)
        engine.auto_schedule()
        return _schedule_view(engine)

    @app.post("/schedule/draft")
    async def save_draft(request: Request) -> dict[str, object]:
        engine = engine_of(request)
        await engine.save_draft()
        return _schedule_view(engine)

    @app.post("/schedule/publish")
    async def publish(request: Request) -> dict[str, object]:
        engine = engine_of(request)
        await engine.publish()
        return _schedule_view(engine)

    @app.post("/templates")
    async def create_template(
        payload: CreateTemplateRequest, request: Request
    ) -> dict[str, object]:
        """Save the loaded week's assignments as a template."""
        engine = engine_of(request)
        template = await engine.save_template(payload.nombre, payload.descripcion)
        return {"template": asdict(template)}

    @app.post("/templates/{template_id}/load")
    async def load_template(template_id: str, request: Request) -> dict[str, object]:
        engine = engine_of(request)
        result = engine.load_template(template_id)
        return {
            "applied": result.applied,
            "dropped": {day: ids for day, ids in result.dropped.items() if ids},
            **_schedule_view(engine),
        }

    @app.delete("/templates/{template_id}")
    async def delete_template(
        template_id: str, request: Request
    ) -> dict[str, object]:
        engine = engine_of(request)
        await engine.delete_template(template_id)
        return {"status": "ok"}

    @app.get("/cache")
    async def cache_stats(request: Request) -> dict[str, object]:
        """Describe the cache entry of the loaded week."""
        state_container: AppContainer = request.app.state.container
        engine = state_container.engine
        if engine.schedule is None:
            return {"exists": False}
        key = cache_key(engine.scope_id, engine.schedule.key)
        return asdict(state_container.cache.stats(key))

    return app


def _combination_view(combination: Combination) -> dict[str, object]:
    payload = combination_to_payload(combination).model_dump(mode="json")
    payload["display_name"] = combination.display_name
    payload["price"] = combination.price
    return payload


def _schedule_view(engine: SchedulingEngine) -> dict[str, object]:
    schedule = engine.schedule
    view: dict[str, object] = {
        "state": engine.state,
        "loading": engine.loading,
        "saving": engine.saving,
        "publishing": engine.publishing,
        "has_unsaved_changes": engine.has_unsaved_changes,
        "selected_day": engine.selected_day,
        "last_error": engine.last_error,
        "total_combinations": engine.total_combinations(),
    }
    if schedule is None:
        view["week"] = None
        return view
    view["week"] = {
        "week_start": schedule.week_start.isoformat(),
        "week_end": schedule.week_end.isoformat(),
        "days": [
            {
                "day": day,
                "date": _iso_or_none(schedule.bucket(day).service_date),
                "status": schedule.bucket(day).status,
                "combinations": [
                    _combination_view(item) for item in engine.combinations_for(day)
                ],
            }
            for day in WEEKDAYS
        ],
        "available_combinations": [
            _combination_view(item) for item in schedule.available_combinations()
        ],
        "templates": [
            {
                "id": template.id,
                "name": template.name,
                "description": template.description,
                "created_at": template.created_at.isoformat(),
                "active": template.active,
            }
            for template in schedule.templates
        ],
    }
    return view


def _iso_or_none(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None
