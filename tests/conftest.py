"""Shared test fixtures."""

import asyncio
import random
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta

import pytest

from menu_scheduler.adapters.schedule_client import ScheduleClient
from menu_scheduler.adapters.schedule_models import (
    DailyMenuPayload,
    MenuPayload,
    ScheduleData,
    ScheduleSnapshot,
    TemplatePayload,
    WeekPayload,
    combination_to_payload,
)
from menu_scheduler.config import Settings
from menu_scheduler.containers import CACHE_IDENTITY_FIELDS, AppContainer
from menu_scheduler.domain.combinations import Combination
from menu_scheduler.domain.errors import RemoteOperationError
from menu_scheduler.domain.products import ProductReference
from menu_scheduler.domain.schedule import WEEKDAYS
from menu_scheduler.services.auto_schedule import UniformRandomStrategy
from menu_scheduler.services.cache import InMemoryKeyValueStore, LocalCache
from menu_scheduler.services.engine import SchedulingEngine

TODAY = date(2024, 5, 15)
WEEK_START = date(2024, 5, 13)
NOW = datetime(2024, 5, 15, 9, 0, tzinfo=UTC)
SCOPE_ID = "rest-test-001"


def make_product(
    product_id: str, name: str, price: float = 5000.0, category: str = "general"
) -> ProductReference:
    return ProductReference(
        id=product_id,
        name=name,
        description="",
        unit_price=price,
        category_id=category,
    )


def make_combination(combination_id: str, **overrides: object) -> Combination:
    values: dict[str, object] = {
        "id": combination_id,
        "proteina": make_product(
            f"{combination_id}-proteina", "Pollo asado", 9000, "proteina"
        ),
        "principio": make_product(
            f"{combination_id}-principio", "Frijoles", 4000, "principio"
        ),
        "bebida": make_product(f"{combination_id}-bebida", "Limonada", 2000, "bebida"),
    }
    values.update(overrides)
    return Combination(**values)  # type: ignore[arg-type]


def empty_week(week_start: date) -> WeekPayload:
    return WeekPayload(
        fecha_inicio=week_start,
        fecha_fin=week_start + timedelta(days=6),
        menus_diarios=[
            DailyMenuPayload(dia=day, fecha=week_start + timedelta(days=offset))
            for offset, day in enumerate(WEEKDAYS)
        ],
    )


@dataclass
class FakeScheduleClient(ScheduleClient):
    """In-memory schedule service that records calls."""

    combinations: list[Combination] = field(default_factory=list)
    templates: list[TemplatePayload] = field(default_factory=list)
    weeks: dict[date, WeekPayload] = field(default_factory=dict)
    gates: dict[date, asyncio.Event] = field(default_factory=dict)
    fail_fetch: bool = False
    fail_save: bool = False
    fetch_calls: list[date] = field(default_factory=list)
    saved: list[tuple[WeekPayload, bool]] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)

    async def fetch_schedule(self, scope_id: str, week_start: date) -> ScheduleData:
        self.fetch_calls.append(week_start)
        gate = self.gates.get(week_start)
        if gate is not None:
            await gate.wait()
        if self.fail_fetch:
            raise RemoteOperationError("service unavailable")
        return ScheduleData(
            semana=self.weeks.get(week_start) or empty_week(week_start),
            combinaciones_disponibles=[
                combination_to_payload(item) for item in self.combinations
            ],
            plantillas=list(self.templates),
        )

    async def save_schedule(
        self, scope_id: str, week: WeekPayload, *, publish: bool
    ) -> None:
        if self.fail_save:
            raise RemoteOperationError("save rejected")
        self.saved.append((week, publish))
        status = "published" if publish else "draft"
        self.weeks[week.fecha_inicio] = week.model_copy(
            update={
                "menus_diarios": [
                    menu.model_copy(
                        update={
                            "menu": MenuPayload(id=f"menu-{menu.dia}", status=status)
                        }
                    )
                    for menu in week.menus_diarios
                ]
            }
        )

    async def create_template(
        self, scope_id: str, template: TemplatePayload
    ) -> TemplatePayload:
        created = template.model_copy(update={"id": f"tpl-{len(self.templates) + 1}"})
        self.templates.append(created)
        return created

    async def delete_template(self, template_id: str, scope_id: str) -> None:
        self.deleted.append(template_id)
        self.templates = [item for item in self.templates if item.id != template_id]


@dataclass
class RecordingNotifier:
    """Notifier that keeps every message."""

    messages: list[tuple[str, str]] = field(default_factory=list)

    def success(self, message: str) -> None:
        self.messages.append(("success", message))

    def error(self, message: str) -> None:
        self.messages.append(("error", message))

    def info(self, message: str) -> None:
        self.messages.append(("info", message))

    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.messages]


def make_engine(
    client: ScheduleClient,
    store: InMemoryKeyValueStore | None,
    notifier: RecordingNotifier | None = None,
) -> SchedulingEngine:
    cache = LocalCache(
        store=store,
        model=ScheduleSnapshot,
        identity_fields=CACHE_IDENTITY_FIELDS,
        clock=lambda: NOW,
    )
    return SchedulingEngine(
        scope_id=SCOPE_ID,
        client=client,
        cache=cache,
        notifier=notifier or RecordingNotifier(),
        strategy=UniformRandomStrategy(rng=random.Random(42)),
        today=lambda: TODAY,
        clock=lambda: NOW,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(schedule_api_base_url="https://schedule.test", cache_dir=None)


@pytest.fixture
def schedule_client() -> FakeScheduleClient:
    return FakeScheduleClient(
        combinations=[
            make_combination("c-1", name="Bandeja de pollo"),
            make_combination("c-2", name="Sopa del dia"),
            make_combination("c-3"),
        ]
    )


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def engine(
    schedule_client: FakeScheduleClient,
    store: InMemoryKeyValueStore,
    notifier: RecordingNotifier,
) -> SchedulingEngine:
    return make_engine(schedule_client, store, notifier)


@pytest.fixture
def loaded_engine(engine: SchedulingEngine) -> SchedulingEngine:
    asyncio.run(engine.load_week(TODAY))
    return engine


@pytest.fixture
def container(
    settings: Settings,
    schedule_client: FakeScheduleClient,
    engine: SchedulingEngine,
    notifier: RecordingNotifier,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        schedule_client=schedule_client,
        notifier=notifier,
        cache=engine.cache,
        engine=engine,
        close_resources=close_resources,
    )
