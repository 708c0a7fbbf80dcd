"""Pydantic models for schedule service payloads and cached snapshots."""

from datetime import date, datetime, timedelta
from typing import Annotated

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
)

from menu_scheduler.domain.combinations import Combination
from menu_scheduler.domain.products import ProductReference
from menu_scheduler.domain.schedule import (
    WEEKDAYS,
    WeekSchedule,
    parse_weekday,
    week_start_for,
)
from menu_scheduler.domain.templates import Template


def _list_or_empty(value: object) -> object:
    return value if isinstance(value, list) else []


_Coerced = BeforeValidator(_list_or_empty)


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


class ProductPayload(_Payload):
    """Catalog product payload."""

    id: str
    name: str
    description: str = ""
    current_price: float = 0.0
    category_id: str = ""
    image_url: str | None = None


class CombinationPayload(_Payload):
    """Menu combination payload."""

    id: str
    name: str | None = None
    description: str | None = None
    entrada: ProductPayload | None = None
    principio: ProductPayload | None = None
    proteina: ProductPayload
    bebida: ProductPayload | None = None
    acompanamientos: Annotated[list[ProductPayload], _Coerced] = Field(
        default_factory=list
    )
    base_price: float | None = None
    special_price: float | None = None
    is_available: bool = True
    is_favorite: bool = False
    is_featured: bool = False
    max_daily_quantity: int | None = None
    special_from: date | None = Field(default=None, alias="special_available_from")
    special_until: date | None = Field(default=None, alias="special_available_until")


class MenuPayload(_Payload):
    """Daily menu publication metadata."""

    id: str
    name: str = ""
    description: str = ""
    status: str = "draft"
    total_combinations: int = 0
    published_at: datetime | None = None


class DailyMenuPayload(_Payload):
    """One weekday of the schedule as sent over the wire."""

    id: str | None = None
    fecha: date | None = None
    dia: str
    menu: MenuPayload | None = None
    combinaciones: Annotated[list[CombinationPayload], _Coerced] = Field(
        default_factory=list
    )


class WeekPayload(_Payload):
    """Week bounds and daily menus."""

    fecha_inicio: date = Field(alias="fechaInicio")
    fecha_fin: date = Field(alias="fechaFin")
    menus_diarios: Annotated[list[DailyMenuPayload], _Coerced] = Field(
        default_factory=list, alias="menusDiarios"
    )


class TemplatePayload(_Payload):
    """Programming template payload."""

    id: str | None = None
    nombre: str
    descripcion: str = ""
    programacion: dict[str, list[str]] = Field(default_factory=dict)
    fecha_creacion: datetime = Field(alias="fechaCreacion")
    es_activa: bool = Field(default=True, alias="esActiva")

    @field_validator("programacion", mode="before")
    @classmethod
    def _coerce_programming(cls, value: object) -> object:
        if not isinstance(value, dict):
            return {}
        return {day: _list_or_empty(ids) for day, ids in value.items()}


class ScheduleData(_Payload):
    """Body of a successful schedule fetch."""

    semana: WeekPayload
    combinaciones_disponibles: Annotated[
        list[CombinationPayload], _Coerced
    ] = Field(default_factory=list, alias="combinacionesDisponibles")
    plantillas: Annotated[list[TemplatePayload], _Coerced] = Field(
        default_factory=list
    )


class ScheduleResponse(_Payload):
    """Envelope returned by the schedule fetch endpoint."""

    success: bool
    data: ScheduleData | None = None
    error: str | None = None


class SaveResponse(_Payload):
    """Envelope returned by save and delete endpoints."""

    success: bool
    error: str | None = None


class TemplateResponse(_Payload):
    """Envelope returned by the template creation endpoint."""

    success: bool
    plantilla: TemplatePayload | None = None
    error: str | None = None


class DaySnapshot(BaseModel):
    """Cached day bucket."""

    day: str
    combination_ids: Annotated[list[str], _Coerced] = Field(default_factory=list)
    service_date: date | None = None
    menu_id: str | None = None
    status: str | None = None
    published_at: datetime | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def id(self) -> str:
        """Content identity of the bucket, used by the cache write check."""
        return f"{self.day}:{'|'.join(self.combination_ids)}"


class ScheduleSnapshot(BaseModel):
    """Engine state persisted by the local cache."""

    scope_id: str = ""
    week_start: date | None = None
    week_end: date | None = None
    days: list[DaySnapshot] = Field(default_factory=list)
    available_combinations: list[CombinationPayload] = Field(default_factory=list)
    pool: list[CombinationPayload] = Field(default_factory=list)
    templates: list[TemplatePayload] = Field(default_factory=list)
    has_unsaved_changes: bool = False
    selected_day: str = WEEKDAYS[0]


def product_from_payload(payload: ProductPayload) -> ProductReference:
    return ProductReference(
        id=payload.id,
        name=payload.name,
        description=payload.description,
        unit_price=payload.current_price,
        category_id=payload.category_id,
    )


def product_to_payload(product: ProductReference) -> ProductPayload:
    return ProductPayload(
        id=product.id,
        name=product.name,
        description=product.description,
        current_price=product.unit_price,
        category_id=product.category_id,
    )


def _optional_product(payload: ProductPayload | None) -> ProductReference | None:
    return product_from_payload(payload) if payload is not None else None


def _optional_payload(product: ProductReference | None) -> ProductPayload | None:
    return product_to_payload(product) if product is not None else None


def combination_from_payload(payload: CombinationPayload) -> Combination:
    """Parse a combination payload into a domain model."""
    return Combination(
        id=payload.id,
        proteina=product_from_payload(payload.proteina),
        entrada=_optional_product(payload.entrada),
        principio=_optional_product(payload.principio),
        bebida=_optional_product(payload.bebida),
        acompanamiento=tuple(
            product_from_payload(side) for side in payload.acompanamientos
        ),
        name=payload.name,
        description=payload.description,
        special_price=payload.special_price,
        quantity=payload.max_daily_quantity,
        favorite=payload.is_favorite,
        special=payload.is_featured,
        special_from=payload.special_from,
        special_until=payload.special_until,
    )


def combination_to_payload(combination: Combination) -> CombinationPayload:
    """Serialize a combination into its wire payload."""
    return CombinationPayload(
        id=combination.id,
        name=combination.name,
        description=combination.description,
        entrada=_optional_payload(combination.entrada),
        principio=_optional_payload(combination.principio),
        proteina=product_to_payload(combination.proteina),
        bebida=_optional_payload(combination.bebida),
        acompanamientos=[
            product_to_payload(side) for side in combination.acompanamiento
        ],
        base_price=combination.base_price,
        special_price=combination.special_price,
        is_favorite=combination.favorite,
        is_featured=combination.special,
        max_daily_quantity=combination.quantity,
        special_from=combination.special_from,
        special_until=combination.special_until,
    )


def template_from_payload(payload: TemplatePayload) -> Template:
    """Parse a template payload, canonicalizing weekday keys."""
    programming: dict[str, list[str]] = {}
    for day, ids in payload.programacion.items():
        programming[parse_weekday(day)] = list(ids)
    return Template(
        id=payload.id or "",
        name=payload.nombre,
        description=payload.descripcion,
        programming=programming,
        created_at=payload.fecha_creacion,
        active=payload.es_activa,
    )


def template_to_payload(template: Template) -> TemplatePayload:
    return TemplatePayload(
        id=template.id or None,
        nombre=template.name,
        descripcion=template.description,
        programacion={day: list(ids) for day, ids in template.programming.items()},
        fecha_creacion=template.created_at,
        es_activa=template.active,
    )


def week_from_data(data: ScheduleData) -> WeekSchedule:
    """Build a week schedule from a fetch response body."""
    schedule = WeekSchedule.empty(week_start_for(data.semana.fecha_inicio))
    schedule.week_end = data.semana.fecha_fin
    for payload in data.combinaciones_disponibles:
        combination = combination_from_payload(payload)
        schedule.pool[combination.id] = combination
        schedule.available.append(combination.id)
    for menu_day in data.semana.menus_diarios:
        bucket = schedule.bucket(menu_day.dia)
        if menu_day.fecha is not None:
            bucket.service_date = menu_day.fecha
        if menu_day.menu is not None:
            bucket.menu_id = menu_day.menu.id
            bucket.status = menu_day.menu.status
            bucket.published_at = menu_day.menu.published_at
        for payload in menu_day.combinaciones:
            schedule.pool.setdefault(payload.id, combination_from_payload(payload))
            bucket.combination_ids.append(payload.id)
    schedule.templates = [template_from_payload(item) for item in data.plantillas]
    return schedule


def week_to_payload(schedule: WeekSchedule) -> WeekPayload:
    """Serialize the week with full combinations per day, as the service expects."""
    menus = []
    for day in WEEKDAYS:
        bucket = schedule.bucket(day)
        menus.append(
            DailyMenuPayload(
                id=bucket.menu_id,
                fecha=bucket.service_date,
                dia=day,
                combinaciones=[
                    combination_to_payload(combination)
                    for combination in schedule.combinations_for(day)
                ],
            )
        )
    return WeekPayload(
        fecha_inicio=schedule.week_start,
        fecha_fin=schedule.week_end,
        menus_diarios=menus,
    )


def snapshot_from_week(
    scope_id: str,
    schedule: WeekSchedule,
    *,
    has_unsaved_changes: bool,
    selected_day: str,
) -> ScheduleSnapshot:
    """Capture the engine state for the local cache."""
    days = []
    for day in WEEKDAYS:
        bucket = schedule.bucket(day)
        days.append(
            DaySnapshot(
                day=day,
                combination_ids=list(bucket.combination_ids),
                service_date=bucket.service_date,
                menu_id=bucket.menu_id,
                status=bucket.status,
                published_at=bucket.published_at,
            )
        )
    return ScheduleSnapshot(
        scope_id=scope_id,
        week_start=schedule.week_start,
        week_end=schedule.week_end,
        days=days,
        available_combinations=[
            combination_to_payload(item) for item in schedule.available_combinations()
        ],
        pool=[
            combination_to_payload(item)
            for item in schedule.pool.values()
            if item.id not in schedule.available
        ],
        templates=[template_to_payload(item) for item in schedule.templates],
        has_unsaved_changes=has_unsaved_changes,
        selected_day=selected_day,
    )


def week_from_snapshot(snapshot: ScheduleSnapshot) -> WeekSchedule | None:
    """Rebuild a week schedule from a cached snapshot, if it names a week."""
    if snapshot.week_start is None:
        return None
    schedule = WeekSchedule.empty(snapshot.week_start)
    schedule.week_end = snapshot.week_end or schedule.week_start + timedelta(days=6)
    for payload in snapshot.available_combinations:
        combination = combination_from_payload(payload)
        schedule.pool[combination.id] = combination
        schedule.available.append(combination.id)
    for payload in snapshot.pool:
        schedule.pool.setdefault(payload.id, combination_from_payload(payload))
    for cached_day in snapshot.days:
        bucket = schedule.bucket(cached_day.day)
        bucket.combination_ids = [
            combination_id
            for combination_id in cached_day.combination_ids
            if combination_id in schedule.pool
        ]
        bucket.service_date = cached_day.service_date or bucket.service_date
        bucket.menu_id = cached_day.menu_id
        bucket.status = cached_day.status
        bucket.published_at = cached_day.published_at
    schedule.templates = [template_from_payload(item) for item in snapshot.templates]
    return schedule
