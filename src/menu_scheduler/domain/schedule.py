"""Domain models for the weekly schedule."""

import unicodedata
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from menu_scheduler.domain.combinations import Combination
from menu_scheduler.domain.errors import ScheduleValidationError
from menu_scheduler.domain.templates import Template

WEEKDAYS = (
    "Lunes",
    "Martes",
    "Miércoles",
    "Jueves",
    "Viernes",
    "Sábado",
    "Domingo",
)

DAY_STATUSES = frozenset({"draft", "published", "archived", "cancelled"})


def week_start_for(value: date | datetime) -> date:
    """Return the Monday on or before the given date."""
    day = value.date() if isinstance(value, datetime) else value
    return day - timedelta(days=day.weekday())


def week_key(week_start: date) -> str:
    """ISO identity of a week, used for cache and fetch keys."""
    return week_start.isoformat()


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(char for char in decomposed if not unicodedata.combining(char))


_FOLDED_WEEKDAYS = {_fold(day).lower(): day for day in WEEKDAYS}


def parse_weekday(raw: str) -> str:
    """Return the canonical weekday literal, ignoring case and accents."""
    canonical = _FOLDED_WEEKDAYS.get(_fold(raw.strip()).lower())
    if canonical is None:
        raise ScheduleValidationError(f"Unknown weekday: {raw!r}")
    return canonical


@dataclass
class DayBucket:
    """Combinations assigned to one weekday, stored as pool ids."""

    day: str
    combination_ids: list[str] = field(default_factory=list)
    service_date: date | None = None
    menu_id: str | None = None
    status: str | None = None
    published_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.status is not None and self.status not in DAY_STATUSES:
            raise ScheduleValidationError(f"Unknown day status: {self.status!r}")


@dataclass
class WeekSchedule:
    """Seven day buckets plus the combination pool and templates.

    `pool` indexes every combination known to the week by id, including ones
    only referenced by a day bucket. `available` lists the ids offered for
    assignment.
    """

    week_start: date
    week_end: date
    days: dict[str, DayBucket]
    pool: dict[str, Combination] = field(default_factory=dict)
    available: list[str] = field(default_factory=list)
    templates: list[Template] = field(default_factory=list)

    @classmethod
    def empty(cls, week_start: date) -> "WeekSchedule":
        """Create a schedule with seven empty buckets for the week."""
        start = week_start_for(week_start)
        return cls(
            week_start=start,
            week_end=start + timedelta(days=6),
            days={
                day: DayBucket(day=day, service_date=start + timedelta(days=offset))
                for offset, day in enumerate(WEEKDAYS)
            },
        )

    @property
    def key(self) -> str:
        return week_key(self.week_start)

    def bucket(self, day: str) -> DayBucket:
        """Return the bucket for a weekday, rejecting unknown names."""
        canonical = parse_weekday(day)
        bucket = self.days.get(canonical)
        if bucket is None:
            offset = WEEKDAYS.index(canonical)
            bucket = DayBucket(
                day=canonical,
                service_date=self.week_start + timedelta(days=offset),
            )
            self.days[canonical] = bucket
        return bucket

    def combinations_for(self, day: str) -> list[Combination]:
        """Resolve a day's ids against the pool."""
        return [
            self.pool[combination_id]
            for combination_id in self.bucket(day).combination_ids
            if combination_id in self.pool
        ]

    def available_combinations(self) -> list[Combination]:
        """Return the combinations offered for assignment, in pool order."""
        return [self.pool[combination_id] for combination_id in self.available]

    def is_available(self, combination_id: str) -> bool:
        return combination_id in self.available

    def total_combinations(self) -> int:
        """Count assignments across the whole week."""
        return sum(len(bucket.combination_ids) for bucket in self.days.values())

    def programming(self) -> dict[str, list[str]]:
        """Snapshot the week as weekday to id-list, in weekday order."""
        return {day: list(self.bucket(day).combination_ids) for day in WEEKDAYS}

    def find_template(self, template_id: str) -> Template | None:
        for template in self.templates:
            if template.id == template_id:
                return template
        return None
