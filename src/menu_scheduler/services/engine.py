"""Scheduling engine for weekly menu programming."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime, timedelta
from uuid import uuid4

from menu_scheduler.adapters.notifier import Notifier
from menu_scheduler.adapters.schedule_client import ScheduleClient
from menu_scheduler.adapters.schedule_models import (
    ScheduleSnapshot,
    TemplatePayload,
    snapshot_from_week,
    template_from_payload,
    week_from_data,
    week_from_snapshot,
    week_to_payload,
)
from menu_scheduler.domain.combinations import Combination
from menu_scheduler.domain.errors import (
    RemoteOperationError,
    ScheduleError,
    ScheduleValidationError,
    TemplateNotFoundError,
)
from menu_scheduler.domain.schedule import (
    WEEKDAYS,
    WeekSchedule,
    parse_weekday,
    week_key,
    week_start_for,
)
from menu_scheduler.domain.templates import Template, TemplateLoadResult
from menu_scheduler.services.auto_schedule import (
    ScheduleStrategy,
    UniformRandomStrategy,
)
from menu_scheduler.services.cache import LocalCache, cache_key

UNLOADED = "unloaded"
LOADING = "loading"
LOADED = "loaded"
SAVING = "saving"

_logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


@dataclass
class SchedulingEngine:
    """Owns the loaded week and mediates cache, remote and in-memory state.

    Mutations are synchronous and mark the week dirty. Remote operations
    are coroutines; they surface failures through the notifier and raise
    `RemoteOperationError`, leaving in-memory state and the dirty flag as
    they were.
    """

    scope_id: str
    client: ScheduleClient
    cache: LocalCache[ScheduleSnapshot]
    notifier: Notifier
    strategy: ScheduleStrategy = field(default_factory=UniformRandomStrategy)
    today: Callable[[], date] = date.today
    clock: Callable[[], datetime] = _utc_now

    schedule: WeekSchedule | None = field(default=None, init=False)
    has_unsaved_changes: bool = field(default=False, init=False)
    state: str = field(default=UNLOADED, init=False)
    loading: bool = field(default=False, init=False)
    saving: bool = field(default=False, init=False)
    publishing: bool = field(default=False, init=False)
    last_error: str | None = field(default=None, init=False)
    selected_day: str = field(default=WEEKDAYS[0], init=False)
    current_date: date | None = field(default=None, init=False)
    _request_seq: int = field(default=0, init=False, repr=False)
    _pending: "asyncio.Task[None] | None" = field(
        default=None, init=False, repr=False
    )
    _pending_week: date | None = field(default=None, init=False, repr=False)

    # Week navigation

    async def load_week(self, value: date | datetime) -> None:
        """Load the week containing `value`, from cache or the remote service.

        Loading the week that is already current is a no-op, and a second
        request for a week that is still being fetched joins that fetch. A
        request for a different week, including a return to the week already
        loaded, supersedes any fetch in flight.
        """
        week_start = week_start_for(value)
        self.current_date = _as_date(value)
        pending = self._pending
        if self.schedule is not None and self.schedule.week_start == week_start:
            if (
                pending is not None
                and not pending.done()
                and self._pending_week != week_start
            ):
                pending.cancel()
                self._request_seq += 1
                self.loading = False
                self.state = LOADED
            _logger.debug("Week %s already loaded", week_key(week_start))
            return
        if pending is not None and not pending.done():
            if self._pending_week == week_start:
                await self._await_fetch(pending, week_start)
                return
            pending.cancel()
        self._request_seq += 1
        if self._restore_from_cache(week_start):
            return
        await self._start_fetch(week_start)

    async def reload(self) -> None:
        """Fetch the current week again, bypassing the guard and the cache."""
        week_start = self._current_week_start()
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._request_seq += 1
        await self._start_fetch(week_start)

    async def previous_week(self) -> None:
        await self.load_week(self._anchor() - timedelta(days=7))

    async def next_week(self) -> None:
        await self.load_week(self._anchor() + timedelta(days=7))

    async def go_to_current_week(self) -> None:
        await self.load_week(self.today())

    # Day bucket mutations

    def add_combination(self, day: str, combination: Combination) -> None:
        """Append a combination to a day; duplicates are allowed."""
        schedule = self._require_schedule()
        bucket = schedule.bucket(day)
        schedule.pool.setdefault(combination.id, combination)
        bucket.combination_ids.append(combination.id)
        self._mark_dirty()
        self._notify("success", f"Combination added to {bucket.day}")

    def add_combination_by_id(self, day: str, combination_id: str) -> None:
        """Append an available combination by id, as a drag-and-drop would."""
        schedule = self._require_schedule()
        combination = schedule.pool.get(combination_id)
        if combination is None or not schedule.is_available(combination_id):
            raise ScheduleValidationError(
                f"Combination {combination_id} is not available this week"
            )
        self.add_combination(day, combination)

    def remove_combination(
        self, day: str, combination_id: str, *, all_matches: bool = True
    ) -> int:
        """Remove matching entries from a day and return how many were removed."""
        bucket = self._require_schedule().bucket(day)
        before = len(bucket.combination_ids)
        if all_matches:
            bucket.combination_ids = [
                item for item in bucket.combination_ids if item != combination_id
            ]
        elif combination_id in bucket.combination_ids:
            bucket.combination_ids.remove(combination_id)
        removed = before - len(bucket.combination_ids)
        self._mark_dirty()
        self._notify("success", f"Combination removed from {bucket.day}")
        return removed

    def copy_day(self, source_day: str, dest_day: str) -> None:
        """Replace the destination day with the source day's ids."""
        schedule = self._require_schedule()
        source = schedule.bucket(source_day)
        dest = schedule.bucket(dest_day)
        dest.combination_ids = list(source.combination_ids)
        self._mark_dirty()
        self._notify(
            "success", f"Combinations copied from {source.day} to {dest.day}"
        )

    def clear_day(self, day: str) -> None:
        bucket = self._require_schedule().bucket(day)
        bucket.combination_ids = []
        self._mark_dirty()
        self._notify("success", f"{bucket.day} cleared")

    def auto_schedule(self) -> None:
        """Refill every day using the configured strategy."""
        schedule = self._require_schedule()
        pool = schedule.available_combinations()
        if not pool:
            self._notify("error", "No combinations available to schedule")
            raise ScheduleValidationError("No combinations available to schedule")
        for day in WEEKDAYS:
            chosen = self.strategy.choose_for_day(pool, day)
            for combination in chosen:
                schedule.pool.setdefault(combination.id, combination)
            schedule.bucket(day).combination_ids = [item.id for item in chosen]
        self._mark_dirty()
        self._notify("success", "Automatic scheduling completed")

    def clone_combination(
        self, combination_id: str, new_id: str | None = None, **overrides: object
    ) -> Combination:
        """Copy a pooled combination under a new id so it can diverge per day."""
        schedule = self._require_schedule()
        original = schedule.pool.get(combination_id)
        if original is None:
            raise ScheduleValidationError(f"Unknown combination {combination_id}")
        clone = replace(original, id=new_id or uuid4().hex, **overrides)
        if clone.id in schedule.pool:
            raise ScheduleValidationError(f"Combination {clone.id} already exists")
        schedule.pool[clone.id] = clone
        schedule.available.append(clone.id)
        self._mark_dirty()
        return clone

    def select_day(self, day: str) -> None:
        self.selected_day = parse_weekday(day)

    def combinations_for(self, day: str) -> list[Combination]:
        if self.schedule is None:
            return []
        return self.schedule.combinations_for(day)

    def selected_day_combinations(self) -> list[Combination]:
        return self.combinations_for(self.selected_day)

    def total_combinations(self) -> int:
        if self.schedule is None:
            return 0
        return self.schedule.total_combinations()

    def reset_error(self) -> None:
        self.last_error = None

    # Templates

    async def save_template(self, name: str, description: str = "") -> Template:
        """Snapshot the week's assignments as a new remote template."""
        schedule = self._require_schedule()
        if not name.strip():
            self._notify("error", "Template name is required")
            raise ScheduleValidationError("Template name is required")
        payload = TemplatePayload(
            nombre=name.strip(),
            descripcion=description.strip(),
            programacion=schedule.programming(),
            fecha_creacion=self.clock(),
            es_activa=True,
        )
        try:
            created = await self.client.create_template(self.scope_id, payload)
        except RemoteOperationError as exc:
            self._report_failure("Failed to save template", exc)
            raise
        template = template_from_payload(created)
        schedule.templates.append(template)
        self._persist()
        self._notify("success", f'Template "{template.name}" saved')
        return template

    def load_template(self, template_id: str) -> TemplateLoadResult:
        """Replace every day with the template's ids still present in the pool.

        Ids that are no longer available are skipped and listed per day in
        the result's `dropped` mapping.
        """
        schedule = self._require_schedule()
        template = schedule.find_template(template_id)
        if template is None:
            self._notify("error", "Template not found")
            raise TemplateNotFoundError(template_id)
        applied: dict[str, list[str]] = {}
        dropped: dict[str, list[str]] = {}
        for day in WEEKDAYS:
            ids = template.programming.get(day, [])
            applied[day] = [item for item in ids if schedule.is_available(item)]
            dropped[day] = [item for item in ids if not schedule.is_available(item)]
            schedule.bucket(day).combination_ids = list(applied[day])
        result = TemplateLoadResult(
            template_id=template_id, applied=applied, dropped=dropped
        )
        if result.has_dropped:
            _logger.info(
                "Template %s referenced unavailable combinations: %s",
                template_id,
                {day: ids for day, ids in dropped.items() if ids},
            )
        self._mark_dirty()
        self._notify("success", f'Template "{template.name}" loaded')
        return result

    async def delete_template(self, template_id: str) -> None:
        schedule = self._require_schedule()
        template = schedule.find_template(template_id)
        if template is None:
            self._notify("error", "Template not found")
            raise TemplateNotFoundError(template_id)
        try:
            await self.client.delete_template(template_id, self.scope_id)
        except RemoteOperationError as exc:
            self._report_failure("Failed to delete template", exc)
            raise
        schedule.templates = [
            item for item in schedule.templates if item.id != template_id
        ]
        self._persist()
        self._notify("success", f'Template "{template.name}" deleted')

    # Draft and publish

    async def save_draft(self) -> None:
        """Persist the week remotely as a draft."""
        await self._save(publish=False)
        self._notify("success", "Programming saved as draft")

    async def publish(self) -> None:
        """Publish the week, then replace local state with the canonical copy."""
        schedule = self._require_schedule()
        if schedule.total_combinations() == 0:
            message = "Cannot publish a week without combinations"
            self._notify("error", message)
            raise ScheduleValidationError(message)
        await self._save(publish=True)
        self._notify("success", "Weekly programming published")
        try:
            await self.reload()
        except RemoteOperationError:
            _logger.warning("Published week %s could not be refreshed", schedule.key)

    async def _save(self, *, publish: bool) -> None:
        schedule = self._require_schedule()
        self.saving = not publish
        self.publishing = publish
        self.state = SAVING
        try:
            await self.client.save_schedule(
                self.scope_id, week_to_payload(schedule), publish=publish
            )
        except RemoteOperationError as exc:
            action = "publish programming" if publish else "save draft"
            self._report_failure(f"Failed to {action}", exc)
            raise
        finally:
            self.saving = False
            self.publishing = False
            self.state = LOADED
        status = "published" if publish else "draft"
        for bucket in schedule.days.values():
            bucket.status = status
            if publish:
                bucket.published_at = self.clock()
        self.has_unsaved_changes = False
        self.cache.clear(self._cache_key(schedule.week_start))
        self._persist()

    # Internals

    async def _start_fetch(self, week_start: date) -> None:
        task = asyncio.ensure_future(self._fetch_week(week_start, self._request_seq))
        self._pending = task
        self._pending_week = week_start
        await self._await_fetch(task, week_start)

    async def _await_fetch(
        self, task: "asyncio.Task[None]", week_start: date
    ) -> None:
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            _logger.info("Fetch for week %s was superseded", week_key(week_start))

    async def _fetch_week(self, week_start: date, seq: int) -> None:
        self.loading = True
        self.state = LOADING
        try:
            data = await self.client.fetch_schedule(self.scope_id, week_start)
            schedule = week_from_data(data)
        except ScheduleError as exc:
            if seq != self._request_seq:
                _logger.info("Ignoring failed stale fetch for %s", week_start)
                return
            self._report_failure("Failed to load weekly programming", exc)
            if isinstance(exc, RemoteOperationError):
                raise
            raise RemoteOperationError(f"Malformed schedule: {exc}") from exc
        finally:
            if seq == self._request_seq:
                self.loading = False
                self.state = LOADED if self.schedule is not None else UNLOADED
        if seq != self._request_seq:
            _logger.info("Ignoring stale response for week %s", week_key(week_start))
            return
        self._replace(schedule, dirty=False)
        self._persist()
        _logger.info(
            "Loaded week %s: combinations=%s templates=%s",
            schedule.key,
            len(schedule.available),
            len(schedule.templates),
        )

    def _restore_from_cache(self, week_start: date) -> bool:
        key = self._cache_key(week_start)
        snapshot = self.cache.get(key)
        if snapshot is None or snapshot.scope_id != self.scope_id:
            return False
        try:
            schedule = week_from_snapshot(snapshot)
        except ScheduleError as exc:
            _logger.warning("Discarding unusable cached week %s: %s", key, exc)
            self.cache.clear(key)
            return False
        if schedule is None or schedule.week_start != week_start:
            return False
        self._replace(schedule, dirty=snapshot.has_unsaved_changes)
        if snapshot.selected_day in WEEKDAYS:
            self.selected_day = snapshot.selected_day
        _logger.info("Restored week %s from cache", schedule.key)
        return True

    def _replace(self, schedule: WeekSchedule, *, dirty: bool) -> None:
        self.schedule = schedule
        self.has_unsaved_changes = dirty
        self.loading = False
        self.state = LOADED
        self.last_error = None

    def _mark_dirty(self) -> None:
        self.has_unsaved_changes = True
        self._persist()

    def _persist(self) -> None:
        if self.schedule is None:
            return
        snapshot = snapshot_from_week(
            self.scope_id,
            self.schedule,
            has_unsaved_changes=self.has_unsaved_changes,
            selected_day=self.selected_day,
        )
        self.cache.set(self._cache_key(self.schedule.week_start), snapshot)

    def _cache_key(self, week_start: date) -> str:
        return cache_key(self.scope_id, week_key(week_start))

    def _require_schedule(self) -> WeekSchedule:
        if self.schedule is None:
            raise ScheduleValidationError("No week is loaded")
        return self.schedule

    def _current_week_start(self) -> date:
        if self.schedule is not None:
            return self.schedule.week_start
        return week_start_for(self._anchor())

    def _anchor(self) -> date:
        return self.current_date or self.today()

    def _report_failure(self, message: str, exc: Exception) -> None:
        _logger.warning("%s: %s", message, exc)
        self.last_error = str(exc)
        self._notify("error", message)

    def _notify(self, kind: str, message: str) -> None:
        try:
            getattr(self.notifier, kind)(message)
        except Exception:
            _logger.exception("Notification delivery failed: %s", message)
