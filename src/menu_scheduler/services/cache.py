"""TTL-bounded local cache for engine snapshots."""

import json
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, Generic, Protocol, TypeVar, get_origin

from pydantic import AwareDatetime, BaseModel, Field, ValidationError
from pydantic_core import PydanticSerializationError

DEFAULT_TTL = timedelta(minutes=30)

_logger = logging.getLogger(__name__)

StateT = TypeVar("StateT", bound=BaseModel)


class KeyValueStore(Protocol):
    """Synchronous key to string store."""

    def get_item(self, key: str) -> str | None:
        """Return the stored string, if present."""

    def set_item(self, key: str, value: str) -> None:
        """Store a string under a key."""

    def remove_item(self, key: str) -> None:
        """Remove a key if present."""


@dataclass
class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store, mainly for tests and server-side sessions."""

    items: dict[str, str] = field(default_factory=dict)

    def get_item(self, key: str) -> str | None:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)


def cache_key(scope_id: str, week: str) -> str:
    """Build the store key for one scope and week."""
    return f"menu_scheduler:{scope_id}:{week}"


def is_expired(timestamp: datetime, now: datetime, ttl: timedelta) -> bool:
    """Return whether an entry written at `timestamp` is expired at `now`."""
    return now - timestamp >= ttl


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class _CacheEnvelope(BaseModel):
    data: dict[str, Any]
    timestamp: AwareDatetime
    ttl_minutes: float | None = Field(default=None, alias="ttlMinutes")


@dataclass(frozen=True)
class CacheStats:
    """Read-only view of a cache entry."""

    exists: bool
    size_bytes: int
    remaining_minutes: int
    last_updated: datetime | None


_EMPTY_STATS = CacheStats(
    exists=False, size_bytes=0, remaining_minutes=0, last_updated=None
)


@dataclass
class LocalCache(Generic[StateT]):
    """Persist pydantic state snapshots with lazy TTL expiry.

    The cache never raises to its caller. Unreadable, corrupt or expired
    entries are removed and reported as missing. A ``None`` store behaves
    as an always-empty cache.

    ``identity_fields`` names the fields compared against the stored entry
    before writing: list fields by their sorted item ids, scalar fields by
    value. When all of them match the write is skipped.
    """

    store: KeyValueStore | None
    model: type[StateT]
    ttl: timedelta = DEFAULT_TTL
    identity_fields: tuple[str, ...] = ()
    clock: Callable[[], datetime] = _utc_now

    def get(self, key: str) -> StateT | None:
        """Return the cached state if present and not expired."""
        envelope = self._read_envelope(key)
        if envelope is None:
            return None
        if is_expired(envelope.timestamp, self.clock(), self._ttl_of(envelope)):
            _logger.info("Cache entry expired: key=%s", key)
            self.clear(key)
            return None
        try:
            return self.model.model_validate(self._coerce_arrays(envelope.data))
        except ValidationError as exc:
            _logger.warning("Discarding malformed cache entry %s: %s", key, exc)
            self.clear(key)
            return None

    def set(self, key: str, state: StateT) -> bool:
        """Store state, skipping the write when its identity is unchanged."""
        payload = self._dump(state)
        if not self._identity_changed(key, payload):
            _logger.debug("Cache write skipped, identity unchanged: key=%s", key)
            return False
        envelope = {
            "data": payload,
            "timestamp": self.clock().isoformat(),
            "ttlMinutes": self.ttl.total_seconds() / 60,
        }
        return self._write(key, json.dumps(envelope))

    def update(self, key: str, partial: dict[str, object]) -> bool:
        """Shallow-merge top-level fields over the current state and store it."""
        current = self.get(key) or self.model()
        merged = {**current.model_dump(), **partial}
        try:
            state = self.model.model_validate(merged)
        except ValidationError as exc:
            _logger.warning("Rejected cache update for %s: %s", key, exc)
            return False
        return self.set(key, state)

    def clear(self, key: str) -> None:
        """Remove the entry unconditionally."""
        if self.store is None:
            return
        try:
            self.store.remove_item(key)
        except OSError:
            _logger.exception("Failed to remove cache entry %s", key)

    def has_cache(self, key: str) -> bool:
        """Return whether a non-expired entry exists."""
        envelope = self._read_envelope(key)
        if envelope is None:
            return False
        return not is_expired(
            envelope.timestamp, self.clock(), self._ttl_of(envelope)
        )

    def remaining_time(self, key: str) -> int:
        """Return whole minutes of validity left, rounded up."""
        envelope = self._read_envelope(key)
        if envelope is None:
            return 0
        return self._remaining_minutes(envelope)

    def extend_ttl(self, key: str, minutes: float) -> bool:
        """Lengthen the TTL of an existing entry."""
        envelope = self._read_envelope(key)
        if envelope is None:
            return False
        envelope.ttl_minutes = self._ttl_of(envelope).total_seconds() / 60 + minutes
        return self._write(key, envelope.model_dump_json(by_alias=True))

    def stats(self, key: str) -> CacheStats:
        """Describe the stored entry without touching it."""
        raw = self._read(key)
        if raw is None:
            return _EMPTY_STATS
        try:
            envelope = _CacheEnvelope.model_validate_json(raw)
        except ValidationError:
            return _EMPTY_STATS
        return CacheStats(
            exists=True,
            size_bytes=len(raw.encode()),
            remaining_minutes=self._remaining_minutes(envelope),
            last_updated=envelope.timestamp,
        )

    def _ttl_of(self, envelope: _CacheEnvelope) -> timedelta:
        if envelope.ttl_minutes is None:
            return self.ttl
        return timedelta(minutes=envelope.ttl_minutes)

    def _remaining_minutes(self, envelope: _CacheEnvelope) -> int:
        expires_at = envelope.timestamp + self._ttl_of(envelope)
        remaining = (expires_at - self.clock()).total_seconds()
        return max(0, math.ceil(remaining / 60))

    def _dump(self, state: StateT) -> dict[str, object]:
        try:
            return json.loads(state.model_dump_json())
        except (PydanticSerializationError, ValueError) as exc:
            _logger.warning(
                "Cache serialization failed, storing empty state: %s", exc
            )
            return json.loads(self.model().model_dump_json())

    def _coerce_arrays(self, data: dict[str, object]) -> dict[str, object]:
        coerced = dict(data)
        for name, info in self.model.model_fields.items():
            if get_origin(info.annotation) is list and not isinstance(
                coerced.get(name), list
            ):
                coerced[name] = []
        return coerced

    def _identity_changed(self, key: str, payload: dict[str, object]) -> bool:
        if not self.identity_fields:
            return True
        envelope = self._read_envelope(key)
        if envelope is None:
            return True
        if is_expired(envelope.timestamp, self.clock(), self._ttl_of(envelope)):
            return True
        for name in self.identity_fields:
            if name not in envelope.data or name not in payload:
                return True
            old = _identity_of(envelope.data[name])
            new = _identity_of(payload[name])
            if old is _UNCOMPARABLE or new is _UNCOMPARABLE or old != new:
                return True
        return False

    def _read_envelope(self, key: str) -> _CacheEnvelope | None:
        raw = self._read(key)
        if raw is None:
            return None
        try:
            return _CacheEnvelope.model_validate_json(raw)
        except ValidationError as exc:
            _logger.warning("Discarding corrupted cache entry %s: %s", key, exc)
            self.clear(key)
            return None

    def _read(self, key: str) -> str | None:
        if self.store is None:
            return None
        try:
            return self.store.get_item(key)
        except UnicodeDecodeError as exc:
            _logger.warning("Discarding undecodable cache entry %s: %s", key, exc)
            self.clear(key)
            return None
        except OSError:
            _logger.exception("Failed to read cache entry %s", key)
            return None

    def _write(self, key: str, raw: str) -> bool:
        if self.store is None:
            return False
        try:
            self.store.set_item(key, raw)
        except OSError:
            _logger.exception("Failed to write cache entry %s", key)
            return False
        return True


_UNCOMPARABLE = object()


def _identity_of(value: object) -> object:
    """Sorted item ids of a list field, or the value of a scalar field."""
    if isinstance(value, list):
        ids = []
        for item in value:
            if not isinstance(item, dict) or "id" not in item:
                return _UNCOMPARABLE
            ids.append(str(item["id"]))
        return sorted(ids)
    if value is None or isinstance(value, str | bool | int | float):
        return value
    return _UNCOMPARABLE
