"""Domain models for weekly programming templates."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Template:
    """Named snapshot of a weekday to combination-id assignment."""

    id: str
    name: str
    programming: dict[str, list[str]]
    created_at: datetime
    description: str = ""
    active: bool = True


@dataclass(frozen=True)
class TemplateLoadResult:
    """Outcome of applying a template to the loaded week."""

    template_id: str
    applied: dict[str, list[str]]
    dropped: dict[str, list[str]] = field(default_factory=dict)

    @property
    def has_dropped(self) -> bool:
        """Return whether any referenced combination was missing from the pool."""
        return any(self.dropped.values())
