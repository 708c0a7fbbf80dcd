"""Logging configuration helpers."""

import logging

_FORMAT = "%(levelname)s: %(name)s [%(scope_id)s]: %(message)s"


class _ScopeFilter(logging.Filter):
    """Stamps every record with the restaurant scope being scheduled."""

    def __init__(self, scope_id: str) -> None:
        super().__init__()
        self.scope_id = scope_id

    def filter(self, record: logging.LogRecord) -> bool:
        record.scope_id = self.scope_id
        return True


def configure_logging(level: str = "INFO", scope_id: str = "-") -> None:
    """Configure the `menu_scheduler` logger with a single scoped stream handler.

    Repeated calls only adjust the level and scope. Per-request httpx logs are
    raised to WARNING so schedule client traffic does not drown engine events.
    """
    logger = logging.getLogger("menu_scheduler")
    logger.setLevel(level.upper())
    logging.getLogger("httpx").setLevel(logging.WARNING)
    if logger.handlers:
        for handler in logger.handlers:
            for existing in handler.filters:
                if isinstance(existing, _ScopeFilter):
                    existing.scope_id = scope_id
        return
    handler = logging.StreamHandler()
    handler.addFilter(_ScopeFilter(scope_id))
    handler.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
