"""Error types raised by the scheduling engine."""


class ScheduleError(Exception):
    """Base error for weekly menu scheduling."""


class ScheduleValidationError(ScheduleError):
    """Raised when an operation is rejected before any remote call."""


class RemoteOperationError(ScheduleError):
    """Raised when the remote schedule service fails or reports failure."""


class TemplateNotFoundError(ScheduleError):
    """Raised when a template id is not part of the loaded week."""
