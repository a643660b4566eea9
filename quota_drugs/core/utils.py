import logging
from typing import Any, Dict, Optional, Union

LogMessage = Union[str, Dict[str, Any]]

AUDIT_PREFIX = "AUDIT EVENT:"


def render_event(message: LogMessage) -> str:
    """
    Render a log message as one line.

    Structured messages are dicts with an ``"event"`` key; the event name is
    written first and the remaining keys follow as ``key=value`` pairs.
    """
    if not isinstance(message, dict):
        return str(message)
    fields = dict(message)
    event = fields.pop("event", "event")
    details = " ".join(f"{key}={value}" for key, value in fields.items())
    return f"{event} {details}".strip()


class LoggerMixin:
    """
    Structured logging for services.

    Each class logs under ``quota_drugs.<ClassName>`` so a service's events
    can be filtered by logger name.

    Example:
        class EnrollmentService(LoggerMixin):
            def deactivate(self):
                self.log_info({"event": "enrollment_deactivated", "id": "..."})
    """

    logger_name: Optional[str] = None

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._logger: Optional[logging.Logger] = None

    @property
    def logger(self) -> logging.Logger:
        if getattr(self, "_logger", None) is None:
            name = self.logger_name or f"quota_drugs.{type(self).__name__}"
            self._logger = logging.getLogger(name)
        return self._logger

    def log_info(self, message: LogMessage, **kwargs) -> None:
        self.logger.info(render_event(message), **kwargs)

    def log_warning(self, message: LogMessage, **kwargs) -> None:
        self.logger.warning(render_event(message), **kwargs)

    def log_error(self, message: LogMessage, exc_info: bool = False, **kwargs) -> None:
        """Pass ``exc_info=True`` from an ``except`` block to keep the traceback."""
        self.logger.error(render_event(message), exc_info=exc_info, **kwargs)

    def log_audit_event(self, message: LogMessage, **kwargs) -> None:
        """
        Record a destructive or retiring change to quota drug data.

        Deletions, deactivations and defaulter moves are logged at warning
        level behind ``AUDIT EVENT:`` so they can be grepped out of the log.
        """
        self.logger.warning(f"{AUDIT_PREFIX} {render_event(message)}", **kwargs)


class _ModuleLogger(LoggerMixin):
    """Logger for routes and handlers that are plain functions."""

    logger_name = "quota_drugs.api"


logger = _ModuleLogger()
