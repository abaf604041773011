"""Structured logging helpers shared by every component."""

import logging
from typing import Any, Optional, Union

from .context import clear_log_context, get_log_context, log_context


class ComponentLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges its static fields with per-call ``extra``.

    Per-call values win, so a call can override ``component`` if needed.
    """

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(
    name: str, component: Optional[str] = None, **static_fields: Any
) -> Union[logging.Logger, ComponentLoggerAdapter]:
    """Get a logger that tags records with a component name.

    Args:
        name: Logger name (typically __name__)
        component: Component label added to every record (store, fanout, matching, ...)
        **static_fields: Further fields added to every record

    Returns:
        Plain logger when no fields are given, otherwise a ComponentLoggerAdapter

    Example:
        >>> logger = get_logger(__name__, component="store")
        >>> logger.info("Store loaded", extra={"event": "store.loaded", "clients": 12})
    """
    logger = logging.getLogger(name)

    fields = dict(static_fields)
    if component:
        fields["component"] = component

    if not fields:
        return logger

    return ComponentLoggerAdapter(logger, fields)


__all__ = [
    "ComponentLoggerAdapter",
    "get_logger",
    "log_context",
    "get_log_context",
    "clear_log_context",
]
