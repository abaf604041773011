"""Context propagation for structured logging.

Fields bound here (offer_id, phone, search_id, run_id, ...) are attached to
every log record emitted inside the scope. Backed by contextvars, so the
deferred-dispatch scheduler thread keeps its own context.
"""

from contextvars import ContextVar, Token
from typing import Any, Dict, Optional

LogContextVar: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the active logging context."""
    return dict(LogContextVar.get())


def push_log_context(**fields: Any) -> Token:
    """Merge fields into the active context.

    Returns:
        Token for pop_log_context()
    """
    merged = {**LogContextVar.get(), **fields}
    return LogContextVar.set(merged)


def pop_log_context(token: Token) -> None:
    """Restore the context that was active before push_log_context()."""
    LogContextVar.reset(token)


def clear_log_context() -> None:
    """Drop every context field. Mainly for tests."""
    LogContextVar.set({})


class log_context:
    """Scoped logging context.

    Example:
        >>> with log_context(offer_id="A1"):
        ...     logger.info("Evaluating offer")  # carries offer_id
    """

    def __init__(self, **fields: Any):
        self.fields = fields
        self.token: Optional[Token] = None

    def __enter__(self) -> "log_context":
        self.token = push_log_context(**self.fields)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if self.token is not None:
            pop_log_context(self.token)
            self.token = None
        return False
