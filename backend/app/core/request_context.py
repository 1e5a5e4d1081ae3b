"""Per-request context (request id and acting user) for log correlation."""

from __future__ import annotations

from contextvars import ContextVar, Token
import logging
from typing import Optional

_request_id_var: ContextVar[str] = ContextVar("request_id", default="")
_actor_var: ContextVar[str] = ContextVar("actor", default="")


def set_request_id(request_id: Optional[str]) -> Token[str]:
    return _request_id_var.set(request_id or "")


def reset_request_id(token: Token[str]) -> None:
    _request_id_var.reset(token)


def get_request_id(default: Optional[str] = None) -> Optional[str]:
    value = _request_id_var.get()
    return value if value else default


def set_actor(role: Optional[str], actor_id: Optional[str]) -> Token[str]:
    """Remember who is acting so booking logs can be traced back to them."""
    label = f"{role}:{actor_id}" if role and actor_id else ""
    return _actor_var.set(label)


class RequestContextFilter(logging.Filter):
    """Stamp request_id and actor onto every record passing through a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = _request_id_var.get() or "no-request"
        if not hasattr(record, "actor"):
            record.actor = _actor_var.get() or "anonymous"
        return True


def attach_request_context_filter(logger: Optional[logging.Logger] = None) -> None:
    target = logger or logging.getLogger()
    for handler in target.handlers:
        if not any(isinstance(f, RequestContextFilter) for f in handler.filters):
            handler.addFilter(RequestContextFilter())
