"""
Request rate limiting.

A single process-wide slowapi limiter keyed by client address. slowapi calls
limit providers without the request, so the settings of the application
serving the current request are bound to a context variable by the request
middleware and read back when a limit is resolved.
"""

from contextvars import ContextVar, Token
from typing import Optional

from slowapi import Limiter
from slowapi.util import get_remote_address

from storefront.core.config import Settings, get_settings

limiter = Limiter(key_func=get_remote_address)

_request_settings: ContextVar[Optional[Settings]] = ContextVar(
    "rate_limit_settings", default=None
)


def bind_request_settings(settings: Settings) -> Token:
    """Bind the serving application's settings for the current request."""
    return _request_settings.set(settings)


def reset_request_settings(token: Token) -> None:
    _request_settings.reset(token)


def order_rate_limit() -> str:
    """Rate limit string applied to order creation."""
    settings = _request_settings.get() or get_settings()
    return settings.order_rate_limit
