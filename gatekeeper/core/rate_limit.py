"""
Request rate limiting (slowapi, in-memory, keyed by client address).
A global default applies to every route; login has its own tighter limit against password guessing.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from gatekeeper.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.default_rate_limit],
    enabled=settings.rate_limit_enabled,
)
