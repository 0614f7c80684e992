"""
Security middleware parts: CORS handling and secure response headers.

This module provides security-related parts built purely from the combinator
algebra:
- CORS configuration and the ``simple_cors`` part
- X-Frame-Options helper
- A fixed bundle of hardening headers (``secure_headers``)
"""

"""
Copyright 2025 Chris Bunting
File: security.py | Purpose: CORS and secure-headers middleware parts
@author Chris Bunting | @version 2.0.0

CHANGELOG:
2025-08-29 - Chris Bunting: Rewrote CORS and hardening headers as web parts
2025-07-11 - Chris Bunting: Fixed CORS headers
2025-07-10 - Chris Bunting: Initial implementation
"""

from dataclasses import dataclass, field
from typing import Callable, FrozenSet, Iterable, Optional, Union

from ..core.combinators import Handler, WebPart, compose
from ..core.context import HttpContext, Method
from ..core.response import set_header


@dataclass(frozen=True)
class AnyOrigin:
    """Allow every origin."""

    def allows(self, origin: str) -> bool:
        return True


@dataclass(frozen=True)
class OneOf:
    """Allow origins from a fixed list, compared case-insensitively."""
    origins: FrozenSet[str] = field(default_factory=frozenset)

    def __init__(self, origins: Iterable[str]):
        object.__setattr__(self, "origins", frozenset(o.lower() for o in origins))

    def allows(self, origin: str) -> bool:
        return origin.lower() in self.origins


@dataclass(frozen=True)
class Predicate:
    """Allow origins accepted by an arbitrary function."""
    func: Callable[[str], bool]

    def allows(self, origin: str) -> bool:
        return bool(self.func(origin))


OriginPolicy = Union[AnyOrigin, OneOf, Predicate]


@dataclass(frozen=True)
class CorsConfig:
    """CORS configuration settings.

    Attributes:
        allowed_origin: Which Origin values get CORS headers
        allow_cookies: Value of Access-Control-Allow-Credentials
        max_age: Access-Control-Max-Age in seconds, omitted when None
        expose_headers: Literal Access-Control-Expose-Headers value
    """
    allowed_origin: OriginPolicy = field(default_factory=AnyOrigin)
    allow_cookies: bool = True
    max_age: Optional[int] = 3600  # 1 hour
    expose_headers: Optional[str] = None

    def __post_init__(self):
        if self.max_age is not None and self.max_age < 0:
            raise ValueError("max_age must not be negative")


def simple_cors(config: Optional[CorsConfig] = None) -> WebPart:
    """Add CORS response headers for permitted cross-origin requests.

    Requests without an Origin header, and requests whose origin the policy
    does not permit, pass through untouched. No rejection is emitted: the
    missing Access-Control-Allow-Origin header is what stops the browser.

    For a permitted origin the exact Origin value is echoed (never ``*``, so
    credentialed requests keep working), credentials are set per config,
    preflight method and header requests are echoed, then Max-Age and
    Expose-Headers are applied when configured.
    """
    config = config or CorsConfig()
    credentials = "true" if config.allow_cookies else "false"

    async def cors(next: Handler, ctx: HttpContext) -> Optional[HttpContext]:
        headers = ctx.request.headers
        origin = headers.get("Origin")
        if origin is None or not config.allowed_origin.allows(origin):
            return await next(ctx)

        parts = [
            set_header("Access-Control-Allow-Origin", origin),
            set_header("Access-Control-Allow-Credentials", credentials),
        ]
        request_method = headers.get("Access-Control-Request-Method")
        if request_method is not None and ctx.request.method is Method.OPTIONS:
            parts.append(set_header("Access-Control-Allow-Methods", request_method))
        request_headers = headers.get("Access-Control-Request-Headers")
        if request_headers is not None:
            parts.append(set_header("Access-Control-Allow-Headers", request_headers))
        if config.max_age is not None:
            parts.append(set_header("Access-Control-Max-Age", str(config.max_age)))
        if config.expose_headers is not None:
            parts.append(set_header("Access-Control-Expose-Headers", config.expose_headers))
        return await compose(*parts)(next, ctx)

    return WebPart(cors, name="simple_cors")


DENY = "DENY"
SAMEORIGIN = "SAMEORIGIN"


def allow_from(site: str) -> str:
    return f"ALLOW-FROM {site}"


def x_frame_options(value: str) -> WebPart:
    """Set X-Frame-Options to DENY, SAMEORIGIN or ``allow_from(site)``."""
    if value not in (DENY, SAMEORIGIN) and not value.startswith("ALLOW-FROM "):
        raise ValueError(f"Invalid X-Frame-Options value: {value!r}")
    return set_header("X-Frame-Options", value)


CONTENT_SECURITY_POLICY = "default-src https: data: 'unsafe-inline' 'unsafe-eval'"
STRICT_TRANSPORT_SECURITY = "max-age=31536000; includeSubDomains"  # one year

secure_headers = compose(
    x_frame_options(SAMEORIGIN),
    set_header("Referrer-Policy", "same-origin"),
    set_header("X-Xss-Protection", "1; mode=block"),
    set_header("X-Content-Type-Options", "nosniff"),
    set_header("Content-Security-Policy", CONTENT_SECURITY_POLICY),
    set_header("Strict-Transport-Security", STRICT_TRANSPORT_SECURITY),
)
