"""
Cookie jar parts.

``use_cookie`` parses the inbound Cookie headers onto the context and
``set_cookie`` registers outbound directives in the pending map. The pending
map is only turned into Set-Cookie headers by :func:`serialize_cookies`, which
the server adapter calls once the whole chain has resolved.
"""

"""
Copyright 2025 Chris Bunting
File: cookies.py | Purpose: Inbound cookie parsing and outbound Set-Cookie
@author Chris Bunting | @version 1.0.0

CHANGELOG:
2025-08-29 - Chris Bunting: Initial implementation
"""

from typing import List, Optional, Tuple
from urllib.parse import quote, unquote

from ..core.combinators import Handler, WebPart
from ..core.context import HttpContext, SetCookie


def parse_cookie_header(value: str) -> List[Tuple[str, str]]:
    """Split one Cookie header into ordered, percent-decoded pairs.

    Pairs without ``=`` or with an empty name are skipped.
    """
    pairs: List[Tuple[str, str]] = []
    for item in value.split(";"):
        item = item.strip()
        if not item or "=" not in item:
            continue
        name, raw = item.split("=", 1)
        name = name.strip()
        if not name:
            continue
        raw = raw.strip()
        if len(raw) >= 2 and raw[0] == raw[-1] == '"':
            raw = raw[1:-1]
        pairs.append((unquote(name), unquote(raw)))
    return pairs


def _encode(value: str) -> str:
    return quote(value, safe="")


async def _use_cookie(next: Handler, ctx: HttpContext) -> Optional[HttpContext]:
    cookies: List[Tuple[str, str]] = []
    for header in ctx.request.headers.get_all("Cookie"):
        cookies.extend(parse_cookie_header(header))
    return await next(ctx.replace(cookies=tuple(cookies)))


use_cookie = WebPart(_use_cookie, name="use_cookie")
"""Parse the request's Cookie headers into ``ctx.cookies``."""


def cookie(ctx: HttpContext, key: str) -> Optional[str]:
    """Return the first inbound cookie value named ``key``.

    Only meaningful after ``use_cookie`` ran; returns None otherwise.
    """
    if not ctx.cookies:
        return None
    for name, value in ctx.cookies:
        if name == key:
            return value
    return None


def pending_cookie(ctx: HttpContext, key: str) -> Optional[SetCookie]:
    """Look up a pending Set-Cookie directive by its unencoded name."""
    return ctx.pending_cookies.get(_encode(key))


def set_cookie(key: str,
               value: str,
               expiration: Optional[int] = None,
               path: Optional[str] = None,
               domain: Optional[str] = None,
               secure: bool = False,
               http_only: bool = False) -> WebPart:
    """Register an outbound cookie.

    Args:
        key: Cookie name (percent-encoded before storage)
        value: Cookie value (percent-encoded before storage)
        expiration: Max-Age in seconds, None for a session cookie
        path: Optional Path attribute
        domain: Optional Domain attribute
        secure: Add the Secure attribute
        http_only: Add the HttpOnly attribute

    Returns:
        A pass-through part that overwrites any pending cookie of the same name
    """
    directive = SetCookie(
        name=_encode(key),
        value=_encode(value),
        expiration=expiration,
        path=path,
        domain=domain,
        secure=secure,
        http_only=http_only,
    )

    async def setter(next: Handler, ctx: HttpContext) -> Optional[HttpContext]:
        return await next(ctx.with_pending_cookie(directive))

    return WebPart(setter, name=f"set_cookie({key})")


def serialize_cookies(ctx: HttpContext) -> HttpContext:
    """Flatten the pending cookie map into Set-Cookie response headers.

    Called by the server adapter only, after the chain resolved. Returns
    ``ctx`` untouched when nothing is pending.
    """
    if not ctx.pending_cookies:
        return ctx
    headers = ctx.headers
    for directive in ctx.pending_cookies.values():
        headers = headers.add("Set-Cookie", directive.serialize())
    return ctx.replace(headers=headers, pending_cookies={})
