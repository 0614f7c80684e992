"""
Routing predicates.

Every matcher here is a guard built on ``filter_p`` over a pure function of
the context, so they all decline the same way: silently, by resolving to
``None``. ``path_scanf`` is the one exception in shape (it continues with a
part built from the captured values) but shares the same failure semantics.
"""

import re
from typing import Callable, Optional

from .combinators import Handler, PartLike, WebPart, filter_p
from .context import HttpContext, Method
from .scanf import PathFormat, ScanError


def path_p(predicate: Callable[[str], bool]) -> WebPart:
    """Guard on an arbitrary predicate over the request path."""
    return filter_p(lambda ctx: predicate(ctx.request.path))


def path(expect: str) -> WebPart:
    """Match the request path exactly."""
    return path_p(lambda p: p == expect)


def path_ci(expect: str) -> WebPart:
    """Match the request path ignoring case."""
    expected = expect.casefold()
    return path_p(lambda p: p.casefold() == expected)


def path_starts(prefix: str) -> WebPart:
    return path_p(lambda p: p.startswith(prefix))


def path_starts_ci(prefix: str) -> WebPart:
    folded = prefix.casefold()
    return path_p(lambda p: p.casefold().startswith(folded))


def path_regex(pattern: str, flags: int = 0) -> WebPart:
    """Match the request path against a regular expression.

    The pattern is compiled once, when the part is built, and searched
    anywhere in the path; anchor it with ``^``/``$`` for a full match.
    """
    compiled = re.compile(pattern, flags)
    return path_p(lambda p: compiled.search(p) is not None)


def path_scanf(fmt: str, scanner: Callable[..., PartLike]) -> WebPart:
    """Parse the path with a scanf-style format and continue with ``scanner``.

    Args:
        fmt: Format using ``%d``/``%s`` captures (see :mod:`webparts.core.scanf`)
        scanner: Called with the captured values; must return a part

    Returns:
        A part that runs ``scanner(*values)`` on a match and declines otherwise
    """
    compiled = PathFormat(fmt)

    async def scanned(next: Handler, ctx: HttpContext) -> Optional[HttpContext]:
        try:
            values = compiled.scan(ctx.request.path)
        except ScanError:
            return None
        return await scanner(*values)(next, ctx)

    return WebPart(scanned, name=f"path_scanf({fmt!r})")


def meth(verb: Method) -> WebPart:
    """Match the request method."""
    if not isinstance(verb, Method):
        verb = Method.parse(str(verb).upper())
    return filter_p(lambda ctx: ctx.request.method is verb)


def host(hostname: str) -> WebPart:
    """Match the Host header, ignoring case. A missing header never matches."""
    expected = hostname.lower()

    def matches(ctx: HttpContext) -> bool:
        value = ctx.request.headers.get("Host")
        return value is not None and value.lower() == expected

    return filter_p(matches)
