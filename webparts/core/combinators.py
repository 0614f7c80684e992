"""
Combinator algebra for request handling parts.

A part receives the rest of the pipeline (``next``) and the current context,
and decides whether, how and with what context to continue. Declining is
signalled by resolving to ``None``; exceptions are never used for route misses.
"""

"""
Copyright 2025 Chris Bunting
File: combinators.py | Purpose: compose/choose/filter_p algebra
@author Chris Bunting | @version 1.0.0

CHANGELOG:
2025-09-02 - Chris Bunting: Added explicit-logger log part
2025-08-28 - Chris Bunting: Initial implementation
"""

import logging
from typing import Awaitable, Callable, Iterable, Optional, Union

from .context import HttpContext

Task = Awaitable[Optional[HttpContext]]
Handler = Callable[[HttpContext], Task]
PartFunc = Callable[[Handler, HttpContext], Task]


class WebPart:
    """A composable request-handling step.

    Wraps an async callable ``(next, ctx) -> Optional[HttpContext]``. Parts
    compose with ``>>``::

        app = meth(Method.GET) >> path("/") >> text("hello")
    """

    __slots__ = ("_func", "name")

    def __init__(self, func: PartFunc, name: Optional[str] = None):
        if not callable(func):
            raise TypeError("WebPart requires a callable (next, ctx) -> awaitable")
        self._func = func
        self.name = name or getattr(func, "__name__", "part")

    def __call__(self, next: Handler, ctx: HttpContext) -> Task:
        return self._func(next, ctx)

    def __rshift__(self, other: "PartLike") -> "WebPart":
        return compose(self, other)

    def __rrshift__(self, other: "PartLike") -> "WebPart":
        return compose(other, self)

    def __repr__(self) -> str:
        return f"<WebPart {self.name}>"


PartLike = Union[WebPart, PartFunc]


def web_part(func: PartFunc) -> WebPart:
    """Decorator turning an async ``(next, ctx)`` function into a WebPart."""
    return WebPart(func)


def as_part(part: PartLike) -> WebPart:
    if isinstance(part, WebPart):
        return part
    return WebPart(part)


async def accept(ctx: HttpContext) -> Optional[HttpContext]:
    """Terminal handler: the chain handled the request."""
    return ctx


async def _fail(next: Handler, ctx: HttpContext) -> Optional[HttpContext]:
    return None


fail = WebPart(_fail, name="fail")
"""Part that always declines without calling ``next``."""


def _compose2(a: PartLike, b: PartLike) -> WebPart:
    async def composed(next: Handler, ctx: HttpContext) -> Optional[HttpContext]:
        return await a(lambda x: b(next, x), ctx)

    return WebPart(composed, name=f"{_name(a)} >> {_name(b)}")


def compose(first: PartLike, *rest: PartLike) -> WebPart:
    """Sequence parts: ``first`` runs with a continuation that runs the rest.

    ``compose(a, b)`` is ``(next, ctx) -> a(x -> b(next, x), ctx)``. With more
    than two arguments the parts are folded from the left, which is
    observationally the same as any other grouping.
    """
    result = as_part(first)
    for part in rest:
        result = _compose2(result, part)
    return result


def choose(parts: Iterable[PartLike]) -> WebPart:
    """Try ``parts`` in order against the same ``next`` and ``ctx``.

    The first part resolving to a context wins and later parts are not
    evaluated. Parts run strictly one after another, never concurrently.
    """
    options = tuple(parts)

    async def chooser(next: Handler, ctx: HttpContext) -> Optional[HttpContext]:
        for option in options:
            result = await option(next, ctx)
            if result is not None:
                return result
        return None

    return WebPart(chooser, name=f"choose[{len(options)}]")


def filter_p(predicate: Callable[[HttpContext], bool]) -> WebPart:
    """Guard: continue unchanged when ``predicate(ctx)`` holds, else decline."""

    async def guard(next: Handler, ctx: HttpContext) -> Optional[HttpContext]:
        if predicate(ctx):
            return await next(ctx)
        return None

    return WebPart(guard, name=f"filter_p({_name(predicate)})")


def log(logger: logging.Logger,
        msgf: Callable[[HttpContext], str],
        level: int = logging.INFO) -> WebPart:
    """Log ``msgf(ctx)`` on ``logger`` and continue.

    Args:
        logger: Logger the message is emitted on
        msgf: Builds the message from the current context
        level: Logging level (default: INFO)
    """

    async def logged(next: Handler, ctx: HttpContext) -> Optional[HttpContext]:
        if logger.isEnabledFor(level):
            logger.log(level, msgf(ctx))
        return await next(ctx)

    return WebPart(logged, name="log")


def _name(obj) -> str:
    if isinstance(obj, WebPart):
        return obj.name
    return getattr(obj, "__name__", repr(obj))
