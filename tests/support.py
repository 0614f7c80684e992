"""
Shared helpers for building contexts and running parts in tests
"""
import asyncio
from typing import Dict, Iterable, Optional, Tuple, Union

from webparts.core.combinators import accept
from webparts.core.context import Headers, HttpRequest, Method, make_context


def make_ctx(method: Union[Method, str] = Method.GET,
             target: str = "/",
             headers: Union[Dict[str, str], Iterable[Tuple[str, str]], None] = None,
             body: bytes = b""):
    """Build a fresh context the way the server adapter does."""
    raw_method = ""
    if isinstance(method, str):
        raw_method = method
        method = Method.parse(method)
    request = HttpRequest(method=method, target=target, headers=Headers.of(headers), body=body,
                          raw_method=raw_method)
    return make_context(request, conn=("127.0.0.1", 50000))


def run_part(part, ctx, next=accept):
    """Run ``part`` against ``next`` and return what the task resolved to."""
    return asyncio.run(part(next, ctx))


async def drain(body) -> bytes:
    """Consume a StreamBody into bytes."""
    chunks = []
    async for chunk in body.stream:
        chunks.append(chunk.encode("utf-8") if isinstance(chunk, str) else chunk)
    return b"".join(chunks)


def drain_sync(body) -> bytes:
    return asyncio.run(drain(body))


class Recorder:
    """Continuation that remembers every context it was called with."""

    def __init__(self, result: Optional[bool] = True):
        self.calls = []
        self.result = result

    async def __call__(self, ctx):
        self.calls.append(ctx)
        return ctx if self.result else None
