"""
Response mutation combinators.

Each part here is a pure state transformer: it always calls ``next`` with a
context that differs from its input in exactly one documented respect.
"""

"""
Copyright 2025 Chris Bunting
File: response.py | Purpose: Status/header/body setters and responders
@author Chris Bunting | @version 1.0.0

CHANGELOG:
2025-09-02 - Chris Bunting: Added set_encoding and respond_body
2025-08-28 - Chris Bunting: Initial implementation
"""

import json as _json
from http import HTTPStatus
from typing import Any, AsyncIterator, Callable, Iterable, Optional, Union

from .combinators import Handler, WebPart
from .context import (
    Body, BufferBody, BuffersBody, HttpContext, StreamBody, TransferEncoding
)

TEXT_PLAIN = "text/plain; charset=utf-8"
APPLICATION_JSON = "application/json; charset=utf-8"


def _transform(update: Callable[[HttpContext], HttpContext], name: str) -> WebPart:
    async def transformer(next: Handler, ctx: HttpContext) -> Optional[HttpContext]:
        return await next(update(ctx))

    return WebPart(transformer, name=name)


def set_status(status: Union[HTTPStatus, int]) -> WebPart:
    """Replace the response status.

    Raises:
        ValueError: If ``status`` is not a known HTTP status code
    """
    code = HTTPStatus(status)
    return _transform(lambda ctx: ctx.replace(status=code), f"set_status({int(code)})")


def set_encoding(encoding: TransferEncoding) -> WebPart:
    """Tell the transport how to frame the body."""
    return _transform(lambda ctx: ctx.replace(encoding=encoding), f"set_encoding({encoding.value})")


def set_header(key: str, value: str) -> WebPart:
    """Replace any existing value for ``key`` with ``value``."""
    return _transform(
        lambda ctx: ctx.replace(headers=ctx.headers.replace(key, value)),
        f"set_header({key})",
    )


def set_header_unless_exists(key: str, value: str) -> WebPart:
    """Add ``key: value`` only when no ``key`` header is present yet."""
    return _transform(
        lambda ctx: ctx.replace(headers=ctx.headers.add_unless_exists(key, value)),
        f"set_header_unless_exists({key})",
    )


def add_header(key: str, value: str) -> WebPart:
    """Append ``key: value``; duplicates are kept."""
    return _transform(
        lambda ctx: ctx.replace(headers=ctx.headers.add(key, value)),
        f"add_header({key})",
    )


def set_mime_type(mime_type: str) -> WebPart:
    return set_header("Content-Type", mime_type)


def respond_body(body: Body) -> WebPart:
    """Replace the response body with any Body variant."""
    return _transform(lambda ctx: ctx.replace(body=body), "respond_body")


def respond_string(body: Union[str, bytes]) -> WebPart:
    return respond_body(BufferBody(body))


def respond_strings(body: Iterable[Union[str, bytes]]) -> WebPart:
    return respond_body(BuffersBody(tuple(body)))


def respond_stream(factory: Callable[[], AsyncIterator[Union[str, bytes]]]) -> WebPart:
    """Respond with a lazily produced body.

    ``factory`` is called once per request so that every context gets its own
    stream; iterators cannot be shared between requests.
    """
    return _transform(lambda ctx: ctx.replace(body=StreamBody(factory())), "respond_stream")


def text(body: Union[str, bytes]) -> WebPart:
    """Plain-text response; Content-Type is only set when absent."""
    return set_header_unless_exists("Content-Type", TEXT_PLAIN) >> respond_string(body)


def texts(body: Iterable[Union[str, bytes]]) -> WebPart:
    return set_header_unless_exists("Content-Type", TEXT_PLAIN) >> respond_strings(body)


def json(value: Any, indent: Optional[int] = None, sort_keys: bool = False) -> WebPart:
    """JSON response streamed as one chunk.

    The value is serialized when the part runs, so serialization errors are
    raised before the transport writes the status line.

    Args:
        value: Any ``json``-serializable value
        indent: Pretty-print indentation, compact output when None
        sort_keys: Sort object keys in the output

    Raises:
        TypeError: From the running part, if ``value`` is not serializable
    """
    separators = (",", ":") if indent is None else None

    async def serializer(next: Handler, ctx: HttpContext) -> Optional[HttpContext]:
        document = _json.dumps(value, indent=indent, sort_keys=sort_keys,
                               separators=separators, ensure_ascii=False)

        async def produce() -> AsyncIterator[str]:
            yield document

        return await respond_stream(produce)(next, ctx)

    return set_header_unless_exists("Content-Type", APPLICATION_JSON) >> WebPart(serializer, name="json")
