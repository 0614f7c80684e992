"""
Request/response context threaded through a chain of web parts.

This module provides the immutable data model every part operates on:
- Ordered, case-insensitive header multi-map
- Response body variants (empty, buffer, buffer sequence, stream)
- Inbound request description
- The per-request HttpContext record
"""

"""
Copyright 2025 Chris Bunting
File: context.py | Purpose: Immutable request/response context
@author Chris Bunting | @version 1.0.0

CHANGELOG:
2025-09-02 - Chris Bunting: Added transfer encoding hint and query parsing
2025-08-28 - Chris Bunting: Initial implementation
"""

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from http import HTTPStatus
from types import MappingProxyType
from typing import Any, AsyncIterator, Iterable, Iterator, List, Mapping, Optional, Tuple, Union
from urllib.parse import parse_qsl, urlsplit


class Method(Enum):
    """HTTP request methods understood by the routing predicates."""
    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    CONNECT = "CONNECT"
    OPTIONS = "OPTIONS"
    TRACE = "TRACE"
    PATCH = "PATCH"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, token: str) -> "Method":
        """Map a request-line token onto the enumeration.

        Tokens are case-sensitive per RFC 9110; anything unknown maps to OTHER.
        """
        try:
            method = cls(token)
        except ValueError:
            return cls.OTHER
        return method


class TransferEncoding(Enum):
    """How the transport should frame the response body."""
    UNKNOWN = "unknown"
    FIXED = "fixed"
    CHUNKED = "chunked"


class Headers:
    """Ordered header multi-map with case-insensitive names.

    Instances never change after construction; every modifying operation
    returns a new Headers value.
    """

    __slots__ = ("_items",)

    def __init__(self, items: Iterable[Tuple[str, str]] = ()):
        self._items: Tuple[Tuple[str, str], ...] = tuple(
            (str(name), str(value)) for name, value in items
        )

    @classmethod
    def of(cls, headers: Union["Headers", Mapping[str, str], Iterable[Tuple[str, str]], None]) -> "Headers":
        if headers is None:
            return cls()
        if isinstance(headers, Headers):
            return headers
        if isinstance(headers, Mapping):
            return cls(headers.items())
        return cls(headers)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Return the first value stored for ``name``."""
        lowered = name.lower()
        for key, value in self._items:
            if key.lower() == lowered:
                return value
        return default

    def get_all(self, name: str) -> List[str]:
        lowered = name.lower()
        return [value for key, value in self._items if key.lower() == lowered]

    def replace(self, name: str, value: str) -> "Headers":
        """Return headers where ``name`` maps to exactly one value.

        The first existing entry keeps its position, later duplicates are
        dropped; a missing header is appended.
        """
        lowered = name.lower()
        items: List[Tuple[str, str]] = []
        replaced = False
        for key, existing in self._items:
            if key.lower() != lowered:
                items.append((key, existing))
            elif not replaced:
                items.append((name, value))
                replaced = True
        if not replaced:
            items.append((name, value))
        return Headers(items)

    def add(self, name: str, value: str) -> "Headers":
        return Headers(self._items + ((name, value),))

    def add_unless_exists(self, name: str, value: str) -> "Headers":
        if name in self:
            return self
        return self.add(name, value)

    def remove(self, name: str) -> "Headers":
        lowered = name.lower()
        return Headers((k, v) for k, v in self._items if k.lower() != lowered)

    def items(self) -> List[Tuple[str, str]]:
        return list(self._items)

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        lowered = name.lower()
        return any(key.lower() == lowered for key, _ in self._items)

    def __iter__(self) -> Iterator[Tuple[str, str]]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Headers):
            return NotImplemented
        return self._items == other._items

    def __hash__(self) -> int:
        return hash(self._items)

    def __repr__(self) -> str:
        return f"Headers({list(self._items)!r})"


def _to_bytes(data: Union[str, bytes]) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


@dataclass(frozen=True)
class EmptyBody:
    """No response body."""


@dataclass(frozen=True)
class BufferBody:
    """A single in-memory buffer."""
    data: bytes

    def __post_init__(self):
        object.__setattr__(self, "data", _to_bytes(self.data))


@dataclass(frozen=True)
class BuffersBody:
    """An ordered sequence of in-memory buffers."""
    chunks: Tuple[bytes, ...]

    def __post_init__(self):
        object.__setattr__(self, "chunks", tuple(_to_bytes(c) for c in self.chunks))


@dataclass(frozen=True)
class StreamBody:
    """A lazily produced body.

    ``stream`` is an async iterator of ``bytes``/``str`` chunks. It is consumed
    at most once, by the transport, after the chain has resolved.
    """
    stream: AsyncIterator[Union[bytes, str]] = field(compare=False)


Body = Union[EmptyBody, BufferBody, BuffersBody, StreamBody]

EMPTY_BODY = EmptyBody()


@dataclass(frozen=True)
class HttpRequest:
    """Inbound request as seen by the parts."""
    method: Method
    target: str
    headers: Headers = field(default_factory=Headers)
    body: bytes = b""
    version: str = "1.1"
    raw_method: str = ""

    def __post_init__(self):
        if not self.raw_method:
            object.__setattr__(self, "raw_method", self.method.value)

    @property
    def path(self) -> str:
        """Path component of the request target.

        Only absolute-form targets (``http://host/p``) carry an authority.
        An origin-form target is a path as-is, so ``//admin`` stays ``//admin``.
        """
        if self.target.startswith("/"):
            path = self.target.split("?", 1)[0].split("#", 1)[0]
        else:
            path = urlsplit(self.target).path
        return path or "/"

    @property
    def query(self) -> List[Tuple[str, str]]:
        if self.target.startswith("/"):
            _, _, query = self.target.split("#", 1)[0].partition("?")
        else:
            query = urlsplit(self.target).query
        return parse_qsl(query, keep_blank_values=True)


@dataclass(frozen=True)
class SetCookie:
    """A not-yet-serialized Set-Cookie directive.

    ``name`` and ``value`` are stored already percent-encoded.
    """
    name: str
    value: str
    expiration: Optional[int] = None
    path: Optional[str] = None
    domain: Optional[str] = None
    secure: bool = False
    http_only: bool = False

    def serialize(self) -> str:
        attrs = [f"{self.name}={self.value}"]
        if self.expiration is not None:
            attrs.append(f"Max-Age={self.expiration}")
        if self.domain is not None:
            attrs.append(f"Domain={self.domain}")
        if self.path is not None:
            attrs.append(f"Path={self.path}")
        if self.secure:
            attrs.append("Secure")
        if self.http_only:
            attrs.append("HttpOnly")
        return "; ".join(attrs)


def _frozen_mapping(mapping: Optional[Mapping[str, SetCookie]] = None) -> Mapping[str, SetCookie]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class HttpContext:
    """One request/response pair in flight.

    Contexts are replaced, never mutated: use :meth:`replace` (or
    ``dataclasses.replace``) to derive a context with different fields.

    Attributes:
        conn: Peer address of the connection (opaque to parts)
        request: The inbound request
        status: Outbound status code
        headers: Outbound headers
        body: Outbound body, exactly one Body variant
        encoding: Transfer encoding hint for the transport
        cookies: Parsed inbound cookies, None until ``use_cookie`` ran
        pending_cookies: Outbound Set-Cookie directives keyed by encoded name
    """
    conn: Any
    request: HttpRequest
    status: HTTPStatus = HTTPStatus.OK
    headers: Headers = field(default_factory=Headers)
    body: Body = EMPTY_BODY
    encoding: TransferEncoding = TransferEncoding.UNKNOWN
    cookies: Optional[Tuple[Tuple[str, str], ...]] = None
    pending_cookies: Mapping[str, SetCookie] = field(default_factory=_frozen_mapping, compare=False)

    def __post_init__(self):
        if not isinstance(self.pending_cookies, MappingProxyType):
            object.__setattr__(self, "pending_cookies", _frozen_mapping(self.pending_cookies))

    def replace(self, **changes: Any) -> "HttpContext":
        return dataclasses.replace(self, **changes)

    def with_pending_cookie(self, directive: SetCookie) -> "HttpContext":
        pending = dict(self.pending_cookies)
        pending[directive.name] = directive
        return self.replace(pending_cookies=pending)


def make_context(request: HttpRequest, conn: Any = None) -> HttpContext:
    """Build the fresh context the adapter hands to an application."""
    return HttpContext(conn=conn, request=request)
