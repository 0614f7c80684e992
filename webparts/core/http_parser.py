"""
HTTP request parser using httptools for efficient parsing.

This module turns raw bytes from a connection into HttpRequest values with:
- Strict size limits for security
- Proper error handling and validation
- Support for incremental parsing and pipelined requests
- Duplicate header preservation (headers are a multi-map)
"""

from collections import deque
from typing import Deque, List, Optional, Tuple

import httptools

from .context import Headers, HttpRequest, Method


class HTTPParserError(Exception):
    """Custom exception for HTTP parsing errors"""
    pass


class HTTPParser:
    """Parses HTTP requests using httptools with validation and safety checks.

    This parser implements callbacks from httptools.HttpRequestParser. One
    parser lives as long as its connection: every completed message is queued
    together with its keep-alive flag, so pipelined requests arriving in the
    same read are not lost.

    Args:
        body_limit: Maximum body bytes per request
        header_limit: Maximum bytes of request target plus header lines

    Constants:
        MAX_URL_SIZE: Maximum request-target length (8KB)
        MAX_HEADER_SIZE: Maximum size per header value (8KB)
        MAX_HEADERS: Maximum number of headers per request (100)
    """
    MAX_URL_SIZE = 8192
    MAX_HEADER_SIZE = 8192
    MAX_HEADERS = 100

    def __init__(self, body_limit: int = 10 * 1024 * 1024, header_limit: int = 8192):
        self.body_limit = body_limit
        self.header_limit = header_limit
        self.parser = httptools.HttpRequestParser(self)
        self.completed: Deque[Tuple[HttpRequest, bool]] = deque()
        self.upgrade_requested = False
        self.reset()

    def reset(self) -> None:
        """Reset per-message state to handle a new request."""
        self.headers: List[Tuple[str, str]] = []
        self.body = bytearray()
        self.url: Optional[str] = None
        self.method: Optional[str] = None
        self.version = "1.1"
        self.should_keep_alive = False
        self.head_size = 0

    def on_message_begin(self) -> None:
        self.reset()

    def on_url(self, url: bytes) -> None:
        """Accumulate the request target; httptools may deliver it in pieces.

        Raises:
            HTTPParserError: If the URL exceeds the length limit
        """
        current = (self.url or "") + url.decode("latin-1")
        if len(current) > self.MAX_URL_SIZE:
            raise HTTPParserError("URL too long")
        self._count_head(len(url))
        self.url = current

    def on_header(self, name: bytes, value: bytes) -> None:
        """Process a single header from the request.

        Raises:
            HTTPParserError: If header limits are exceeded or content is invalid
        """
        if len(self.headers) >= self.MAX_HEADERS:
            raise HTTPParserError("Too many headers")
        if len(value) > self.MAX_HEADER_SIZE:
            raise HTTPParserError("Header value too long")
        try:
            name_str = name.decode("ascii")
        except UnicodeDecodeError:
            raise HTTPParserError("Invalid header encoding")
        self._count_head(len(name) + len(value) + 4)  # ": " and CRLF
        self.headers.append((name_str, value.decode("latin-1").strip()))

    def _count_head(self, size: int) -> None:
        self.head_size += size
        if self.head_size > self.header_limit:
            raise HTTPParserError("Request head too large")

    def on_headers_complete(self) -> None:
        self.method = self.parser.get_method().decode("ascii")
        self.version = self.parser.get_http_version()
        self.should_keep_alive = self.parser.should_keep_alive()

    def on_body(self, body: bytes) -> None:
        """Process request body data incrementally.

        Raises:
            HTTPParserError: If body exceeds maximum size limit
        """
        if len(self.body) + len(body) > self.body_limit:
            raise HTTPParserError("Request body too large")
        self.body.extend(body)

    def on_message_complete(self) -> None:
        request = HttpRequest(
            method=Method.parse(self.method or ""),
            target=self.url or "/",
            headers=Headers(self.headers),
            body=bytes(self.body),
            version=self.version,
            raw_method=self.method or "",
        )
        self.completed.append((request, self.should_keep_alive))

    def feed_data(self, data: bytes) -> None:
        """Feed raw request data to the parser.

        Raises:
            HTTPParserError: If parsing fails
        """
        try:
            self.parser.feed_data(data)
        except httptools.HttpParserUpgrade:
            # Upgrades are not supported: the upgrading request is answered
            # normally and the connection closes afterwards.
            self.upgrade_requested = True
        except httptools.HttpParserError as e:
            # Errors raised by our callbacks come back wrapped by httptools
            cause = e.__cause__ or e.__context__
            if isinstance(cause, HTTPParserError):
                raise HTTPParserError(str(cause)) from e
            raise HTTPParserError(f"Parser error: {e}") from e

    def next_request(self) -> Optional[Tuple[HttpRequest, bool]]:
        """Pop the oldest completed request and its keep-alive flag."""
        if self.completed:
            return self.completed.popleft()
        return None
