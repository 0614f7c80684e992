"""
Server adapter running a web part application over asyncio streams.

This module provides:
- The adapter contract: a not-found fallback, the terminal ``accept``
  continuation, and cookie serialization once the chain resolved
- An asyncio/httptools HTTP/1.1 transport with keep-alive and pipelining
- Chunked streaming of lazily produced bodies
- Per-request fault isolation (500 for the failing request only)
- Structured JSON access logs with per-request request IDs
- Prometheus metrics and graceful shutdown on SIGINT/SIGTERM
"""

"""
Copyright 2025 Chris Bunting
File: server.py | Purpose: Web part server adapter and transport
@author Chris Bunting | @version 2.0.0

CHANGELOG:
2025-08-30 - Chris Bunting: Drive web part applications instead of WSGI callables
2025-08-20 - Chris Bunting: Add streaming/chunked responses, metrics, graceful shutdown
2025-07-10 - Chris Bunting: Initial implementation
"""

import asyncio
import logging
import signal
import ssl
import sys
import uuid
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import List, Optional, Tuple

from .core.combinators import PartLike, WebPart, accept, as_part, choose
from .core.context import (
    BufferBody, BuffersBody, EmptyBody, HttpContext, Method, StreamBody, TransferEncoding,
    make_context,
)
from .core.http_parser import HTTPParser, HTTPParserError
from .core.response import set_status, text
from .core.server_utils import (
    ServerConfigError, access_log_payload, default_logger, setup_uvloop, write_error
)
from .features.cookies import serialize_cookies
from .features.metrics import ServerMetrics, default_metrics

DEFAULT_PORT = 5000

not_found = set_status(HTTPStatus.NOT_FOUND) >> text("Not found")
"""Fallback answering every request the application declined."""


class NotHandledError(RuntimeError):
    """The terminal continuation received no context.

    Cannot happen while the not-found fallback is in place; seeing it means
    the adapter itself is broken.
    """
    pass


def with_fallback(app: PartLike) -> WebPart:
    return choose([as_part(app), not_found])


async def run_app(app: PartLike, ctx: HttpContext) -> HttpContext:
    """Drive ``ctx`` through ``app`` with the not-found fallback.

    Returns:
        The resolved context with pending cookies flattened into headers

    Raises:
        NotHandledError: If the chain resolved to None
    """
    result = await with_fallback(app)(accept, ctx)
    if result is None:
        raise NotHandledError("Not handled")
    return serialize_cookies(result)


@dataclass
class ServerConfig:
    """Transport configuration.

    Attributes:
        host: Host address to bind to
        port: Port number to listen on (0 picks a free port)
        read_timeout: Per-read timeout in seconds
        header_limit: Maximum bytes of request target plus header lines,
            enforced per request by the parser
        body_limit: Maximum bytes accepted for a request body
        max_requests: Maximum requests served per keep-alive connection
        backlog: Listen backlog
        ssl_context: Optional ssl.SSLContext for TLS
        logger: Logger for server and access logs
        access_log: Emit one structured record per request
    """
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    read_timeout: float = 10.0
    header_limit: int = 8192
    body_limit: int = 10 * 1024 * 1024
    max_requests: int = 1000
    backlog: int = 2048
    ssl_context: Optional[ssl.SSLContext] = None
    logger: logging.Logger = field(default_factory=default_logger)
    access_log: bool = True

    def __post_init__(self):
        if not isinstance(self.port, int):
            raise ValueError("Port must be an integer")
        if self.port < 0 or self.port > 65535:
            raise ValueError("Port number must be between 0 and 65535")
        if self.read_timeout <= 0:
            raise ValueError("Read timeout must be positive")
        if self.header_limit < 1:
            raise ValueError("header_limit must be at least 1")
        if self.body_limit < 0:
            raise ValueError("body_limit must not be negative")
        if self.max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if self.backlog < 1:
            raise ValueError("Backlog must be at least 1")


_NO_BODY_STATUSES = {HTTPStatus.NO_CONTENT, HTTPStatus.NOT_MODIFIED}


def _reason(status: HTTPStatus) -> str:
    return status.phrase or "Unknown"


def _as_bytes(chunk) -> bytes:
    if isinstance(chunk, str):
        return chunk.encode("utf-8")
    return bytes(chunk)


class ResponseWriter:
    """Serializes a resolved context onto a StreamWriter.

    Tracks ``status`` and ``length`` for the access log.
    """

    def __init__(self, writer: asyncio.StreamWriter, request_id: str):
        self.writer = writer
        self.request_id = request_id
        self.status = 0
        self.length = 0

    async def write(self, ctx: HttpContext, keep_alive: bool) -> bool:
        """Write the response; returns whether the connection may stay open."""
        body = ctx.body
        status = ctx.status
        headers = ctx.headers
        head_only = ctx.request.method is Method.HEAD
        bodiless = status in _NO_BODY_STATUSES or int(status) < 200
        no_body = head_only or bodiless

        chunked = False
        payload = b""
        if isinstance(body, StreamBody):
            if ctx.encoding is TransferEncoding.CHUNKED or (
                ctx.encoding is TransferEncoding.UNKNOWN and "Content-Length" not in headers
            ):
                chunked = True
            elif "Content-Length" not in headers:
                # Fixed framing without a length: the body ends when we close
                keep_alive = False
        else:
            payload = self._collect(body)
            if ctx.encoding is TransferEncoding.CHUNKED:
                chunked = True
            elif bodiless:
                headers = headers.remove("Content-Length")
            else:
                headers = headers.replace("Content-Length", str(len(payload)))

        if chunked and not bodiless:
            headers = headers.remove("Content-Length").replace("Transfer-Encoding", "chunked")
        if "Connection" in headers:
            keep_alive = keep_alive and headers.get("Connection", "").lower() != "close"
        else:
            headers = headers.add("Connection", "keep-alive" if keep_alive else "close")
        headers = headers.add_unless_exists("X-Request-ID", self.request_id)

        head = [f"HTTP/1.1 {int(status)} {_reason(status)}\r\n".encode("latin-1")]
        for name, value in headers:
            head.append(f"{name}: {value}\r\n".encode("latin-1"))
        head.append(b"\r\n")
        self.status = int(status)
        self.writer.write(b"".join(head))

        if isinstance(body, StreamBody):
            await self._write_stream(body, chunked, skip=no_body)
        elif not no_body and payload:
            if chunked:
                self.writer.write(f"{len(payload):X}\r\n".encode() + payload + b"\r\n0\r\n\r\n")
            else:
                self.writer.write(payload)
            self.length += len(payload)
        elif not no_body and chunked:
            self.writer.write(b"0\r\n\r\n")
        await self.writer.drain()
        return keep_alive

    @staticmethod
    def _collect(body) -> bytes:
        if isinstance(body, EmptyBody):
            return b""
        if isinstance(body, BufferBody):
            return body.data
        if isinstance(body, BuffersBody):
            return b"".join(body.chunks)
        raise TypeError(f"Unsupported body type: {type(body).__name__}")

    async def _write_stream(self, body: StreamBody, chunked: bool, skip: bool) -> None:
        stream = body.stream
        try:
            if skip:
                return
            async for chunk in stream:
                data = _as_bytes(chunk)
                if not data:
                    continue
                if chunked:
                    self.writer.write(f"{len(data):X}\r\n".encode() + data + b"\r\n")
                else:
                    self.writer.write(data)
                self.length += len(data)
                await self.writer.drain()
            if chunked:
                self.writer.write(b"0\r\n\r\n")
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()


class ConnectionHandler:
    """Serves the requests of one client connection."""

    def __init__(self, app: WebPart, config: ServerConfig,
                 metrics: Optional[ServerMetrics] = None,
                 shutdown_event: Optional[asyncio.Event] = None):
        self.app = app
        self.config = config
        self.logger = config.logger
        self.metrics = metrics
        self.shutdown_event = shutdown_event

    async def handle_connection(self, reader: asyncio.StreamReader,
                                writer: asyncio.StreamWriter) -> None:
        """Handle keep-alive connection with multiple requests"""
        peer = writer.get_extra_info("peername")
        client = f"{peer[0]}:{peer[1]}" if peer else "unknown"
        parser = HTTPParser(body_limit=self.config.body_limit,
                            header_limit=self.config.header_limit)
        requests_handled = 0
        keep_alive = True

        while keep_alive and requests_handled < self.config.max_requests:
            if self.shutdown_event and self.shutdown_event.is_set():
                self.logger.info("Shutdown in progress - closing connection to %s", client)
                break
            try:
                item = await self._read_request(reader, parser)
            except HTTPParserError as e:
                self.logger.warning("Malformed HTTP request from %s: %s", client, e)
                await write_error(writer, 400, "Bad Request", "Bad Request", self.logger)
                break
            if item is None:
                break

            request, keep_alive = item
            if parser.upgrade_requested:
                keep_alive = False
            keep_alive = await self._serve(request, keep_alive, peer, client, writer)
            requests_handled += 1

    async def _read_request(self, reader: asyncio.StreamReader,
                            parser: HTTPParser) -> Optional[Tuple]:
        """Read until the parser has a complete request.

        Returns:
            (HttpRequest, keep_alive) or None when the client went away,
            timed out, or the connection is in an unusable state
        """
        total_read = 0
        limit = self.config.header_limit + self.config.body_limit
        while True:
            item = parser.next_request()
            if item is not None:
                return item
            if parser.upgrade_requested:
                return None
            try:
                data = await asyncio.wait_for(reader.read(8192), timeout=self.config.read_timeout)
            except asyncio.TimeoutError:
                self.logger.debug("Read timeout while receiving request")
                return None
            except (ConnectionResetError, BrokenPipeError):
                return None
            if not data:
                return None
            total_read += len(data)
            if total_read > limit:
                raise HTTPParserError(f"Request exceeded configured max size ({limit} bytes)")
            parser.feed_data(data)

    async def _serve(self, request, keep_alive: bool, peer, client: str,
                     writer: asyncio.StreamWriter) -> bool:
        loop = asyncio.get_running_loop()
        start_time = loop.time()
        request_id = str(uuid.uuid4())
        response = ResponseWriter(writer, request_id)
        if self.metrics:
            self.metrics.requests_total.inc()
            self.metrics.in_flight.inc()
        try:
            ctx = await run_app(self.app, make_context(request, conn=peer))
            keep_alive = await response.write(ctx, keep_alive)
        except NotHandledError:
            self.logger.critical("Application chain resolved without a context", exc_info=True)
            keep_alive = False
            await self._fail(writer, response)
        except (ConnectionResetError, BrokenPipeError):
            keep_alive = False
        except Exception:
            self.logger.exception("Error processing request %s", request_id)
            keep_alive = False
            await self._fail(writer, response)
        finally:
            duration = loop.time() - start_time
            if self.metrics:
                self.metrics.in_flight.dec()
                self.metrics.latency.observe(duration)
            if self.config.access_log:
                payload = access_log_payload(
                    request.raw_method, request.path, response.status,
                    response.length, duration, client, request_id,
                )
                self.logger.info("access", extra=payload)
        return keep_alive

    async def _fail(self, writer: asyncio.StreamWriter, response: ResponseWriter) -> None:
        if self.metrics:
            self.metrics.request_errors.inc()
        # Headers already on the wire cannot be taken back; just drop the connection
        if response.status:
            return
        response.status = 500
        await write_error(writer, 500, "Internal Server Error", "Internal Server Error", self.logger)


class WebServer:
    """Asynchronous HTTP server driving one web part application.

    Attributes:
        app: The application part (wrapped with the not-found fallback per request)
        config: Transport configuration
    """

    def __init__(self, app: PartLike, config: Optional[ServerConfig] = None,
                 metrics: Optional[ServerMetrics] = None):
        self.app = as_part(app)
        self.config = config or ServerConfig()
        self.logger = self.config.logger
        self.metrics = metrics if metrics is not None else default_metrics()
        self._server: Optional[asyncio.AbstractServer] = None
        self._shutdown_event: Optional[asyncio.Event] = None
        self._connections: List[asyncio.Task] = []

    @property
    def sockets(self):
        return self._server.sockets if self._server else ()

    @property
    def port(self) -> int:
        """The bound port, useful when configured with port 0."""
        for sock in self.sockets:
            return sock.getsockname()[1]
        return self.config.port

    async def start(self) -> asyncio.AbstractServer:
        """Bind and start accepting connections.

        Raises:
            ServerConfigError: If the server cannot bind to host/port
        """
        self._shutdown_event = asyncio.Event()
        try:
            self._server = await asyncio.start_server(
                self._handle_client,
                self.config.host,
                self.config.port,
                reuse_address=True,
                backlog=self.config.backlog,
                ssl=self.config.ssl_context,
            )
        except OSError as e:
            raise ServerConfigError(
                f"Failed to bind {self.config.host}:{self.config.port}: {e}"
            ) from e
        protocol = "https" if self.config.ssl_context else "http"
        self.logger.info("Server started on %s://%s:%s", protocol, self.config.host, self.port)
        return self._server

    async def serve_forever(self) -> None:
        """Serve until shutdown is requested."""
        if self._server is None:
            await self.start()
        self._install_signal_handlers()
        assert self._shutdown_event is not None
        await self._shutdown_event.wait()
        await self.shutdown()

    def _install_signal_handlers(self) -> None:
        if sys.platform == "win32":
            return
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_shutdown)
            except (NotImplementedError, RuntimeError):
                # Not on the main thread or unsupported loop
                pass

    def request_shutdown(self) -> None:
        self.logger.info("Shutdown requested")
        if self._shutdown_event and not self._shutdown_event.is_set():
            self._shutdown_event.set()

    async def shutdown(self, timeout: float = 30.0) -> None:
        """Stop accepting connections and let in-flight ones finish.

        Args:
            timeout: Maximum time in seconds to wait for connections to close
        """
        if self._shutdown_event and not self._shutdown_event.is_set():
            self._shutdown_event.set()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        pending = [task for task in self._connections if not task.done()]
        if pending:
            self.logger.info("Waiting for %d active connections to complete...", len(pending))
            _, still_running = await asyncio.wait(pending, timeout=timeout)
            if still_running:
                self.logger.warning("Force closing %d connections that didn't complete in time",
                                    len(still_running))
                for task in still_running:
                    task.cancel()
                await asyncio.wait(still_running, timeout=5.0)
        self.logger.info("Server shutdown complete")

    async def _handle_client(self, reader: asyncio.StreamReader,
                             writer: asyncio.StreamWriter) -> None:
        task = asyncio.current_task()
        if task is not None:
            self._connections.append(task)
        handler = ConnectionHandler(self.app, self.config, self.metrics, self._shutdown_event)
        try:
            await handler.handle_connection(reader, writer)
        except Exception:
            self.logger.exception("Connection handler raised an unexpected exception")
        finally:
            if task is not None and task in self._connections:
                self._connections.remove(task)
            try:
                writer.close()
                await writer.wait_closed()
            except (ConnectionResetError, BrokenPipeError, ssl.SSLError):
                self.logger.debug("Error closing writer", exc_info=True)


async def web_server(app: PartLike, port: int = DEFAULT_PORT,
                     config: Optional[ServerConfig] = None) -> None:
    """Serve ``app`` until the process is asked to stop.

    Args:
        app: Application part
        port: Port to listen on (ignored when ``config`` is given)
        config: Full transport configuration
    """
    server = WebServer(app, config or ServerConfig(port=port))
    await server.serve_forever()


def run_web_server(app: PartLike, port: int = DEFAULT_PORT,
                   config: Optional[ServerConfig] = None, use_uvloop: bool = True) -> None:
    """Blocking entry point: install uvloop when possible and serve ``app``."""
    config = config or ServerConfig(port=port)
    if use_uvloop:
        setup_uvloop(config.logger)
    asyncio.run(web_server(app, config=config))
