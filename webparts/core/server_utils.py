"""
Utility functions for server configuration and operation.

This module provides core functionality for:
- Structured (JSON) logging setup
- Event loop setup and optimization with uvloop
- Error responses written straight to the transport
- Access log payloads

The logger a server uses is always passed around explicitly; nothing here
installs process-wide handlers on the root logger.
"""

import asyncio
import logging
import sys
from typing import Any, Dict, Optional

from pythonjsonlogger.json import JsonFormatter

LOGGER_NAME = "webparts"


class ServerConfigError(Exception):
    """Custom exception for server configuration errors"""

    pass


def configure_logging(level: int = logging.INFO,
                      log_file: Optional[str] = None,
                      json_format: bool = True,
                      name: str = LOGGER_NAME) -> logging.Logger:
    """Configure a logger for the web server.

    Args:
        level: Logging level (default: INFO)
        log_file: Optional path to log file
        json_format: Emit JSON records via python-json-logger (default: True)
        name: Logger name

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if json_format:
        formatter: logging.Formatter = JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s"
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
        )

    # Reconfiguring replaces the handlers we installed earlier
    for handler in list(logger.handlers):
        if getattr(handler, "_webparts_handler", False):
            logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    console_handler._webparts_handler = True
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        file_handler._webparts_handler = True
        logger.addHandler(file_handler)

    return logger


def default_logger() -> logging.Logger:
    """Return the package logger, configuring it on first use."""
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        configure_logging()
    return logger


def setup_uvloop(logger: Optional[logging.Logger] = None) -> bool:
    """Configure uvloop for improved event loop performance.

    uvloop is only installed on platforms it supports (not Windows); elsewhere
    the default asyncio loop is kept.

    Returns:
        True if the uvloop policy was installed

    Raises:
        ServerConfigError: If uvloop setup fails
    """
    logger = logger or default_logger()
    if sys.platform == "win32":
        logger.info("uvloop is not supported on Windows, using default event loop")
        return False

    import uvloop

    try:
        asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
    except Exception as e:
        logger.error(f"Failed to setup uvloop: {e}")
        raise ServerConfigError("Failed to initialize event loop") from e
    logger.info("Using uvloop event loop")
    return True


def access_log_payload(method: str, path: str, status: int, length: int,
                       duration: float, client: str, request_id: str) -> Dict[str, Any]:
    return {
        "method": method,
        "path": path,
        "status": status,
        "length": length,
        "duration_s": round(duration, 6),
        "client": client,
        "request_id": request_id,
    }


def error_response(code: int, reason: str, message: str) -> bytes:
    """Build a complete plain-text error response that closes the connection."""
    body = message.encode("utf-8")
    return (
        f"HTTP/1.1 {code} {reason}\r\n"
        f"Content-Type: text/plain; charset=utf-8\r\n"
        f"Content-Length: {len(body)}\r\n"
        f"Connection: close\r\n"
        f"\r\n"
    ).encode("ascii") + body


async def write_error(writer: asyncio.StreamWriter, code: int, reason: str, message: str,
                      logger: Optional[logging.Logger] = None) -> None:
    """Send an error response if the connection is still writable.

    Args:
        writer: StreamWriter for the client connection
        code: HTTP status code
        reason: Reason phrase
        message: Plain-text body
        logger: Logger for write failures
    """
    logger = logger or default_logger()
    try:
        if not writer.is_closing():
            writer.write(error_response(code, reason, message))
            await writer.drain()
    except (ConnectionResetError, BrokenPipeError) as e:
        logger.debug(f"Client went away before error response was sent: {e}")
