"""
Static file parts.

A file is opened and stat'ed once, in the default executor, when the part
runs. The open handle is what gets streamed, so the size sent as
Content-Length and the bytes that follow come from the same file even if the
path is replaced or removed in between.
"""

import asyncio
import mimetypes
import os
import posixpath
import stat
from http import HTTPStatus
from typing import BinaryIO, Optional, Tuple
from urllib.parse import unquote

from ..core.combinators import Handler, WebPart
from ..core.context import BufferBody, HttpContext, StreamBody
from ..core.response import TEXT_PLAIN

CHUNK_SIZE = 65536
DEFAULT_MIME_TYPE = "application/octet-stream"


def resolve_file(root: str, request_path: str) -> str:
    """Map a request path onto a file below ``root``.

    The path is percent-decoded and its dot segments removed before joining,
    so the result never escapes ``root``.
    """
    decoded = unquote(request_path.split("?", 1)[0])
    normalized = posixpath.normpath("/" + decoded.replace("\\", "/"))
    segments = [s for s in normalized.split("/") if s not in ("", ".", "..")]
    return os.path.join(root, *segments)


class FileStream:
    """Async iterator over an open file, read in the default executor.

    ``aclose`` closes the handle whether or not iteration ever started.
    """

    def __init__(self, fh: BinaryIO, chunk_size: int = CHUNK_SIZE):
        self.fh = fh
        self.chunk_size = chunk_size

    def __aiter__(self) -> "FileStream":
        return self

    async def __anext__(self) -> bytes:
        if self.fh.closed:
            raise StopAsyncIteration
        loop = asyncio.get_running_loop()
        chunk = await loop.run_in_executor(None, self.fh.read, self.chunk_size)
        if not chunk:
            self.fh.close()
            raise StopAsyncIteration
        return chunk

    async def aclose(self) -> None:
        self.fh.close()


def _open_regular(filename: str) -> Optional[Tuple[BinaryIO, int]]:
    """Open ``filename`` if it is a regular file; returns (handle, size)."""
    try:
        fh = open(filename, "rb")
    except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
        return None
    try:
        info = os.fstat(fh.fileno())
    except OSError:
        fh.close()
        raise
    if not stat.S_ISREG(info.st_mode):
        fh.close()
        return None
    return fh, info.st_size


def _guess_type(filename: str) -> str:
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type or DEFAULT_MIME_TYPE


def respond_file(filename: str, chunk_size: int = CHUNK_SIZE) -> WebPart:
    """Respond with the contents of ``filename``.

    A missing file (or a directory) yields 404 "Not found". Other I/O errors
    propagate so the transport can turn them into a 500 for this request.
    """

    async def file_responder(next: Handler, ctx: HttpContext) -> Optional[HttpContext]:
        loop = asyncio.get_running_loop()
        opened = await loop.run_in_executor(None, _open_regular, filename)
        if opened is None:
            headers = ctx.headers.replace("Content-Type", TEXT_PLAIN)
            return await next(ctx.replace(
                status=HTTPStatus.NOT_FOUND,
                headers=headers,
                body=BufferBody(b"Not found"),
            ))

        fh, size = opened
        headers = ctx.headers.add_unless_exists("Content-Type", _guess_type(filename))
        headers = headers.replace("Content-Length", str(size))
        return await next(ctx.replace(
            headers=headers,
            body=StreamBody(FileStream(fh, chunk_size)),
        ))

    return WebPart(file_responder, name=f"respond_file({filename})")


def browse(root: str) -> WebPart:
    """Serve the file under ``root`` named by the request path."""

    async def browser(next: Handler, ctx: HttpContext) -> Optional[HttpContext]:
        filename = resolve_file(root, ctx.request.path)
        return await respond_file(filename)(next, ctx)

    return WebPart(browser, name=f"browse({root})")


def browse_file(root: str, name: str) -> WebPart:
    """Serve one fixed file below ``root``."""
    return respond_file(resolve_file(root, name))
