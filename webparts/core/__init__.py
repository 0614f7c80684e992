"""
Core components: context model, combinator algebra, routing, responses
"""

from .context import (
    Body, BufferBody, BuffersBody, EmptyBody, Headers, HttpContext, HttpRequest,
    Method, SetCookie, StreamBody, TransferEncoding, make_context,
)
from .combinators import (
    Handler, Task, WebPart, accept, as_part, choose, compose, fail, filter_p, log, web_part
)
from .routing import host, meth, path, path_ci, path_p, path_regex, path_scanf, path_starts, path_starts_ci
from .response import (
    add_header, json, respond_body, respond_stream, respond_string, respond_strings,
    set_encoding, set_header, set_header_unless_exists, set_mime_type, set_status, text, texts,
)
from .scanf import PathFormat, ScanError
from .http_parser import HTTPParser, HTTPParserError

# Expose public interface
__all__ = [
    "Body", "BufferBody", "BuffersBody", "EmptyBody", "Headers", "HttpContext", "HttpRequest",
    "Method", "SetCookie", "StreamBody", "TransferEncoding", "make_context",
    "Handler", "Task", "WebPart", "accept", "as_part", "choose", "compose", "fail",
    "filter_p", "log", "web_part",
    "host", "meth", "path", "path_ci", "path_p", "path_regex", "path_scanf",
    "path_starts", "path_starts_ci",
    "add_header", "json", "respond_body", "respond_stream", "respond_string",
    "respond_strings", "set_encoding", "set_header", "set_header_unless_exists",
    "set_mime_type", "set_status", "text", "texts",
    "PathFormat", "ScanError", "HTTPParser", "HTTPParserError",
]
