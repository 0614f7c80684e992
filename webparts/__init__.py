from .core import (
    Headers, HttpContext, HttpRequest, Method, TransferEncoding, WebPart,
    accept, add_header, choose, compose, fail, filter_p, host, json, log, meth,
    path, path_ci, path_p, path_regex, path_scanf, path_starts, path_starts_ci,
    respond_body, respond_stream, respond_string, respond_strings, set_encoding,
    set_header, set_header_unless_exists, set_mime_type, set_status, text, texts, web_part,
)
from .features import (
    AnyOrigin, CorsConfig, OneOf, Predicate, browse, browse_file, cookie,
    metrics_endpoint, respond_file, secure_headers, set_cookie, simple_cors,
    use_cookie, x_frame_options,
)
from .server import (
    NotHandledError, ServerConfig, WebServer, not_found, run_app, run_web_server, web_server
)
from .core.server_utils import configure_logging

__version__ = '1.0.0'

__all__ = [
    # Context
    'Headers',
    'HttpContext',
    'HttpRequest',
    'Method',
    'TransferEncoding',

    # Algebra
    'WebPart',
    'web_part',
    'accept',
    'fail',
    'compose',
    'choose',
    'filter_p',
    'log',

    # Routing
    'path_p',
    'path',
    'path_ci',
    'path_starts',
    'path_starts_ci',
    'path_regex',
    'path_scanf',
    'meth',
    'host',

    # Responses
    'set_status',
    'set_encoding',
    'set_header',
    'set_header_unless_exists',
    'add_header',
    'set_mime_type',
    'respond_body',
    'respond_string',
    'respond_strings',
    'respond_stream',
    'text',
    'texts',
    'json',

    # Middleware
    'use_cookie',
    'cookie',
    'set_cookie',
    'CorsConfig',
    'AnyOrigin',
    'OneOf',
    'Predicate',
    'simple_cors',
    'secure_headers',
    'x_frame_options',
    'respond_file',
    'browse',
    'browse_file',
    'metrics_endpoint',

    # Server
    'ServerConfig',
    'WebServer',
    'NotHandledError',
    'not_found',
    'run_app',
    'web_server',
    'run_web_server',
    'configure_logging',
]
