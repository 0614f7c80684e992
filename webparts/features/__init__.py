"""
Middleware parts built on the core algebra
"""

from .cookies import cookie, pending_cookie, serialize_cookies, set_cookie, use_cookie
from .security import (
    AnyOrigin, CorsConfig, DENY, OneOf, Predicate, SAMEORIGIN, allow_from,
    secure_headers, simple_cors, x_frame_options,
)
from .static import browse, browse_file, resolve_file, respond_file
from .metrics import ServerMetrics, metrics_endpoint

__all__ = [
    "cookie", "pending_cookie", "serialize_cookies", "set_cookie", "use_cookie",
    "AnyOrigin", "CorsConfig", "DENY", "OneOf", "Predicate", "SAMEORIGIN", "allow_from",
    "secure_headers", "simple_cors", "x_frame_options",
    "browse", "browse_file", "resolve_file", "respond_file",
    "ServerMetrics", "metrics_endpoint",
]
