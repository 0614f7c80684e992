#!/usr/bin/env python3
"""Example application composed from web parts.

Routes:
    GET  /              -> "hello, world"
    GET  /cookie        -> echoes the "test" cookie and appends "!" to it
    GET  /<x>/<y>       -> "x + y = z"
    GET  /json/<name>   -> {"hello": name}
    GET  /static/...    -> files below ./public/static
    GET  /metrics       -> Prometheus metrics
    POST /              -> "hello, POST"
"""

import argparse
import logging
import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from webparts import (
    CorsConfig, Method, OneOf, ServerConfig, browse, choose, configure_logging, cookie, json,
    log, meth, metrics_endpoint, path, path_scanf, path_starts, run_web_server, secure_headers,
    set_cookie, simple_cors, text, use_cookie, web_part,
)


@web_part
async def cookie_counter(next, ctx):
    value = cookie(ctx, "test") or "hello cookie"
    return await (set_cookie("test", value + "!") >> text(value))(next, ctx)


def build_app(logger: logging.Logger, static_root: str):
    return (
        log(logger, lambda ctx: f"{ctx.request.raw_method} {ctx.request.target}", logging.DEBUG)
        >> secure_headers
        >> simple_cors(CorsConfig(allowed_origin=OneOf(["http://localhost:3000"])))
        >> choose([
            meth(Method.GET) >> choose([
                path("/") >> text("hello, world"),
                path("/cookie") >> use_cookie >> cookie_counter,
                path_scanf("/%d/%d", lambda x, y: text(f"{x} + {y} = {x + y}")),
                path_scanf("/json/%s", lambda s: json({"hello": s})),
                path_starts("/static/") >> browse(static_root),
                path("/metrics") >> metrics_endpoint(),
            ]),
            meth(Method.POST) >> path("/") >> text("hello, POST"),
        ])
    )


def main():
    parser = argparse.ArgumentParser(description="webparts example server")
    parser.add_argument("--host", default="127.0.0.1", help="Host address to bind to")
    parser.add_argument("--port", type=int, default=5000, help="Port number to listen on")
    parser.add_argument("--static", default="public", help="Document root; /static/... is looked up below it")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logger = configure_logging(logging.DEBUG if args.debug else logging.INFO)
    config = ServerConfig(host=args.host, port=args.port, logger=logger)
    run_web_server(build_app(logger, args.static), config=config)


if __name__ == "__main__":
    main()
