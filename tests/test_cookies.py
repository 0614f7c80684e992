#!/usr/bin/env python3
"""
Test suite for cookie parsing and Set-Cookie serialization
"""
import asyncio
import unittest

from webparts.core.context import SetCookie
from webparts.features.cookies import (
    cookie, parse_cookie_header, pending_cookie, serialize_cookies, set_cookie, use_cookie
)
from webparts.server import run_app
from support import make_ctx, run_part


class TestParseCookieHeader(unittest.TestCase):
    def test_pairs_in_order(self):
        self.assertEqual(parse_cookie_header("a=1; b=2;c=3"), [("a", "1"), ("b", "2"), ("c", "3")])

    def test_decoding_and_quotes(self):
        self.assertEqual(parse_cookie_header('k%20ey=v%3Bal; q="quoted"'),
                         [("k ey", "v;al"), ("q", "quoted")])

    def test_malformed_items_skipped(self):
        self.assertEqual(parse_cookie_header("novalue; =x; ok=1; "), [("ok", "1")])

    def test_value_may_contain_equals(self):
        self.assertEqual(parse_cookie_header("token=a=b"), [("token", "a=b")])


class TestUseCookie(unittest.TestCase):
    def test_cookie_lookup(self):
        ctx = make_ctx(headers=[("Cookie", "a=1; b=2"), ("Cookie", "a=3")])
        result = run_part(use_cookie, ctx)
        self.assertEqual(result.cookies, (("a", "1"), ("b", "2"), ("a", "3")))
        self.assertEqual(cookie(result, "a"), "1")
        self.assertEqual(cookie(result, "b"), "2")
        self.assertIsNone(cookie(result, "missing"))

    def test_lookup_before_parsing(self):
        self.assertIsNone(cookie(make_ctx(headers={"Cookie": "a=1"}), "a"))

    def test_no_cookie_header(self):
        result = run_part(use_cookie, make_ctx())
        self.assertEqual(result.cookies, ())


class TestSetCookie(unittest.TestCase):
    def test_pending_not_serialized_by_part(self):
        result = run_part(set_cookie("k", "v"), make_ctx())
        self.assertNotIn("Set-Cookie", result.headers)
        self.assertEqual(pending_cookie(result, "k"), SetCookie("k", "v"))

    def test_name_and_value_are_encoded(self):
        result = run_part(set_cookie("a b", "x;y"), make_ctx())
        self.assertIn("a%20b", result.pending_cookies)
        directive = pending_cookie(result, "a b")
        self.assertEqual(directive.value, "x%3By")

    def test_last_write_wins(self):
        result = run_part(set_cookie("k", "1") >> set_cookie("k", "2"), make_ctx())
        self.assertEqual(len(result.pending_cookies), 1)
        self.assertEqual(pending_cookie(result, "k").value, "2")

    def test_attributes(self):
        part = set_cookie("sid", "abc", expiration=3600, path="/", secure=True, http_only=True)
        directive = pending_cookie(run_part(part, make_ctx()), "sid")
        self.assertEqual(directive.serialize(), "sid=abc; Max-Age=3600; Path=/; Secure; HttpOnly")


class TestSerializeCookies(unittest.TestCase):
    def test_empty_map_is_untouched(self):
        ctx = make_ctx()
        self.assertIs(serialize_cookies(ctx), ctx)

    def test_one_header_per_cookie(self):
        ctx = run_part(set_cookie("a", "1") >> set_cookie("b", "2"), make_ctx())
        result = serialize_cookies(ctx)
        self.assertEqual(result.headers.get_all("Set-Cookie"), ["a=1", "b=2"])
        self.assertEqual(dict(result.pending_cookies), {})

    def test_round_trip_through_adapter(self):
        app = set_cookie("user name", "j&d") >> use_cookie
        result = asyncio.run(run_app(app, make_ctx()))
        header = result.headers.get("Set-Cookie")
        self.assertEqual(header, "user%20name=j%26d")

        follow_up = make_ctx(headers={"Cookie": header})
        parsed = run_part(use_cookie, follow_up)
        self.assertEqual(cookie(parsed, "user name"), "j&d")

    def test_adapter_without_cookies_adds_no_header(self):
        result = asyncio.run(run_app(accept_part(), make_ctx()))
        self.assertNotIn("Set-Cookie", result.headers)


def accept_part():
    async def passthrough(next, ctx):
        return await next(ctx)
    return passthrough


if __name__ == '__main__':
    unittest.main()
