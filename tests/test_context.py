#!/usr/bin/env python3
"""
Test suite for the context model
"""
import asyncio
import dataclasses
import unittest

from webparts.core.context import (
    BufferBody, BuffersBody, EMPTY_BODY, Headers, HttpRequest, Method, SetCookie
)
from support import make_ctx


class TestHeaders(unittest.TestCase):
    def test_lookup_is_case_insensitive(self):
        headers = Headers([("Content-Type", "text/plain")])
        self.assertEqual(headers.get("content-type"), "text/plain")
        self.assertIn("CONTENT-TYPE", headers)
        self.assertIsNone(headers.get("Accept"))

    def test_replace_collapses_duplicates(self):
        headers = Headers([("X", "1"), ("Y", "y"), ("x", "2")])
        replaced = headers.replace("X", "3")
        self.assertEqual(replaced.items(), [("X", "3"), ("Y", "y")])
        # original untouched
        self.assertEqual(len(headers), 3)

    def test_add_keeps_duplicates(self):
        headers = Headers().add("Set-Cookie", "a=1").add("Set-Cookie", "b=2")
        self.assertEqual(headers.get_all("set-cookie"), ["a=1", "b=2"])

    def test_add_unless_exists(self):
        headers = Headers([("Content-Type", "text/html")])
        self.assertIs(headers.add_unless_exists("content-type", "text/plain"), headers)
        self.assertEqual(Headers().add_unless_exists("A", "1").get("A"), "1")

    def test_remove(self):
        headers = Headers([("A", "1"), ("B", "2"), ("a", "3")]).remove("A")
        self.assertEqual(headers.items(), [("B", "2")])

    def test_of_accepts_mappings_and_pairs(self):
        self.assertEqual(Headers.of({"A": "1"}), Headers([("A", "1")]))
        self.assertEqual(Headers.of([("A", "1")]), Headers([("A", "1")]))
        self.assertEqual(len(Headers.of(None)), 0)


class TestRequest(unittest.TestCase):
    def test_path_and_query(self):
        request = HttpRequest(method=Method.GET, target="/search?q=web+parts&page=2&empty=")
        self.assertEqual(request.path, "/search")
        self.assertEqual(request.query, [("q", "web parts"), ("page", "2"), ("empty", "")])

    def test_empty_target_path(self):
        self.assertEqual(HttpRequest(method=Method.GET, target="").path, "/")

    def test_double_slash_target_is_not_an_authority(self):
        for target, expected in [("//admin/secret", "//admin/secret"),
                                 ("//anything", "//anything"),
                                 ("//a/b?x=1#frag", "//a/b")]:
            with self.subTest(target=target):
                self.assertEqual(HttpRequest(method=Method.GET, target=target).path, expected)
        request = HttpRequest(method=Method.GET, target="//a/b?x=1#frag")
        self.assertEqual(request.query, [("x", "1")])

    def test_absolute_form_target(self):
        request = HttpRequest(method=Method.GET, target="http://example.com/p/q?x=1")
        self.assertEqual(request.path, "/p/q")
        self.assertEqual(request.query, [("x", "1")])
        self.assertEqual(HttpRequest(method=Method.GET, target="http://example.com").path, "/")

    def test_double_slash_does_not_reach_other_routes(self):
        from webparts.core.response import text
        from webparts.core.routing import path
        from webparts.server import run_app
        result = asyncio.run(run_app(path("/secret") >> text("secret"),
                                     make_ctx(target="//admin/secret")))
        self.assertEqual(int(result.status), 404)
        self.assertEqual(result.body.data, b"Not found")

    def test_method_parse(self):
        self.assertIs(Method.parse("DELETE"), Method.DELETE)
        self.assertIs(Method.parse("delete"), Method.OTHER)
        self.assertEqual(HttpRequest(method=Method.PUT, target="/").raw_method, "PUT")


class TestContext(unittest.TestCase):
    def test_defaults(self):
        ctx = make_ctx()
        self.assertEqual(int(ctx.status), 200)
        self.assertIs(ctx.body, EMPTY_BODY)
        self.assertIsNone(ctx.cookies)
        self.assertEqual(dict(ctx.pending_cookies), {})

    def test_context_is_frozen(self):
        ctx = make_ctx()
        with self.assertRaises(dataclasses.FrozenInstanceError):
            ctx.status = 404

    def test_replace_returns_new_context(self):
        ctx = make_ctx()
        changed = ctx.replace(body=BufferBody(b"x"))
        self.assertIsNot(changed, ctx)
        self.assertIs(ctx.body, EMPTY_BODY)
        self.assertIs(changed.request, ctx.request)

    def test_pending_cookies_are_read_only(self):
        ctx = make_ctx().with_pending_cookie(SetCookie("a", "1"))
        with self.assertRaises(TypeError):
            ctx.pending_cookies["b"] = SetCookie("b", "2")

    def test_pending_cookie_copy_on_write(self):
        first = make_ctx().with_pending_cookie(SetCookie("a", "1"))
        second = first.with_pending_cookie(SetCookie("a", "2"))
        self.assertEqual(first.pending_cookies["a"].value, "1")
        self.assertEqual(second.pending_cookies["a"].value, "2")
        self.assertEqual(len(second.pending_cookies), 1)


class TestBodies(unittest.TestCase):
    def test_strings_are_encoded(self):
        self.assertEqual(BufferBody("héllo").data, "héllo".encode("utf-8"))
        self.assertEqual(BuffersBody(["a", b"b"]).chunks, (b"a", b"b"))

    def test_set_cookie_serialize(self):
        directive = SetCookie("k", "v", expiration=60, path="/", domain="example.com",
                              secure=True, http_only=True)
        self.assertEqual(directive.serialize(),
                         "k=v; Max-Age=60; Domain=example.com; Path=/; Secure; HttpOnly")
        self.assertEqual(SetCookie("k", "v").serialize(), "k=v")


if __name__ == '__main__':
    unittest.main()
