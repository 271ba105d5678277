from unittest import TestCase

import pytest

from jetway.url import (
    ResourceIdentifier,
    link_href,
    resolve_reference,
    to_gateway_path,
    to_resource_identifier,
)

ROOT = ResourceIdentifier.from_url("gemini://root.example")


class ResourceIdentifierTestCase(TestCase):
    def test_from_url(self):
        identifier = ResourceIdentifier.from_url("gemini://Example.COM:1966/a/b?c=d")
        assert identifier.scheme == "gemini"
        assert identifier.host == "example.com"
        assert identifier.port == 1966
        assert identifier.path == "/a/b"
        assert identifier.query == "c=d"

    def test_url(self):
        identifier = ResourceIdentifier("gemini", "example.com", 1966, "/a", "b")
        assert identifier.url == "gemini://example.com:1966/a?b"

    def test_url_ipv6(self):
        identifier = ResourceIdentifier.from_url("gemini://[::1]:1966/")
        assert identifier.host == "::1"
        assert identifier.netloc == "[::1]:1966"
        assert identifier.url == "gemini://[::1]:1966/"

    def test_default_port(self):
        identifier = ResourceIdentifier.from_url("gemini://example.com/")
        assert identifier.address == ("example.com", 1965)

    def test_explicit_default_port(self):
        identifier = ResourceIdentifier.from_url("gemini://example.com:1965/")
        assert identifier.port is None
        assert identifier.url == "gemini://example.com/"

    def test_same_origin_default_port(self):
        a = ResourceIdentifier.from_url("gemini://example.com/")
        b = ResourceIdentifier.from_url("gemini://example.com:1965/")
        assert a.same_origin(b)

    def test_missing_hostname(self):
        with pytest.raises(ValueError):
            ResourceIdentifier.from_url("gemini:///path")

    def test_missing_scheme(self):
        with pytest.raises(ValueError):
            ResourceIdentifier.from_url("//example.com/path")

    def test_invalid_port(self):
        with pytest.raises(ValueError):
            ResourceIdentifier.from_url("gemini://example.com:abc/")


class GatewayPathTestCase(TestCase):
    def test_root_path(self):
        identifier = ResourceIdentifier.from_url("gemini://root.example/docs/")
        assert to_gateway_path(identifier, ROOT) == "/docs/"

    def test_root_path_query(self):
        identifier = ResourceIdentifier.from_url("gemini://root.example/search?cats")
        assert to_gateway_path(identifier, ROOT) == "/search?cats"

    def test_root_empty_path(self):
        identifier = ResourceIdentifier.from_url("gemini://root.example")
        assert to_gateway_path(identifier, ROOT) == "/"

    def test_foreign_path(self):
        identifier = ResourceIdentifier.from_url("gemini://other.example/about?x")
        assert to_gateway_path(identifier, ROOT) == "/x/other.example/about?x"

    def test_foreign_path_port(self):
        identifier = ResourceIdentifier.from_url("gemini://other.example:1966/")
        assert to_gateway_path(identifier, ROOT) == "/x/other.example:1966/"

    def test_root_host_other_port_is_foreign(self):
        identifier = ResourceIdentifier.from_url("gemini://root.example:1966/")
        assert to_gateway_path(identifier, ROOT) == "/x/root.example:1966/"

    def test_decode_root_path(self):
        identifier = to_resource_identifier("/docs/index.gmi?page=2", ROOT)
        assert identifier == ResourceIdentifier(
            "gemini", "root.example", None, "/docs/index.gmi", "page=2"
        )

    def test_decode_foreign_path(self):
        identifier = to_resource_identifier("/x/other.example:1966/a/b?q", ROOT)
        assert identifier == ResourceIdentifier(
            "gemini", "other.example", 1966, "/a/b", "q"
        )

    def test_decode_foreign_default_port(self):
        identifier = to_resource_identifier("/x/other.example:1965/a", ROOT)
        assert identifier == ResourceIdentifier.from_url("gemini://other.example/a")

    def test_decode_foreign_host_only(self):
        identifier = to_resource_identifier("/x/other.example", ROOT)
        assert identifier.host == "other.example"
        assert identifier.path == "/"

    def test_decode_query_unmodified(self):
        identifier = to_resource_identifier("/search?hello%20world&x", ROOT)
        assert identifier.query == "hello%20world&x"

    def test_decode_scheme_is_always_gemini(self):
        identifier = to_resource_identifier("/x/other.example/https://evil/", ROOT)
        assert identifier.scheme == "gemini"
        assert identifier.host == "other.example"
        assert identifier.path == "/https://evil/"

    def test_decode_missing_host(self):
        with pytest.raises(ValueError):
            to_resource_identifier("/x/", ROOT)

    def test_round_trip_root(self):
        for url in [
            "gemini://root.example/",
            "gemini://root.example/a/b/c.gmi",
            "gemini://root.example/search?term",
            "gemini://root.example/%E2%98%83?%20",
            "gemini://root.example:1965/a",
        ]:
            identifier = ResourceIdentifier.from_url(url)
            gateway_path = to_gateway_path(identifier, ROOT)
            assert not gateway_path.startswith("/x/")
            assert to_resource_identifier(gateway_path, ROOT) == identifier

    def test_round_trip_foreign(self):
        for url in [
            "gemini://other.example/",
            "gemini://other.example:1966/a/b",
            "gemini://[::1]:1965/c?d",
            "gemini://xn--caf-dma.example/menu",
        ]:
            identifier = ResourceIdentifier.from_url(url)
            gateway_path = to_gateway_path(identifier, ROOT)
            assert gateway_path.split("/")[1] == "x"

            decoded = to_resource_identifier(gateway_path, ROOT)
            assert decoded.host == identifier.host
            assert decoded.path == identifier.path
            assert decoded.query == identifier.query


class ResolveReferenceTestCase(TestCase):
    base = ResourceIdentifier.from_url("gemini://root.example/docs/page.gmi")

    def test_absolute(self):
        url = resolve_reference(self.base, "gemini://other.example/")
        assert url == "gemini://other.example/"

    def test_relative_path(self):
        url = resolve_reference(self.base, "other.gmi")
        assert url == "gemini://root.example/docs/other.gmi"

    def test_parent_path(self):
        url = resolve_reference(self.base, "../index.gmi")
        assert url == "gemini://root.example/index.gmi"

    def test_absolute_path(self):
        url = resolve_reference(self.base, "/about")
        assert url == "gemini://root.example/about"

    def test_scheme_relative(self):
        url = resolve_reference(self.base, "//other.example/x")
        assert url == "gemini://other.example/x"

    def test_query_only(self):
        url = resolve_reference(self.base, "?search")
        assert url == "gemini://root.example/docs/page.gmi?search"

    def test_invalid_characters(self):
        with pytest.raises(ValueError):
            resolve_reference(self.base, "foo bar")

    def test_invalid_ipv6(self):
        with pytest.raises(ValueError):
            resolve_reference(self.base, "gemini://[::1/")


class LinkHrefTestCase(TestCase):
    base = ResourceIdentifier.from_url("gemini://root.example/docs/page.gmi")
    foreign_base = ResourceIdentifier.from_url("gemini://other.example/blog/")

    def href(self, reference, base=None):
        return link_href(reference, base or self.base, ROOT)

    def test_relative_link(self):
        assert self.href("next.gmi") == "/docs/next.gmi"

    def test_absolute_link_root(self):
        assert self.href("gemini://root.example/about") == "/about"

    def test_absolute_link_foreign(self):
        assert self.href("gemini://other.example/about") == "/x/other.example/about"

    def test_relative_link_on_foreign_page(self):
        href = self.href("post.gmi", self.foreign_base)
        assert href == "/x/other.example/blog/post.gmi"

    def test_link_to_root_from_foreign_page(self):
        href = self.href("gemini://root.example/", self.foreign_base)
        assert href == "/"

    def test_fragment(self):
        assert self.href("/about#contact") == "/about#contact"

    def test_other_scheme_not_proxied(self):
        assert self.href("https://example.com/x?y") == "https://example.com/x?y"
        assert self.href("gopher://example.com/1/") == "gopher://example.com/1/"
        assert self.href("mailto:someone@example.com") == "mailto:someone@example.com"

    def test_malformed(self):
        assert self.href("gemini://[broken/") == "error"
        assert self.href("gemini://example.com:port/") == "error"

    def test_script(self):
        assert self.href("javascript:alert(1)") == "error"
