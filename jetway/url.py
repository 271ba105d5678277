"""
Mapping between gemini URLs and the gateway's own HTTP paths.

Every upstream resource is addressable through the gateway. Resources on the
configured root host live at the top of the gateway's path space, resources
on any other host are nested under ``/x/<host>/``:

    gemini://root.example/docs?page=2   <->  /docs?page=2
    gemini://other.example:1966/about   <->  /x/other.example:1966/about
"""
from __future__ import annotations

import dataclasses
import re
import typing
import urllib.parse

GEMINI_SCHEME = "gemini"
DEFAULT_PORT = 1965

FOREIGN_PREFIX = "/x/"

# Links with these schemes would execute code in the browser
UNSAFE_SCHEMES = ("javascript", "vbscript")

INVALID_CHARACTERS = re.compile(r"[\x00-\x20\x7f]")

# urljoin() only resolves relative references for schemes it knows about
for _schemes in (urllib.parse.uses_relative, urllib.parse.uses_netloc):
    if GEMINI_SCHEME not in _schemes:
        _schemes.append(GEMINI_SCHEME)


@dataclasses.dataclass(frozen=True)
class ResourceIdentifier:
    """
    The address of an upstream resource.
    """

    scheme: str
    host: str
    port: typing.Optional[int] = None
    path: str = ""
    query: str = ""

    @classmethod
    def from_url(cls, url: str) -> ResourceIdentifier:
        """
        Parse an absolute URL, raising a ValueError if it's unusable.
        """
        check_reference(url)
        url_parts = urllib.parse.urlsplit(url)
        if not url_parts.scheme:
            raise ValueError("Missing scheme component")
        if not url_parts.hostname:
            raise ValueError("Missing hostname component")

        return cls(
            scheme=url_parts.scheme,
            host=url_parts.hostname,
            port=normalize_port(url_parts.port),
            path=url_parts.path,
            query=url_parts.query,
        )

    @property
    def netloc(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        if self.port is None:
            return host
        return f"{host}:{self.port}"

    @property
    def address(self) -> typing.Tuple[str, int]:
        return self.host, self.port or DEFAULT_PORT

    @property
    def url(self) -> str:
        return urllib.parse.urlunsplit(
            (self.scheme, self.netloc, self.path, self.query, "")
        )

    def same_origin(self, other: ResourceIdentifier) -> bool:
        return self.address == other.address

    def __str__(self) -> str:
        return self.url


def normalize_port(port: typing.Optional[int]) -> typing.Optional[int]:
    """
    The default port is never spelled out, so equal addresses compare equal.
    """
    if port == DEFAULT_PORT:
        return None
    return port


def check_reference(reference: str) -> None:
    """
    Reject strings that can never be a valid URL reference.
    """
    if INVALID_CHARACTERS.search(reference):
        raise ValueError(f"Invalid characters in URL {reference!r}")


def to_gateway_path(identifier: ResourceIdentifier, root: ResourceIdentifier) -> str:
    """
    Convert an upstream resource into a path on the gateway.

    The scheme and the host are dropped for resources on the root host, so
    the browser's address bar never reveals where the page came from.
    """
    path = identifier.path or "/"
    if not path.startswith("/"):
        path = "/" + path

    if not identifier.same_origin(root):
        path = f"{FOREIGN_PREFIX}{identifier.netloc}{path}"

    if identifier.query:
        path = f"{path}?{identifier.query}"
    return path


def to_resource_identifier(
    gateway_path: str, root: ResourceIdentifier
) -> ResourceIdentifier:
    """
    Convert a raw HTTP request path (with an optional query string) into the
    upstream resource that it represents.

    The scheme is always gemini, the query string is carried over untouched.
    """
    path, _, query = gateway_path.partition("?")

    if path.startswith(FOREIGN_PREFIX):
        segments = path.split("/", 3)
        if len(segments) < 4:
            segments.append("")
        _, _, netloc, rest = segments

        netloc_parts = urllib.parse.urlsplit(f"//{netloc}")
        if not netloc_parts.hostname:
            raise ValueError(f"Missing hostname in {path!r}")

        return ResourceIdentifier(
            scheme=GEMINI_SCHEME,
            host=netloc_parts.hostname,
            port=normalize_port(netloc_parts.port),
            path="/" + rest,
            query=query,
        )

    return ResourceIdentifier(
        scheme=GEMINI_SCHEME,
        host=root.host,
        port=root.port,
        path=path,
        query=query,
    )


def is_foreign_path(gateway_path: str) -> bool:
    return gateway_path.startswith(FOREIGN_PREFIX)


def resolve_reference(base: ResourceIdentifier, reference: str) -> str:
    """
    Resolve a link or a redirect target against the current resource.

    Absolute URLs pass through, relative references are resolved following
    RFC 3986. A ValueError is raised for references that can't be parsed.
    """
    check_reference(reference)
    url = urllib.parse.urljoin(base.url, reference)

    # Accessing the port validates it
    urllib.parse.urlsplit(url).port
    return url


def link_href(
    reference: str, base: ResourceIdentifier, root: ResourceIdentifier
) -> str:
    """
    Build the href attribute for a link found on the page at ``base``.

    Gemini links are routed back through the gateway, links to other
    protocols point straight to their destination. A malformed link is
    replaced with the literal string "error".
    """
    try:
        url = resolve_reference(base, reference)
        url_parts = urllib.parse.urlsplit(url)
        if url_parts.scheme in UNSAFE_SCHEMES:
            return "error"
        if url_parts.scheme != GEMINI_SCHEME:
            return reference
        identifier = ResourceIdentifier.from_url(url)
    except ValueError:
        return "error"

    href = to_gateway_path(identifier, root)
    if url_parts.fragment:
        href = f"{href}#{url_parts.fragment}"
    return href
