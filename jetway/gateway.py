"""
Translation of gemini responses into responses for the web browser.
"""
from __future__ import annotations

import dataclasses
import re
import typing
import urllib.parse
from html import escape

from .client import GeminiBody, GeminiClient, GeminiResponse, Status
from .config import GatewayConfig
from .errors import GatewayError, ProtocolError, RenderError, UnsupportedContent
from .gemtext import LineDecoder
from .render import InputPrompt, render_document, render_input_prompt, render_notice
from .url import (
    GEMINI_SCHEME,
    UNSAFE_SCHEMES,
    ResourceIdentifier,
    resolve_reference,
    to_gateway_path,
)

GEMTEXT_MIME_TYPE = "text/gemini"
DEFAULT_META = "text/gemini; charset=utf-8"
HTML_CONTENT_TYPE = "text/html; charset=utf-8"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"
UTF8_CHARSETS = ("utf-8", "utf8")

TOKEN = r"[!#$%&'*+.^_`|~0-9A-Za-z-]+"
MIME_TYPE_RE = re.compile(rf"\s*(?P<type>{TOKEN}/{TOKEN})\s*")
PARAMETER_RE = re.compile(
    rf"\s*;\s*(?:(?P<name>{TOKEN})="
    rf'(?:(?P<token>{TOKEN})|"(?P<quoted>(?:[^"\\]|\\.)*)"))?\s*'
)


@dataclasses.dataclass
class GatewayResponse:
    """
    Object that encapsulates the HTTP response sent to the web browser.

    The body is either a complete string of bytes or, for content that's
    passed through untouched, the still-streaming upstream body.
    """

    status: int
    content_type: str = TEXT_CONTENT_TYPE
    body: bytes = b""
    stream: typing.Optional[GeminiBody] = None
    location: typing.Optional[str] = None

    @classmethod
    def html(cls, page: str, status: int = 200) -> GatewayResponse:
        return cls(status, HTML_CONTENT_TYPE, page.encode())

    @classmethod
    def text(cls, message: str, status: int) -> GatewayResponse:
        return cls(status, TEXT_CONTENT_TYPE, message.encode())

    @classmethod
    def redirect(cls, location: str) -> GatewayResponse:
        body = f"Redirecting to {location}".encode()
        return cls(302, TEXT_CONTENT_TYPE, body, location=location)

    @classmethod
    def from_error(cls, err: GatewayError) -> GatewayResponse:
        if isinstance(err, UnsupportedContent):
            return cls.text(str(err), err.http_status)
        if isinstance(err, RenderError):
            return cls.text(f"Failed to render page: {err}", err.http_status)
        return cls.text(f"Gateway error: {err}", err.http_status)


def parse_mime_type(meta: str) -> typing.Tuple[str, typing.Dict[str, str]]:
    """
    Split a MIME type string into the lowercase type and its parameters.

        >>> parse_mime_type('text/gemini; charset="utf-8"; lang=en')
        ('text/gemini', {'charset': 'utf-8', 'lang': 'en'})
    """
    match = MIME_TYPE_RE.match(meta)
    if not match:
        raise ProtocolError(f"Malformed MIME type {meta!r}")

    mime_type = match.group("type").lower()
    params = {}
    position = match.end()
    while position < len(meta):
        match = PARAMETER_RE.match(meta, position)
        if not match:
            raise ProtocolError(f"Malformed MIME parameters in {meta!r}")
        position = match.end()

        name = match.group("name")
        if name is None:
            # Empty parameter, e.g. "text/gemini;;lang=en"
            continue
        if match.group("token") is not None:
            value = match.group("token")
        else:
            value = re.sub(r"\\(.)", r"\1", match.group("quoted"))
        params[name.lower()] = value

    return mime_type, params


async def read_lines(body: typing.Optional[GeminiBody]) -> typing.List[str]:
    """
    Decode the body of a gemtext document into text lines as it arrives.
    """
    if body is None:
        return []

    decoder = LineDecoder()
    lines = []
    while True:
        data = await body.read_chunk()
        if not data:
            break
        lines.extend(decoder.feed(data))
    lines.extend(decoder.close())
    return lines


async def translate_success(
    response: GeminiResponse,
    identifier: ResourceIdentifier,
    config: GatewayConfig,
    foreign: bool = False,
) -> GatewayResponse:
    mime_type, params = parse_mime_type(response.meta or DEFAULT_META)

    if mime_type != GEMTEXT_MIME_TYPE:
        content_type = response.meta
        return GatewayResponse(200, content_type, stream=response.body)

    charset = params.get("charset")
    if charset and charset.lower() not in UTF8_CHARSETS:
        raise UnsupportedContent(f"Unsupported charset: {charset}")

    text_lines = await read_lines(response.body)
    try:
        page = render_document(
            text_lines,
            identifier,
            response,
            config,
            foreign=foreign,
            lang=params.get("lang"),
        )
    except Exception as e:
        raise RenderError(str(e)) from e

    return GatewayResponse.html(page)


def translate_redirect(
    response: GeminiResponse, identifier: ResourceIdentifier, config: GatewayConfig
) -> GatewayResponse:
    """
    Send the browser to the redirect target, as long as it stays on gemini.

    Relative targets are resolved against the current resource, so a
    redirect from a foreign host stays in the foreign namespace unless it
    points back to the root host.
    """
    if not response.meta:
        raise ProtocolError("Redirect without a target")

    try:
        url = resolve_reference(identifier, response.meta)
        url_parts = urllib.parse.urlsplit(url)
        if url_parts.scheme in UNSAFE_SCHEMES:
            raise ValueError(f"Refusing to follow {url_parts.scheme} URL")
        if url_parts.scheme != GEMINI_SCHEME:
            message = (
                f"This page redirects to an external resource: "
                f'<a href="{escape(url)}">{escape(url)}</a>'
            )
            page = render_notice("External redirect", message, config)
            return GatewayResponse.html(page)

        target = ResourceIdentifier.from_url(url)
    except ValueError as e:
        raise ProtocolError(f"Invalid redirect to {response.meta!r}: {e}") from e

    return GatewayResponse.redirect(to_gateway_path(target, config.root))


async def translate_response(
    response: GeminiResponse,
    identifier: ResourceIdentifier,
    config: GatewayConfig,
    foreign: bool = False,
) -> GatewayResponse:
    """
    Decide what the browser gets back based on the gemini status code.
    """
    status, meta = response.status, response.meta

    if status == Status.SUCCESS:
        return await translate_success(response, identifier, config, foreign)

    # Only a success response has a body that could be worth reading
    response.close()

    if status in (Status.INPUT, Status.SENSITIVE_INPUT):
        secret = status == Status.SENSITIVE_INPUT
        prompt = InputPrompt(meta, secret, identifier)
        return GatewayResponse.html(render_input_prompt(prompt, config))

    elif status in (Status.REDIRECT_TEMPORARY, Status.REDIRECT_PERMANENT):
        return translate_redirect(response, identifier, config)

    message = f"The remote server returned {status}: {meta}"
    if Status.TEMPORARY_FAILURE <= status <= Status.SLOW_DOWN:
        return GatewayResponse.text(message, 503)

    elif status in (Status.PERMANENT_FAILURE, Status.NOT_FOUND):
        return GatewayResponse.text(message, 404)

    elif status in (Status.GONE, Status.PROXY_REQUEST_REFUSED, Status.BAD_REQUEST):
        return GatewayResponse.text(message, 503)

    else:
        message = f"Proxy does not understand Gemini response status {status}"
        return GatewayResponse.text(message, 501)


async def proxy_resource(
    client: GeminiClient,
    identifier: ResourceIdentifier,
    config: GatewayConfig,
    foreign: bool = False,
) -> GatewayResponse:
    """
    Fetch a gemini resource and translate it for the browser.

    The upstream connection is dropped if anything goes wrong before the
    response has been handed over, including the request being cancelled.
    """
    response = await client.request(identifier)
    try:
        return await translate_response(response, identifier, config, foreign)
    except BaseException:
        response.close()
        raise
