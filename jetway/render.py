"""
HTML rendering for the gateway.

Gemtext documents are converted to HTML in a single pass over their lines.
All of the state needed while rendering is kept in an explicit RenderState
object that lives for exactly one document.
"""
from __future__ import annotations

import dataclasses
import typing
from html import escape

from .__version__ import __version__
from .config import GatewayConfig
from .gemtext import (
    Heading,
    Line,
    Link,
    ListItem,
    PlainText,
    PreformattedText,
    PreformattingToggle,
    Quote,
    parse_gemtext,
)
from .url import ResourceIdentifier, link_href, to_gateway_path

if typing.TYPE_CHECKING:
    from .client import GeminiResponse

PROJECT_URL = "https://github.com/jetway-gateway/jetway"

DEFAULT_STYLESHEET = """\
html {
	font-family: sans-serif;
	color: #080808;
}

body {
	max-width: 920px;
	margin: 0 auto;
	padding: 1rem 2rem;
}

blockquote {
	background-color: #eee;
	border-left: 3px solid #444;
	margin: 1rem -1rem 1rem calc(-1rem - 3px);
	padding: 1rem;
}

ul {
	margin-left: 0;
	padding: 0;
}

li {
	padding: 0;
}

a {
	position: relative;
}

a:before {
	content: '\\21D2';
	color: #999;
	text-decoration: none;
	font-weight: bold;
	position: absolute;
	left: -1.25rem;
}

pre {
	background-color: #eee;
	margin: 0 -1rem;
	padding: 1rem;
	overflow-x: auto;
}

details:not([open]) summary,
details:not([open]) summary a {
	color: gray;
}

details summary a:before {
	display: none;
}

dl dt {
	font-weight: bold;
}

dl dt:not(:first-child) {
	margin-top: 0.5rem;
}
"""

PAGE_TEMPLATE = """\
<!doctype html>
<html{lang}>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
{stylesheet}
<title>{title}</title>
{content}"""

DOCUMENT_TEMPLATE = """\
<article>
{body}</article>
<details>
	<summary>
		Proxied content from <a href="{url}">{url}</a>{external}
	</summary>
	<p>Gemini request details:
	<dl>
		<dt>Original URL</dt>
		<dd><a href="{url}">{url}</a></dd>
		<dt>Status code</dt>
		<dd>{status}</dd>
		<dt>Meta</dt>
		<dd>{meta}</dd>
{certificate}\
		<dt>Proxied by</dt>
		<dd><a href="{project_url}">jetway {version}</a></dd>
	</dl>
	<p>Be advised that no attempt was made to verify the remote SSL certificate.
</details>
"""

CERTIFICATE_TEMPLATE = """\
		<dt>Server certificate</dt>
		<dd>{common_name} (SHA-256 {fingerprint}, valid until {not_after})</dd>
"""

INPUT_TEMPLATE = """\
<form method="post" action="{action}">
	<p><label for="q">{prompt}</label>
	<p><input type="{input_type}" id="q" name="q" autofocus>
	<button type="submit">Submit</button>
</form>
<details>
	<summary>
		Input requested by <a href="{url}">{url}</a>
	</summary>
	<p>Be advised that no attempt was made to verify the remote SSL certificate.
</details>
"""

NOTICE_TEMPLATE = """\
<article>
<h1>{title}</h1>
<p>{message}
</article>
"""


@dataclasses.dataclass
class RenderState:
    """
    Everything the renderer needs to remember while walking a document.
    """

    identifier: ResourceIdentifier
    root: ResourceIdentifier
    preformatted: bool = False
    in_list: bool = False
    title: typing.Optional[str] = None


@dataclasses.dataclass(frozen=True)
class InputPrompt:
    prompt: str
    secret: bool
    identifier: ResourceIdentifier


def iter_gemtext_html(
    lines: typing.Iterable[Line], state: RenderState
) -> typing.Iterator[str]:
    """
    Generate HTML markup for a stream of gemtext lines.

    The first level 1 heading is stored on the state as the page title.
    """
    for line in lines:
        if state.in_list and not isinstance(line, ListItem):
            state.in_list = False
            yield "</ul>\n"

        if isinstance(line, Heading):
            if line.level == 1 and state.title is None:
                state.title = line.text
            yield f"<h{line.level}>{escape(line.text)}</h{line.level}>\n"

        elif isinstance(line, Link):
            href = link_href(line.target, state.identifier, state.root)
            text = line.name or line.target
            yield f'<p><a href="{escape(href)}">{escape(text)}</a>\n'

        elif isinstance(line, Quote):
            yield f"<blockquote>{escape(line.text)}</blockquote>\n"

        elif isinstance(line, ListItem):
            if not state.in_list:
                state.in_list = True
                yield "<ul>\n"
            yield f"\t<li>{escape(line.text)}</li>\n"

        elif isinstance(line, PreformattingToggle):
            state.preformatted = not state.preformatted
            if state.preformatted:
                label = escape(line.label)
                yield f'<div aria-label="{label}">\n'
                yield f'<pre aria-hidden="true" alt="{label}">'
            else:
                yield "</pre>\n</div>\n"

        elif isinstance(line, PreformattedText):
            if state.preformatted:
                yield f"{escape(line.text)}\n"
            else:
                yield f"<p>{escape(line.text)}\n"

        elif isinstance(line, PlainText):
            yield f"<p>{escape(line.text)}\n"

    if state.in_list:
        state.in_list = False
        yield "</ul>\n"

    if state.preformatted:
        # Unterminated block at the end of the document
        state.preformatted = False
        yield "</pre>\n</div>\n"


def render_gemtext(lines: typing.Iterable[Line], state: RenderState) -> str:
    return "".join(iter_gemtext_html(lines, state))


def render_stylesheet(config: GatewayConfig) -> str:
    if config.stylesheet_url:
        return f'<link rel="stylesheet" href="{escape(config.stylesheet_url)}">'

    stylesheet = config.stylesheet or DEFAULT_STYLESHEET
    return f"<style>\n{stylesheet}</style>"


def render_page(
    title: str,
    content: str,
    config: GatewayConfig,
    lang: typing.Optional[str] = None,
) -> str:
    """
    Wrap a fragment of HTML in a complete page.
    """
    return PAGE_TEMPLATE.format(
        lang=f' lang="{escape(lang)}"' if lang else "",
        stylesheet=render_stylesheet(config),
        title=escape(title),
        content=content,
    )


def render_document(
    text_lines: typing.Iterable[str],
    identifier: ResourceIdentifier,
    response: GeminiResponse,
    config: GatewayConfig,
    foreign: bool = False,
    lang: typing.Optional[str] = None,
) -> str:
    """
    Render a complete gemtext document as an HTML page.

    Lines are classified lazily as the renderer pulls them, so the page
    title is known once the body has been walked a single time.
    """
    state = RenderState(identifier=identifier, root=config.root)
    body = render_gemtext(parse_gemtext(text_lines), state)

    title = state.title or f"{identifier.netloc} {identifier.path}"

    certificate = ""
    if response.certificate:
        certificate = CERTIFICATE_TEMPLATE.format(
            common_name=escape(str(response.certificate["common_name"])),
            fingerprint=escape(response.certificate["fingerprint"]),
            not_after=escape(response.certificate["not_after"]),
        )

    content = DOCUMENT_TEMPLATE.format(
        body=body,
        url=escape(identifier.url),
        external=" (external content)" if foreign else "",
        status=response.status,
        meta=escape(response.meta),
        certificate=certificate,
        project_url=PROJECT_URL,
        version=__version__,
    )
    return render_page(title, content, config, lang)


def render_input_prompt(prompt: InputPrompt, config: GatewayConfig) -> str:
    """
    Render the form for a gemini input request.

    The form posts back to the current page, which redirects the browser to
    the same page with the submitted text as the query string.
    """
    target = dataclasses.replace(prompt.identifier, query="")
    content = INPUT_TEMPLATE.format(
        action=escape(to_gateway_path(target, config.root)),
        prompt=escape(prompt.prompt),
        input_type="password" if prompt.secret else "text",
        url=escape(prompt.identifier.url),
    )
    return render_page(prompt.prompt or prompt.identifier.url, content, config)


def render_notice(title: str, message: str, config: GatewayConfig) -> str:
    """
    Render a short informational page, ``message`` is already HTML.
    """
    content = NOTICE_TEMPLATE.format(title=escape(title), message=message)
    return render_page(title, content, config)
