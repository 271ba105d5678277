from unittest import TestCase

from jetway.client import GeminiResponse
from jetway.config import GatewayConfig
from jetway.gemtext import (
    Heading,
    Link,
    ListItem,
    PlainText,
    PreformattedText,
    PreformattingToggle,
    Quote,
)
from jetway.render import (
    InputPrompt,
    RenderState,
    render_document,
    render_gemtext,
    render_input_prompt,
)
from jetway.url import ResourceIdentifier

CONFIG = GatewayConfig.from_root_url("gemini://root.example")
PAGE = ResourceIdentifier.from_url("gemini://root.example/docs/index.gmi")


def new_state(identifier=PAGE):
    return RenderState(identifier=identifier, root=CONFIG.root)


class RenderGemtextTestCase(TestCase):
    def render(self, lines, state=None):
        return render_gemtext(lines, state or new_state())

    def test_heading(self):
        html = self.render([Heading(2, "Section")])
        assert html == "<h2>Section</h2>\n"

    def test_title_is_first_level_one_heading(self):
        state = new_state()
        lines = [Heading(2, "Intro"), Heading(1, "First"), Heading(1, "Second")]
        self.render(lines, state)
        assert state.title == "First"

    def test_escaping(self):
        html = self.render([PlainText("<script>alert('x') & co</script>")])
        assert "<script>" not in html
        assert "&lt;script&gt;" in html
        assert "&amp; co" in html

    def test_link_with_name(self):
        html = self.render([Link("/about", "About <us>")])
        assert html == '<p><a href="/about">About &lt;us&gt;</a>\n'

    def test_link_without_name(self):
        html = self.render([Link("next.gmi")])
        assert html == '<p><a href="/docs/next.gmi">next.gmi</a>\n'

    def test_link_foreign(self):
        html = self.render([Link("gemini://other.example/")])
        assert 'href="/x/other.example/"' in html

    def test_link_other_protocol_not_proxied(self):
        html = self.render([Link("https://example.com/?a=1&b=2", "Web")])
        assert 'href="https://example.com/?a=1&amp;b=2"' in html

    def test_link_malformed(self):
        html = self.render([Link("gemini://[oops/", "Broken")])
        assert html == '<p><a href="error">Broken</a>\n'

    def test_quote(self):
        html = self.render([Quote("Wise words")])
        assert html == "<blockquote>Wise words</blockquote>\n"

    def test_list_closed_before_heading(self):
        html = self.render(
            [ListItem("one"), ListItem("two"), ListItem("three"), Heading(1, "Next")]
        )
        assert html == (
            "<ul>\n"
            "\t<li>one</li>\n"
            "\t<li>two</li>\n"
            "\t<li>three</li>\n"
            "</ul>\n"
            "<h1>Next</h1>\n"
        )
        assert html.count("<ul>") == 1

    def test_list_closed_before_text(self):
        html = self.render([ListItem("one"), PlainText("after")])
        assert html == "<ul>\n\t<li>one</li>\n</ul>\n<p>after\n"

    def test_list_closed_at_end(self):
        state = new_state()
        html = self.render([PlainText("before"), ListItem("one")], state)
        assert html.endswith("</ul>\n")
        assert not state.in_list

    def test_two_lists(self):
        html = self.render([ListItem("a"), PlainText(""), ListItem("b")])
        assert html.count("<ul>") == 2
        assert html.count("</ul>") == 2

    def test_preformatted_block(self):
        html = self.render(
            [
                PlainText("before"),
                PreformattingToggle("ascii art"),
                PreformattedText("  /\\_/\\"),
                PreformattedText(" ( o.o )"),
                PreformattingToggle(""),
                PlainText("after"),
            ]
        )
        assert html == (
            "<p>before\n"
            '<div aria-label="ascii art">\n'
            '<pre aria-hidden="true" alt="ascii art">'
            "  /\\_/\\\n"
            " ( o.o )\n"
            "</pre>\n"
            "</div>\n"
            "<p>after\n"
        )

    def test_preformatted_text_only_inside_block(self):
        html = self.render(
            [
                PreformattedText("outside"),
                PreformattingToggle(""),
                PreformattedText("inside"),
                PreformattingToggle(""),
            ]
        )
        pre_start = html.index("<pre")
        pre_end = html.index("</pre>")
        assert html.count("<pre") == 1
        assert html.index("outside") < pre_start
        assert pre_start < html.index("inside") < pre_end

    def test_preformatted_escaped(self):
        html = self.render(
            [PreformattingToggle(""), PreformattedText("<b>"), PreformattingToggle("")]
        )
        assert "&lt;b&gt;" in html

    def test_preformatted_closes_list(self):
        html = self.render([ListItem("a"), PreformattingToggle("")])
        assert html.index("</ul>") < html.index("<pre")

    def test_multiple_blocks(self):
        html = self.render([PreformattingToggle("one"), PreformattingToggle("")] * 3)
        assert html.count("<pre") == 3
        assert html.count("</pre>") == 3

    def test_unterminated_block_is_closed(self):
        state = new_state()
        html = self.render([PreformattingToggle(""), PreformattedText("code")], state)
        assert html.endswith("code\n</pre>\n</div>\n")
        assert not state.preformatted

    def test_state_is_per_render(self):
        first = new_state()
        self.render([PreformattingToggle("")], first)
        html = self.render([PreformattingToggle("label")], new_state())
        assert html.startswith('<div aria-label="label">')


class RenderDocumentTestCase(TestCase):
    def render(self, text_lines, identifier=PAGE, config=CONFIG, **kwargs):
        response = GeminiResponse(20, "text/gemini; charset=utf-8")
        return render_document(text_lines, identifier, response, config, **kwargs)

    def test_title(self):
        html = self.render(["# Title"])
        assert "<title>Title</title>" in html
        article = html.split("<article>\n", 1)[1]
        assert article.startswith("<h1>Title</h1>")

    def test_fallback_title(self):
        html = self.render(["no heading here"])
        assert "<title>root.example /docs/index.gmi</title>" in html

    def test_details(self):
        html = self.render(["text"])
        assert "<dd>20</dd>" in html
        assert "<dd>text/gemini; charset=utf-8</dd>" in html
        assert "gemini://root.example/docs/index.gmi" in html
        assert "no attempt was made to verify the remote SSL certificate" in html
        assert "(external content)" not in html

    def test_external(self):
        html = self.render(["text"], foreign=True)
        assert "(external content)" in html

    def test_certificate(self):
        response = GeminiResponse(
            20,
            "text/gemini",
            certificate={
                "common_name": "root.example",
                "fingerprint": "abc123",
                "not_before": "2020-01-01T00:00:00Z",
                "not_after": "2030-01-01T00:00:00Z",
                "serial_number": 1,
            },
        )
        html = render_document(["hi"], PAGE, response, CONFIG)
        assert "Server certificate" in html
        assert "abc123" in html

    def test_lang(self):
        html = self.render(["hi"], lang="fr")
        assert '<html lang="fr">' in html

    def test_default_stylesheet(self):
        html = self.render(["hi"])
        assert "<style>" in html
        assert "font-family: sans-serif" in html

    def test_custom_stylesheet(self):
        config = GatewayConfig.from_root_url(
            "gemini://root.example", stylesheet="body { color: red; }\n"
        )
        html = self.render(["hi"], config=config)
        assert "body { color: red; }" in html
        assert "font-family: sans-serif" not in html

    def test_external_stylesheet(self):
        config = GatewayConfig.from_root_url(
            "gemini://root.example", stylesheet_url="https://example.com/style.css"
        )
        html = self.render(["hi"], config=config)
        assert '<link rel="stylesheet" href="https://example.com/style.css">' in html
        assert "<style>" not in html


class RenderInputPromptTestCase(TestCase):
    def test_text_input(self):
        identifier = ResourceIdentifier.from_url("gemini://root.example/search?old")
        prompt = InputPrompt("Search term:", False, identifier)
        html = render_input_prompt(prompt, CONFIG)
        assert '<input type="text" id="q" name="q" autofocus>' in html
        assert 'type="password"' not in html
        assert '<form method="post" action="/search">' in html
        assert "Search term:" in html

    def test_password_input(self):
        identifier = ResourceIdentifier.from_url("gemini://root.example/login")
        prompt = InputPrompt("Search term:", True, identifier)
        html = render_input_prompt(prompt, CONFIG)
        assert '<input type="password" id="q" name="q" autofocus>' in html

    def test_foreign_action(self):
        identifier = ResourceIdentifier.from_url("gemini://other.example/search")
        html = render_input_prompt(InputPrompt("Term", False, identifier), CONFIG)
        assert 'action="/x/other.example/search"' in html

    def test_prompt_escaped(self):
        identifier = ResourceIdentifier.from_url("gemini://root.example/q")
        html = render_input_prompt(InputPrompt("<b>?</b>", False, identifier), CONFIG)
        assert "<b>" not in html
