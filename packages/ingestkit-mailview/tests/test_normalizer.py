"""Tests for ingestkit_mailview.normalizer."""

from __future__ import annotations

import logging

import pytest

from ingestkit_mailview.config import MailviewConfig
from ingestkit_mailview.errors import ErrorCode
from ingestkit_mailview.models import OutputFormat, UrlPolicy
from ingestkit_mailview.normalizer import HtmlNormalizer, html_to_plain

LINK_AND_IMAGE = (
    '<p>See <a href="https://example.com/page?utm_source=news#top">our site</a> '
    '<img src="https://cdn.example.com/logo.png?v=3" alt="Logo"></p>'
)


class TestConvertHtml:
    def setup_method(self):
        self.normalizer = HtmlNormalizer()

    def test_paragraphs_separated_by_blank_line(self):
        html = "<p>Hello</p><br><p>World</p>"
        assert self.normalizer.convert_html(html, OutputFormat.PLAIN) == "Hello\n\nWorld"

    @pytest.mark.parametrize("html", [None, "", "   \n"])
    def test_blank_input(self, html):
        assert self.normalizer.convert_html(html, OutputFormat.PLAIN) == ""
        assert self.normalizer.convert_html(html, OutputFormat.MARKDOWN) == ""

    def test_markdown_uses_atx_headings(self):
        md = self.normalizer.convert_html("<h2>Agenda</h2><p>Item</p>", OutputFormat.MARKDOWN)
        assert "## Agenda" in md
        assert "Item" in md

    def test_script_and_style_removed(self):
        html = "<style>p{color:red}</style><p>Visible</p><script>alert('x')</script>"
        for fmt in OutputFormat:
            out = self.normalizer.convert_html(html, fmt)
            assert "Visible" in out
            assert "alert" not in out
            assert "color" not in out

    def test_head_title_not_rendered(self):
        html = "<html><head><title>Tab title</title></head><body><p>Body</p></body></html>"
        assert self.normalizer.convert_html(html, OutputFormat.PLAIN) == "Body"

    def test_br_kept_as_line_break_in_plain(self):
        assert self.normalizer.convert_html("<p>a<br>b</p>", OutputFormat.PLAIN) == "a\nb"

    def test_address_block_lines_preserved(self):
        html = "<p>123 Main St<br>Springfield<br />USA</p>"
        plain = self.normalizer.convert_html(html, OutputFormat.PLAIN)
        assert plain == "123 Main St\nSpringfield\nUSA"

    def test_br_inside_inline_and_centered_content(self):
        html = "<center><span>Best,<br>Ana</span></center>"
        assert self.normalizer.convert_html(html, OutputFormat.PLAIN) == "Best,\nAna"

    def test_source_newlines_inside_paragraph_collapsed(self):
        html = "<p>Our <a href=\"https://example.com\">post</a>\n      is live.</p>"
        assert self.normalizer.convert_html(html, OutputFormat.PLAIN) == "Our post is live."


class TestUrlPolicy:
    def setup_method(self):
        self.normalizer = HtmlNormalizer()

    def test_keep_leaves_links(self):
        md = self.normalizer.convert_html(LINK_AND_IMAGE, OutputFormat.MARKDOWN, UrlPolicy.KEEP)
        assert "utm_source=news" in md

    def test_strip_all_leaves_no_links_or_images(self):
        pre = self.normalizer.preprocess_html(LINK_AND_IMAGE, UrlPolicy.STRIP_ALL, True)
        assert "<a" not in pre
        assert "<img" not in pre

        md = self.normalizer.convert_html(
            LINK_AND_IMAGE, OutputFormat.MARKDOWN, UrlPolicy.STRIP_ALL
        )
        assert "](" not in md
        assert "our site" in md
        assert "Logo" in md

    def test_strip_all_drops_image_without_alt(self):
        html = '<p>Text <img src="https://cdn.example.com/x.png"></p>'
        pre = self.normalizer.preprocess_html(html, UrlPolicy.STRIP_ALL, True)
        assert "<img" not in pre
        assert "Text" in pre

    def test_clean_only_drops_query_and_fragment(self):
        md = self.normalizer.convert_html(
            LINK_AND_IMAGE, OutputFormat.MARKDOWN, UrlPolicy.CLEAN_ONLY
        )
        assert "https://example.com/page)" in md
        assert "https://cdn.example.com/logo.png)" in md
        assert "utm_source" not in md
        assert "?v=3" not in md
        assert "#top" not in md

    def test_clean_only_unwraps_overlong_link(self):
        html = f'<p><a href="https://example.com/{"a" * 3000}">long link</a></p>'
        md = self.normalizer.convert_html(html, OutputFormat.MARKDOWN, UrlPolicy.CLEAN_ONLY)
        assert md == "long link"

    def test_clean_only_unwraps_javascript_link(self):
        html = '<p><a href="javascript:alert(1)">click me</a></p>'
        md = self.normalizer.convert_html(html, OutputFormat.MARKDOWN, UrlPolicy.CLEAN_ONLY)
        assert "click me" in md
        assert "javascript" not in md

    def test_clean_only_urls_bounded(self):
        html = "".join(
            f'<p><a href="https://example.com/{i}/{"x" * (i * 700)}?q={i}">link {i}</a></p>'
            for i in range(5)
        )
        pre = self.normalizer.preprocess_html(html, UrlPolicy.CLEAN_ONLY, True)
        for href in _hrefs(pre):
            assert len(href) <= 2048
            assert "?" not in href
            assert "#" not in href


class TestNoiseRemoval:
    def setup_method(self):
        self.normalizer = HtmlNormalizer()

    def test_tracking_and_footer_removed(self, newsletter_html):
        plain = self.normalizer.convert_html(newsletter_html, OutputFormat.PLAIN)
        assert "Weekly Digest" in plain
        assert "latest post" in plain
        assert "Second column" in plain
        assert "View this email" not in plain
        assert "unsubscribe" not in plain.lower()
        assert "Want to change" not in plain
        assert "alert" not in plain
        assert "Our latest post is live." in plain

    def test_tracking_links_removed_even_when_not_suppressing(self, newsletter_html):
        pre = self.normalizer.preprocess_html(newsletter_html, UrlPolicy.KEEP, False)
        assert "campaign-archive.com" not in pre
        assert "track/open.php" not in pre
        # Footer blocks survive without suppression under keep
        assert "unsubscribe from this list" in pre

    def test_clean_only_removes_footer_blocks(self, newsletter_html):
        pre = self.normalizer.preprocess_html(newsletter_html, UrlPolicy.CLEAN_ONLY, False)
        assert "Want to change" not in pre

    def test_tracking_image_replaced_with_alt(self):
        html = '<p>Hi <img src="https://x.example/track/open.php?u=1" alt="pixel"></p>'
        pre = self.normalizer.preprocess_html(html, UrlPolicy.KEEP, True)
        assert "<img" not in pre
        assert "pixel" in pre

    @pytest.mark.parametrize("fmt", list(OutputFormat))
    def test_tracking_link_and_boilerplate_removed(self, fmt):
        html = (
            '<a href="https://mail.example.com/track/click?id=1">Click here</a>'
            "<p>You are receiving this email because you subscribed.</p>"
        )
        out = self.normalizer.convert_html(html, fmt, UrlPolicy.CLEAN_ONLY, True)
        assert "track/click" not in out
        assert "receiving this email because" not in out

    def test_tracking_link_removed_around_real_content(self):
        html = (
            "<p>Meeting moved to Friday.</p>"
            '<a href="https://mail.example.com/track/click?id=1">Click here</a>'
            "<p>You are receiving this email because you subscribed.</p>"
        )
        md = self.normalizer.convert_html(
            html, OutputFormat.MARKDOWN, UrlPolicy.CLEAN_ONLY, True
        )
        assert md == "Meeting moved to Friday."

    def test_custom_tracking_pattern(self):
        normalizer = HtmlNormalizer(MailviewConfig(tracking_href_patterns=["click.example.net"]))
        html = '<p>Go <a href="https://click.example.net/r/1">here</a> now</p>'
        plain = normalizer.convert_html(html, OutputFormat.PLAIN)
        assert "here" not in plain
        assert "Go" in plain


class TestTableFlattening:
    def setup_method(self):
        self.normalizer = HtmlNormalizer()

    def test_rows_become_paragraphs(self):
        html = "<table><tr><td>A</td><td>B</td></tr><tr><td>C</td></tr></table>"
        assert self.normalizer.convert_html(html, OutputFormat.PLAIN) == "A\nB\n\nC"

    def test_two_by_two_markdown_in_document_order(self):
        html = (
            "<table><tr><td>A</td><td>B</td></tr>"
            "<tr><td>C</td><td>D</td></tr></table>"
        )
        md = self.normalizer.convert_html(html, OutputFormat.MARKDOWN)
        assert "|" not in md
        assert "---" not in md
        positions = [md.index(value) for value in "ABCD"]
        assert positions == sorted(positions)

    def test_no_table_markup_left(self):
        html = "<table><thead><tr><th>H</th></tr></thead><tbody><tr><td>V</td></tr></tbody></table>"
        pre = self.normalizer.preprocess_html(html, UrlPolicy.KEEP, True)
        for tag in ("<table", "<thead", "<tbody", "<tr", "<th", "<td"):
            assert tag not in pre
        md = self.normalizer.convert_html(html, OutputFormat.MARKDOWN)
        assert "|" not in md


class TestCleanupOutput:
    def setup_method(self):
        self.normalizer = HtmlNormalizer()
        self.messy = (
            "Hello\u200b world\n\n\n\n\nLine<br>Next\n"
            + "-" * 60
            + "\nYou are receiving this email because you signed up\n"
            "Unsubscribe here\n"
            "End          of text\n\n"
        )

    def test_cleanup(self):
        assert self.normalizer.cleanup_output(self.messy) == (
            "Hello world\n\n\nLine\nNext\nEnd of text"
        )

    def test_utility_lines_kept_without_suppression(self):
        out = self.normalizer.cleanup_output(self.messy, suppress_utility=False)
        assert "Unsubscribe here" in out
        assert "You are receiving" not in out

    @pytest.mark.parametrize("suppress", [True, False])
    def test_idempotent(self, suppress, newsletter_html):
        samples = [
            self.messy,
            "a\n\n\n\n\n\nb",
            "x" + " " * 25 + "y\n" + "_ " * 40,
            self.normalizer.convert_html(newsletter_html, OutputFormat.MARKDOWN),
            "a\r\r\nb",
            "x <br<br>> y",
            "one\rtwo\r\n\r\n\r\n\r\nthree",
            "<BR<br/>/>end",
        ]
        for sample in samples:
            once = self.normalizer.cleanup_output(sample, suppress)
            assert self.normalizer.cleanup_output(once, suppress) == once

    @pytest.mark.parametrize("value", [None, "", "  "])
    def test_blank_returned_unchanged(self, value):
        assert self.normalizer.cleanup_output(value) == value

    def test_empty_invitation_line_dropped(self):
        assert self.normalizer.cleanup_output("Keep\nYou can or .\nMe") == "Keep\nMe"

    def test_stray_carriage_return_removed_in_one_pass(self):
        assert self.normalizer.cleanup_output("a\r\r\nb") == "a\n\nb"

    def test_nested_br_remnants_removed_in_one_pass(self):
        assert self.normalizer.cleanup_output("x <br<br>> y") == "x \n y"

    def test_exact_lines_from_config(self):
        normalizer = HtmlNormalizer(MailviewConfig(utility_exact_lines=["Manage alerts."]))
        text = "Keep\nManage alerts.\nYou can or .\nMe"
        assert normalizer.cleanup_output(text) == "Keep\nYou can or .\nMe"
        assert normalizer.cleanup_output(text, suppress_utility=False) == text


class TestFallback:
    def setup_method(self):
        self.normalizer = HtmlNormalizer()

    def test_blank_restricted_output_retried_with_keep(self, caplog):
        html = '<p><a href="https://example.com/unsubscribe">Unsubscribe</a></p>'
        with caplog.at_level(logging.INFO, logger="ingestkit_mailview"):
            plain = self.normalizer.convert_html(html, OutputFormat.PLAIN)
        assert plain == "Unsubscribe"
        assert ErrorCode.W_RENDER_FALLBACK.value in caplog.text

    def test_no_fallback_when_unrestricted(self, caplog):
        with caplog.at_level(logging.INFO, logger="ingestkit_mailview"):
            out = self.normalizer.convert_html(
                "<script>x()</script>", OutputFormat.PLAIN, UrlPolicy.KEEP, False
            )
        assert out == ""
        assert ErrorCode.W_RENDER_FALLBACK.value not in caplog.text


class TestNormalize:
    def test_both_renderings(self):
        result = HtmlNormalizer().normalize("<p>Hello <b>there</b></p>")
        assert "Hello" in result.plain_text
        assert result.markdown is not None
        assert "**there**" in result.markdown

    def test_markdown_none_when_empty(self):
        result = HtmlNormalizer().normalize("<script>only()</script>")
        assert result.plain_text == ""
        assert result.markdown is None


class TestHtmlToPlain:
    def test_list_items(self):
        assert html_to_plain("<ul><li>One</li><li>Two</li></ul>") == "- One\n- Two"

    def test_heading_and_paragraph(self):
        assert html_to_plain("<h2>Title</h2><p>Body</p>") == "Title\n\nBody"

    def test_nbsp_and_source_whitespace(self):
        assert html_to_plain("<p>a&nbsp;b\n   c</p>") == "a b c"

    def test_br(self):
        assert html_to_plain("<p>one<br>two</p>") == "one\ntwo"


def _hrefs(html: str) -> list[str]:
    from bs4 import BeautifulSoup

    return [str(a["href"]) for a in BeautifulSoup(html, "html.parser").find_all("a", href=True)]
