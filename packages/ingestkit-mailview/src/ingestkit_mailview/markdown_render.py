"""Markdown to safe HTML rendering.

Used by the stream assembler for every flushed chunk.  Raw HTML in the
Markdown source is escaped rather than passed through, the rendered tree is
cleaned against a safelist, and every surviving link opens in a new tab
without leaking the opener.
"""

from __future__ import annotations

import re

import markdown
from bs4 import BeautifulSoup
from bs4.element import NavigableString
from markdown.extensions import Extension

from ingestkit_mailview.safelist import BASIC_WITH_IMAGES, clean_tree, extend

_RENDER_SAFELIST = extend(
    BASIC_WITH_IMAGES,
    tags={
        "table", "thead", "tbody", "tfoot", "tr", "th", "td",
        "h1", "h2", "h3", "h4", "h5", "h6", "hr",
    },
    attributes={
        "a": {"href", "title", "rel", "target"},
        "code": {"class"},
        "th": {"align"},
        "td": {"align"},
    },
)

_STRUCTURAL = frozenset(
    {"pre", "code", "ul", "ol", "li", "table", "thead", "tbody", "tfoot", "tr", "th", "td"}
)
_WHITESPACE = re.compile(r"\s+")


class _EscapeHtmlExtension(Extension):
    """Treat raw HTML blocks and inline tags as literal text."""

    def extendMarkdown(self, md: markdown.Markdown) -> None:  # noqa: N802
        md.preprocessors.deregister("html_block")
        md.inlinePatterns.deregister("html")


class MarkdownRenderer:
    """Render Markdown fragments to sanitized HTML.

    A new ``markdown.Markdown`` instance is created per call, so one renderer
    can be shared freely.
    """

    extensions = ("fenced_code", "tables", "sane_lists")

    def render(self, text: str | None) -> str:
        """Return safe HTML for *text*; ``""`` for blank input."""
        if text is None or not text.strip():
            return ""

        md = markdown.Markdown(extensions=[*self.extensions, _EscapeHtmlExtension()])
        rendered = md.convert(text)

        soup = BeautifulSoup(rendered, "html.parser")
        clean_tree(soup, _RENDER_SAFELIST)

        for br in soup.find_all("br", recursive=False):
            br.decompose()
        for paragraph in soup.find_all("p"):
            for br in paragraph.find_all("br"):
                if not _has_structural_parent(br):
                    br.decompose()
            _normalize_whitespace(paragraph)
        for anchor in soup.find_all("a", href=True):
            anchor["rel"] = "noopener noreferrer"
            anchor["target"] = "_blank"

        return str(soup).strip()


def _has_structural_parent(element) -> bool:
    for parent in element.parents:
        if parent.name in _STRUCTURAL:
            return True
    return False


def _normalize_whitespace(element) -> None:
    for node in list(element.find_all(string=True, recursive=False)):
        collapsed = _WHITESPACE.sub(" ", str(node))
        if collapsed != str(node):
            node.replace_with(NavigableString(collapsed))


_default_renderer = MarkdownRenderer()


def markdown_to_safe_html(text: str | None) -> str:
    """Render *text* with the shared module-level renderer."""
    return _default_renderer.render(text)
