"""HTML normalization to plain text and Markdown.

:class:`HtmlNormalizer` turns hostile, layout-heavy email HTML into readable
text in three passes:

1. ``preprocess_html`` -- strip noise elements and tracking links, apply the
   URL policy, drop utility/footer blocks and flatten layout tables.
2. Rendering -- ``html_to_plain`` for plain text, ``markdownify`` for
   Markdown.
3. ``cleanup_output`` -- an idempotent textual pass shared by both formats.

If a restricted policy leaves nothing behind, conversion is retried with
``keep`` and no utility suppression so that real content is never lost.
"""

from __future__ import annotations

import logging
import re

from bs4 import BeautifulSoup
from bs4.element import Comment, Doctype, NavigableString, Tag
from markdownify import markdownify

from ingestkit_mailview.config import MailviewConfig
from ingestkit_mailview.errors import ErrorCode
from ingestkit_mailview.models import NormalizedContent, OutputFormat, UrlPolicy
from ingestkit_mailview.urls import sanitize_url

logger = logging.getLogger("ingestkit_mailview")

_NOISE_TAGS = ["script", "style", "noscript", "svg", "iframe", "head", "title"]
_HEADINGS = ["h1", "h2", "h3", "h4", "h5", "h6"]
_PARAGRAPH_CONTAINERS = ["body", "div", "section", "article", "main"]
_TABLE_WRAPPERS = ["table", "thead", "tbody", "tfoot", "tr"]
_BLOCK_TAGS = [
    "div", "section", "article", "main", "header", "footer", "blockquote",
    "ul", "ol", "table", "tr", "pre", "address", "center",
]

_INVISIBLE = re.compile("[\u200b\u200c\u200d\ufeff\u2060\u00ad]")
_BR_TAG = re.compile(r"<br\s*/?>", re.IGNORECASE)
_SEPARATOR_LINE = re.compile(r"^[-|_\s]{50,}$")
_SPACE_RUN = re.compile(r" {10,}")
_BLANK_LINES = re.compile(r"\n{3,}")
_INLINE_WHITESPACE = re.compile(r"[ \t\f\v\r\n]+")
_SPACES_ONLY = re.compile(r"[ \t\f\v\r]+")
_PARAGRAPH_SPLIT = re.compile(r"\n[ \t]*\n\s*")


class HtmlNormalizer:
    """Convert email HTML into plain text and Markdown.

    Parameters
    ----------
    config:
        Supplies the tracking/boilerplate match tables and URL limits.
        Uses defaults when *None*.
    """

    def __init__(self, config: MailviewConfig | None = None) -> None:
        self._config = config or MailviewConfig()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def normalize(
        self,
        html: str,
        policy: UrlPolicy = UrlPolicy.KEEP,
        suppress_utility: bool = True,
    ) -> NormalizedContent:
        """Render *html* as both plain text and Markdown."""
        plain = self.convert_html(html, OutputFormat.PLAIN, policy, suppress_utility)
        md = self.convert_html(html, OutputFormat.MARKDOWN, policy, suppress_utility)
        return NormalizedContent(plain_text=plain, markdown=md or None)

    def convert_html(
        self,
        html: str | None,
        fmt: OutputFormat,
        policy: UrlPolicy = UrlPolicy.KEEP,
        suppress_utility: bool = True,
    ) -> str:
        """Render *html* in a single output format.

        Returns ``""`` for blank input.
        """
        if html is None or not html.strip():
            return ""

        result = self._render(html, fmt, policy, suppress_utility)
        restricted = policy != UrlPolicy.KEEP or suppress_utility
        if not result.strip() and restricted:
            logger.info(
                "ingestkit_mailview | code=%s | format=%s | policy=%s | "
                "detail=blank output, retrying with keep policy",
                ErrorCode.W_RENDER_FALLBACK.value,
                fmt.value,
                policy.value,
            )
            result = self._render(html, fmt, UrlPolicy.KEEP, False)
        return result

    def cleanup_output(self, content: str | None, suppress_utility: bool = True) -> str | None:
        """Final textual cleanup shared by plain and Markdown output.

        Idempotent: ``cleanup_output(cleanup_output(x)) == cleanup_output(x)``.
        """
        if content is None or not content.strip():
            return content

        content = _INVISIBLE.sub("", content).replace("\r\n", "\n").replace("\r", "\n")
        # Removing one tag can join the pieces of another, e.g. "<br<br>>".
        while True:
            replaced = _BR_TAG.sub("\n", content)
            if replaced == content:
                break
            content = replaced

        always = [p.lower() for p in self._config.boilerplate_line_phrases]
        utility = [p.lower() for p in self._config.utility_line_phrases]
        exact = set(self._config.utility_exact_lines)

        kept: list[str] = []
        blank_run = 0
        for line in content.split("\n"):
            line = _SPACE_RUN.sub(" ", line)
            trimmed = line.strip()
            lower = trimmed.lower()
            if _SEPARATOR_LINE.match(trimmed):
                continue
            if any(phrase in lower for phrase in always):
                continue
            if suppress_utility and (
                trimmed in exact or any(phrase in lower for phrase in utility)
            ):
                continue
            if not trimmed:
                blank_run += 1
                if blank_run > 2:
                    continue
            else:
                blank_run = 0
            kept.append(line)

        return "\n".join(kept).strip()

    # ------------------------------------------------------------------
    # Preprocessing
    # ------------------------------------------------------------------

    def preprocess_html(
        self, html: str, policy: UrlPolicy, suppress_utility: bool
    ) -> str:
        """Remove noise, apply the URL policy and flatten layout tables."""
        if html is None or not html.strip():
            return html
        soup = BeautifulSoup(html, "html.parser")

        for node in list(soup.find_all(string=True)):
            if isinstance(node, (Comment, Doctype)):
                node.extract()
        _collapse_source_whitespace(soup)

        for br in soup.find_all("br"):
            br.replace_with(NavigableString("\n"))

        for tag in soup.find_all(_NOISE_TAGS):
            tag.decompose()

        self._apply_link_policy(soup, policy, suppress_utility)
        self._apply_image_policy(soup, policy)

        if suppress_utility or policy == UrlPolicy.CLEAN_ONLY:
            self._remove_utility_blocks(soup)

        _flatten_tables(soup)
        soup.smooth()
        _wrap_text_nodes_into_paragraphs(soup)

        return str(soup)

    def _apply_link_policy(
        self, soup: BeautifulSoup, policy: UrlPolicy, suppress_utility: bool
    ) -> None:
        tracking = [p.lower() for p in self._config.tracking_href_patterns]
        phrases = [p.lower() for p in self._config.utility_link_phrases]

        for anchor in soup.find_all("a", href=True):
            if anchor.decomposed:
                continue
            href = str(anchor["href"]).lower()
            text = anchor.get_text().lower()
            if any(pattern in href for pattern in tracking):
                anchor.decompose()
            elif suppress_utility and any(phrase in text for phrase in phrases):
                anchor.decompose()
            elif policy == UrlPolicy.STRIP_ALL:
                anchor.unwrap()
            elif policy == UrlPolicy.CLEAN_ONLY:
                cleaned = self._sanitize(anchor["href"])
                if cleaned is None:
                    anchor.unwrap()
                else:
                    anchor["href"] = cleaned

    def _apply_image_policy(self, soup: BeautifulSoup, policy: UrlPolicy) -> None:
        tracking = [p.lower() for p in self._config.tracking_image_patterns]

        for img in soup.find_all("img", src=True):
            if img.decomposed:
                continue
            src = str(img["src"]).lower()
            if any(pattern in src for pattern in tracking):
                _replace_with_alt(img)
            elif policy == UrlPolicy.STRIP_ALL:
                _replace_with_alt(img)
            elif policy == UrlPolicy.CLEAN_ONLY:
                cleaned = self._sanitize(img["src"])
                if cleaned is None:
                    _replace_with_alt(img)
                else:
                    img["src"] = cleaned

    def _remove_utility_blocks(self, soup: BeautifulSoup) -> None:
        phrases = [p.lower() for p in self._config.utility_block_phrases]
        for element in soup.find_all(["p", "small", "footer"]):
            if element.decomposed:
                continue
            text = element.get_text().lower()
            if any(phrase in text for phrase in phrases):
                element.decompose()

        patterns = [p.lower() for p in self._config.footer_container_patterns]
        for div in soup.find_all("div"):
            if div.decomposed:
                continue
            marker = " ".join(div.get("class") or []) + " " + str(div.get("id") or "")
            marker = marker.lower()
            if any(pattern in marker for pattern in patterns):
                div.decompose()

    def _sanitize(self, url: str) -> str | None:
        return sanitize_url(
            url,
            allowed_schemes=self._config.allowed_url_schemes,
            max_length=self._config.max_url_length,
        )

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _render(
        self, html: str, fmt: OutputFormat, policy: UrlPolicy, suppress_utility: bool
    ) -> str:
        preprocessed = self.preprocess_html(html, policy, suppress_utility)
        if fmt == OutputFormat.MARKDOWN:
            rendered = markdownify(preprocessed, heading_style="ATX").strip()
        else:
            rendered = html_to_plain(preprocessed, keep_line_breaks=True)
        return self.cleanup_output(rendered, suppress_utility) or ""


def html_to_plain(html: str, keep_line_breaks: bool = False) -> str:
    """Plain text with paragraph, list-item and heading breaks preserved.

    Source whitespace is collapsed the way a browser would before the
    structural line breaks are inserted.  With *keep_line_breaks* newlines
    already present in text nodes survive; ``preprocess_html`` output relies
    on this, since it carries each ``<br>`` as a literal newline.
    """
    if not html or not html.strip():
        return ""
    soup = BeautifulSoup(html, "html.parser")
    whitespace = _SPACES_ONLY if keep_line_breaks else _INLINE_WHITESPACE

    for node in list(soup.find_all(string=True)):
        if type(node) is not NavigableString or node.find_parent("pre") is not None:
            continue
        collapsed = whitespace.sub(" ", str(node))
        if collapsed != str(node):
            node.replace_with(NavigableString(collapsed))

    for br in soup.find_all("br"):
        br.replace_with(NavigableString("\n"))
    for paragraph in soup.find_all("p"):
        paragraph.insert_before(NavigableString("\n"))
        paragraph.insert_after(NavigableString("\n"))
    for item in soup.find_all("li"):
        item.insert(0, NavigableString("- "))
        item.append(NavigableString("\n"))
    for heading in soup.find_all(_HEADINGS):
        heading.insert_before(NavigableString("\n"))
        heading.insert_after(NavigableString("\n"))
    for block in soup.find_all(_BLOCK_TAGS):
        block.insert_after(NavigableString("\n"))

    text = soup.get_text().replace("\u00a0", " ")
    lines = [line.strip() for line in text.split("\n")]
    return _BLANK_LINES.sub("\n\n", "\n".join(lines)).strip()


def _collapse_source_whitespace(soup: BeautifulSoup) -> None:
    """Collapse insignificant source whitespace before ``<br>`` becomes text.

    Inline text loses its source newlines.  Loose text directly inside a
    paragraph container keeps them, since blank lines there separate
    paragraphs.  ``<pre>`` content is untouched.
    """
    keep_newlines = {"[document]", "html", *_PARAGRAPH_CONTAINERS}
    for node in list(soup.find_all(string=True)):
        if type(node) is not NavigableString or node.find_parent("pre") is not None:
            continue
        raw = str(node)
        if not raw.strip():
            collapsed = " "
        elif node.parent is not None and node.parent.name in keep_newlines:
            continue
        else:
            collapsed = _INLINE_WHITESPACE.sub(" ", raw)
        if collapsed != raw:
            node.replace_with(NavigableString(collapsed))


def _replace_with_alt(img: Tag) -> None:
    alt = img.get("alt")
    if alt and str(alt).strip():
        img.replace_with(NavigableString(str(alt)))
    else:
        img.decompose()


def _flatten_tables(soup: BeautifulSoup) -> None:
    """Unwrap layout tables so cells read as sequential paragraphs."""
    for row in soup.find_all("tr"):
        row.append(NavigableString("\n\n"))
    for cell in soup.find_all(["th", "td"]):
        cell.append(NavigableString("\n"))
        cell.unwrap()
    for wrapper in soup.find_all(_TABLE_WRAPPERS):
        wrapper.unwrap()


def _wrap_text_nodes_into_paragraphs(soup: BeautifulSoup) -> None:
    """Split loose text on blank lines into ``<p>``; single newlines become ``<br>``."""
    containers: list[BeautifulSoup | Tag] = [soup, *soup.find_all(_PARAGRAPH_CONTAINERS)]
    for container in containers:
        for node in list(container.find_all(string=True, recursive=False)):
            if type(node) is not NavigableString:
                continue
            raw = str(node).replace("\r\n", "\n")
            if not raw.strip():
                continue
            anchor: NavigableString | Tag = node
            for para in _PARAGRAPH_SPLIT.split(raw):
                if not para.strip():
                    continue
                paragraph = soup.new_tag("p")
                lines = para.strip("\n").split("\n")
                for index, line in enumerate(lines):
                    if line.strip():
                        paragraph.append(NavigableString(line))
                    if index < len(lines) - 1:
                        paragraph.append(soup.new_tag("br"))
                anchor.insert_after(paragraph)
                anchor = paragraph
            node.extract()
