"""Display sanitization for email HTML rendered inside an isolated frame.

Unlike :mod:`ingestkit_mailview.normalizer`, which extracts readable text,
:class:`DisplaySanitizer` keeps the message's visual formatting while
removing everything that can execute script, embed foreign content, or
escape its container.  Any internal failure returns *None*: a message that
cannot be cleaned is not shown at all.
"""

from __future__ import annotations

import html as html_lib
import logging
import re

from bs4 import BeautifulSoup

from ingestkit_mailview.errors import ErrorCode
from ingestkit_mailview.safelist import ALL, BASIC_WITH_IMAGES, clean_tree, extend
from ingestkit_mailview.urls import sanitize_url

logger = logging.getLogger("ingestkit_mailview")

_DANGEROUS_TAGS = [
    "script", "style", "noscript", "iframe", "object", "embed", "applet",
    "form", "input", "button", "base", "meta", "link",
]

_DISPLAY_SAFELIST = extend(
    BASIC_WITH_IMAGES,
    tags={
        "div", "font", "center", "hr", "h1", "h2", "h3", "h4", "h5", "h6",
        "table", "thead", "tbody", "tfoot", "tr", "th", "td", "caption",
        "colgroup", "col", "s", "del", "ins", "abbr", "address", "big",
        "section", "article", "header", "footer", "main",
    },
    attributes={
        ALL: {"style", "class", "align", "valign", "width", "height", "bgcolor", "dir", "title"},
        "a": {"title", "rel", "target"},
        "font": {"color", "face", "size"},
        "table": {"border", "cellpadding", "cellspacing", "summary"},
        "td": {"colspan", "rowspan", "nowrap"},
        "th": {"colspan", "rowspan", "nowrap", "scope"},
        "col": {"span"},
        "colgroup": {"span"},
    },
    protocols={
        ("img", "src"): {"data:image/"},
    },
)

_POSITION_ESCAPE = re.compile(r"position\s*:\s*(?:fixed|absolute)", re.IGNORECASE)
_Z_INDEX = re.compile(r"z-index\s*:\s*[^;]*;?", re.IGNORECASE)
_EXPRESSION = re.compile(r"expression\s*\(", re.IGNORECASE)
_JS_URL = re.compile(r"url\s*\(\s*['\"]?\s*javascript:[^)]*\)", re.IGNORECASE)
_JS_SCHEME = re.compile(r"^\s*javascript\s*:", re.IGNORECASE)
_CONTROL_CHARS = re.compile(r"[\x00-\x20]+")


class DisplaySanitizer:
    """Produce HTML that is safe to render directly."""

    def sanitize(self, html: str | None) -> str | None:
        """Return sanitized HTML, or *None* for blank input or on failure."""
        if html is None or not html.strip():
            return None
        try:
            return self._sanitize(html)
        except Exception as exc:
            logger.warning(
                "ingestkit_mailview | code=%s | detail=%s",
                ErrorCode.W_SANITIZE_FAILED.value,
                exc,
            )
            return None

    def _sanitize(self, html: str) -> str:
        soup = BeautifulSoup(html, "html.parser")

        for tag in soup.find_all(_DANGEROUS_TAGS):
            tag.decompose()

        for element in soup.find_all(True):
            for attr in list(element.attrs):
                if attr.lower().startswith("on"):
                    del element.attrs[attr]
            for attr in ("href", "src"):
                value = element.get(attr)
                if value is not None and _is_javascript_url(str(value)):
                    del element.attrs[attr]
            if element.has_attr("style"):
                element["style"] = neutralize_css(str(element["style"]))
            if element.name == "img":
                _constrain_image(element)

        body = soup.find("body")
        wrapper = soup.new_tag("div")
        classes = ["email-original-body"]
        if body is not None:
            classes.extend(body.get("class") or [])
        wrapper["class"] = classes
        if body is not None:
            _copy_body_presentation(body, wrapper)
            contents = list(body.contents)
        else:
            contents = list(soup.contents)
        for node in contents:
            wrapper.append(node.extract())

        fragment = BeautifulSoup("", "html.parser")
        fragment.append(wrapper)
        clean_tree(wrapper, _DISPLAY_SAFELIST)

        return str(fragment).strip()


def neutralize_css(style: str) -> str:
    """Rewrite an inline style so it cannot overlay or escape its container."""
    cleaned = _POSITION_ESCAPE.sub("position: relative", style)
    cleaned = _Z_INDEX.sub("", cleaned)
    cleaned = _EXPRESSION.sub("", cleaned)
    cleaned = _JS_URL.sub("", cleaned)
    return cleaned.strip()


def _is_javascript_url(value: str) -> bool:
    return bool(_JS_SCHEME.match(_CONTROL_CHARS.sub("", html_lib.unescape(value))))


def _constrain_image(img) -> None:
    style = str(img.get("style") or "").strip()
    if "max-width" in style.lower():
        return
    if style and not style.endswith(";"):
        style += ";"
    img["style"] = f"{style} max-width: 100%;".strip()


def _copy_body_presentation(body, wrapper) -> None:
    style = str(body.get("style") or "").strip()
    bgcolor = str(body.get("bgcolor") or "").strip()
    background = str(body.get("background") or "").strip()
    if bgcolor:
        wrapper["bgcolor"] = bgcolor
    if background:
        safe = sanitize_url(background, allowed_schemes=("http", "https"))
        if safe is not None and "'" not in safe:
            wrapper["data-email-background"] = safe
            style = f"background-image: url('{safe}'); {style}".strip()
    if style:
        wrapper["style"] = style


_default_sanitizer = DisplaySanitizer()


def sanitize_for_display(html: str | None) -> str | None:
    """Sanitize *html* with the shared module-level sanitizer."""
    return _default_sanitizer.sanitize(html)
