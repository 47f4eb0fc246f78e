"""Tag, attribute and protocol safelists applied to a BeautifulSoup tree.

A :class:`Safelist` names the elements that may remain, the attributes each
may keep, and the URL protocols accepted for link-bearing attributes.
:func:`clean_tree` enforces it in place: disallowed elements are unwrapped
(their content survives) unless they are listed in ``drop_content``, in
which case they are removed along with everything inside them.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from bs4 import BeautifulSoup
from bs4.element import CData, Comment, Declaration, Doctype, ProcessingInstruction, Tag

# Pseudo tag name whose attributes are allowed on every element.
ALL = ":all"

_DROP_CONTENT = frozenset(
    {
        "script",
        "style",
        "noscript",
        "iframe",
        "object",
        "embed",
        "applet",
        "form",
        "input",
        "button",
        "select",
        "textarea",
        "base",
        "meta",
        "link",
        "title",
        "head",
        "svg",
        "math",
        "template",
    }
)


@dataclass(frozen=True)
class Safelist:
    """Immutable description of what survives :func:`clean_tree`."""

    tags: frozenset[str]
    attributes: Mapping[str, frozenset[str]] = field(default_factory=dict)
    protocols: Mapping[tuple[str, str], frozenset[str]] = field(default_factory=dict)
    drop_content: frozenset[str] = _DROP_CONTENT

    def allows_attribute(self, tag: str, attr: str) -> bool:
        return attr in self.attributes.get(tag, frozenset()) or attr in self.attributes.get(
            ALL, frozenset()
        )

    def allows_value(self, tag: str, attr: str, value: str) -> bool:
        """Check *value* against the protocol list for ``tag[attr]``, if any."""
        protocols = self.protocols.get((tag, attr))
        if protocols is None:
            return True
        lowered = value.strip().lower()
        for protocol in protocols:
            if protocol.endswith("/") and lowered.startswith(protocol):
                return True
            if lowered.startswith(f"{protocol}:"):
                return True
        return False


BASIC_WITH_IMAGES = Safelist(
    tags=frozenset(
        {
            "a", "b", "blockquote", "br", "cite", "code", "dd", "dl", "dt", "em",
            "i", "li", "ol", "p", "pre", "q", "small", "span", "strike", "strong",
            "sub", "sup", "u", "ul", "img",
        }
    ),
    attributes={
        "a": frozenset({"href"}),
        "blockquote": frozenset({"cite"}),
        "q": frozenset({"cite"}),
        "img": frozenset({"align", "alt", "height", "src", "title", "width"}),
    },
    protocols={
        ("a", "href"): frozenset({"ftp", "http", "https", "mailto"}),
        ("blockquote", "cite"): frozenset({"http", "https"}),
        ("q", "cite"): frozenset({"http", "https"}),
        ("img", "src"): frozenset({"http", "https"}),
    },
)


def extend(
    base: Safelist,
    *,
    tags: set[str] | frozenset[str] = frozenset(),
    attributes: Mapping[str, set[str] | frozenset[str]] | None = None,
    protocols: Mapping[tuple[str, str], set[str] | frozenset[str]] | None = None,
) -> Safelist:
    """Return a new safelist permitting everything *base* does plus the extras."""
    merged_attrs = {k: frozenset(v) for k, v in base.attributes.items()}
    for tag, names in (attributes or {}).items():
        merged_attrs[tag] = merged_attrs.get(tag, frozenset()) | frozenset(names)
    merged_protocols = {k: frozenset(v) for k, v in base.protocols.items()}
    for key, names in (protocols or {}).items():
        merged_protocols[key] = merged_protocols.get(key, frozenset()) | frozenset(names)
    return Safelist(
        tags=base.tags | frozenset(tags),
        attributes=merged_attrs,
        protocols=merged_protocols,
        drop_content=base.drop_content,
    )


def clean_tree(soup: BeautifulSoup | Tag, safelist: Safelist) -> None:
    """Enforce *safelist* on every descendant of *soup*, in place."""
    for node in list(soup.find_all(string=True)):
        if isinstance(node, (Comment, Declaration, Doctype, ProcessingInstruction, CData)):
            node.extract()

    for tag in list(soup.find_all(True)):
        if tag.decomposed:
            continue
        name = tag.name.lower()
        if name in safelist.drop_content:
            tag.decompose()
            continue
        if name not in safelist.tags:
            tag.unwrap()
            continue
        for attr in list(tag.attrs):
            attr_name = attr.lower()
            value = tag.attrs[attr]
            if isinstance(value, list):
                value = " ".join(value)
            if not safelist.allows_attribute(name, attr_name) or not safelist.allows_value(
                name, attr_name, value
            ):
                del tag.attrs[attr]
