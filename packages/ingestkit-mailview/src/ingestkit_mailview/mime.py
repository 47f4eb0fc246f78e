"""MIME helpers built on the stdlib ``email`` package.

Locates the first renderable body in a MIME tree, formats address headers
and builds the metadata header block prepended to text output.  Nothing
here sanitizes content; that is the normalizer's job.
"""

from __future__ import annotations

import email
import email.policy
import logging
from dataclasses import dataclass
from datetime import datetime
from email.header import decode_header, make_header
from email.message import EmailMessage, Message
from email.utils import getaddresses, parsedate_to_datetime

logger = logging.getLogger("ingestkit_mailview")


@dataclass(frozen=True)
class DateMetadata:
    """Message timestamp resolved from ``Date`` or ``Received`` headers."""

    timestamp: datetime | None = None
    display_label: str = ""
    iso_timestamp: str = ""
    original_header: str = ""
    source: str | None = None


def load_message(data: bytes) -> EmailMessage:
    """Parse raw RFC 5322 bytes into an :class:`EmailMessage`."""
    return email.message_from_bytes(data, policy=email.policy.default)  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# Body extraction
# ---------------------------------------------------------------------------


def extract_first_html(part: Message) -> str | None:
    """Return the first renderable ``text/html`` body under *part*.

    Inside a ``multipart/alternative`` every child is scanned and the last
    ``text/html`` alternative wins.  Other multiparts are searched depth
    first and the first match is returned.  ``message/rfc822`` parts are
    descended into.
    """
    content_type = part.get_content_type()
    if content_type == "text/html":
        return _decode_text(part)

    if content_type == "multipart/alternative":
        html = None
        for child in _children(part):
            if child.get_content_type() == "text/html":
                content = _decode_text(child)
                if content is not None:
                    html = content
        if html is not None:
            return html

    if part.get_content_maintype() == "multipart":
        for child in _children(part):
            nested = extract_first_html(child)
            if nested is not None:
                return nested

    if content_type == "message/rfc822":
        nested_messages = _children(part)
        if nested_messages:
            return extract_first_html(nested_messages[0])

    return None


def extract_first_plain_text(part: Message) -> str | None:
    """Return the first ``text/plain`` body under *part*, depth first."""
    content_type = part.get_content_type()
    if content_type == "text/plain":
        return _decode_text(part)

    if part.get_content_maintype() == "multipart":
        for child in _children(part):
            nested = extract_first_plain_text(child)
            if nested is not None:
                return nested

    if content_type == "message/rfc822":
        nested_messages = _children(part)
        if nested_messages:
            return extract_first_plain_text(nested_messages[0])

    return None


def _children(part: Message) -> list[Message]:
    payload = part.get_payload()
    if isinstance(payload, list):
        return payload
    return []


def _decode_text(part: Message) -> str | None:
    payload = part.get_payload(decode=True)
    if payload is None:
        return None
    if isinstance(payload, str):
        return payload
    charset = part.get_content_charset() or "utf-8"
    try:
        return payload.decode(charset, errors="replace")
    except LookupError:
        # Unknown charset label
        return payload.decode("latin-1", errors="replace")


# ---------------------------------------------------------------------------
# Headers
# ---------------------------------------------------------------------------


def format_addresses(message: Message, header: str) -> str:
    """Render every address in *header* as ``Name <email>``, joined by ``"; "``.

    RFC 2047 encoded display names are decoded.  Returns ``""`` when the
    header is absent.
    """
    values = message.get_all(header)
    if not values:
        return ""

    rendered: list[str] = []
    for name, addr in getaddresses([str(v) for v in values]):
        name = _decode_words(name).strip()
        if name and addr:
            rendered.append(f"{name} <{addr}>")
        elif addr:
            rendered.append(addr)
        elif name:
            rendered.append(name)
    return "; ".join(rendered)


def header_text(message: Message, header: str) -> str:
    """Decoded header value, ``""`` when absent."""
    value = message.get(header)
    if value is None:
        return ""
    return _decode_words(str(value)).strip()


def _decode_words(value: str) -> str:
    if "=?" not in value:
        return value
    try:
        return str(make_header(decode_header(value)))
    except (UnicodeDecodeError, LookupError, ValueError):
        return value


def build_metadata_header(message: Message) -> str:
    """Four-line ``Sender / Recipient(s) / Date/time / Subject`` block.

    Followed by a blank line.  Returns ``""`` if the headers cannot be read.
    """
    try:
        sender = format_addresses(message, "From")
        to = format_addresses(message, "To")
        cc = format_addresses(message, "Cc")
        subject = header_text(message, "Subject")
        sent = _parse_date(header_text(message, "Date"))
        iso = sent.isoformat() if sent is not None else ""
    except Exception:
        logger.warning("ingestkit_mailview | detail=metadata header unreadable", exc_info=True)
        return ""

    return (
        f"Sender: {sender}\n"
        f"Recipient(s): {_join_recipients(to, cc)}\n"
        f"Date/time: {iso}\n"
        f"Subject: {subject}\n\n"
    )


def _join_recipients(to: str, cc: str) -> str:
    if to.strip() and cc.strip():
        return f"{to}; {cc}"
    return to if to.strip() else cc


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def extract_date_metadata(message: Message) -> DateMetadata:
    """Resolve the message timestamp.

    The ``Date`` header is preferred; otherwise the newest ``Received``
    header with a parsable date after its final ``;`` is used.
    """
    original = header_text(message, "Date")
    parsed = _parse_date(original)
    if parsed is not None:
        return _date_metadata(parsed, original, "Date")

    received = message.get_all("Received") or []
    for header in received:
        value = str(header)
        semicolon = value.rfind(";")
        if semicolon < 0 or semicolon == len(value) - 1:
            continue
        parsed = _parse_date(value[semicolon + 1 :].strip())
        if parsed is not None:
            return _date_metadata(parsed, original, "Received")

    return DateMetadata(original_header=original)


def _date_metadata(timestamp: datetime, original: str, source: str) -> DateMetadata:
    return DateMetadata(
        timestamp=timestamp,
        display_label=format_display_date(timestamp),
        iso_timestamp=timestamp.isoformat(),
        original_header=original,
        source=source,
    )


def format_display_date(timestamp: datetime) -> str:
    """``Feb 17, 2026 at 12:00 PM +00:00`` style label."""
    hour = timestamp.hour % 12 or 12
    label = timestamp.strftime(f"%b %d, %Y at {hour}:%M %p")
    offset = timestamp.strftime("%z")
    if offset:
        label += f" {offset[:3]}:{offset[3:]}"
    return label


def _parse_date(value: str) -> datetime | None:
    if not value or not value.strip():
        return None
    try:
        return parsedate_to_datetime(value.strip())
    except (TypeError, ValueError, IndexError):
        return None
