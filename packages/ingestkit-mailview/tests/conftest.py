"""Shared fixtures for ingestkit-mailview tests."""

from __future__ import annotations

from email.header import Header
from email.mime.base import MIMEBase
from email.mime.message import MIMEMessage
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email import encoders
from pathlib import Path

import pytest


# ---------------------------------------------------------------------------
# EML fixtures
# ---------------------------------------------------------------------------

PLAIN_BODY = "Hello, this is a test email body."
HTML_BODY = "<html><body><p>Hello, this is <b>HTML</b> body.</p></body></html>"

NEWSLETTER_HTML = """\
<html>
<head><style>p { color: red; }</style><title>Weekly</title></head>
<body style="background-color: #fafafa" bgcolor="#ffffff">
  <a href="https://us1.campaign-archive.com/?u=abc">View this email in your browser</a>
  <table class="layout">
    <tr>
      <td><h1>Weekly Digest</h1></td>
    </tr>
    <tr>
      <td><p>Our <a href="https://example.com/post?utm_source=mail#top">latest post</a>
          is live.</p></td>
      <td><p>Second column</p></td>
    </tr>
  </table>
  <img src="https://example.list-manage.com/track/open.php?u=1" alt="">
  <script>alert('x')</script>
  <div class="mcnFooter">
    <p>Want to change how you receive these emails?</p>
    <a href="https://example.com/unsubscribe">unsubscribe from this list</a>
  </div>
</body>
</html>
"""


def _build_eml_bytes(
    *,
    plain: str | None = PLAIN_BODY,
    html: str | None = None,
    attachment: bool = False,
    headers: dict[str, str] | None = None,
) -> bytes:
    """Build a minimal valid EML as bytes.

    Headers passed in *headers* override the defaults; a value of ``""``
    removes the header entirely.
    """
    if plain and html:
        msg = MIMEMultipart("alternative")
        msg.attach(MIMEText(plain, "plain"))
        msg.attach(MIMEText(html, "html"))
    elif html:
        msg = MIMEMultipart()
        msg.attach(MIMEText(html, "html"))
    elif plain:
        msg = MIMEText(plain, "plain")
    else:
        msg = MIMEText("", "plain")

    # Wrap in multipart/mixed if attachment needed
    if attachment:
        outer = MIMEMultipart("mixed")
        if isinstance(msg, MIMEMultipart) and msg.get_content_subtype() == "alternative":
            outer.attach(msg)
        elif isinstance(msg, MIMEMultipart):
            for part in msg.get_payload():
                outer.attach(part)
        else:
            outer.attach(msg)

        att = MIMEBase("application", "octet-stream")
        att.set_payload(b"\x89PNG\r\n\x1a\n" + b"\x00" * 50)
        encoders.encode_base64(att)
        att.add_header("Content-Disposition", "attachment", filename="image.png")
        outer.attach(att)
        msg = outer

    return _with_headers(msg, headers)


def _with_headers(msg, headers: dict[str, str] | None) -> bytes:
    values = {
        "From": "Sender Name <sender@example.com>",
        "To": "recipient@example.com",
        "Date": "Tue, 17 Feb 2026 12:00:00 +0000",
        "Subject": "Test Subject",
        "Message-ID": "<test-123@example.com>",
    }
    values.update(headers or {})
    for name, value in values.items():
        if value:
            msg[name] = value
    return msg.as_bytes()


@pytest.fixture
def build_eml():
    """The EML builder, for tests that need custom parts or headers."""
    return _build_eml_bytes


@pytest.fixture
def sample_eml_bytes() -> bytes:
    """Plain-text-only EML."""
    return _build_eml_bytes(plain=PLAIN_BODY)


@pytest.fixture
def sample_eml_html_only() -> bytes:
    """EML with only a text/html body part."""
    return _build_eml_bytes(plain=None, html=HTML_BODY)


@pytest.fixture
def sample_eml_multipart() -> bytes:
    """EML with plain + HTML alternatives and a binary attachment."""
    return _build_eml_bytes(plain=PLAIN_BODY, html=HTML_BODY, attachment=True)


@pytest.fixture
def sample_eml_two_html_alternatives() -> bytes:
    """multipart/alternative carrying two text/html parts."""
    msg = MIMEMultipart("alternative")
    msg.attach(MIMEText(PLAIN_BODY, "plain"))
    msg.attach(MIMEText("<p>First HTML alternative</p>", "html"))
    msg.attach(MIMEText("<p>Second HTML alternative</p>", "html"))
    return _with_headers(msg, None)


@pytest.fixture
def sample_eml_forwarded() -> bytes:
    """multipart/mixed whose only HTML lives inside an attached message/rfc822."""
    inner = MIMEMultipart("alternative")
    inner.attach(MIMEText("Inner plain", "plain"))
    inner.attach(MIMEText("<p>Forwarded <i>HTML</i> body</p>", "html"))
    inner["Subject"] = "Original"

    outer = MIMEMultipart("mixed")
    outer.attach(MIMEMessage(inner))
    return _with_headers(outer, None)


@pytest.fixture
def sample_eml_encoded_headers() -> bytes:
    """EML with RFC 2047 encoded display names and subject, plus a Cc."""
    msg = MIMEText("Grüße aus Köln", "plain", "utf-8")
    msg["From"] = f"{Header('Jürgen Müller', 'utf-8').encode()} <jm@example.de>"
    msg["To"] = "Ana <ana@example.com>, bob@example.com"
    msg["Cc"] = "Carol <carol@example.com>"
    msg["Subject"] = Header("Grüße", "utf-8").encode()
    msg["Date"] = "Tue, 17 Feb 2026 14:30:00 +0100"
    msg["Message-ID"] = "<enc-1@example.de>"
    return msg.as_bytes()


@pytest.fixture
def sample_eml_file(tmp_path: Path, sample_eml_bytes: bytes) -> str:
    """Write plain-text EML to temp file, return path."""
    p = tmp_path / "test.eml"
    p.write_bytes(sample_eml_bytes)
    return str(p)


@pytest.fixture
def sample_eml_html_file(tmp_path: Path, sample_eml_html_only: bytes) -> str:
    """Write HTML-only EML to temp file, return path."""
    p = tmp_path / "test_html.eml"
    p.write_bytes(sample_eml_html_only)
    return str(p)


@pytest.fixture
def newsletter_html_file(tmp_path: Path) -> str:
    """Write the newsletter HTML to a temp file, return path."""
    p = tmp_path / "Weekly Digest.html"
    p.write_text(NEWSLETTER_HTML, encoding="utf-8")
    return str(p)


@pytest.fixture
def newsletter_html() -> str:
    return NEWSLETTER_HTML
