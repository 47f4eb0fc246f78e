"""ingestkit-mailview -- Email (EML/HTML) normalization and safe rendering.

Re-exports all public types: pipeline, config, models, errors, the HTML
normalizer, display sanitizer, Markdown renderer and stream assembler.
"""

from ingestkit_mailview.config import MailviewConfig
from ingestkit_mailview.document import build_document, normalize_base_name
from ingestkit_mailview.errors import ErrorCode, IngestError, MailviewException
from ingestkit_mailview.markdown_render import MarkdownRenderer, markdown_to_safe_html
from ingestkit_mailview.models import (
    CleanupPolicies,
    ConversionOptions,
    InputType,
    NormalizedContent,
    OutputFormat,
    ParsedEmailDocument,
    UrlPolicy,
)
from ingestkit_mailview.normalizer import HtmlNormalizer
from ingestkit_mailview.pipeline import EmailPipeline, process
from ingestkit_mailview.sanitizer import DisplaySanitizer, sanitize_for_display
from ingestkit_mailview.stream import StreamAssembler
from ingestkit_mailview.urls import sanitize_url

__all__ = [
    # Pipeline
    "EmailPipeline",
    "process",
    # Config
    "MailviewConfig",
    # Errors
    "ErrorCode",
    "IngestError",
    "MailviewException",
    # Models
    "InputType",
    "OutputFormat",
    "UrlPolicy",
    "ConversionOptions",
    "CleanupPolicies",
    "NormalizedContent",
    "ParsedEmailDocument",
    # Normalization
    "HtmlNormalizer",
    "sanitize_url",
    # Rendering
    "DisplaySanitizer",
    "sanitize_for_display",
    "MarkdownRenderer",
    "markdown_to_safe_html",
    "StreamAssembler",
    # Documents
    "build_document",
    "normalize_base_name",
]
