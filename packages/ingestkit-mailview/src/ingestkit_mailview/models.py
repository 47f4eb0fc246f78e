"""Pydantic models and enumerations for the ingestkit-mailview package.

Contains the per-call input contract ``ConversionOptions``, the output
record ``ParsedEmailDocument``, and the small value types that travel
between the extractor, normalizer and pipeline.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict

__all__ = [
    "InputType",
    "OutputFormat",
    "UrlPolicy",
    "ConversionOptions",
    "CleanupPolicies",
    "NormalizedContent",
    "ParsedEmailDocument",
]


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class InputType(str, Enum):
    """Source format of the payload."""

    EML = "eml"
    HTML = "html"


class OutputFormat(str, Enum):
    """Rendering requested from the pipeline."""

    PLAIN = "plain"
    MARKDOWN = "markdown"


class UrlPolicy(str, Enum):
    """How links and images are treated during normalization."""

    KEEP = "keep"
    STRIP_ALL = "strip-all"
    CLEAN_ONLY = "clean-only"


# ---------------------------------------------------------------------------
# Input contract
# ---------------------------------------------------------------------------


class ConversionOptions(BaseModel):
    """Immutable options for a single ``process()`` call.

    ``source`` is either the raw payload bytes or a filesystem path.
    ``input_type`` is kept as a plain string so that an unrecognised value
    reaches the pipeline and is reported by name.
    """

    model_config = ConfigDict(frozen=True)

    source: bytes | str | Path
    source_name: str | None = None
    input_type: str | None = None
    output_format: OutputFormat = OutputFormat.MARKDOWN
    urls_policy: UrlPolicy = UrlPolicy.KEEP
    include_metadata: bool = True
    json_output: bool = False
    suppress_utility: bool = True
    charset: str | None = None

    @property
    def display_name(self) -> str:
        """File name used for type inference, metadata and id slugs."""
        if self.source_name:
            return self.source_name
        if isinstance(self.source, bytes):
            return ""
        return str(self.source)


# ---------------------------------------------------------------------------
# Output records
# ---------------------------------------------------------------------------


class CleanupPolicies(BaseModel):
    """Cleanup switches echoed into the JSON document."""

    model_config = ConfigDict(frozen=True)

    flatten_tables: bool = True
    strip_scripts: bool = True
    urls_policy: UrlPolicy = UrlPolicy.KEEP
    metadata_included: bool = True
    suppress_utility: bool = True


class NormalizedContent(BaseModel):
    """Plain text and Markdown renderings of one HTML body."""

    model_config = ConfigDict(frozen=True)

    plain_text: str = ""
    markdown: str | None = None


class ParsedEmailDocument(BaseModel):
    """Final result of parsing one payload.

    ``plain_text`` is always populated when a body exists; ``markdown`` is
    *None* only when the Markdown rendering is empty after cleanup.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    plain_text: str = ""
    markdown: str | None = None
    metadata: dict[str, str] = {}
    original_html: str | None = None
    cleanup_policies: CleanupPolicies = CleanupPolicies()
    created_at: datetime
    warnings: list[str] = []

    def with_overrides(self, **changes: object) -> ParsedEmailDocument:
        """Return a copy with *changes* applied; the original is untouched."""
        return self.model_copy(update=changes)
