"""JSON document assembly for parsed emails.

Turns a :class:`ParsedEmailDocument` into the camelCase mapping written by
``--json`` output, and derives the filename slug used for document ids and
output file names.
"""

from __future__ import annotations

import json
import re
from datetime import timezone
from pathlib import PurePath
from typing import Any

from ingestkit_mailview.models import CleanupPolicies, ParsedEmailDocument

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_base_name(file_name: str) -> str:
    """Lowercase slug of *file_name* without its extension.

    Runs of characters outside ``[a-z0-9]`` collapse to one ``-``; leading
    and trailing dashes are trimmed.  Returns ``"output"`` when nothing is
    left.

    >>> normalize_base_name("/tmp/Weekly Digest (Final).EML")
    'weekly-digest-final'
    """
    name = PurePath(file_name).name
    dot = name.rfind(".")
    base = name[:dot] if dot > 0 else name
    slug = _NON_ALNUM.sub("-", base.lower()).strip("-")
    return slug or "output"


def cleanup_policies_dict(policies: CleanupPolicies) -> dict[str, Any]:
    return {
        "flattenTables": policies.flatten_tables,
        "stripScripts": policies.strip_scripts,
        "urlsPolicy": policies.urls_policy.value,
        "metadataIncluded": policies.metadata_included,
        "suppressUtility": policies.suppress_utility,
    }


def build_document(document: ParsedEmailDocument) -> dict[str, Any]:
    """Return the JSON-ready mapping for *document*.

    ``content.originalHtml`` is present only when the payload had an HTML
    body.  ``createdAt`` is an ISO-8601 UTC instant.
    """
    content: dict[str, Any] = {
        "plainText": document.plain_text or "",
        "markdown": document.markdown,
    }
    if document.original_html is not None:
        content["originalHtml"] = document.original_html

    created = document.created_at.astimezone(timezone.utc)
    return {
        "id": document.id,
        "metadata": dict(document.metadata),
        "content": content,
        "cleanupPolicies": cleanup_policies_dict(document.cleanup_policies),
        "createdAt": created.isoformat().replace("+00:00", "Z"),
    }


def to_json(document: ParsedEmailDocument) -> str:
    """Serialize *document* with :func:`build_document`."""
    return json.dumps(build_document(document), ensure_ascii=False)
