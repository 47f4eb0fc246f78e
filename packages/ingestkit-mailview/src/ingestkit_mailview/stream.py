"""Incremental Markdown to HTML rendering for streamed LLM output.

:class:`StreamAssembler` receives small text deltas, buffers them, and emits
rendered HTML only at safe points: a completed blank line, or (for long
paragraphs-in-progress) the last paragraph boundary once the buffer passes
``chunk_threshold``.  No flush happens while a code fence is open, so a
chunk never contains an opening fence without its close.

One assembler serves exactly one stream and is not safe to share between
producers.
"""

from __future__ import annotations

import logging

from ingestkit_mailview.config import MailviewConfig
from ingestkit_mailview.markdown_render import MarkdownRenderer

logger = logging.getLogger("ingestkit_mailview")

_FENCE_MARKERS = ("```", "~~~")
_PREVIEW_LENGTH = 120


class StreamAssembler:
    """Buffer Markdown deltas and flush complete, safe HTML chunks.

    Parameters
    ----------
    chunk_threshold:
        Buffer length at which a paragraph-boundary flush is attempted.
        Defaults to ``MailviewConfig.stream_chunk_threshold``.
    config:
        Pipeline configuration. Uses defaults when *None*.
    renderer:
        Markdown renderer; a fresh :class:`MarkdownRenderer` when *None*.
    debug:
        Log every flushed chunk at DEBUG level.
    """

    def __init__(
        self,
        chunk_threshold: int | None = None,
        config: MailviewConfig | None = None,
        renderer: MarkdownRenderer | None = None,
        debug: bool = False,
    ) -> None:
        self._config = config or MailviewConfig()
        self._threshold = (
            chunk_threshold if chunk_threshold is not None else self._config.stream_chunk_threshold
        )
        if self._threshold <= 0:
            raise ValueError(f"chunk_threshold must be positive, got {self._threshold}")
        self._renderer = renderer or MarkdownRenderer()
        self._debug = debug

        self._buffer: list[str] = []
        self._line: list[str] = []
        self._inside_code_fence = False
        self._fence_delimiter = "`"
        # Offset just past the last blank line outside a fence, or -1.
        self._boundary = -1

    @property
    def inside_code_fence(self) -> bool:
        return self._inside_code_fence

    @property
    def pending(self) -> str:
        """Markdown received but not yet flushed."""
        return "".join(self._buffer)

    def on_delta(self, delta: str | None) -> list[str]:
        """Consume *delta* and return the HTML chunks it completed."""
        if not delta:
            return []

        flushed: list[str] = []
        for ch in delta:
            if ch == "\r":
                continue
            self._buffer.append(ch)
            if ch == "\n":
                trimmed = "".join(self._line).strip()
                self._update_fence_state(trimmed)
                if not self._inside_code_fence:
                    if not trimmed:
                        self._boundary = len(self._buffer)
                        self._add(flushed, self._flush_through(self._boundary))
                    else:
                        self._add(flushed, self._flush_to_paragraph_break())
                self._line.clear()
            else:
                self._line.append(ch)
                if not self._inside_code_fence:
                    self._add(flushed, self._flush_to_paragraph_break())

        if self._debug:
            for chunk in flushed:
                self._log_chunk("flush chunk", chunk)
        return flushed

    def flush_remainder(self) -> str | None:
        """Render whatever is buffered, even inside an unterminated fence."""
        markdown_text = self.pending
        self._buffer.clear()
        self._line.clear()
        self._inside_code_fence = False
        self._boundary = -1
        if not markdown_text:
            return None
        chunk = self._render(markdown_text)
        if self._debug:
            self._log_chunk("flush remainder", chunk)
        return chunk

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _update_fence_state(self, trimmed_line: str) -> None:
        if not trimmed_line.startswith(_FENCE_MARKERS):
            return
        delimiter = trimmed_line[0]
        if not self._inside_code_fence:
            self._inside_code_fence = True
            self._fence_delimiter = delimiter
        elif delimiter == self._fence_delimiter:
            self._inside_code_fence = False

    def _flush_to_paragraph_break(self) -> str | None:
        if self._boundary < 0 or len(self._buffer) < self._threshold:
            return None
        return self._flush_through(self._boundary)

    def _flush_through(self, offset: int) -> str | None:
        """Render the first *offset* buffered characters and keep the rest."""
        text = self.pending
        self._buffer = list(text[offset:])
        self._line = list(text[text.rfind("\n") + 1 :]) if offset < len(text) else []
        self._boundary = -1
        return self._render(text[:offset])

    def _render(self, markdown_text: str) -> str | None:
        if not markdown_text.strip():
            return None
        rendered = self._renderer.render(markdown_text)
        return rendered if rendered.strip() else None

    @staticmethod
    def _add(flushed: list[str], chunk: str | None) -> None:
        if chunk is not None:
            flushed.append(chunk)

    def _log_chunk(self, label: str, chunk: str | None) -> None:
        size = len(chunk) if chunk is not None else 0
        if self._config.log_sample_data:
            logger.debug(
                "ingestkit_mailview | stream=%s | chars=%d | preview=%s",
                label,
                size,
                preview(chunk),
            )
        else:
            logger.debug("ingestkit_mailview | stream=%s | chars=%d", label, size)


def preview(value: str | None) -> str:
    """Single-line, length-capped preview of *value* for logs."""
    if value is None:
        return "<null>"
    flattened = value.replace("\n", "\\n")
    if len(flattened) <= _PREVIEW_LENGTH:
        return flattened
    return flattened[: _PREVIEW_LENGTH - 3] + "..."
