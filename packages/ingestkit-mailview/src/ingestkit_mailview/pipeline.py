"""EmailPipeline -- orchestrator and public API for ingestkit-mailview.

Routes a payload through: input type detection, size guard, MIME body
extraction (EML only), HTML normalization and output assembly (text with
an optional metadata header, or a JSON document).
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from email.message import Message
from pathlib import Path, PurePath

from ingestkit_mailview.config import MailviewConfig
from ingestkit_mailview.document import normalize_base_name, to_json
from ingestkit_mailview.errors import ErrorCode, MailviewException
from ingestkit_mailview.mime import (
    build_metadata_header,
    extract_date_metadata,
    extract_first_html,
    extract_first_plain_text,
    format_addresses,
    header_text,
    load_message,
)
from ingestkit_mailview.models import (
    CleanupPolicies,
    ConversionOptions,
    InputType,
    ParsedEmailDocument,
)
from ingestkit_mailview.normalizer import HtmlNormalizer

logger = logging.getLogger("ingestkit_mailview")

_TYPE_ALIASES = {
    "eml": InputType.EML,
    "html": InputType.HTML,
    "htm": InputType.HTML,
}


class EmailPipeline:
    """Top-level orchestrator for the ingestkit-mailview pipeline.

    Parameters
    ----------
    config:
        Pipeline configuration. Uses defaults when *None*.
    normalizer:
        HTML normalizer; built from *config* when *None*.
    """

    def __init__(
        self,
        config: MailviewConfig | None = None,
        normalizer: HtmlNormalizer | None = None,
    ) -> None:
        self._config = config or MailviewConfig()
        self._normalizer = normalizer or HtmlNormalizer(self._config)

    def process(self, options: ConversionOptions) -> str:
        """Convert one payload and return the final output string.

        Parameters
        ----------
        options:
            Source, requested format and cleanup switches for this call.

        Returns
        -------
        str
            The JSON document when ``options.json_output`` is set, otherwise
            the rendered body, preceded by the metadata header block for EML
            input when ``options.include_metadata`` is set.

        Raises
        ------
        MailviewException
            For unsupported, missing, oversized or unparseable input.
        """
        overall_start = time.monotonic()
        name = options.display_name

        if options.json_output:
            output = to_json(self.parse(options))
            input_type = self.resolve_input_type(options)
        else:
            input_type = self.resolve_input_type(options)
            data = self._read_payload(options)
            if input_type == InputType.EML:
                message = self._load_message(data, name)
                html, text = self._extract_body(message, name)
                header = build_metadata_header(message) if options.include_metadata else ""
                output = header + self._render_body(html, text, options)
            else:
                html = self._decode_html(data, options.charset)
                output = self._render_body(html, None, options)

        elapsed = time.monotonic() - overall_start
        logger.info(
            "ingestkit_mailview | file=%s | parser=%s | type=%s | format=%s | "
            "json=%s | chars=%d | time=%.1fs",
            _log_name(name),
            self._config.parser_version,
            input_type.value,
            options.output_format.value,
            options.json_output,
            len(output),
            elapsed,
        )
        return output

    def parse(self, options: ConversionOptions) -> ParsedEmailDocument:
        """Convert one payload into a :class:`ParsedEmailDocument`.

        Both renderings are produced.  Missing subject, date or body are
        reported as warning codes on the document rather than raised.
        """
        input_type = self.resolve_input_type(options)
        data = self._read_payload(options)
        name = options.display_name
        warnings: list[str] = []

        if input_type == InputType.EML:
            message = self._load_message(data, name)
            html, text = self._extract_body(message, name)
            metadata = self._eml_metadata(message, name)
            if not metadata["subject"]:
                warnings.append(ErrorCode.W_EMAIL_NO_SUBJECT.value)
            if not metadata["dateIso"]:
                warnings.append(ErrorCode.W_EMAIL_NO_DATE.value)
        else:
            html = self._decode_html(data, options.charset)
            text = None
            metadata = {"source": "html-file", "path": name}

        if html is not None:
            normalized = self._normalizer.normalize(
                html, options.urls_policy, options.suppress_utility
            )
            plain_text, markdown = normalized.plain_text, normalized.markdown
        else:
            cleaned = self._normalizer.cleanup_output(text or "", options.suppress_utility) or ""
            plain_text, markdown = cleaned, cleaned or None

        if not plain_text.strip():
            warnings.append(ErrorCode.W_EMAIL_NO_BODY.value)

        for code in warnings:
            logger.warning("ingestkit_mailview | file=%s | code=%s", _log_name(name), code)

        return ParsedEmailDocument(
            id=metadata.get("messageId") or normalize_base_name(name),
            plain_text=plain_text,
            markdown=markdown,
            metadata=metadata,
            original_html=html,
            cleanup_policies=CleanupPolicies(
                urls_policy=options.urls_policy,
                metadata_included=options.include_metadata,
                suppress_utility=options.suppress_utility,
            ),
            created_at=datetime.now(timezone.utc),
            warnings=warnings,
        )

    def resolve_input_type(self, options: ConversionOptions) -> InputType:
        """Explicit ``input_type`` first, then the file extension."""
        if options.input_type:
            requested = options.input_type
        else:
            suffix = PurePath(options.display_name).suffix
            requested = suffix[1:] if suffix else ""

        input_type = _TYPE_ALIASES.get(requested.lower())
        if input_type is None:
            raise MailviewException(
                code=ErrorCode.E_INPUT_UNSUPPORTED_TYPE,
                message=f"Unsupported input type: {requested}",
                stage="route",
            )
        return input_type

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _read_payload(self, options: ConversionOptions) -> bytes:
        limit = self._config.max_file_size_mb * 1024 * 1024
        name = options.display_name

        if isinstance(options.source, bytes):
            size = len(options.source)
        else:
            path = Path(options.source)
            if not path.is_file():
                raise MailviewException(
                    code=ErrorCode.E_INPUT_NOT_FOUND,
                    message=f"Input file not found: {path}",
                    stage="read",
                )
            size = path.stat().st_size

        if size > limit:
            raise MailviewException(
                code=ErrorCode.E_INPUT_TOO_LARGE,
                message=(
                    f"Input is {size / (1024 * 1024):.1f} MB, "
                    f"limit is {self._config.max_file_size_mb} MB"
                ),
                stage="read",
            )

        if isinstance(options.source, bytes):
            return options.source
        logger.debug("ingestkit_mailview | file=%s | bytes=%d", _log_name(name), size)
        return Path(options.source).read_bytes()

    def _load_message(self, data: bytes, name: str) -> Message:
        try:
            return load_message(data)
        except Exception as exc:
            raise self._parse_failure(exc, name) from exc

    def _extract_body(self, message: Message, name: str) -> tuple[str | None, str | None]:
        """Return ``(html, None)`` or ``(None, plain_text)``."""
        try:
            html = extract_first_html(message)
            if html is not None and html.strip():
                return html, None
            return None, extract_first_plain_text(message) or ""
        except Exception as exc:
            raise self._parse_failure(exc, name) from exc

    def _render_body(self, html: str | None, text: str | None, options: ConversionOptions) -> str:
        if html is not None:
            return self._normalizer.convert_html(
                html, options.output_format, options.urls_policy, options.suppress_utility
            )
        return self._normalizer.cleanup_output(text or "", options.suppress_utility) or ""

    @staticmethod
    def _decode_html(data: bytes, charset: str | None) -> str:
        """Decode raw HTML bytes; undecodable sequences become U+FFFD."""
        try:
            return data.decode(charset or "utf-8", errors="replace")
        except LookupError as exc:
            raise MailviewException(
                code=ErrorCode.E_INPUT_UNKNOWN_CHARSET,
                message=f"Unknown charset: {charset}",
                stage="read",
            ) from exc

    @staticmethod
    def _eml_metadata(message: Message, name: str) -> dict[str, str]:
        dates = extract_date_metadata(message)
        metadata = {
            "subject": header_text(message, "Subject"),
            "from": format_addresses(message, "From"),
            "to": format_addresses(message, "To"),
            "cc": format_addresses(message, "Cc"),
            "date": dates.display_label,
            "dateIso": dates.iso_timestamp,
            "dateHeader": dates.original_header,
        }
        if dates.source is not None:
            metadata["dateSource"] = dates.source
        metadata["messageId"] = header_text(message, "Message-ID")
        metadata["source"] = "eml-file"
        metadata["path"] = PurePath(name).name
        return metadata

    @staticmethod
    def _parse_failure(exc: Exception, name: str) -> MailviewException:
        logger.error(
            "ingestkit_mailview | file=%s | code=%s | detail=%s",
            _log_name(name),
            ErrorCode.E_EMAIL_PARSE_FAILED.value,
            str(exc),
        )
        return MailviewException(
            code=ErrorCode.E_EMAIL_PARSE_FAILED,
            message=f"Failed to parse email: {exc}",
            stage="extract",
        )


def _log_name(name: str) -> str:
    return PurePath(name).name if name else "<bytes>"


def process(options: ConversionOptions, config: MailviewConfig | None = None) -> str:
    """Convenience wrapper around :meth:`EmailPipeline.process`."""
    return EmailPipeline(config).process(options)
