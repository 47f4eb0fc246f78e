"""Error codes and structured error model for the ingestkit-mailview package.

``ErrorCode`` contains every fatal and warning code the pipeline can emit.
``IngestError`` is the serialisable error record; ``MailviewException``
carries one through ordinary ``raise``/``except`` control flow.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Error codes for ingestkit-mailview.

    Fatal codes use an ``E_`` prefix; warnings use ``W_``.
    Values equal their names for stable metric/alerting strings.
    """

    # Input errors
    E_INPUT_UNSUPPORTED_TYPE = "E_INPUT_UNSUPPORTED_TYPE"
    E_INPUT_TOO_LARGE = "E_INPUT_TOO_LARGE"
    E_INPUT_NOT_FOUND = "E_INPUT_NOT_FOUND"
    E_INPUT_UNKNOWN_CHARSET = "E_INPUT_UNKNOWN_CHARSET"

    # Extraction errors
    E_EMAIL_PARSE_FAILED = "E_EMAIL_PARSE_FAILED"

    # Warnings (non-fatal)
    W_EMAIL_NO_BODY = "W_EMAIL_NO_BODY"
    W_EMAIL_NO_SUBJECT = "W_EMAIL_NO_SUBJECT"
    W_EMAIL_NO_DATE = "W_EMAIL_NO_DATE"
    W_RENDER_FALLBACK = "W_RENDER_FALLBACK"
    W_SANITIZE_FAILED = "W_SANITIZE_FAILED"


class IngestError(BaseModel):
    """Structured error with code, message, and context."""

    code: ErrorCode
    message: str
    stage: str | None = None
    recoverable: bool = False


class MailviewException(Exception):
    """Raisable exception wrapping an :class:`IngestError` data model.

    The structured record is available as ``.error``; the convenience
    properties delegate to it.
    """

    def __init__(self, **kwargs: object) -> None:
        self.error = IngestError(**kwargs)  # type: ignore[arg-type]
        super().__init__(self.error.message)

    @property
    def code(self) -> ErrorCode:
        return self.error.code

    @property
    def message(self) -> str:
        return self.error.message

    @property
    def stage(self) -> str | None:
        return self.error.stage

    @property
    def recoverable(self) -> bool:
        return self.error.recoverable
