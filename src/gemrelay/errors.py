"""Exception hierarchy for gemrelay.

Conversion-time errors are raised before any network call. Response-time
errors carry the HTTP status the caller should surface. Every error can be
rendered as an OpenAI-style error envelope for the outbound response.
"""

from __future__ import annotations

from typing import Any

from gemrelay._http import INTERNAL_ERROR_STATUS, RETRYABLE_STATUS_CODES


class RelayError(Exception):
    """Base exception for all gemrelay errors."""

    default_status: int = INTERNAL_ERROR_STATUS
    default_code: str = "relay_error"
    error_type: str = "gemrelay_error"

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        status_code: int | None = None,
        code: str | None = None,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(message)
        self.hint = hint
        self.status_code = status_code if status_code is not None else self.default_status
        self.code = code or self.default_code
        self.retryable = retryable

    def to_openai_error(self) -> dict[str, Any]:
        """Render the error the way OpenAI-compatible clients expect it."""
        return {
            "error": {
                "message": str(self),
                "type": self.error_type,
                "param": None,
                "code": self.code,
            }
        }


class ConfigurationError(RelayError):
    """Adaptor settings failed validation."""

    default_code = "invalid_configuration"


class InternalError(RelayError):
    """The adaptor was driven out of order (a bug in the caller or here)."""

    default_code = "internal_error"


class UnsupportedModelError(RelayError):
    """The requested modality is not offered for the resolved model."""

    default_status = 400
    default_code = "unsupported_model"
    error_type = "invalid_request_error"


class InvalidRequestError(RelayError):
    """A required field is missing, empty, or has an unsupported shape."""

    default_status = 400
    default_code = "invalid_request"
    error_type = "invalid_request_error"


class DecodeError(RelayError):
    """A payload could not be decoded or fetched.

    Covers malformed data URIs, failed remote media fetches and vendor
    response bodies that do not parse.
    """

    default_code = "decode_failed"


class EmptyResultError(RelayError):
    """The vendor answered with a valid but empty result set."""

    default_status = 400
    default_code = "empty_result"


class EncodeError(RelayError):
    """An outbound payload could not be serialized."""

    default_code = "encode_failed"


class UpstreamError(RelayError):
    """The vendor returned a non-success HTTP status."""

    error_type = "upstream_error"
    default_code = "upstream_error"

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        vendor_status: str | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(
            message,
            hint=hint,
            status_code=status_code,
            code=vendor_status,
            retryable=status_code in RETRYABLE_STATUS_CODES,
        )
        self.vendor_status = vendor_status
