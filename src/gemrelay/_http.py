"""Small HTTP-related constants shared across gemrelay.

This module is intentionally tiny to avoid circular imports and drift.
"""

from __future__ import annotations

API_KEY_HEADER = "x-goog-api-key"
JSON_CONTENT_TYPE = "application/json"
SSE_CONTENT_TYPE = "text/event-stream"

INTERNAL_ERROR_STATUS = 500

# Retryable status codes; exposed as error metadata, never acted on here.
RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({408, 409, 429, 500, 502, 503, 504})
