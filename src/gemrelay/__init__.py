"""gemrelay: OpenAI-compatible relay adaptor for the Google Gemini API.

Public API:
    - GeminiAdaptor: request conversion, URL resolution, response dispatch
    - GeminiSettings: read-only adaptor configuration
    - parse_directive(): decode reasoning suffixes from model names
    - encode_payload(): serialize a Gemini payload to JSON bytes
"""

from __future__ import annotations

import logging

from gemrelay.adaptor import GeminiAdaptor
from gemrelay.config import GeminiSettings
from gemrelay.directive import ModelDirective, ReasoningMode, parse_directive
from gemrelay.errors import (
    ConfigurationError,
    DecodeError,
    EmptyResultError,
    EncodeError,
    InternalError,
    InvalidRequestError,
    RelayError,
    UnsupportedModelError,
    UpstreamError,
)
from gemrelay.models import (
    AudioRequest,
    ChatRequest,
    EmbeddingRequest,
    ImageRequest,
    Message,
    RelayInfo,
    RelayMode,
    RerankRequest,
    ResponsesRequest,
)
from gemrelay.outbound import BufferedResponseWriter, ResponseWriter
from gemrelay.responses import Usage
from gemrelay.wire import encode_payload

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("gemrelay")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("gemrelay").addHandler(logging.NullHandler())

__all__ = [  # noqa: RUF022
    # Adaptor
    "GeminiAdaptor",
    "GeminiSettings",
    "RelayInfo",
    "RelayMode",
    "parse_directive",
    "ModelDirective",
    "ReasoningMode",
    "encode_payload",
    # Unified requests
    "AudioRequest",
    "ChatRequest",
    "EmbeddingRequest",
    "ImageRequest",
    "Message",
    "RerankRequest",
    "ResponsesRequest",
    # Responses
    "BufferedResponseWriter",
    "ResponseWriter",
    "Usage",
    # Errors
    "RelayError",
    "ConfigurationError",
    "DecodeError",
    "EmptyResultError",
    "EncodeError",
    "InternalError",
    "InvalidRequestError",
    "UnsupportedModelError",
    "UpstreamError",
]
