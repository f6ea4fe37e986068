"""Gemini channel adaptor: the entry point tying the relay stages together.

Typical flow for one request::

    adaptor = GeminiAdaptor(GeminiSettings.from_env())
    info = RelayInfo(origin_model=body["model"], is_stream=body.get("stream", False))
    adaptor.init(info)
    url = adaptor.resolve_url(info)
    payload = adaptor.build_request(info, ChatRequest.from_dict(body))
    upstream = client.send(
        client.build_request(
            "POST", url, headers=adaptor.request_headers(info),
            content=encode_payload(payload),
        ),
        stream=info.is_stream,
    )
    unified, usage = adaptor.dispatch_response(upstream, info, writer)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from gemrelay._http import API_KEY_HEADER, JSON_CONTENT_TYPE
from gemrelay.config import GeminiSettings
from gemrelay.constants import CHANNEL_NAME, MODEL_LIST
from gemrelay.converters import (
    convert_audio_request,
    convert_chat_request,
    convert_embedding_request,
    convert_image_request,
    convert_responses_request,
)
from gemrelay.directive import ModelDirective, parse_directive
from gemrelay.endpoint import is_embedding_model, is_imagen_model, resolve_url
from gemrelay.errors import ConfigurationError, InternalError, UnsupportedModelError
from gemrelay.handlers import (
    Handler,
    chat_handler,
    chat_stream_handler,
    embedding_handler,
    image_handler,
    native_handler,
    native_stream_handler,
)
from gemrelay.media import MediaFetcher, fetch_media
from gemrelay.models import (
    AudioRequest,
    ChatRequest,
    EmbeddingRequest,
    ImageRequest,
    RelayInfo,
    RelayMode,
    RerankRequest,
    ResponsesRequest,
)

if TYPE_CHECKING:
    import httpx
    from pydantic import BaseModel

    from gemrelay.models import UnifiedRequest
    from gemrelay.outbound import ResponseWriter
    from gemrelay.responses import Usage

log = logging.getLogger(__name__)


class GeminiAdaptor:
    """Translate unified requests to Gemini and Gemini responses back.

    The adaptor itself is stateless apart from read-only settings, so one
    instance can serve any number of concurrent requests.
    """

    channel_name = CHANNEL_NAME

    def __init__(
        self,
        settings: GeminiSettings | None = None,
        *,
        fetcher: MediaFetcher = fetch_media,
        chat_stream: Handler = chat_stream_handler,
    ) -> None:
        """Create an adaptor.

        Args:
            settings: Read-only settings; defaults to ``GeminiSettings()``.
            fetcher: Downloads remote image URLs found in message content.
            chat_stream: Handler for OpenAI-compatible streamed chat.
        """
        self.settings = settings if settings is not None else GeminiSettings()
        self.fetcher = fetcher
        self.chat_stream = chat_stream

    @property
    def model_list(self) -> list[str]:
        return list(MODEL_LIST)

    # --- Request side ---

    def init(self, info: RelayInfo) -> ModelDirective:
        """Parse the model directive and rewrite ``info.upstream_model``.

        Idempotent: a directive already on *info* is returned as-is so the
        model name is never parsed twice.
        """
        if info.directive is not None:
            return info.directive
        directive = parse_directive(
            info.upstream_model,
            thinking_adapter_enabled=self.settings.thinking_adapter_enabled,
        )
        info.directive = directive
        info.upstream_model = directive.canonical_model_id
        if directive.canonical_model_id != info.origin_model:
            log.debug(
                "Model %r resolved to %r (%s)",
                info.origin_model,
                directive.canonical_model_id,
                directive,
            )
        return directive

    def resolve_url(self, info: RelayInfo) -> str:
        """Return the upstream URL for this request's model and modality."""
        model_id = self._directive(info).canonical_model_id
        base_url = (info.base_url or self.settings.base_url).rstrip("/")
        return resolve_url(
            base_url,
            self.settings.version_for(model_id),
            model_id,
            stream=info.is_stream,
        )

    def request_headers(self, info: RelayInfo) -> dict[str, str]:
        """Headers for the upstream call, including the API key."""
        api_key = info.api_key or self.settings.api_key
        if not api_key:
            raise ConfigurationError(
                "API key required for gemini",
                hint="Set GEMINI_API_KEY or pass api_key on RelayInfo.",
            )
        return {API_KEY_HEADER: api_key, "Content-Type": JSON_CONTENT_TYPE}

    def build_request(self, info: RelayInfo, request: UnifiedRequest) -> BaseModel:
        """Convert a unified request into the matching Gemini payload."""
        directive = self._directive(info)
        model_id = directive.canonical_model_id
        pct = self.settings.thinking_budget_percentage

        if isinstance(request, ChatRequest):
            return convert_chat_request(
                request, directive, thinking_budget_percentage=pct, fetcher=self.fetcher
            )
        if isinstance(request, ImageRequest):
            return convert_image_request(request, model_id)
        if isinstance(request, AudioRequest):
            return convert_audio_request(request)
        if isinstance(request, EmbeddingRequest):
            return convert_embedding_request(request, model_id)
        if isinstance(request, ResponsesRequest):
            return convert_responses_request(
                request, directive, thinking_budget_percentage=pct, fetcher=self.fetcher
            )
        if isinstance(request, RerankRequest):
            raise UnsupportedModelError(
                f"rerank is not supported by the {CHANNEL_NAME} channel"
            )
        raise InternalError(f"unsupported request type: {type(request).__name__}")

    # --- Response side ---

    def select_handler(self, info: RelayInfo) -> Handler:
        """Pick the response handler; first matching rule wins."""
        model_id = self._directive(info).canonical_model_id
        if info.relay_mode is RelayMode.GEMINI:
            return native_stream_handler if info.is_stream else native_handler
        if is_imagen_model(model_id):
            return image_handler
        if is_embedding_model(model_id):
            return embedding_handler
        return self.chat_stream if info.is_stream else chat_handler

    def dispatch_response(
        self, response: httpx.Response, info: RelayInfo, writer: ResponseWriter
    ) -> tuple[Any, Usage]:
        """Translate the upstream *response* and write it to *writer*."""
        try:
            handler = self.select_handler(info)
        except InternalError:
            response.close()
            raise
        log.debug(
            "Dispatching %s response to %s",
            info.upstream_model,
            getattr(handler, "__name__", handler),
        )
        return handler(response, info, writer)

    @staticmethod
    def _directive(info: RelayInfo) -> ModelDirective:
        if info.directive is None:
            raise InternalError(
                "model has not been resolved",
                hint="Call GeminiAdaptor.init(info) before using the adaptor.",
            )
        return info.directive
