"""Response handlers: Gemini HTTP responses to unified responses plus usage.

Every handler takes the upstream ``httpx.Response``, the request's
:class:`RelayInfo` and an outbound :class:`ResponseWriter`. On success it
writes the translated body with the upstream status and returns
``(unified_response, usage)``; streamed handlers return ``None`` as the
response. The upstream response is closed on every exit path.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
import json
import logging
import time
from typing import Any, TypeVar
import uuid

import httpx
from pydantic import BaseModel, ValidationError

from gemrelay._http import INTERNAL_ERROR_STATUS, JSON_CONTENT_TYPE, SSE_CONTENT_TYPE
from gemrelay.constants import IMAGEN_TOKENS_PER_IMAGE
from gemrelay.errors import DecodeError, EmptyResultError, UpstreamError
from gemrelay.models import RelayInfo
from gemrelay.outbound import ResponseWriter
from gemrelay.responses import (
    ChatChoice,
    ChatCompletion,
    ChatCompletionChunk,
    ChatMessageOut,
    ChunkChoice,
    ChunkDelta,
    EmbeddingData,
    EmbeddingResponse,
    FunctionCallOut,
    ImageData,
    ImageResponse,
    ToolCallOut,
    Usage,
)
from gemrelay.wire import (
    Candidate,
    GeminiChatResponse,
    GeminiEmbeddingResponse,
    GeminiErrorResponse,
    GeminiImageResponse,
    UsageMetadata,
    encode_payload,
)

log = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

Handler = Callable[[httpx.Response, RelayInfo, ResponseWriter], tuple[Any, Usage]]

_FINISH_REASONS = {
    "STOP": "stop",
    "MAX_TOKENS": "length",
    "SAFETY": "content_filter",
    "RECITATION": "content_filter",
    "BLOCKLIST": "content_filter",
    "PROHIBITED_CONTENT": "content_filter",
    "SPII": "content_filter",
    "IMAGE_SAFETY": "content_filter",
}

_HTTP_ERROR_HINTS = {
    400: "Check the request payload against the Gemini API reference.",
    401: "Verify the Gemini API key is valid.",
    403: "Check API key permissions or project status.",
    404: "Model not found or API version invalid for this model.",
    429: "Rate limit exceeded; wait and retry.",
    500: "Gemini API internal error; retry later.",
    503: "Service unavailable; the model might be overloaded.",
}


# =============================================================================
# Shared helpers
# =============================================================================


def usage_from_metadata(metadata: UsageMetadata | None) -> Usage:
    """Pass vendor usage through; absent metadata yields zero usage.

    Thought tokens are billed as completion tokens.
    """
    if metadata is None:
        return Usage.zero()
    return Usage.of(
        prompt=metadata.prompt_token_count,
        completion=metadata.candidates_token_count + metadata.thoughts_token_count,
    )


def raise_for_upstream_status(response: httpx.Response) -> None:
    """Raise :class:`UpstreamError` for non-2xx vendor responses."""
    if response.is_success:
        return
    body = _read_body(response)
    try:
        detail = GeminiErrorResponse.model_validate_json(body).error
        message, vendor_status = detail.message, detail.status
    except ValidationError:
        message = body.decode("utf-8", errors="replace")[:500]
        vendor_status = None
    raise UpstreamError(
        f"gemini returned status {response.status_code}: {message or 'no error body'}",
        status_code=response.status_code,
        vendor_status=vendor_status,
        hint=_HTTP_ERROR_HINTS.get(response.status_code),
    )


def _read_body(response: httpx.Response) -> bytes:
    try:
        return response.read()
    except httpx.HTTPError as e:
        raise DecodeError(
            f"failed to read upstream response body: {e}",
            status_code=INTERNAL_ERROR_STATUS,
            code="read_response_body_failed",
        ) from e


def _decode(model: type[M], body: bytes | str) -> M:
    try:
        return model.model_validate_json(body)
    except ValidationError as e:
        raise DecodeError(
            f"failed to decode {model.__name__}: {e.error_count()} validation error(s)",
            status_code=INTERNAL_ERROR_STATUS,
            code="unmarshal_response_body_failed",
        ) from e


def _write_json(writer: ResponseWriter, status_code: int, body: bytes) -> None:
    writer.set_header("Content-Type", JSON_CONTENT_TYPE)
    writer.write_status(status_code)
    writer.write(body)


def _sse_payloads(response: httpx.Response) -> Iterator[tuple[str, str | None]]:
    """Yield ``(raw_line, data)`` pairs; ``data`` is set for ``data:`` lines."""
    try:
        for line in response.iter_lines():
            if line.startswith("data:"):
                yield line, line[len("data:") :].strip()
            else:
                yield line, None
    except httpx.HTTPError as e:
        raise DecodeError(
            f"upstream stream interrupted: {e}", code="read_stream_failed"
        ) from e


def _map_finish_reason(reason: str | None) -> str | None:
    if reason is None:
        return None
    return _FINISH_REASONS.get(reason, "stop")


def _new_tool_call(name: str, args: dict[str, Any], index: int | None) -> ToolCallOut:
    return ToolCallOut(
        id=f"call_{uuid.uuid4().hex[:8]}",
        function=FunctionCallOut(name=name, arguments=json.dumps(args)),
        index=index,
    )


def _split_candidate(
    candidate: Candidate, *, streamed: bool
) -> tuple[str | None, str | None, list[ToolCallOut]]:
    texts: list[str] = []
    thoughts: list[str] = []
    calls: list[ToolCallOut] = []
    parts = candidate.content.parts if candidate.content is not None else []
    for part in parts:
        if part.function_call is not None:
            calls.append(
                _new_tool_call(
                    part.function_call.name,
                    part.function_call.args,
                    len(calls) if streamed else None,
                )
            )
        elif part.text is not None:
            (thoughts if part.thought else texts).append(part.text)
    text = "".join(texts) if texts else None
    reasoning = "\n\n".join(thoughts).strip() if thoughts else None
    return text, reasoning, calls


# =============================================================================
# OpenAI-compatible chat
# =============================================================================


def chat_handler(
    response: httpx.Response, info: RelayInfo, writer: ResponseWriter
) -> tuple[ChatCompletion, Usage]:
    """Translate a buffered ``generateContent`` response into a chat completion."""
    try:
        raise_for_upstream_status(response)
        decoded = _decode(GeminiChatResponse, _read_body(response))
        if not decoded.candidates:
            block = (
                decoded.prompt_feedback.block_reason
                if decoded.prompt_feedback is not None
                else None
            )
            raise EmptyResultError(
                "no candidates returned"
                + (f" (prompt blocked: {block})" if block else ""),
                code="no_candidates",
            )

        usage = usage_from_metadata(decoded.usage_metadata)
        choices = []
        for i, candidate in enumerate(decoded.candidates):
            text, reasoning, calls = _split_candidate(candidate, streamed=False)
            choices.append(
                ChatChoice(
                    index=candidate.index or i,
                    message=ChatMessageOut(
                        content=text if text is not None or calls else "",
                        reasoning_content=reasoning,
                        tool_calls=calls or None,
                    ),
                    finish_reason=(
                        "tool_calls"
                        if calls
                        else _map_finish_reason(candidate.finish_reason) or "stop"
                    ),
                )
            )
        completion = ChatCompletion(
            id=decoded.response_id or f"chatcmpl-{uuid.uuid4().hex}",
            created=int(time.time()),
            model=info.upstream_model,
            choices=choices,
            usage=usage,
        )
        _write_json(writer, response.status_code, encode_payload(completion))
        return completion, usage
    finally:
        response.close()


def chat_stream_handler(
    response: httpx.Response, info: RelayInfo, writer: ResponseWriter
) -> tuple[None, Usage]:
    """Relay a ``streamGenerateContent`` SSE stream as chat completion chunks.

    Each upstream event is translated on its own; the last usage metadata seen
    wins. Events that fail to decode are logged and skipped.
    """
    try:
        raise_for_upstream_status(response)
        writer.set_header("Content-Type", SSE_CONTENT_TYPE)
        writer.set_header("Cache-Control", "no-cache")
        writer.write_status(response.status_code)

        chunk_id = f"chatcmpl-{uuid.uuid4().hex}"
        created = int(time.time())
        usage = Usage.zero()
        first = True
        for _line, data in _sse_payloads(response):
            if not data or data == "[DONE]":
                continue
            try:
                event = GeminiChatResponse.model_validate_json(data)
            except ValidationError as e:
                log.warning("Skipping undecodable stream event: %s", e)
                continue
            if event.usage_metadata is not None:
                usage = usage_from_metadata(event.usage_metadata)

            choices = []
            for i, candidate in enumerate(event.candidates):
                text, reasoning, calls = _split_candidate(candidate, streamed=True)
                finish = _map_finish_reason(candidate.finish_reason)
                if calls and finish is not None:
                    finish = "tool_calls"
                choices.append(
                    ChunkChoice(
                        index=candidate.index or i,
                        delta=ChunkDelta(
                            role="assistant" if first else None,
                            content=text,
                            reasoning_content=reasoning,
                            tool_calls=calls or None,
                        ),
                        finish_reason=finish,
                    )
                )
            if not choices:
                continue
            first = False
            chunk = ChatCompletionChunk(
                id=chunk_id, created=created, model=info.upstream_model, choices=choices
            )
            writer.write(b"data: " + encode_payload(chunk) + b"\n\n")

        final = ChatCompletionChunk(
            id=chunk_id, created=created, model=info.upstream_model, usage=usage
        )
        writer.write(b"data: " + encode_payload(final) + b"\n\n")
        writer.write(b"data: [DONE]\n\n")
        return None, usage
    finally:
        response.close()


# =============================================================================
# Native Gemini passthrough
# =============================================================================


def native_handler(
    response: httpx.Response, info: RelayInfo, writer: ResponseWriter
) -> tuple[GeminiChatResponse, Usage]:
    """Relay a buffered Gemini response unchanged, extracting usage."""
    del info
    try:
        raise_for_upstream_status(response)
        body = _read_body(response)
        decoded = _decode(GeminiChatResponse, body)
        usage = usage_from_metadata(decoded.usage_metadata)
        _write_json(writer, response.status_code, body)
        return decoded, usage
    finally:
        response.close()


def native_stream_handler(
    response: httpx.Response, info: RelayInfo, writer: ResponseWriter
) -> tuple[None, Usage]:
    """Relay a Gemini SSE stream line by line, extracting the final usage."""
    del info
    try:
        raise_for_upstream_status(response)
        writer.set_header("Content-Type", SSE_CONTENT_TYPE)
        writer.set_header("Cache-Control", "no-cache")
        writer.write_status(response.status_code)

        usage = Usage.zero()
        for line, data in _sse_payloads(response):
            writer.write(line.encode("utf-8") + b"\n")
            if not data:
                continue
            try:
                event = GeminiChatResponse.model_validate_json(data)
            except ValidationError:
                log.debug("Relaying undecodable stream event unchanged")
                continue
            if event.usage_metadata is not None:
                usage = usage_from_metadata(event.usage_metadata)
        return None, usage
    finally:
        response.close()


# =============================================================================
# Images and embeddings
# =============================================================================


def image_handler(
    response: httpx.Response, info: RelayInfo, writer: ResponseWriter
) -> tuple[ImageResponse, Usage]:
    """Translate Imagen predictions into an OpenAI image response.

    Policy-filtered predictions are dropped. Imagen reports no usage, so it is
    synthesized at a fixed token cost per surviving image.
    """
    del info
    try:
        raise_for_upstream_status(response)
        decoded = _decode(GeminiImageResponse, _read_body(response))
        images = [
            ImageData(b64_json=p.bytes_base64_encoded)
            for p in decoded.predictions
            if not p.rai_filtered_reason
        ]
        filtered = len(decoded.predictions) - len(images)
        if filtered:
            log.debug("Dropped %d policy-filtered image(s)", filtered)
        if not images:
            raise EmptyResultError("no images generated", code="no_images")

        result = ImageResponse(created=int(time.time()), data=images)
        _write_json(writer, response.status_code, encode_payload(result))
        usage = Usage.of(prompt=IMAGEN_TOKENS_PER_IMAGE * len(images), completion=0)
        return result, usage
    finally:
        response.close()


def embedding_handler(
    response: httpx.Response, info: RelayInfo, writer: ResponseWriter
) -> tuple[EmbeddingResponse, Usage]:
    """Translate an ``embedContent`` response into an OpenAI embeddings list."""
    try:
        raise_for_upstream_status(response)
        decoded = _decode(GeminiEmbeddingResponse, _read_body(response))
        usage = usage_from_metadata(decoded.usage_metadata)
        result = EmbeddingResponse(
            data=[EmbeddingData(index=0, embedding=decoded.embedding.values)],
            model=info.upstream_model,
            usage=usage,
        )
        _write_json(writer, response.status_code, encode_payload(result))
        return result, usage
    finally:
        response.close()
