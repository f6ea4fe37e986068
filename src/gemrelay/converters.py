"""Request converters: unified request shapes to Gemini payloads.

One function per modality. All are pure apart from remote media fetches made
by the content encoder. Optional fields degrade by omission: unknown tool
types, unknown content item kinds and malformed tool schemas are dropped with
a debug log line, while missing required input raises.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import json
import logging
from typing import Any

from pydantic import ValidationError

from gemrelay.constants import (
    ASPECT_RATIOS,
    DEFAULT_ASPECT_RATIO,
    DEFAULT_THINKING_BUDGET_PERCENTAGE,
    DIMENSIONED_EMBEDDING_MODEL,
    PERSON_GENERATION_POLICY,
)
from gemrelay.directive import ModelDirective, ReasoningMode
from gemrelay.endpoint import is_imagen_model
from gemrelay.errors import DecodeError, InvalidRequestError, UnsupportedModelError
from gemrelay.media import MediaFetcher, decode_data_uri, fetch_media
from gemrelay.models import (
    AudioRequest,
    ChatRequest,
    EmbeddingRequest,
    ImageRequest,
    Message,
    ResponsesRequest,
    ResponsesTool,
    TextContent,
    ToolDefinition,
)
from gemrelay.parts import content_text, encode_content
from gemrelay.wire import (
    Content,
    FunctionCall,
    FunctionDeclaration,
    FunctionResponse,
    GeminiChatRequest,
    GeminiEmbeddingRequest,
    GeminiImageRequest,
    GenerationConfig,
    ImageInstance,
    ImageParameters,
    InlineData,
    Part,
    ThinkingConfig,
    Tool,
)

log = logging.getLogger(__name__)

SYSTEM_ROLES = frozenset({"system", "developer"})
WEB_SEARCH = "web_search"
FUNCTION = "function"


# =============================================================================
# Chat
# =============================================================================


def convert_chat_request(
    request: ChatRequest,
    directive: ModelDirective,
    *,
    thinking_budget_percentage: float = DEFAULT_THINKING_BUDGET_PERCENTAGE,
    fetcher: MediaFetcher = fetch_media,
) -> GeminiChatRequest:
    """Convert an OpenAI chat request into a ``generateContent`` payload.

    System and developer messages are lifted into ``systemInstruction``.
    Tool results become ``functionResponse`` parts in a user turn, matched to
    the function name through the earlier assistant ``tool_calls``.
    """
    system_parts: list[Part] = []
    contents: list[Content] = []
    call_names: dict[str, str] = {}

    for message in request.messages:
        if message.role in SYSTEM_ROLES:
            if message.content is not None:
                system_parts.extend(encode_content(message.content, fetcher=fetcher))
            continue
        if message.role == "tool":
            contents.append(_tool_result_content(message, call_names))
            continue
        for tc in message.tool_calls:
            call_names[tc.id] = tc.name
        contents.append(message_to_content(message, fetcher=fetcher))

    config = GenerationConfig(
        temperature=request.temperature,
        top_p=request.top_p,
        top_k=request.top_k,
        max_output_tokens=request.output_token_limit,
        candidate_count=request.n,
        stop_sequences=_stop_sequences(request.stop),
        seed=request.seed,
        thinking_config=thinking_config_for(
            directive,
            max_tokens=request.output_token_limit,
            percentage=thinking_budget_percentage,
        ),
    )
    _apply_response_format(config, request.response_format)

    return GeminiChatRequest(
        contents=contents,
        system_instruction=Content(parts=system_parts) if system_parts else None,
        generation_config=config,
        tools=convert_tools(request.tools),
    )


def message_to_content(
    message: Message, *, fetcher: MediaFetcher = fetch_media
) -> Content:
    """Convert one message; ``assistant`` is renamed to Gemini's ``model``."""
    role = "model" if message.role == "assistant" else message.role
    parts: list[Part] = []
    if message.content is not None:
        parts.extend(encode_content(message.content, fetcher=fetcher))
    elif not message.tool_calls:
        raise InvalidRequestError(
            "unsupported message content format",
            hint=f"The {message.role!r} message has no content.",
        )
    for tc in message.tool_calls:
        parts.append(
            Part(function_call=FunctionCall(name=tc.name, args=_call_args(tc.arguments)))
        )
    return Content(role=role, parts=parts)


def convert_tools(tools: Iterable[ToolDefinition]) -> list[Tool] | None:
    """Map declared tools; function declarations share one tool entry."""
    declarations: list[FunctionDeclaration] = []
    grounding: list[Tool] = []
    for tool in tools:
        if tool.type == WEB_SEARCH:
            grounding.append(Tool(google_search={}))
        elif tool.type == FUNCTION and tool.function is not None:
            try:
                declaration = FunctionDeclaration.model_validate(
                    {
                        "name": tool.function.name,
                        "description": tool.function.description,
                        "parameters": tool.function.parameters,
                    }
                )
            except ValidationError as e:
                log.debug("Skipping function tool with malformed schema: %s", e)
                continue
            declarations.append(declaration)
        else:
            log.debug("Dropping unsupported tool of type %r", tool.type)

    result: list[Tool] = []
    if declarations:
        result.append(Tool(function_declarations=declarations))
    result.extend(grounding)
    return result or None


def thinking_config_for(
    directive: ModelDirective,
    *,
    max_tokens: int | None,
    percentage: float = DEFAULT_THINKING_BUDGET_PERCENTAGE,
) -> ThinkingConfig | None:
    """Translate the model directive into Gemini's thinking configuration."""
    if directive.reasoning_budget is not None:
        return ThinkingConfig(thinking_budget=directive.reasoning_budget)
    if directive.reasoning_mode is ReasoningMode.FORCED_ON:
        budget = int(max_tokens * percentage) if max_tokens else None
        return ThinkingConfig(include_thoughts=True, thinking_budget=budget)
    if directive.reasoning_mode is ReasoningMode.FORCED_OFF:
        return ThinkingConfig(thinking_budget=0)
    return None


def _tool_result_content(message: Message, call_names: Mapping[str, str]) -> Content:
    name = call_names.get(message.tool_call_id or "") or message.name or "unknown_tool"
    text = content_text(message.content)
    response: dict[str, Any] = {}
    if text:
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            parsed = None
        response = parsed if isinstance(parsed, dict) else {"result": text}
    return Content(
        role="user",
        parts=[Part(function_response=FunctionResponse(name=name, response=response))],
    )


def _call_args(arguments: Any) -> dict[str, Any]:
    if isinstance(arguments, Mapping):
        return dict(arguments)
    try:
        parsed = json.loads(arguments) if arguments else {}
    except (TypeError, json.JSONDecodeError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _stop_sequences(stop: str | list[str] | None) -> list[str] | None:
    if stop is None:
        return None
    if isinstance(stop, str):
        return [stop]
    return [s for s in stop if isinstance(s, str)] or None


def _apply_response_format(
    config: GenerationConfig, response_format: Mapping[str, Any] | None
) -> None:
    if not response_format:
        return
    kind = response_format.get("type")
    if kind == "json_object":
        config.response_mime_type = "application/json"
    elif kind == "json_schema":
        config.response_mime_type = "application/json"
        json_schema = response_format.get("json_schema")
        schema = json_schema.get("schema") if isinstance(json_schema, Mapping) else None
        if isinstance(schema, Mapping):
            config.response_schema = dict(schema)


# =============================================================================
# Images, audio, embeddings
# =============================================================================


def aspect_ratio_for(size: str) -> str:
    """Map an OpenAI pixel size to an Imagen aspect ratio (``1:1`` by default)."""
    return ASPECT_RATIOS.get(size, DEFAULT_ASPECT_RATIO)


def convert_image_request(request: ImageRequest, model_id: str) -> GeminiImageRequest:
    """Convert an image-generation request into an Imagen ``predict`` payload."""
    if not is_imagen_model(model_id):
        raise UnsupportedModelError(
            f"model {model_id!r} does not support image generation",
            hint="Use an imagen-* model for image generation.",
        )
    return GeminiImageRequest(
        instances=[ImageInstance(prompt=request.prompt)],
        parameters=ImageParameters(
            sample_count=request.n,
            aspect_ratio=aspect_ratio_for(request.size),
            person_generation=PERSON_GENERATION_POLICY,
        ),
    )


def convert_audio_request(request: AudioRequest) -> GeminiChatRequest:
    """Wrap a data-URI audio payload as a single inline user part."""
    try:
        media = decode_data_uri(request.input)
    except DecodeError as e:
        raise DecodeError(
            f"decode base64 audio data failed: {e}",
            hint="Send audio as data:audio/<format>;base64,<payload>.",
        ) from e
    return GeminiChatRequest(
        contents=[
            Content(
                role="user",
                parts=[
                    Part(
                        inline_data=InlineData(
                            mime_type=f"audio/{media.format}", data=media.data
                        )
                    )
                ],
            )
        ]
    )


def convert_embedding_request(
    request: EmbeddingRequest, model_id: str
) -> GeminiEmbeddingRequest:
    """Convert an embeddings request into an ``embedContent`` payload.

    ``embedContent`` embeds a single content, so only the first input is
    sent and any further inputs are discarded.
    """
    if request.input is None:
        raise InvalidRequestError("input is required")
    inputs = request.parse_input()
    if not inputs:
        raise InvalidRequestError("input is empty")
    if len(inputs) > 1:
        log.debug("Embedding %d inputs reduced to the first one", len(inputs))

    payload = GeminiEmbeddingRequest(content=Content(parts=[Part(text=inputs[0])]))
    # Only text-embedding-004 accepts outputDimensionality.
    if model_id == DIMENSIONED_EMBEDDING_MODEL and request.dimensions > 0:
        payload.output_dimensionality = request.dimensions
    return payload


# =============================================================================
# Responses API (instruction style)
# =============================================================================


def convert_responses_request(
    request: ResponsesRequest,
    directive: ModelDirective | None = None,
    *,
    thinking_budget_percentage: float = DEFAULT_THINKING_BUDGET_PERCENTAGE,
    fetcher: MediaFetcher = fetch_media,
) -> GeminiChatRequest:
    """Convert a Responses-API request into a ``generateContent`` payload.

    ``instructions`` is used only when it is a plain string; input that is
    neither a string nor a list of messages is ignored. Function tools whose
    schema does not decode are skipped.
    """
    config = GenerationConfig(
        temperature=request.temperature,
        top_p=request.top_p,
        max_output_tokens=request.max_output_tokens,
    )
    if directive is not None:
        config.thinking_config = thinking_config_for(
            directive,
            max_tokens=request.max_output_tokens,
            percentage=thinking_budget_percentage,
        )

    payload = GeminiChatRequest(generation_config=config)

    if isinstance(request.instructions, str):
        payload.system_instruction = Content(parts=[Part(text=request.instructions)])
    elif request.instructions is not None:
        log.debug("Ignoring non-string instructions")

    for message in _responses_input(request.input):
        payload.contents.append(message_to_content(message, fetcher=fetcher))

    tools = [t for t in map(_responses_tool, request.tools) if t is not None]
    payload.tools = tools or None
    return payload


def _responses_input(raw: Any) -> list[Message]:
    if raw is None:
        return []
    if isinstance(raw, str):
        return [Message(role="user", content=TextContent(raw))]
    if isinstance(raw, list):
        return [Message.from_dict(m) for m in raw if isinstance(m, Mapping)]
    log.debug("Ignoring input of type %s", type(raw).__name__)
    return []


def _responses_tool(tool: ResponsesTool) -> Tool | None:
    if tool.type == WEB_SEARCH:
        return Tool(google_search={})
    if tool.type != FUNCTION or tool.function is None:
        log.debug("Dropping unsupported tool of type %r", tool.type)
        return None

    schema = tool.function
    try:
        if isinstance(schema, (str, bytes)):
            declaration = FunctionDeclaration.model_validate_json(schema)
        else:
            declaration = FunctionDeclaration.model_validate(schema)
    except ValidationError as e:
        log.debug("Skipping function tool with malformed schema: %s", e)
        return None
    return Tool(function_declarations=[declaration])
