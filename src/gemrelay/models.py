"""Unified (OpenAI-shaped) request models and per-request relay state."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from gemrelay.errors import InvalidRequestError

if TYPE_CHECKING:
    from gemrelay.directive import ModelDirective


class RelayMode(str, Enum):
    """Which client-facing API the request arrived on."""

    #: OpenAI-compatible surface; responses are translated.
    OPENAI = "openai"
    #: Native Gemini surface; responses are relayed unchanged.
    GEMINI = "gemini"


@dataclass
class RelayInfo:
    """Mutable per-request state threaded through the adaptor.

    ``upstream_model`` starts as the client's model name and is rewritten to
    the canonical id once :meth:`GeminiAdaptor.init` has parsed the directive.
    """

    origin_model: str
    is_stream: bool = False
    relay_mode: RelayMode = RelayMode.OPENAI
    #: Per-request overrides; fall back to ``GeminiSettings`` when *None*.
    base_url: str | None = None
    api_key: str | None = None
    upstream_model: str = ""
    directive: ModelDirective | None = None

    def __post_init__(self) -> None:
        if not self.upstream_model:
            self.upstream_model = self.origin_model


# --- Message content: an explicit sum type ---


@dataclass(frozen=True)
class TextContent:
    """Plain string content."""

    text: str


@dataclass(frozen=True)
class ContentItem:
    """One typed item of list content, e.g. ``{"type": "image_url", ...}``."""

    kind: str
    payload: Mapping[str, Any]


@dataclass(frozen=True)
class ItemsContent:
    """List content made of typed items."""

    items: tuple[ContentItem, ...]


MessageContent = TextContent | ItemsContent


def parse_content(raw: Any) -> MessageContent:
    """Classify raw JSON message content.

    Strings become :class:`TextContent`, lists become :class:`ItemsContent`.
    List elements that are not objects are dropped; anything else is rejected.
    """
    if isinstance(raw, (TextContent, ItemsContent)):
        return raw
    if isinstance(raw, str):
        return TextContent(raw)
    if isinstance(raw, (list, tuple)):
        items = tuple(
            ContentItem(kind=str(entry.get("type") or ""), payload=entry)
            for entry in raw
            if isinstance(entry, Mapping)
        )
        return ItemsContent(items)
    raise InvalidRequestError(
        "unsupported message content format",
        hint="Content must be a string or a list of typed content items.",
    )


# --- Chat ---


@dataclass(frozen=True)
class ToolCall:
    """A function call previously requested by the model."""

    id: str
    name: str
    arguments: str = "{}"


@dataclass(frozen=True)
class Message:
    """A conversational message turn."""

    role: str
    content: MessageContent | None = None
    name: str | None = None
    tool_call_id: str | None = None
    tool_calls: tuple[ToolCall, ...] = ()

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> Message:
        """Build a message from a decoded JSON object."""
        role = raw.get("role")
        if not isinstance(role, str) or not role:
            raise InvalidRequestError("message role is required")
        content = raw.get("content")
        calls = []
        for tc in raw.get("tool_calls") or ():
            if not isinstance(tc, Mapping):
                continue
            fn = tc.get("function") or {}
            calls.append(
                ToolCall(
                    id=str(tc.get("id") or ""),
                    name=str(fn.get("name") or ""),
                    arguments=fn.get("arguments") or "{}",
                )
            )
        return cls(
            role=role,
            content=None if content is None else parse_content(content),
            name=raw.get("name"),
            tool_call_id=raw.get("tool_call_id"),
            tool_calls=tuple(calls),
        )


@dataclass(frozen=True)
class FunctionSpec:
    name: str
    description: str | None = None
    parameters: Mapping[str, Any] | None = None


@dataclass(frozen=True)
class ToolDefinition:
    """A declared tool; ``function`` is set for ``type == "function"``."""

    type: str
    function: FunctionSpec | None = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> ToolDefinition:
        fn = raw.get("function")
        spec = None
        if isinstance(fn, Mapping) and fn.get("name"):
            spec = FunctionSpec(
                name=str(fn["name"]),
                description=fn.get("description"),
                parameters=fn.get("parameters"),
            )
        return cls(type=str(raw.get("type") or ""), function=spec)


@dataclass(frozen=True)
class ChatRequest:
    """OpenAI chat-completions request."""

    model: str
    messages: tuple[Message, ...] = ()
    stream: bool = False
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    max_tokens: int | None = None
    max_completion_tokens: int | None = None
    stop: str | list[str] | None = None
    n: int | None = None
    seed: int | None = None
    tools: tuple[ToolDefinition, ...] = ()
    response_format: Mapping[str, Any] | None = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> ChatRequest:
        """Build a chat request from a decoded JSON body."""
        return cls(
            model=str(raw.get("model") or ""),
            messages=tuple(Message.from_dict(m) for m in raw.get("messages") or ()),
            stream=bool(raw.get("stream", False)),
            temperature=raw.get("temperature"),
            top_p=raw.get("top_p"),
            top_k=raw.get("top_k"),
            max_tokens=raw.get("max_tokens"),
            max_completion_tokens=raw.get("max_completion_tokens"),
            stop=raw.get("stop"),
            n=raw.get("n"),
            seed=raw.get("seed"),
            tools=tuple(ToolDefinition.from_dict(t) for t in raw.get("tools") or ()),
            response_format=raw.get("response_format"),
        )

    @property
    def output_token_limit(self) -> int | None:
        return self.max_completion_tokens or self.max_tokens


# --- Other modalities ---


@dataclass(frozen=True)
class ImageRequest:
    """OpenAI image-generation request."""

    model: str
    prompt: str
    n: int = 1
    size: str = ""

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> ImageRequest:
        return cls(
            model=str(raw.get("model") or ""),
            prompt=str(raw.get("prompt") or ""),
            n=int(raw.get("n") or 1),
            size=str(raw.get("size") or ""),
        )


@dataclass(frozen=True)
class AudioRequest:
    """Audio input carried as a data URI in ``input``."""

    model: str
    input: str = ""


@dataclass(frozen=True)
class EmbeddingRequest:
    """OpenAI embeddings request; ``input`` is a string or a list of strings."""

    model: str
    input: Any = None
    dimensions: int = 0

    def parse_input(self) -> list[str]:
        """Return the input strings; non-string list entries are ignored."""
        if self.input is None:
            return []
        if isinstance(self.input, str):
            return [self.input]
        if isinstance(self.input, (list, tuple)):
            return [item for item in self.input if isinstance(item, str)]
        return []


@dataclass(frozen=True)
class RerankRequest:
    model: str
    query: str = ""
    documents: tuple[str, ...] = ()
    top_n: int | None = None


@dataclass(frozen=True)
class ResponsesTool:
    """A Responses-API tool; ``function`` holds the raw, undecoded schema."""

    type: str
    function: Any = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> ResponsesTool:
        tool_type = str(raw.get("type") or "")
        function = raw.get("function")
        if function is None and tool_type == "function":
            # Flat form: the tool object itself carries name/parameters.
            function = {k: v for k, v in raw.items() if k != "type"}
        return cls(type=tool_type, function=function)


@dataclass(frozen=True)
class ResponsesRequest:
    """OpenAI Responses-API request.

    ``input`` and ``instructions`` are kept raw and decoded during conversion.
    """

    model: str
    input: Any = None
    instructions: Any = None
    temperature: float | None = None
    top_p: float | None = None
    max_output_tokens: int | None = None
    tools: tuple[ResponsesTool, ...] = ()
    stream: bool = False

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> ResponsesRequest:
        return cls(
            model=str(raw.get("model") or ""),
            input=raw.get("input"),
            instructions=raw.get("instructions"),
            temperature=raw.get("temperature"),
            top_p=raw.get("top_p"),
            max_output_tokens=raw.get("max_output_tokens"),
            tools=tuple(ResponsesTool.from_dict(t) for t in raw.get("tools") or ()),
            stream=bool(raw.get("stream", False)),
        )


UnifiedRequest = (
    ChatRequest
    | ImageRequest
    | AudioRequest
    | EmbeddingRequest
    | RerankRequest
    | ResponsesRequest
)
