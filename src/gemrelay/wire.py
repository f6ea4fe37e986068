"""Gemini REST wire shapes.

Field names are snake_case in Python and camelCase on the wire; serialize with
:func:`encode_payload`. Request models are strict about what they hold,
response models ignore keys this adaptor does not read.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticSerializationError

from gemrelay.errors import EncodeError


class _Wire(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )


# --- Content ---


class InlineData(_Wire):
    mime_type: str
    data: str


class FunctionCall(_Wire):
    name: str
    args: dict[str, Any] = Field(default_factory=dict)


class FunctionResponse(_Wire):
    name: str
    response: dict[str, Any] = Field(default_factory=dict)


class Part(_Wire):
    """One content part; exactly one field is populated."""

    text: str | None = None
    inline_data: InlineData | None = None
    function_call: FunctionCall | None = None
    function_response: FunctionResponse | None = None

    @model_validator(mode="after")
    def _exactly_one(self) -> Part:
        populated = [
            v
            for v in (
                self.text,
                self.inline_data,
                self.function_call,
                self.function_response,
            )
            if v is not None
        ]
        if len(populated) != 1:
            raise ValueError("a part holds exactly one of text, inline data or a function")
        return self


class Content(_Wire):
    role: str | None = None
    parts: list[Part] = Field(default_factory=list)


# --- Chat request ---


class ThinkingConfig(_Wire):
    thinking_budget: int | None = None
    include_thoughts: bool | None = None


class GenerationConfig(_Wire):
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    max_output_tokens: int | None = None
    candidate_count: int | None = None
    stop_sequences: list[str] | None = None
    seed: int | None = None
    response_mime_type: str | None = None
    response_schema: dict[str, Any] | None = None
    thinking_config: ThinkingConfig | None = None


class FunctionDeclaration(_Wire):
    name: str = Field(min_length=1)
    description: str | None = None
    parameters: dict[str, Any] | None = None


class Tool(_Wire):
    function_declarations: list[FunctionDeclaration] | None = None
    google_search: dict[str, str] | None = None


class GeminiChatRequest(_Wire):
    contents: list[Content] = Field(default_factory=list)
    system_instruction: Content | None = None
    generation_config: GenerationConfig = Field(default_factory=GenerationConfig)
    tools: list[Tool] | None = None


# --- Image (Imagen predict) request ---


class ImageInstance(_Wire):
    prompt: str


class ImageParameters(_Wire):
    sample_count: int
    aspect_ratio: str
    person_generation: str


class GeminiImageRequest(_Wire):
    instances: list[ImageInstance]
    parameters: ImageParameters


# --- Embedding request ---


class GeminiEmbeddingRequest(_Wire):
    content: Content
    output_dimensionality: int | None = None


# --- Responses ---


class UsageMetadata(_Wire):
    prompt_token_count: int = 0
    candidates_token_count: int = 0
    thoughts_token_count: int = 0
    total_token_count: int = 0


class ResponsePart(_Wire):
    text: str | None = None
    thought: bool | None = None
    inline_data: InlineData | None = None
    function_call: FunctionCall | None = None


class CandidateContent(_Wire):
    role: str | None = None
    parts: list[ResponsePart] = Field(default_factory=list)


class Candidate(_Wire):
    content: CandidateContent | None = None
    finish_reason: str | None = None
    index: int = 0


class PromptFeedback(_Wire):
    block_reason: str | None = None


class GeminiChatResponse(_Wire):
    candidates: list[Candidate] = Field(default_factory=list)
    prompt_feedback: PromptFeedback | None = None
    usage_metadata: UsageMetadata | None = None
    model_version: str | None = None
    response_id: str | None = None


class ImagePrediction(_Wire):
    mime_type: str | None = None
    bytes_base64_encoded: str | None = None
    rai_filtered_reason: str | None = None


class GeminiImageResponse(_Wire):
    predictions: list[ImagePrediction] = Field(default_factory=list)


class ContentEmbedding(_Wire):
    values: list[float] = Field(default_factory=list)


class GeminiEmbeddingResponse(_Wire):
    embedding: ContentEmbedding
    usage_metadata: UsageMetadata | None = None


class ErrorDetail(_Wire):
    code: int | None = None
    message: str = ""
    status: str | None = None


class GeminiErrorResponse(_Wire):
    error: ErrorDetail


def encode_payload(payload: BaseModel) -> bytes:
    """Serialize *payload* to JSON bytes, camelCase keys, ``None`` fields dropped."""
    try:
        return payload.model_dump_json(by_alias=True, exclude_none=True).encode(
            "utf-8"
        )
    except (PydanticSerializationError, ValueError, TypeError) as e:
        raise EncodeError(
            f"failed to serialize {type(payload).__name__}: {e}",
            code="marshal_request_failed",
        ) from e
