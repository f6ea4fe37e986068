"""Request converter characterization tests.

These pin the exact JSON shapes sent to Gemini for each modality, since the
vendor consumes them externally and drift is hard to detect.
"""

from __future__ import annotations

import json

import pytest

from gemrelay.converters import (
    aspect_ratio_for,
    convert_audio_request,
    convert_chat_request,
    convert_embedding_request,
    convert_image_request,
    convert_responses_request,
)
from gemrelay.directive import ModelDirective, ReasoningMode
from gemrelay.errors import DecodeError, InvalidRequestError, UnsupportedModelError
from gemrelay.models import (
    AudioRequest,
    ChatRequest,
    EmbeddingRequest,
    ImageRequest,
    ResponsesRequest,
)
from gemrelay.wire import encode_payload
from tests.helpers import PNG_B64, PNG_DATA_URI

pytestmark = pytest.mark.contract

PLAIN = ModelDirective("gemini-2.0-flash")


def wire(payload) -> dict:
    return json.loads(encode_payload(payload))


def chat(body: dict, directive: ModelDirective = PLAIN, **kwargs) -> dict:
    body = {"model": "gemini-2.0-flash", **body}
    return wire(convert_chat_request(ChatRequest.from_dict(body), directive, **kwargs))


# =============================================================================
# Chat
# =============================================================================


def test_assistant_role_maps_to_model_with_single_text_part() -> None:
    payload = chat({"messages": [{"role": "assistant", "content": "earlier answer"}]})

    assert payload["contents"] == [
        {"role": "model", "parts": [{"text": "earlier answer"}]}
    ]


def test_other_roles_pass_through() -> None:
    payload = chat({"messages": [{"role": "user", "content": "hi"}]})
    assert payload["contents"] == [{"role": "user", "parts": [{"text": "hi"}]}]


def test_system_messages_become_system_instruction() -> None:
    payload = chat(
        {
            "messages": [
                {"role": "system", "content": "be brief"},
                {"role": "developer", "content": "no emoji"},
                {"role": "user", "content": "hi"},
            ]
        }
    )

    assert payload["systemInstruction"] == {
        "parts": [{"text": "be brief"}, {"text": "no emoji"}]
    }
    assert [c["role"] for c in payload["contents"]] == ["user"]


def test_generation_config_fields() -> None:
    payload = chat(
        {
            "messages": [{"role": "user", "content": "hi"}],
            "temperature": 0.2,
            "top_p": 0.9,
            "max_tokens": 256,
            "stop": "END",
            "response_format": {"type": "json_object"},
        }
    )

    assert payload["generationConfig"] == {
        "temperature": 0.2,
        "topP": 0.9,
        "maxOutputTokens": 256,
        "stopSequences": ["END"],
        "responseMimeType": "application/json",
    }


def test_max_completion_tokens_wins_over_max_tokens() -> None:
    payload = chat(
        {
            "messages": [{"role": "user", "content": "hi"}],
            "max_tokens": 10,
            "max_completion_tokens": 20,
        }
    )
    assert payload["generationConfig"]["maxOutputTokens"] == 20


def test_tools_map_to_declarations_and_grounding_marker() -> None:
    payload = chat(
        {
            "messages": [{"role": "user", "content": "weather?"}],
            "tools": [
                {
                    "type": "function",
                    "function": {
                        "name": "get_weather",
                        "description": "Look up weather",
                        "parameters": {
                            "type": "object",
                            "properties": {"city": {"type": "string"}},
                        },
                    },
                },
                {"type": "web_search"},
                {"type": "code_interpreter"},
                {"type": "function"},
            ],
        }
    )

    assert payload["tools"] == [
        {
            "functionDeclarations": [
                {
                    "name": "get_weather",
                    "description": "Look up weather",
                    "parameters": {
                        "type": "object",
                        "properties": {"city": {"type": "string"}},
                    },
                }
            ]
        },
        {"googleSearch": {}},
    ]


@pytest.mark.parametrize(
    "function",
    [
        {"name": "f", "parameters": "oops"},
        {"name": "f", "parameters": ["x"]},
        {"name": "f", "description": 5},
    ],
)
def test_malformed_function_tool_is_skipped(function: dict) -> None:
    payload = chat(
        {
            "messages": [{"role": "user", "content": "hi"}],
            "tools": [{"type": "function", "function": function}, {"type": "web_search"}],
        }
    )

    assert payload["tools"] == [{"googleSearch": {}}]


def test_json_schema_response_format() -> None:
    payload = chat(
        {
            "messages": [{"role": "user", "content": "hi"}],
            "response_format": {
                "type": "json_schema",
                "json_schema": {"name": "out", "schema": {"type": "object"}},
            },
        }
    )

    assert payload["generationConfig"] == {
        "responseMimeType": "application/json",
        "responseSchema": {"type": "object"},
    }


@pytest.mark.parametrize("json_schema", ["not-a-mapping", ["x"], None])
def test_malformed_json_schema_drops_schema_only(json_schema) -> None:
    payload = chat(
        {
            "messages": [{"role": "user", "content": "hi"}],
            "response_format": {"type": "json_schema", "json_schema": json_schema},
        }
    )

    assert payload["generationConfig"] == {"responseMimeType": "application/json"}


def test_no_tools_omits_field() -> None:
    payload = chat({"messages": [{"role": "user", "content": "hi"}]})
    assert "tools" not in payload


def test_tool_call_round_trip_uses_function_parts() -> None:
    payload = chat(
        {
            "messages": [
                {"role": "user", "content": "weather in Oslo?"},
                {
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [
                        {
                            "id": "call_1",
                            "type": "function",
                            "function": {
                                "name": "get_weather",
                                "arguments": '{"city": "Oslo"}',
                            },
                        }
                    ],
                },
                {"role": "tool", "tool_call_id": "call_1", "content": '{"temp": 3}'},
                {"role": "tool", "tool_call_id": "call_x", "content": "plain text"},
            ]
        }
    )

    assert payload["contents"][1] == {
        "role": "model",
        "parts": [{"functionCall": {"name": "get_weather", "args": {"city": "Oslo"}}}],
    }
    assert payload["contents"][2] == {
        "role": "user",
        "parts": [
            {"functionResponse": {"name": "get_weather", "response": {"temp": 3}}}
        ],
    }
    assert payload["contents"][3]["parts"][0]["functionResponse"] == {
        "name": "unknown_tool",
        "response": {"result": "plain text"},
    }


def test_message_without_content_or_tool_calls_is_rejected() -> None:
    with pytest.raises(InvalidRequestError, match="unsupported message content format"):
        chat({"messages": [{"role": "user", "content": None}]})


def test_image_parts_are_inlined() -> None:
    payload = chat(
        {
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": "what is this?"},
                        {"type": "image_url", "image_url": {"url": PNG_DATA_URI}},
                    ],
                }
            ]
        }
    )

    assert payload["contents"][0]["parts"] == [
        {"text": "what is this?"},
        {"inlineData": {"mimeType": "image/png", "data": PNG_B64}},
    ]


@pytest.mark.parametrize(
    ("directive", "max_tokens", "expected"),
    [
        (ModelDirective("m", reasoning_budget=512), None, {"thinkingBudget": 512}),
        (ModelDirective("m", reasoning_budget=0), 100, {"thinkingBudget": 0}),
        (
            ModelDirective("m", reasoning_mode=ReasoningMode.FORCED_ON),
            1000,
            {"thinkingBudget": 500, "includeThoughts": True},
        ),
        (
            ModelDirective("m", reasoning_mode=ReasoningMode.FORCED_ON),
            None,
            {"includeThoughts": True},
        ),
        (
            ModelDirective("m", reasoning_mode=ReasoningMode.FORCED_OFF),
            None,
            {"thinkingBudget": 0},
        ),
    ],
)
def test_directive_drives_thinking_config(directive, max_tokens, expected) -> None:
    payload = chat(
        {"messages": [{"role": "user", "content": "hi"}], "max_tokens": max_tokens},
        directive,
        thinking_budget_percentage=0.5,
    )
    assert payload["generationConfig"]["thinkingConfig"] == expected


def test_default_directive_adds_no_thinking_config() -> None:
    payload = chat({"messages": [{"role": "user", "content": "hi"}]})
    assert "thinkingConfig" not in payload["generationConfig"]


# =============================================================================
# Images
# =============================================================================


def test_image_request_scenario() -> None:
    request = ImageRequest(model="imagen-3", prompt="a cat", n=2, size="1792x1024")

    assert wire(convert_image_request(request, "imagen-3")) == {
        "instances": [{"prompt": "a cat"}],
        "parameters": {
            "sampleCount": 2,
            "aspectRatio": "16:9",
            "personGeneration": "allow_adult",
        },
    }


@pytest.mark.parametrize(
    ("size", "ratio"),
    [
        ("1024x1024", "1:1"),
        ("1024x1792", "9:16"),
        ("1792x1024", "16:9"),
        ("", "1:1"),
        ("512x512", "1:1"),
        ("1792X1024", "1:1"),
    ],
)
def test_aspect_ratio_table(size: str, ratio: str) -> None:
    assert aspect_ratio_for(size) == ratio


def test_image_generation_requires_imagen_model() -> None:
    request = ImageRequest(model="gemini-2.0-flash", prompt="a cat")

    with pytest.raises(UnsupportedModelError) as exc_info:
        convert_image_request(request, "gemini-2.0-flash")
    assert exc_info.value.status_code == 400


# =============================================================================
# Audio
# =============================================================================


def test_audio_becomes_single_inline_user_part() -> None:
    request = AudioRequest(model="gemini-2.0-flash", input=f"data:audio/wav;base64,{PNG_B64}")

    assert wire(convert_audio_request(request)) == {
        "contents": [
            {
                "role": "user",
                "parts": [{"inlineData": {"mimeType": "audio/wav", "data": PNG_B64}}],
            }
        ],
        "generationConfig": {},
    }


@pytest.mark.parametrize("value", ["", "raw-bytes", "data:audio/wav;base64,%%%"])
def test_audio_rejects_non_self_describing_input(value: str) -> None:
    with pytest.raises(DecodeError, match="decode base64 audio data failed"):
        convert_audio_request(AudioRequest(model="gemini-2.0-flash", input=value))


# =============================================================================
# Embeddings
# =============================================================================


def test_embedding_uses_only_the_first_input() -> None:
    """embedContent takes one content; extra inputs are dropped on purpose."""
    request = EmbeddingRequest(model="gemini-embedding-001", input=["a", "b", "c"])

    assert wire(convert_embedding_request(request, "gemini-embedding-001")) == {
        "content": {"parts": [{"text": "a"}]}
    }


def test_embedding_dimensions_only_for_text_embedding_004() -> None:
    request = EmbeddingRequest(model="x", input="hello", dimensions=256)

    dimensioned = wire(convert_embedding_request(request, "text-embedding-004"))
    other = wire(convert_embedding_request(request, "gemini-embedding-001"))

    assert dimensioned["outputDimensionality"] == 256
    assert "outputDimensionality" not in other


def test_embedding_zero_dimensions_are_omitted() -> None:
    request = EmbeddingRequest(model="x", input="hello", dimensions=0)
    assert "outputDimensionality" not in wire(
        convert_embedding_request(request, "text-embedding-004")
    )


@pytest.mark.parametrize(
    ("value", "message"),
    [(None, "input is required"), ([], "input is empty"), ([1, 2], "input is empty")],
)
def test_embedding_requires_input(value, message: str) -> None:
    with pytest.raises(InvalidRequestError, match=message):
        convert_embedding_request(
            EmbeddingRequest(model="x", input=value), "text-embedding-004"
        )


# =============================================================================
# Responses API
# =============================================================================


def test_responses_request_conversion() -> None:
    request = ResponsesRequest.from_dict(
        {
            "model": "gemini-2.0-flash",
            "instructions": "answer in French",
            "input": [
                {"role": "user", "content": "hello"},
                {"role": "assistant", "content": [{"type": "text", "text": "bonjour"}]},
            ],
            "temperature": 0.5,
            "top_p": 0.8,
            "max_output_tokens": 64,
            "tools": [
                {"type": "web_search"},
                {
                    "type": "function",
                    "function": {"name": "lookup", "parameters": {"type": "object"}},
                },
                {"type": "function", "function": '{"description": "no name"}'},
                {"type": "function", "function": "{not json"},
                {"type": "file_search"},
            ],
        }
    )

    payload = wire(convert_responses_request(request))

    assert payload["systemInstruction"] == {"parts": [{"text": "answer in French"}]}
    assert payload["contents"] == [
        {"role": "user", "parts": [{"text": "hello"}]},
        {"role": "model", "parts": [{"text": "bonjour"}]},
    ]
    assert payload["generationConfig"] == {
        "temperature": 0.5,
        "topP": 0.8,
        "maxOutputTokens": 64,
    }
    assert payload["tools"] == [
        {"googleSearch": {}},
        {"functionDeclarations": [{"name": "lookup", "parameters": {"type": "object"}}]},
    ]


def test_responses_flat_function_tool_and_string_input() -> None:
    request = ResponsesRequest.from_dict(
        {
            "model": "gemini-2.0-flash",
            "input": "hi",
            "instructions": {"not": "a string"},
            "tools": [{"type": "function", "name": "ping", "description": "Ping"}],
        }
    )

    payload = wire(convert_responses_request(request))

    assert "systemInstruction" not in payload
    assert payload["contents"] == [{"role": "user", "parts": [{"text": "hi"}]}]
    assert payload["tools"] == [
        {"functionDeclarations": [{"name": "ping", "description": "Ping"}]}
    ]
