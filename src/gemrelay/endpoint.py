"""Endpoint resolution: canonical model id to upstream URL."""

from __future__ import annotations

from gemrelay.constants import EMBEDDING_PREFIXES, IMAGEN_PREFIX

PREDICT = "predict"
EMBED_CONTENT = "embedContent"
GENERATE_CONTENT = "generateContent"
STREAM_GENERATE_CONTENT = "streamGenerateContent?alt=sse"


def is_imagen_model(model_id: str) -> bool:
    """Whether *model_id* belongs to the Imagen image-generation family."""
    return model_id.startswith(IMAGEN_PREFIX)


def is_embedding_model(model_id: str) -> bool:
    """Whether *model_id* is served by the ``embedContent`` endpoint."""
    return model_id.startswith(EMBEDDING_PREFIXES)


def action_for(model_id: str, *, stream: bool) -> str:
    """Pick the model action; first matching rule wins."""
    if is_imagen_model(model_id):
        return PREDICT
    if is_embedding_model(model_id):
        return EMBED_CONTENT
    return STREAM_GENERATE_CONTENT if stream else GENERATE_CONTENT


def resolve_url(base_url: str, version: str, model_id: str, *, stream: bool) -> str:
    """Build ``{base}/{version}/models/{id}:{action}``."""
    action = action_for(model_id, stream=stream)
    return f"{base_url}/{version}/models/{model_id}:{action}"
