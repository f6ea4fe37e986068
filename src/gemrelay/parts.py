"""Translate unified message content into Gemini content parts."""

from __future__ import annotations

from collections.abc import Mapping
import logging
from typing import Any

from gemrelay.errors import DecodeError, InvalidRequestError
from gemrelay.media import MediaData, MediaFetcher, decode_data_uri, fetch_media
from gemrelay.models import ContentItem, ItemsContent, TextContent, parse_content
from gemrelay.wire import InlineData, Part

log = logging.getLogger(__name__)


def encode_content(content: Any, *, fetcher: MediaFetcher = fetch_media) -> list[Part]:
    """Convert message content to parts.

    Accepts a :class:`TextContent`/:class:`ItemsContent` or the raw JSON value
    (string or list of typed items). Item kinds other than ``text`` and
    ``image_url`` are skipped; an image that cannot be decoded or fetched
    aborts the whole conversion.

    Raises:
        InvalidRequestError: Content is neither a string nor a list of items.
        DecodeError: An image item could not be resolved.
    """
    content = parse_content(content)
    if isinstance(content, TextContent):
        return [Part(text=content.text)]

    parts: list[Part] = []
    for item in content.items:
        if item.kind == "text":
            parts.append(Part(text=_item_text(item)))
        elif item.kind == "image_url":
            media = resolve_media(_image_url(item), fetcher=fetcher)
            parts.append(
                Part(inline_data=InlineData(mime_type=media.mime_type, data=media.data))
            )
        else:
            # Extension item kinds (audio, files, ...) are omitted, not rejected.
            log.debug("Skipping content item of kind %r", item.kind)
    return parts


def content_text(content: TextContent | ItemsContent | None) -> str:
    """Concatenate the text of *content*, ignoring non-text items."""
    if content is None:
        return ""
    if isinstance(content, TextContent):
        return content.text
    return "".join(
        item.payload["text"]
        for item in content.items
        if item.kind == "text" and isinstance(item.payload.get("text"), str)
    )


def resolve_media(url: str, *, fetcher: MediaFetcher = fetch_media) -> MediaData:
    """Resolve an image reference: data URI first, remote fetch otherwise."""
    try:
        return decode_data_uri(url)
    except DecodeError:
        log.debug("Image reference is not a data URI; fetching it")
    return fetcher(url)


def _item_text(item: ContentItem) -> str:
    text = item.payload.get("text")
    if not isinstance(text, str):
        raise InvalidRequestError("text content item requires a string 'text' field")
    return text


def _image_url(item: ContentItem) -> str:
    ref = item.payload.get("image_url")
    url = ref.get("url") if isinstance(ref, Mapping) else ref
    if not isinstance(url, str) or not url:
        raise DecodeError("image_url content item has no url")
    return url
