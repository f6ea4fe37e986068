"""Test doubles and upstream response builders shared across the suite."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
import json
from typing import Any

import httpx

from gemrelay.errors import DecodeError
from gemrelay.media import MediaData

PNG_B64 = "iVBORw0KGgo="
PNG_DATA_URI = f"data:image/png;base64,{PNG_B64}"


@dataclass
class FakeFetcher:
    """Media fetcher double: serves canned media and records requested URLs."""

    media: dict[str, MediaData] = field(default_factory=dict)
    calls: list[str] = field(default_factory=list)

    def __call__(self, url: str) -> MediaData:
        self.calls.append(url)
        if url not in self.media:
            raise DecodeError(f"failed to fetch media from {url}: 404 Not Found")
        return self.media[url]


class TrackingStream(httpx.SyncByteStream):
    """Byte stream that remembers whether the response was closed."""

    def __init__(self, chunks: list[bytes]) -> None:
        self._chunks = chunks
        self.closed = False

    def __iter__(self) -> Iterator[bytes]:
        yield from self._chunks

    def close(self) -> None:
        self.closed = True


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    """Build a buffered upstream response with a JSON body."""
    return httpx.Response(status_code, json=payload)


def streamed_response(
    body: bytes, status_code: int = 200
) -> tuple[httpx.Response, TrackingStream]:
    """Build an unread upstream response whose closing can be observed."""
    stream = TrackingStream([body])
    return httpx.Response(status_code, stream=stream), stream


def sse_body(*events: dict[str, Any]) -> bytes:
    """Encode *events* the way ``streamGenerateContent?alt=sse`` frames them."""
    return b"".join(b"data: " + json.dumps(e).encode() + b"\r\n\r\n" for e in events)


def decoded_sse(body: bytes) -> list[Any]:
    """Decode the ``data:`` events written by a streaming handler."""
    events: list[Any] = []
    for line in body.decode().splitlines():
        if not line.startswith("data: "):
            continue
        data = line[len("data: ") :]
        events.append(data if data == "[DONE]" else json.loads(data))
    return events
