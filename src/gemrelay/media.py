"""Media helpers: data URI decoding and remote media fetching.

Both produce a :class:`MediaData` (MIME type plus base64 payload), the shape
Gemini expects inside an ``inlineData`` part.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
import logging
import mimetypes
from typing import Protocol
from urllib.parse import urlparse

import httpx

from gemrelay.errors import DecodeError

log = logging.getLogger(__name__)

_MB = 1024 * 1024

# Gemini rejects requests whose inline data exceeds 20 MB.
MAX_INLINE_MEDIA_BYTES = 20 * _MB

_DEFAULT_MIME = "application/octet-stream"


@dataclass(frozen=True)
class MediaData:
    """A MIME type and the matching base64 payload."""

    mime_type: str
    data: str

    @property
    def format(self) -> str:
        """Subtype of the MIME type, e.g. ``"wav"`` for ``audio/wav``."""
        _, _, subtype = self.mime_type.partition("/")
        return subtype or self.mime_type


class MediaFetcher(Protocol):
    """Callable that downloads *url* and returns it base64-encoded.

    Implementations raise :class:`DecodeError` on any failure.
    """

    def __call__(self, url: str) -> MediaData: ...


def decode_data_uri(value: str) -> MediaData:
    """Decode a ``data:<mime>;base64,<payload>`` string.

    Raises:
        DecodeError: When *value* is not a base64 data URI with a MIME type.
    """
    if not isinstance(value, str) or not value.startswith("data:"):
        raise DecodeError("not a data URI")

    header, sep, payload = value[len("data:") :].partition(",")
    if not sep:
        raise DecodeError("data URI has no payload separator")

    params = header.split(";")
    mime_type = params[0].strip().lower()
    if "base64" not in (p.strip().lower() for p in params[1:]):
        raise DecodeError("data URI is not base64-encoded")
    if "/" not in mime_type:
        raise DecodeError(f"data URI has an invalid MIME type: {mime_type!r}")

    payload = payload.strip()
    if not payload:
        raise DecodeError("data URI payload is empty")
    try:
        base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"data URI payload is not valid base64: {e}") from e

    return MediaData(mime_type=mime_type, data=payload)


def _mime_from_response(url: str, response: httpx.Response) -> str:
    ctype = response.headers.get("Content-Type", "")
    mime = ctype.split(";", 1)[0].strip().lower()
    if mime and mime != _DEFAULT_MIME:
        return mime
    guessed, _ = mimetypes.guess_type(urlparse(url).path)
    return guessed or mime or _DEFAULT_MIME


def fetch_media(
    url: str,
    *,
    client: httpx.Client | None = None,
    max_bytes: int = MAX_INLINE_MEDIA_BYTES,
) -> MediaData:
    """Download *url* and return its MIME type and base64 content.

    Only ``http`` and ``https`` URLs are fetched. The MIME type comes from the
    ``Content-Type`` header, falling back to the URL's extension.

    Raises:
        DecodeError: For unsupported schemes, HTTP failures, or bodies larger
            than *max_bytes*.
    """
    try:
        scheme = urlparse(url).scheme.lower() if isinstance(url, str) else ""
    except ValueError as e:
        raise DecodeError(
            f"cannot fetch media from {url!r}: malformed URL ({e})",
            hint="Pass an http(s) URL or a base64 data URI.",
        ) from e
    if scheme not in ("http", "https"):
        raise DecodeError(
            f"cannot fetch media from {url!r}: unsupported URL scheme",
            hint="Pass an http(s) URL or a base64 data URI.",
        )

    owns_client = client is None
    http = client if client is not None else httpx.Client(follow_redirects=True)
    try:
        with http.stream("GET", url) as response:
            response.raise_for_status()
            chunks: list[bytes] = []
            total = 0
            for chunk in response.iter_bytes():
                total += len(chunk)
                if total > max_bytes:
                    raise DecodeError(
                        f"media at {url} exceeds size limit ({total} > {max_bytes})"
                    )
                chunks.append(chunk)
            mime_type = _mime_from_response(url, response)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise DecodeError(f"failed to fetch media from {url}: {e}") from e
    finally:
        if owns_client:
            http.close()

    log.debug("Fetched %d bytes of %s from %s", total, mime_type, url)
    return MediaData(
        mime_type=mime_type, data=base64.b64encode(b"".join(chunks)).decode("ascii")
    )
