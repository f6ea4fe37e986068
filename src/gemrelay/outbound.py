"""Outbound response sink written to by the response handlers."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Protocol, runtime_checkable

log = logging.getLogger(__name__)


@runtime_checkable
class ResponseWriter(Protocol):
    """Minimal writer interface a web framework adapter must provide."""

    def set_header(self, name: str, value: str) -> None:
        """Set a response header; only effective before the status is written."""
        ...

    def write_status(self, status_code: int) -> None:
        """Send the status line."""
        ...

    def write(self, data: bytes) -> None:
        """Append body bytes (flushing them for streamed responses)."""
        ...


@dataclass
class BufferedResponseWriter:
    """In-memory :class:`ResponseWriter`, handy for tests and buffered callers."""

    headers: dict[str, str] = field(default_factory=dict)
    status_code: int | None = None
    chunks: list[bytes] = field(default_factory=list)

    def set_header(self, name: str, value: str) -> None:
        if self.status_code is not None:
            log.warning("Header %s set after status was written; ignored", name)
            return
        self.headers[name] = value

    def write_status(self, status_code: int) -> None:
        if self.status_code is not None:
            log.warning(
                "Status already written (%d); ignoring %d", self.status_code, status_code
            )
            return
        self.status_code = status_code

    def write(self, data: bytes) -> None:
        if self.status_code is None:
            self.status_code = 200
        self.chunks.append(data)

    @property
    def body(self) -> bytes:
        return b"".join(self.chunks)
