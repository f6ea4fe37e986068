"""Configuration: frozen adaptor settings with environment resolution."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
import os
from types import MappingProxyType

from dotenv import load_dotenv

from gemrelay.constants import (
    DEFAULT_API_VERSION,
    DEFAULT_BASE_URL,
    DEFAULT_THINKING_BUDGET_PERCENTAGE,
)
from gemrelay.errors import ConfigurationError

load_dotenv()

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


def _default_versions() -> Mapping[str, str]:
    return {"default": DEFAULT_API_VERSION}


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ConfigurationError(
        f"{name} must be a boolean, got {raw!r}",
        hint="Use one of: 1, 0, true, false, yes, no, on, off.",
    )


@dataclass(frozen=True)
class GeminiSettings:
    """Immutable, read-only settings shared by every request.

    The version table maps canonical model ids to an API version segment; the
    ``default`` entry covers every model without an explicit mapping.

    Example:
        settings = GeminiSettings(thinking_adapter_enabled=True)
        settings.version_for("gemini-2.0-flash")  # "v1beta"
    """

    base_url: str = DEFAULT_BASE_URL
    #: Auto-resolved from ``GEMINI_API_KEY`` when *None*. Optional: callers
    #: usually pick a key per request and put it on ``RelayInfo``.
    api_key: str | None = None
    thinking_adapter_enabled: bool = False
    #: Share of ``max_tokens`` granted as thinking budget for ``-thinking`` models.
    thinking_budget_percentage: float = DEFAULT_THINKING_BUDGET_PERCENTAGE
    version_settings: Mapping[str, str] = field(default_factory=_default_versions)

    def __post_init__(self) -> None:
        """Resolve the API key and validate settings."""
        if not isinstance(self.base_url, str) or not self.base_url.strip():
            raise ConfigurationError(
                "base_url must be a non-empty string",
                hint=f"The public endpoint is {DEFAULT_BASE_URL}.",
            )
        object.__setattr__(self, "base_url", self.base_url.strip().rstrip("/"))

        if not 0 < self.thinking_budget_percentage <= 1:
            raise ConfigurationError(
                "thinking_budget_percentage must be in (0, 1], "
                f"got {self.thinking_budget_percentage}",
                hint="This is the share of max_tokens granted as thinking budget.",
            )

        for model, version in self.version_settings.items():
            if not isinstance(version, str) or not version.strip():
                raise ConfigurationError(
                    f"API version for {model!r} must be a non-empty string",
                    hint="Typical values are 'v1' and 'v1beta'.",
                )
        object.__setattr__(
            self, "version_settings", MappingProxyType(dict(self.version_settings))
        )

        if self.api_key is None:
            object.__setattr__(self, "api_key", os.environ.get("GEMINI_API_KEY"))

    @classmethod
    def from_env(cls) -> GeminiSettings:
        """Build settings from ``GEMINI_*`` environment variables."""
        raw_pct = os.environ.get("GEMINI_THINKING_BUDGET_PERCENTAGE")
        try:
            pct = (
                float(raw_pct)
                if raw_pct is not None
                else DEFAULT_THINKING_BUDGET_PERCENTAGE
            )
        except ValueError as e:
            raise ConfigurationError(
                f"GEMINI_THINKING_BUDGET_PERCENTAGE must be a number, got {raw_pct!r}",
            ) from e

        versions = dict(_default_versions())
        default_version = os.environ.get("GEMINI_API_VERSION")
        if default_version:
            versions["default"] = default_version

        return cls(
            base_url=os.environ.get("GEMINI_BASE_URL", DEFAULT_BASE_URL),
            thinking_adapter_enabled=_env_flag("GEMINI_THINKING_ADAPTER", False),
            thinking_budget_percentage=pct,
            version_settings=versions,
        )

    def version_for(self, model_id: str) -> str:
        """Return the API version segment for *model_id*."""
        version = self.version_settings.get(model_id)
        if version:
            return version
        return self.version_settings.get("default", DEFAULT_API_VERSION)

    def __str__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        return (
            f"GeminiSettings(base_url={self.base_url!r}, "
            f"api_key={'[REDACTED]' if self.api_key else None}, "
            f"thinking_adapter_enabled={self.thinking_adapter_enabled})"
        )

    __repr__ = __str__
