"""Model directives: feature flags carried inside a model-name string.

Clients ask for reasoning behaviour by suffixing the model name, e.g.
``gemini-2.5-flash-thinking-1024``. The suffix is decoded once, when the
request enters the adaptor, into a typed :class:`ModelDirective`; everything
downstream reads the directive and the canonical id instead of the raw name.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import re


class ReasoningMode(str, Enum):
    """Reasoning behaviour requested through the model name."""

    DEFAULT = "default"
    FORCED_ON = "forced_on"
    FORCED_OFF = "forced_off"


@dataclass(frozen=True)
class ModelDirective:
    """Canonical model id plus the flags decoded from its suffix."""

    canonical_model_id: str
    reasoning_budget: int | None = None
    reasoning_mode: ReasoningMode = ReasoningMode.DEFAULT


_BUDGET_RE = re.compile(r"(?P<base>.+)-thinking-(?P<budget>[0-9]+)", re.DOTALL)
_THINKING_SUFFIX = "-thinking"
_NOTHINKING_SUFFIX = "-nothinking"


def parse_directive(model: str, *, thinking_adapter_enabled: bool) -> ModelDirective:
    """Decode reasoning suffixes from *model*.

    Rules are tried in order and only the first match applies:

    1. ``<base>-thinking-<budget>`` sets an explicit reasoning budget.
    2. ``<base>-thinking`` forces reasoning on.
    3. ``<base>-nothinking`` forces reasoning off.

    Never raises: a suffix that does not fit a rule (``-thinking-abc``) is
    left in the id unchanged.
    """
    if not thinking_adapter_enabled:
        return ModelDirective(canonical_model_id=model)

    m = _BUDGET_RE.fullmatch(model)
    if m:
        return ModelDirective(
            canonical_model_id=m.group("base"),
            reasoning_budget=int(m.group("budget")),
        )
    if model.endswith(_THINKING_SUFFIX) and len(model) > len(_THINKING_SUFFIX):
        return ModelDirective(
            canonical_model_id=model[: -len(_THINKING_SUFFIX)],
            reasoning_mode=ReasoningMode.FORCED_ON,
        )
    if model.endswith(_NOTHINKING_SUFFIX) and len(model) > len(_NOTHINKING_SUFFIX):
        return ModelDirective(
            canonical_model_id=model[: -len(_NOTHINKING_SUFFIX)],
            reasoning_mode=ReasoningMode.FORCED_OFF,
        )
    return ModelDirective(canonical_model_id=model)
