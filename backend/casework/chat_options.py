"""
Chat options record and the Inherit | Custom override variant.

Intent:
    One immutable, fully specified options record (`ChatOptions`) plus a tagged
    variant for per-assignment overrides. An override is either `INHERIT`
    (store value `null`) or `Custom(options)` (a complete JSON object). There
    is no partial override and therefore no deep merge.

Behavior:
    - `parse_chat_options` is strict: every field must be present with the
      right type. Unknown keys are ignored so older/newer UIs can coexist.
    - Parsing failures raise `ConfigError`; the resolver logs and degrades,
      write paths convert them into `ValidationError`.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
import json
from typing import Any, Mapping, Union

from backend.casework.errors import ConfigError

PERSONAS = ("moderate", "strict", "liberal", "leading", "sycophantic")

_INT_BOUNDS = {
    "hints_allowed": (0, 10),
    "free_hints": (0, 5),
}


@dataclass(frozen=True)
class ChatOptions:
    hints_allowed: int
    free_hints: int
    ask_for_feedback: bool
    ask_save_transcript: bool
    allowed_personas: tuple[str, ...]
    default_persona: str
    show_case: bool
    do_evaluation: bool
    chatbot_personality: str
    allow_repeat: bool
    timeout_chat: bool
    restart_chat: bool
    allow_exit: bool
    disable_position_tracking: bool

    def to_dict(self) -> dict[str, Any]:
        """Return a fresh JSON-ready mapping (personas as comma string)."""
        out: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "allowed_personas":
                value = ",".join(value)
            out[f.name] = value
        return out


BUILTIN_CHAT_OPTIONS = ChatOptions(
    hints_allowed=3,
    free_hints=1,
    ask_for_feedback=False,
    ask_save_transcript=False,
    allowed_personas=PERSONAS,
    default_persona="moderate",
    show_case=True,
    do_evaluation=True,
    chatbot_personality="",
    allow_repeat=False,
    timeout_chat=False,
    restart_chat=False,
    allow_exit=False,
    disable_position_tracking=False,
)

OPTION_KEYS = tuple(f.name for f in fields(ChatOptions))


def _as_bool(name: str, value: object) -> bool:
    if isinstance(value, bool):
        return value
    # MySQL-style tinyint flags
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise ConfigError("invalid_chat_options", f"{name} must be a boolean")


def _as_int(name: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError("invalid_chat_options", f"{name} must be an integer")
    low, high = _INT_BOUNDS[name]
    if value < low or value > high:
        raise ConfigError("invalid_chat_options", f"{name} out of range ({low}..{high})")
    return value


def _as_personas(value: object) -> tuple[str, ...]:
    if isinstance(value, str):
        items = [p.strip() for p in value.split(",")]
    elif isinstance(value, (list, tuple)):
        if not all(isinstance(p, str) for p in value):
            raise ConfigError("invalid_chat_options", "allowed_personas must contain strings")
        items = [p.strip() for p in value]
    else:
        raise ConfigError("invalid_chat_options", "allowed_personas must be a string or list")
    return tuple(p for p in items if p)


def _as_str(name: str, value: object) -> str:
    if not isinstance(value, str):
        raise ConfigError("invalid_chat_options", f"{name} must be a string")
    return value


def parse_chat_options(raw: object) -> ChatOptions:
    """Parse a complete options record from a mapping or JSON string.

    Raises:
        ConfigError: unparseable JSON, not a mapping, missing keys, wrong types.
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError as exc:
            raise ConfigError("invalid_chat_options", "unparseable JSON") from exc
    if not isinstance(raw, Mapping):
        raise ConfigError("invalid_chat_options", "expected an object")
    missing = [key for key in OPTION_KEYS if key not in raw]
    if missing:
        raise ConfigError("invalid_chat_options", "missing " + ",".join(missing))
    values: dict[str, Any] = {}
    for key in OPTION_KEYS:
        value = raw[key]
        if key in _INT_BOUNDS:
            values[key] = _as_int(key, value)
        elif key == "allowed_personas":
            values[key] = _as_personas(value)
        elif key in ("default_persona", "chatbot_personality"):
            values[key] = _as_str(key, value)
        else:
            values[key] = _as_bool(key, value)
    return ChatOptions(**values)


@dataclass(frozen=True)
class Inherit:
    """Override state meaning "use whatever default applies"."""

    def to_store(self) -> None:
        return None


@dataclass(frozen=True)
class Custom:
    options: ChatOptions

    def to_store(self) -> dict[str, Any]:
        return self.options.to_dict()


INHERIT = Inherit()

OptionsOverride = Union[Inherit, Custom]


def parse_override(raw: object) -> OptionsOverride:
    """Map a stored `chat_options` column onto the override variant."""
    if raw is None:
        return INHERIT
    return Custom(parse_chat_options(raw))


__all__ = [
    "BUILTIN_CHAT_OPTIONS",
    "ChatOptions",
    "Custom",
    "INHERIT",
    "Inherit",
    "OPTION_KEYS",
    "OptionsOverride",
    "PERSONAS",
    "parse_chat_options",
    "parse_override",
]
