"""
Error taxonomy for the casework engine.

Why:
    Callers (web adapter, CLI, chat runtime) need to tell "unknown key" apart
    from "bad input" and "the store is down" without parsing messages. Each
    error also subclasses the matching builtin so code that already catches
    `LookupError`/`ValueError` keeps working.

Behavior:
    - Errors carry a short snake_case code as their message
      (e.g. `assignment_not_found`) and an optional human-readable detail.
    - `ConfigError` is constructed and logged by the resolver but never raised
      to its callers; a broken default degrades instead of blocking.
"""

from __future__ import annotations

from typing import Optional


class CaseworkError(Exception):
    """Base class for all engine errors."""

    def __init__(self, code: str, detail: Optional[str] = None) -> None:
        super().__init__(code)
        self.code = code
        self.detail = detail

    def __str__(self) -> str:
        if self.detail:
            return f"{self.code}: {self.detail}"
        return self.code


class NotFoundError(CaseworkError, LookupError):
    """Unknown section, case, assignment, scenario or evaluation key."""


class ConfigError(CaseworkError, ValueError):
    """Corrupt or missing chat-options record."""


class UpstreamStoreError(CaseworkError, RuntimeError):
    """The backing store reported a failure; propagated without retries."""


class ValidationError(CaseworkError, ValueError):
    """Input rejected before anything was persisted."""


__all__ = [
    "CaseworkError",
    "NotFoundError",
    "ConfigError",
    "UpstreamStoreError",
    "ValidationError",
]
