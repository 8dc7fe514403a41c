"""Exception types shared across detection, matching and progress reporting."""
from __future__ import annotations

from typing import Any, Dict, Optional


class FormwiseError(RuntimeError):
    """Base class for errors raised by formwise."""

    def __init__(self, message: str, *, data: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.data = data or {}


class DetectionError(FormwiseError):
    """Raised when the document tree cannot be traversed.

    Never escapes :meth:`formwise.detection.FormDetector.detect`; it is turned
    into a ``success=False`` detection result there.
    """


class ModelResponseError(FormwiseError):
    """Raised when a language model returns output that cannot be used."""


class ProviderConfigurationError(ValueError):
    """Raised for unknown providers or missing/malformed API keys."""


class InvalidTransitionError(ValueError):
    """Raised when a progress state change would move backwards or leave a terminal state."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot move progress from {current!r} to {target!r}")
        self.current = current
        self.target = target
