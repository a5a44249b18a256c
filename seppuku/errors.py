"""Exceptions raised by the retirement controller."""

from typing import Any, Dict, Optional


class SeppukuError(Exception):
    """Base class for all seppuku errors."""


class ConfigurationError(SeppukuError):
    """Raised when a retirement configuration is invalid.

    Fatal to controller setup: construction never falls back to defaults
    when a supplied value is rejected.
    """

    def __init__(self, reason: str, field: Optional[str] = None, value: Any = None):
        self.reason = reason
        self.field = field
        self.value = value
        if field is not None:
            super().__init__(f"Invalid retirement config '{field}'={value!r}: {reason}")
        else:
            super().__init__(f"Invalid retirement config: {reason}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": "configuration_error",
            "field": self.field,
            "value": self.value,
            "reason": self.reason,
        }


__all__ = ["SeppukuError", "ConfigurationError"]
