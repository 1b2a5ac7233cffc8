"""Scalar and section helpers shared by the controller parsers."""

from typing import Any, Dict, List, Tuple

from pydantic import ValidationError

from .protocols import ParserHostContext

_TRUE_WORDS = {"true", "yes", "on", "1"}
_FALSE_WORDS = {"false", "no", "off", "0"}


class NodeReaderMixin(ParserHostContext):
    """Mixin reading typed values out of generic YAML node trees."""

    @staticmethod
    def _text(data: Any, key: str, default: str = "") -> str:
        """Read a scalar as a stripped string."""
        if not isinstance(data, dict):
            return default
        value = data.get(key)
        if value is None:
            return default
        if isinstance(value, (dict, list)):
            raise TypeError(f"'{key}' must be a scalar value")
        return str(value).strip()

    @staticmethod
    def _integer(data: Dict[str, Any], key: str, default: int) -> int:
        value = data.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            raise ValueError(f"'{key}' must be an integer, got {value}")
        if isinstance(value, int):
            return value
        try:
            return int(str(value).strip(), 0)
        except ValueError:
            raise ValueError(f"'{key}' must be an integer, got '{value}'")

    @staticmethod
    def _flag(data: Dict[str, Any], key: str, default: bool = False) -> bool:
        value = data.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        word = str(value).strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
        raise ValueError(f"'{key}' must be a boolean, got '{value}'")

    def _entries(self, data: Any, what: str, location: str) -> List[Tuple[str, Any]]:
        """Ordered ``(name, body)`` pairs of a named section.

        Repeated keys recorded by the loader are reported and only the first
        definition is kept.
        """
        if data is None:
            return []
        if not isinstance(data, dict):
            self.diagnostics.error(f"'{what}' section must be a map", location)
            return []
        for duplicate in getattr(data, "duplicates", ()):
            self.diagnostics.warning(
                f"Duplicate {what} name '{duplicate}': first definition kept",
                location,
            )
        return [(str(name).strip(), body) for name, body in data.items()]

    @staticmethod
    def _describe(exc: Exception) -> str:
        """Render an exception, flattening pydantic validation errors."""
        if isinstance(exc, ValidationError):
            errors = []
            for error in exc.errors():
                loc = " -> ".join(str(x) for x in error["loc"])
                errors.append(f"{loc}: {error['msg']}" if loc else error["msg"])
            return "; ".join(errors)
        if isinstance(exc, KeyError):
            return f"missing key {exc}"
        return str(exc)
