"""Validation result: the cleaned data or the per-field errors."""

from dataclasses import dataclass
from typing import Any

from leanapi.errors import UnprocessableContent

INVALID_DETAIL = "The given data was invalid."


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of ``validate()``.

    Falsy when invalid::

        result = validate(data, rules)
        if not result:
            return problem.validation(result.errors)

    ``data`` holds the present fields that passed. ``errors`` maps
    field names to their messages, in rule order.
    """

    data: dict[str, Any]
    errors: dict[str, list[str]]

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def __bool__(self) -> bool:
        return self.is_valid

    def raise_for_errors(self) -> dict[str, Any]:
        """Return ``data``, or raise ``UnprocessableContent`` with the errors."""
        if self.errors:
            raise UnprocessableContent(self.errors, INVALID_DETAIL)
        return self.data
