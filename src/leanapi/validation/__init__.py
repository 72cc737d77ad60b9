"""Request data validation: composable rules, clean results.

Usage::

    from leanapi.validation import validate

    async def create_user(request: Request):
        data = validate(await request.json(), {
            "name": "required|string|min:2|max:100",
            "email": "required|email|max:255",
            "password": "required|string|min:8",
        }).raise_for_errors()

``raise_for_errors()`` raises ``UnprocessableContent``, which the error
boundary renders as a 422 ``/problems/validation`` problem carrying the
``errors`` map.
"""

from collections.abc import Mapping
from typing import Any

from leanapi.validation.result import ValidationResult
from leanapi.validation.rules import (
    Validator,
    after,
    array,
    before,
    between,
    boolean,
    date,
    email,
    integer,
    matches,
    maximum,
    minimum,
    none_of,
    number,
    one_of,
    parse_rules,
    required,
    string,
    url,
)

__all__ = [
    "ValidationResult",
    "Validator",
    "after",
    "array",
    "before",
    "between",
    "boolean",
    "date",
    "email",
    "integer",
    "matches",
    "maximum",
    "minimum",
    "none_of",
    "number",
    "one_of",
    "parse_rules",
    "required",
    "string",
    "url",
    "validate",
]


def validate(
    data: Any,
    rules: Mapping[str, str | list[Validator]],
    messages: Mapping[str, str] | None = None,
) -> ValidationResult:
    """Validate *data* against per-field rules.

    Args:
        data: A decoded JSON object. Anything that is not a mapping (a
            list body, ``None``) is validated as an empty object.
        rules: Field name to a list of rules, or to a pipe-separated
            rule string (``"required|email"``).
        messages: Custom messages keyed ``"<field>.<rule name>"``.

    A missing or ``null`` field is only checked by ``required``; other rules
    skip it, so optional fields need no special casing. A failed
    ``required`` stops the remaining rules for that field.
    """
    if not isinstance(data, Mapping):
        data = {}
    custom = messages or {}
    errors: dict[str, list[str]] = {}
    cleaned: dict[str, Any] = {}

    for field_name, field_rules in rules.items():
        validators = parse_rules(field_rules) if isinstance(field_rules, str) else field_rules
        value = data.get(field_name)

        field_errors: list[str] = []
        for validator in validators:
            if value is None and validator is not required:
                continue
            error = validator(value)
            if error is None:
                continue
            message = custom.get(f"{field_name}.{validator.__name__}", error)
            field_errors.append(message.replace("{field}", field_name))
            if validator is required:
                break

        if field_errors:
            errors[field_name] = field_errors
        elif value is not None:
            cleaned[field_name] = value

    return ValidationResult(data=cleaned, errors=errors)
