"""Built-in validation rules for JSON request data.

Each rule is a callable with the signature::

    def rule(value: Any) -> str | None:
        '''Return an error message, or None if valid.'''

Messages may contain ``{field}``, which ``validate()`` replaces with the
field name. A rule's ``__name__`` is its key for custom messages
(``{"email.required": "..."}``).

Parameterized rules are factories returning a rule::

    validate(data, {"name": [required, string, minimum(2), maximum(100)]})

The same rules can be written as a pipe-separated string, which
``parse_rules`` expands::

    validate(data, {"name": "required|string|min:2|max:100"})

Regex patterns containing ``|`` must use ``matches()`` directly.
"""

import re
from collections.abc import Callable
from datetime import datetime
from typing import Any, TypeAlias

from leanapi.errors import ConfigurationError

Validator: TypeAlias = Callable[[Any], str | None]


def _named(rule: Validator, name: str) -> Validator:
    rule.__name__ = name
    return rule


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _fmt(n: float) -> str:
    return f"{n:g}"


def _size(value: Any) -> float | None:
    """Numbers compare by value; strings, lists and objects by length."""
    if _is_number(value):
        return float(value)
    if isinstance(value, str | list | dict):
        return float(len(value))
    return None


def _parse_date(value: Any) -> datetime | None:
    if not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Presence
# ---------------------------------------------------------------------------


def required(value: Any) -> str | None:
    """Field must be present and not ``null``, ``""``, ``[]`` or ``{}``."""
    if value is None or (isinstance(value, str | list | dict) and not value):
        return "The {field} field is required."
    return None


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------


def string(value: Any) -> str | None:
    if not isinstance(value, str):
        return "The {field} must be a string."
    return None


_DIGITS_RE = re.compile(r"[0-9]+")


def integer(value: Any) -> str | None:
    """An integer, or a string of digits."""
    if isinstance(value, int) and not isinstance(value, bool):
        return None
    if isinstance(value, str) and _DIGITS_RE.fullmatch(value):
        return None
    return "The {field} must be an integer."


def number(value: Any) -> str | None:
    """A JSON number, or a string that parses as one."""
    if _is_number(value):
        return None
    if isinstance(value, str):
        try:
            float(value)
        except ValueError:
            pass
        else:
            return None
    return "The {field} must be a number."


_BOOLEANS = (True, False, 0, 1, "0", "1", "true", "false")


def boolean(value: Any) -> str | None:
    if not any(type(value) is type(b) and value == b for b in _BOOLEANS):
        return "The {field} must be true or false."
    return None


def array(value: Any) -> str | None:
    if not isinstance(value, list):
        return "The {field} must be an array."
    return None


# ---------------------------------------------------------------------------
# Format
# ---------------------------------------------------------------------------

# Structure only, not deliverability
_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}$")

_URL_RE = re.compile(r"^https?://[^\s/$.?#].\S*$", re.IGNORECASE)


def email(value: Any) -> str | None:
    if not isinstance(value, str) or not _EMAIL_RE.match(value):
        return "The {field} must be a valid email address."
    return None


def url(value: Any) -> str | None:
    """An absolute http or https URL."""
    if not isinstance(value, str) or not _URL_RE.match(value):
        return "The {field} must be a valid URL."
    return None


def matches(pattern: str, message: str | None = None) -> Validator:
    """String containing a match for *pattern* (``re.search``)."""
    try:
        compiled = re.compile(pattern)
    except re.error as exc:
        raise ConfigurationError(f"Invalid validation pattern {pattern!r}: {exc}") from exc

    def check(value: Any) -> str | None:
        if not isinstance(value, str) or not compiled.search(value):
            return message or "The {field} format is invalid."
        return None

    return _named(check, "regex")


def date(value: Any) -> str | None:
    """An ISO 8601 date or datetime string."""
    if _parse_date(value) is None:
        return "The {field} is not a valid date."
    return None


def _date_bound(name: str, bound: str, accept: Callable[[datetime, datetime], bool]) -> Validator:
    limit = _parse_date(bound)
    if limit is None:
        raise ConfigurationError(f"Rule {name!r} needs an ISO 8601 date, got {bound!r}")
    message = f"The {{field}} must be a date {name} {bound}."

    def check(value: Any) -> str | None:
        parsed = _parse_date(value)
        try:
            ok = parsed is not None and accept(parsed, limit)
        except TypeError:
            # naive vs aware
            ok = False
        return None if ok else message

    return _named(check, name)


def before(when: str) -> Validator:
    return _date_bound("before", when, lambda value, limit: value < limit)


def after(when: str) -> Validator:
    return _date_bound("after", when, lambda value, limit: value > limit)


# ---------------------------------------------------------------------------
# Size
# ---------------------------------------------------------------------------


def minimum(n: float) -> Validator:
    """Number at least *n*, or string/array/object with at least *n* items."""

    def check(value: Any) -> str | None:
        size = _size(value)
        if size is None or size < n:
            return f"The {{field}} must be at least {_fmt(n)}."
        return None

    return _named(check, "min")


def maximum(n: float) -> Validator:
    def check(value: Any) -> str | None:
        size = _size(value)
        if size is None or size > n:
            return f"The {{field}} may not be greater than {_fmt(n)}."
        return None

    return _named(check, "max")


def between(low: float, high: float) -> Validator:
    def check(value: Any) -> str | None:
        size = _size(value)
        if size is None or not low <= size <= high:
            return f"The {{field}} must be between {_fmt(low)} and {_fmt(high)}."
        return None

    return _named(check, "between")


# ---------------------------------------------------------------------------
# Choice
# ---------------------------------------------------------------------------


def one_of(*choices: Any) -> Validator:
    """Value equal to one of *choices* (same type, no coercion)."""

    def check(value: Any) -> str | None:
        if not any(type(value) is type(c) and value == c for c in choices):
            return "The selected {field} is invalid."
        return None

    return _named(check, "in")


def none_of(*choices: Any) -> Validator:
    def check(value: Any) -> str | None:
        if any(type(value) is type(c) and value == c for c in choices):
            return "The selected {field} is invalid."
        return None

    return _named(check, "not_in")


# ---------------------------------------------------------------------------
# String form
# ---------------------------------------------------------------------------


def _number_arg(name: str, raw: str) -> float:
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"Rule {name!r} needs a number, got {raw!r}") from None


def _one_number(name: str, args: list[str]) -> float:
    if len(args) != 1:
        raise ConfigurationError(f"Rule {name!r} takes one argument")
    return _number_arg(name, args[0])


def _one_arg(name: str, args: list[str]) -> str:
    if len(args) != 1 or not args[0]:
        raise ConfigurationError(f"Rule {name!r} takes one argument")
    return args[0]


def _between_args(args: list[str]) -> Validator:
    if len(args) != 2:
        raise ConfigurationError("Rule 'between' takes two arguments")
    return between(_number_arg("between", args[0]), _number_arg("between", args[1]))


_PLAIN_RULES: dict[str, Validator] = {
    "required": required,
    "string": string,
    "int": integer,
    "integer": integer,
    "numeric": number,
    "number": number,
    "boolean": boolean,
    "array": array,
    "email": email,
    "url": url,
    "date": date,
}

_FACTORIES: dict[str, Callable[[list[str]], Validator]] = {
    "min": lambda args: minimum(_one_number("min", args)),
    "max": lambda args: maximum(_one_number("max", args)),
    "between": _between_args,
    "regex": lambda args: matches(_one_arg("regex", args)),
    "in": lambda args: one_of(*args),
    "not_in": lambda args: none_of(*args),
    "before": lambda args: before(_one_arg("before", args)),
    "after": lambda args: after(_one_arg("after", args)),
}


def parse_rules(spec: str) -> list[Validator]:
    """Expand ``"required|string|min:2|in:a,b"`` into rule callables.

    Raises ``ConfigurationError`` for unknown rules or bad arguments.
    """
    rules: list[Validator] = []
    for part in spec.split("|"):
        part = part.strip()
        if not part:
            continue
        name, has_args, raw_args = part.partition(":")
        if name in _PLAIN_RULES and not has_args:
            rules.append(_PLAIN_RULES[name])
        elif name in _FACTORIES:
            # regex arguments may contain commas
            args = [raw_args] if name == "regex" else raw_args.split(",")
            rules.append(_FACTORIES[name](args if has_args else []))
        else:
            raise ConfigurationError(f"Validation rule {part!r} does not exist")
    return rules
