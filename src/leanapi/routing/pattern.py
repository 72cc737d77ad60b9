"""Path template compilation.

Turns ``/users/{id:\\d+}/posts/{slug}`` into an anchored regular expression
plus the ordered list of parameter names it captures.

Template syntax:

- literal text is matched exactly (regex metacharacters are escaped)
- ``{name}`` captures one path segment (``[^/]+``)
- ``{name:regex}`` captures whatever *regex* matches, verbatim; braces
  inside the constraint must balance, so ``{code:\\d{3}}`` works

Compilation errors raise ``ConfigurationError`` at registration time, never
during a request.
"""

import re
from dataclasses import dataclass

from leanapi.errors import ConfigurationError

DEFAULT_SEGMENT = r"[^/]+"
_FLASK_PARAM = re.compile(r"<(?:\w+:)?\w+>")


@dataclass(frozen=True, slots=True)
class CompiledPattern:
    """A compiled path template.

    ``group_indexes[i]`` is the regex group that captures
    ``param_names[i]``; constraints containing their own groups push
    later parameters to higher indexes.
    """

    template: str
    regex: re.Pattern[str]
    param_names: tuple[str, ...]
    group_indexes: tuple[int, ...]

    def match(self, path: str) -> dict[str, str] | None:
        """Return captured parameters if *path* matches the whole pattern."""
        m = self.regex.fullmatch(path)
        if m is None:
            return None
        return {
            name: m.group(index)
            for name, index in zip(self.param_names, self.group_indexes, strict=True)
        }

    @property
    def source(self) -> str:
        return self.regex.pattern

    @classmethod
    def from_source(
        cls,
        template: str,
        source: str,
        param_names: tuple[str, ...],
        group_indexes: tuple[int, ...],
    ) -> "CompiledPattern":
        """Rebuild a pattern from previously compiled parts (route cache)."""
        try:
            regex = re.compile(source)
        except re.error as exc:
            msg = f"Stored pattern for {template!r} is not a valid regex: {exc}"
            raise ConfigurationError(msg) from exc
        if len(param_names) != len(group_indexes) or any(
            i < 1 or i > regex.groups for i in group_indexes
        ):
            msg = f"Stored pattern for {template!r} does not match its parameter list"
            raise ConfigurationError(msg)
        return cls(template, regex, param_names, group_indexes)


def _read_placeholder(template: str, start: int) -> tuple[str, int]:
    """Return the text between ``{`` at *start* and its matching ``}``.

    Returns the inner text and the index just past the closing brace.
    """
    depth = 0
    i = start
    while i < len(template):
        char = template[i]
        if char == "\\":
            i += 2
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return template[start + 1 : i], i + 1
        i += 1
    msg = f"Unterminated '{{' at position {start} in route path {template!r}"
    raise ConfigurationError(msg)


def _literal(template: str, start: int, end: int) -> str:
    """Escape the literal text between placeholders, rejecting ``<param>`` segments."""
    text = template[start:end]
    if _FLASK_PARAM.search(text):
        msg = (
            f"Route path {template!r} uses '<param>' syntax. "
            f"Use '{{param}}' instead (e.g. /users/{{id}})."
        )
        raise ConfigurationError(msg)
    return re.escape(text)


def compile_pattern(template: str) -> CompiledPattern:
    """Compile a route path template.

    Raises ``ConfigurationError`` for empty or duplicate parameter names,
    empty constraints, invalid constraint regexes, an unterminated ``{``,
    a stray ``}``, or Flask-style ``<param>`` syntax.
    """
    if not template.startswith("/"):
        msg = f"Route path must start with '/': {template!r}"
        raise ConfigurationError(msg)

    parts: list[str] = ["^"]
    names: list[str] = []
    indexes: list[int] = []
    group_count = 0
    literal_start = 0
    i = 0

    while i < len(template):
        char = template[i]
        if char == "}":
            msg = f"Unmatched '}}' at position {i} in route path {template!r}"
            raise ConfigurationError(msg)
        if char != "{":
            i += 1
            continue

        parts.append(_literal(template, literal_start, i))
        inner, i = _read_placeholder(template, i)
        literal_start = i

        name, has_constraint, constraint = inner.partition(":")
        name = name.strip()
        if not name.isidentifier():
            msg = f"Invalid parameter name {name!r} in route path {template!r}"
            raise ConfigurationError(msg)
        if name in names:
            msg = f"Duplicate parameter {name!r} in route path {template!r}"
            raise ConfigurationError(msg)
        if has_constraint and not constraint:
            msg = f"Empty constraint for parameter {name!r} in route path {template!r}"
            raise ConfigurationError(msg)

        segment = constraint if has_constraint else DEFAULT_SEGMENT
        try:
            inner_groups = re.compile(segment).groups
        except re.error as exc:
            msg = f"Invalid constraint for parameter {name!r} in route path {template!r}: {exc}"
            raise ConfigurationError(msg) from exc

        group_count += 1
        names.append(name)
        indexes.append(group_count)
        group_count += inner_groups
        parts.append(f"({segment})")

    parts.append(_literal(template, literal_start, len(template)))
    parts.append("$")

    source = "".join(parts)
    try:
        regex = re.compile(source)
    except re.error as exc:
        msg = f"Route path {template!r} does not compile: {exc}"
        raise ConfigurationError(msg) from exc

    return CompiledPattern(template, regex, tuple(names), tuple(indexes))
