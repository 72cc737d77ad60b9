"""Immutable query string parameters."""

from collections.abc import Iterator, Mapping
from urllib.parse import parse_qsl

_TRUTHY = frozenset({"true", "1", "yes", "on"})


class QueryParams(Mapping[str, str]):
    """Parsed query string.

    Indexing gives the first value for a key and ``get_list`` gives all of
    them, in order. Blank values are kept (``?flag=`` yields ``""``).
    """

    __slots__ = ("_raw", "_values")

    def __init__(self, query_string: bytes = b"") -> None:
        values: dict[str, list[str]] = {}
        for key, value in parse_qsl(query_string.decode("latin-1"), keep_blank_values=True):
            values.setdefault(key, []).append(value)
        self._values = values
        self._raw = query_string

    def __getitem__(self, key: str) -> str:
        return self._values[key][0]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"QueryParams({self._raw.decode('latin-1')!r})"

    def get_list(self, key: str) -> list[str]:
        return list(self._values.get(key, ()))

    def get_int(self, key: str, default: int | None = None) -> int | None:
        """Value of *key* as an int; *default* when absent or not numeric."""
        value = self.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            return default

    def get_bool(self, key: str, default: bool | None = None) -> bool | None:
        value = self.get(key)
        if value is None:
            return default
        return value.strip().lower() in _TRUTHY

    @property
    def raw(self) -> bytes:
        return self._raw
