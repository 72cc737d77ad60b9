"""Read-only request headers with case-insensitive names.

The raw byte pairs from the ASGI scope are kept as received and decoded
on lookup.
"""

from collections.abc import Iterator, Mapping


def _norm(name: str) -> bytes:
    return name.lower().encode("latin-1")


class Headers(Mapping[str, str]):
    """Request headers keyed by lowercase name.

    Indexing returns the first value sent for a name. ``get_list`` returns
    every value and ``get_tokens`` splits comma-joined values such as
    ``X-Forwarded-For`` or ``If-None-Match``.
    """

    __slots__ = ("_raw",)

    def __init__(self, raw: tuple[tuple[bytes, bytes], ...] = ()) -> None:
        self._raw = raw

    @classmethod
    def from_dict(cls, headers: Mapping[str, str] | None = None) -> "Headers":
        if not headers:
            return cls()
        return cls(tuple((_norm(k), v.encode("latin-1")) for k, v in headers.items()))

    def get_list(self, key: str) -> list[str]:
        wanted = _norm(key)
        return [v.decode("latin-1") for k, v in self._raw if k.lower() == wanted]

    def get_tokens(self, key: str) -> list[str]:
        """Comma-separated members across every value of *key*, blanks dropped."""
        return [
            token
            for value in self.get_list(key)
            for token in (part.strip() for part in value.split(","))
            if token
        ]

    def __getitem__(self, key: str) -> str:
        values = self.get_list(key)
        if not values:
            raise KeyError(key)
        return values[0]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and bool(self.get_list(key))

    def __iter__(self) -> Iterator[str]:
        names = dict.fromkeys(k.decode("latin-1").lower() for k, _ in self._raw)
        return iter(names)

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __repr__(self) -> str:
        return f"Headers({dict(self)!r})"

    @property
    def raw(self) -> tuple[tuple[bytes, bytes], ...]:
        return self._raw
