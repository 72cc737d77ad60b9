"""Tests for query string parameters."""

import pytest

from leanapi.http.query import QueryParams


class TestQueryParams:
    def test_first_value(self) -> None:
        query = QueryParams(b"tag=a&tag=b&page=2")
        assert query["tag"] == "a"
        assert query.get_list("tag") == ["a", "b"]
        assert query.get_list("missing") == []
        assert len(query) == 2
        assert set(query) == {"tag", "page"}

    def test_blank_values_kept(self) -> None:
        query = QueryParams(b"flag=&q=x")
        assert query["flag"] == ""
        assert "flag" in query

    def test_percent_decoding(self) -> None:
        assert QueryParams(b"q=hello%20world&plus=a+b")["q"] == "hello world"
        assert QueryParams(b"plus=a+b")["plus"] == "a b"

    def test_get_default(self) -> None:
        assert QueryParams(b"").get("x") is None
        assert QueryParams(b"").get("x", "d") == "d"

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [(b"limit=10", 10), (b"limit=-3", -3), (b"limit=ten", 5), (b"", 5), (b"limit=", 5)],
    )
    def test_get_int(self, raw: bytes, expected: int) -> None:
        assert QueryParams(raw).get_int("limit", default=5) == expected

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (b"on=true", True),
            (b"on=1", True),
            (b"on=YES", True),
            (b"on=off", False),
            (b"on=whatever", False),
            (b"", None),
        ],
    )
    def test_get_bool(self, raw: bytes, expected: bool | None) -> None:
        assert QueryParams(raw).get_bool("on") is expected

    def test_raw(self) -> None:
        assert QueryParams(b"a=1").raw == b"a=1"
