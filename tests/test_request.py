"""Tests for the immutable Request."""

import pytest

from leanapi.http.request import Request


def _scope(**overrides) -> dict:
    scope = {
        "type": "http",
        "method": "post",
        "path": "/users",
        "query_string": b"page=2",
        "headers": [(b"content-type", b"application/json"), (b"content-length", b"7")],
        "http_version": "1.1",
        "server": ("testserver", 80),
        "client": ("10.0.0.1", 5000),
    }
    scope.update(overrides)
    return scope


def _receive(*chunks: bytes):
    messages = [
        {"type": "http.request", "body": chunk, "more_body": i < len(chunks) - 1}
        for i, chunk in enumerate(chunks)
    ]

    async def receive() -> dict:
        return messages.pop(0)

    return receive


class TestFromASGI:
    def test_metadata(self) -> None:
        request = Request.from_asgi(_scope(), _receive(b""))
        assert request.method == "POST"
        assert request.path == "/users"
        assert request.query["page"] == "2"
        assert request.url == "/users?page=2"
        assert request.content_type == "application/json"
        assert request.content_length == 7
        assert request.is_json
        assert request.client == ("10.0.0.1", 5000)
        assert request.claims is None
        assert not request.is_authenticated

    def test_url_without_query(self) -> None:
        assert Request.from_asgi(_scope(query_string=b""), _receive(b"")).url == "/users"

    def test_bad_content_length(self) -> None:
        request = Request.from_asgi(_scope(headers=[(b"content-length", b"abc")]), _receive(b""))
        assert request.content_length is None


class TestBody:
    async def test_chunks_joined_and_cached(self) -> None:
        request = Request.from_asgi(_scope(), _receive(b'{"a":', b" 1}"))
        assert await request.body() == b'{"a": 1}'
        assert await request.body() == b'{"a": 1}'
        assert await request.json() == {"a": 1}

    async def test_derived_request_shares_body(self) -> None:
        request = Request.from_asgi(_scope(), _receive(b'"hi"'))
        await request.body()
        derived = request.with_path_params({"id": "1"}).with_claims({"sub": "1"})
        assert await derived.json() == "hi"
        assert await derived.text() == '"hi"'

    async def test_empty_json_is_none(self) -> None:
        assert await Request.create("POST", "/").json() is None

    async def test_malformed_json(self) -> None:
        with pytest.raises(ValueError):
            await Request.create("POST", "/", body=b"{nope").json()


class TestDerived:
    def test_with_path_params(self) -> None:
        request = Request.create("GET", "/users/1")
        derived = request.with_path_params({"id": "1"})
        assert request.path_params == {}
        assert derived.path_param("id") == "1"
        assert derived.path_param("missing", "x") == "x"

    def test_with_claims(self) -> None:
        request = Request.create("GET", "/").with_claims({"sub": "7", "scopes": ["a"]})
        assert request.is_authenticated
        assert request.claim("sub") == "7"
        assert request.claim("nope", "d") == "d"

    def test_claim_without_claims(self) -> None:
        assert Request.create("GET", "/").claim("sub", "anon") == "anon"


class TestHeaderDerived:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("Bearer abc", "abc"),
            ("bearer  abc ", "abc"),
            ("Basic abc", None),
            ("Bearer", None),
            ("", None),
        ],
    )
    def test_bearer_token(self, value: str, expected: str | None) -> None:
        request = Request.create("GET", "/", headers={"Authorization": value})
        assert request.bearer_token == expected

    def test_client_ip_precedence(self) -> None:
        forwarded = Request.create(
            "GET", "/", headers={"X-Forwarded-For": "1.1.1.1, 2.2.2.2", "X-Real-IP": "3.3.3.3"}
        )
        assert forwarded.client_ip == "1.1.1.1"
        real = Request.create("GET", "/", headers={"X-Real-IP": " 3.3.3.3 "})
        assert real.client_ip == "3.3.3.3"
        direct = Request.create("GET", "/", client=("4.4.4.4", 1))
        assert direct.client_ip == "4.4.4.4"
        assert Request.create("GET", "/", client=None).client_ip == "127.0.0.1"

    @pytest.mark.parametrize(
        ("content_type", "expected"),
        [
            ("application/json", True),
            ("application/json; charset=utf-8", True),
            ("application/problem+json", True),
            ("text/plain", False),
            (None, False),
        ],
    )
    def test_is_json(self, content_type: str | None, expected: bool) -> None:
        headers = {"Content-Type": content_type} if content_type else {}
        assert Request.create("POST", "/", headers=headers).is_json is expected
