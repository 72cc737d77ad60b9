"""Tests for ErrorHandlerMiddleware."""

from leanapi.app import App
from leanapi.errors import Forbidden, MethodNotAllowed, Unauthorized, UnprocessableContent
from leanapi.middleware.errors import TRACE_LIMIT, ErrorHandlerMiddleware
from leanapi.middleware.request_id import RequestIdMiddleware
from leanapi.testing import TestClient, assert_problem


def _app(*, debug: bool = False) -> App:
    app = App()
    app.set_global_middleware([ErrorHandlerMiddleware(debug=debug), RequestIdMiddleware()])

    @app.get("/boom")
    def boom():
        raise ValueError("database password is hunter2")

    @app.get("/forbidden")
    def forbidden():
        raise Forbidden("Admins only")

    @app.post("/validate")
    def validate():
        raise UnprocessableContent({"email": ["The email must be a valid email address."]})

    @app.get("/login")
    def login():
        raise Unauthorized()

    @app.get("/verbs")
    def verbs():
        raise MethodNotAllowed(("GET", "POST"))

    return app


class TestHTTPErrors:
    async def test_status_and_detail(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.get("/forbidden")
            body = assert_problem(response, 403, detail="Admins only", type="/problems/forbidden")
            assert body["title"] == "Forbidden"
            assert body["instance"] == "/forbidden"

    async def test_validation_errors(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.post("/validate")
            body = assert_problem(response, 422, type="/problems/validation")
            assert body["errors"] == {"email": ["The email must be a valid email address."]}

    async def test_headers_kept(self) -> None:
        async with TestClient(_app()) as client:
            login = await client.get("/login")
            assert login.header("www-authenticate") == 'Bearer realm="API"'
            verbs = await client.get("/verbs")
            assert_problem(verbs, 405)
            assert verbs.header("allow") == "GET, POST"

    async def test_outer_middleware_still_runs(self) -> None:
        app = App()
        app.set_global_middleware([RequestIdMiddleware(), ErrorHandlerMiddleware()])
        app.get("/boom", lambda: 1 / 0)
        async with TestClient(app) as client:
            response = await client.get("/boom")
            assert response.status == 500
            assert response.header("x-request-id") is not None


class TestUnhandledErrors:
    async def test_generic_500(self) -> None:
        async with TestClient(_app()) as client:
            response = await client.get("/boom")
            body = assert_problem(response, 500, detail="An unexpected error occurred")
            assert "hunter2" not in response.text
            assert "debug" not in body

    async def test_debug_details(self) -> None:
        async with TestClient(_app(debug=True)) as client:
            response = await client.get("/boom")
            body = assert_problem(response, 500, detail="database password is hunter2")
            debug = body["debug"]
            assert debug["class"] == "builtins.ValueError"
            assert debug["message"] == "database password is hunter2"
            assert 0 < len(debug["trace"]) <= TRACE_LIMIT
            assert debug["trace"][-1]["function"] == "boom"
            assert set(debug["trace"][0]) == {"file", "line", "function"}

    async def test_logged_with_context(self, leanapi_logs) -> None:
        async with TestClient(_app()) as client:
            await client.get("/boom")
        records = [r for r in leanapi_logs.records if r.getMessage() == "Unhandled exception"]
        assert len(records) == 1
        assert records[0].exc_info is not None
        assert records[0].context == {"method": "GET", "path": "/boom"}
