"""Tests for leanapi.app: registration, freezing, dispatch, and lifespan."""

import threading

import pytest

from leanapi.app import App
from leanapi.errors import ConfigurationError, HandlerResolutionError, NotFound
from leanapi.http.request import Request
from leanapi.http.response import Response
from leanapi.testing import TestClient, assert_problem


class UserController:
    def show(self, request: Request, id: int):
        return {"id": id, "type": type(id).__name__}


class BrokenController:
    def __init__(self) -> None:
        raise RuntimeError("no database")

    def show(self, request: Request):
        return {}


class VanishingController:
    def show(self, request: Request):
        return {}


class TestDispatch:
    async def test_function_handler(self, app: App) -> None:
        @app.get("/hello")
        def hello(request: Request):
            return {"hello": "world"}

        async with TestClient(app) as client:
            response = await client.get("/hello")
            assert response.status == 200
            assert response.json() == {"hello": "world"}

    async def test_dispatch_without_asgi(self, app: App) -> None:
        app.get("/ping", lambda: "pong")
        response = await app.dispatch(Request.create("GET", "/ping"))
        assert response.status == 200
        assert response.text == "pong"

    async def test_controller_handler_gets_converted_params(self, app: App) -> None:
        app.get("/users/{id:\\d+}", (UserController, "show"))
        async with TestClient(app) as client:
            response = await client.get("/users/42")
            assert response.json() == {"id": 42, "type": "int"}

    async def test_path_params_on_request(self, app: App) -> None:
        @app.get("/posts/{slug}")
        def show(request: Request):
            return {"slug": request.path_param("slug")}

        async with TestClient(app) as client:
            assert (await client.get("/posts/hello")).json() == {"slug": "hello"}

    async def test_static_route_registered_before_param_route(self, app: App) -> None:
        app.get("/users/me", lambda: {"who": "me"})
        app.get("/users/{id}", lambda request, id: {"who": id})

        async with TestClient(app) as client:
            assert (await client.get("/users/me")).json() == {"who": "me"}
            assert (await client.get("/users/17")).json() == {"who": "17"}

    async def test_not_found_problem(self, app: App) -> None:
        app.get("/users", lambda: [])
        async with TestClient(app) as client:
            response = await client.get("/x")
            body = assert_problem(response, 404, detail="Route /x not found")
            assert body == {
                "type": "/problems/not-found",
                "title": "Not Found",
                "status": 404,
                "detail": "Route /x not found",
                "instance": "/x",
            }

    async def test_method_not_allowed_problem(self, app: App) -> None:
        app.get("/users", lambda: [])
        app.post("/users", lambda: ({}, 201))
        async with TestClient(app) as client:
            response = await client.delete("/users")
            body = assert_problem(response, 405)
            assert body["allowed"] == ["GET", "HEAD", "POST"]
            assert body["instance"] == "/users"
            assert response.header("allow") == "GET, HEAD, POST"

    async def test_head_uses_get_without_body(self, app: App) -> None:
        app.get("/users", lambda: {"users": [1, 2, 3]})
        async with TestClient(app) as client:
            response = await client.head("/users")
            assert response.status == 200
            assert response.body == b""
            assert response.content_type == "application/json"

    async def test_preflight_without_options_route(self, app: App) -> None:
        app.post("/users", lambda: ({}, 201))
        async with TestClient(app) as client:
            response = await client.options(
                "/users",
                headers={"Origin": "https://a.test", "Access-Control-Request-Method": "POST"},
            )
            assert response.status == 204

    async def test_explicit_options_route_wins(self, app: App) -> None:
        app.options("/users", lambda: ("custom", 200))
        async with TestClient(app) as client:
            response = await client.options(
                "/users", headers={"Access-Control-Request-Method": "POST"}
            )
            assert response.text == "custom"

    async def test_http_error_at_boundary(self, app: App) -> None:
        @app.get("/missing")
        def missing():
            raise NotFound(detail="User 3 not found")

        async with TestClient(app) as client:
            response = await client.get("/missing")
            assert_problem(response, 404, detail="User 3 not found")

    async def test_unhandled_error_is_500_at_boundary(self, app: App) -> None:
        @app.get("/boom")
        def boom():
            raise RuntimeError("secret internals")

        async with TestClient(app) as client:
            response = await client.get("/boom")
            body = assert_problem(response, 500, detail="An unexpected error occurred")
            assert "secret internals" not in response.text
            assert body["instance"] == "/boom"

    async def test_dispatch_propagates_errors(self, app: App) -> None:
        @app.get("/boom")
        def boom():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await app.dispatch(Request.create("GET", "/boom"))

    async def test_controller_instantiation_failure(self, app: App) -> None:
        app.get("/broken", (BrokenController, "show"))
        with pytest.raises(HandlerResolutionError, match="Cannot instantiate controller"):
            await app.dispatch(Request.create("GET", "/broken"))

    async def test_controller_method_removed_after_registration(self, app: App, monkeypatch) -> None:
        app.get("/gone", (VanishingController, "show"))
        monkeypatch.delattr(VanishingController, "show")
        with pytest.raises(HandlerResolutionError, match="no callable method 'show'"):
            await app.dispatch(Request.create("GET", "/gone"))

    async def test_sets_current_request(self, app: App) -> None:
        from leanapi.context import get_request

        @app.get("/whoami")
        def whoami():
            return {"path": get_request().path}

        async with TestClient(app) as client:
            assert (await client.get("/whoami")).json() == {"path": "/whoami"}


class TestMiddlewareOrder:
    async def test_global_group_route_onion(self, app: App, events, recorder) -> None:
        app.add_middleware(recorder("global"))

        def handler():
            events.append("handler")
            return "ok"

        def api(app: App) -> None:
            app.get("/x", handler, middleware=[recorder("C")])

        app.group("/outer", lambda a: a.group("/inner", api, middleware=[recorder("B")]), middleware=[recorder("A")])

        async with TestClient(app) as client:
            response = await client.get("/outer/inner/x")
            assert response.status == 200

        assert events == [
            "global-before", "A-before", "B-before", "C-before",
            "handler",
            "C-after", "B-after", "A-after", "global-after",
        ]

    async def test_short_circuit(self, app: App, events, recorder) -> None:
        async def deny(request: Request, next) -> Response:
            events.append("deny")
            return Response.from_text("nope", status=403)

        def handler():
            events.append("handler")
            return "ok"

        app.get("/x", handler, middleware=[recorder("A"), deny, recorder("C")])
        async with TestClient(app) as client:
            assert (await client.get("/x")).status == 403
        assert events == ["A-before", "deny", "A-after"]

    async def test_not_found_runs_global_middleware_only(self, app: App, events, recorder) -> None:
        app.add_middleware(recorder("global"))
        app.get("/x", lambda: "ok", middleware=[recorder("route")])
        async with TestClient(app) as client:
            assert (await client.get("/y")).status == 404
        assert events == ["global-before", "global-after"]

    async def test_aliases(self, app: App, events, recorder) -> None:
        app.alias_middleware("audit", recorder("audit"))
        app.get("/x", lambda: "ok", middleware=["audit"])
        async with TestClient(app) as client:
            await client.get("/x")
        assert events == ["audit-before", "audit-after"]

    def test_unknown_alias_fails_at_freeze(self, app: App) -> None:
        app.get("/x", lambda: "ok", middleware=["nope"])
        with pytest.raises(ConfigurationError, match="nope"):
            app._ensure_frozen()

    def test_empty_alias_name_rejected(self, app: App) -> None:
        with pytest.raises(ConfigurationError):
            app.alias_middleware("", lambda r, n: n(r))


class TestFreeze:
    def test_registration_after_freeze_raises(self, app: App) -> None:
        app.get("/x", lambda: "ok")
        app._ensure_frozen()
        with pytest.raises(RuntimeError, match="Cannot modify"):
            app.get("/y", lambda: "ok")
        with pytest.raises(RuntimeError):
            app.add_middleware(lambda r, n: n(r))
        with pytest.raises(RuntimeError):
            app.alias_middleware("a", lambda r, n: n(r))

    def test_register_routes_runs_at_freeze(self, app: App) -> None:
        calls: list[str] = []

        @app.register_routes
        def define(app: App) -> None:
            calls.append("define")
            app.get("/deferred", lambda: "ok")

        assert calls == []
        assert len(app.router) == 1
        assert calls == ["define"]
        assert app.route_source == "registered"

    def test_concurrent_freeze_builds_once(self, app: App) -> None:
        calls: list[int] = []

        @app.register_routes
        def define(app: App) -> None:
            calls.append(1)
            app.get("/x", lambda: "ok")

        threads = [threading.Thread(target=app._ensure_frozen) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert calls == [1]

    def test_group_decorator(self, app: App) -> None:
        @app.group("/v1")
        def v1(app: App) -> None:
            app.get("/users", lambda: [])

        assert app.router.routes[0].path == "/v1/users"

    def test_route_with_methods(self, app: App) -> None:
        app.route("/items", lambda: [], methods=["GET", "POST"])
        assert [r.method for r in app.router.routes] == ["GET", "POST"]


class TestLifespan:
    async def test_hooks_run_through_test_client(self, app: App) -> None:
        calls: list[str] = []

        @app.on_startup
        async def start() -> None:
            calls.append("start")

        @app.on_shutdown
        def stop() -> None:
            calls.append("stop")

        async with TestClient(app):
            assert calls == ["start"]
        assert calls == ["start", "stop"]

    async def test_asgi_lifespan_protocol(self, app: App) -> None:
        app.get("/x", lambda: "ok")
        messages = [{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}]
        sent: list[dict] = []

        async def receive():
            return messages.pop(0)

        async def send(message):
            sent.append(message)

        await app({"type": "lifespan"}, receive, send)
        assert sent == [
            {"type": "lifespan.startup.complete"},
            {"type": "lifespan.shutdown.complete"},
        ]

    async def test_startup_failure_reported(self, app: App) -> None:
        app.get("/x", lambda: "ok", middleware=["unknown"])
        sent: list[dict] = []

        async def receive():
            return {"type": "lifespan.startup"}

        async def send(message):
            sent.append(message)

        await app({"type": "lifespan"}, receive, send)
        assert sent[0]["type"] == "lifespan.startup.failed"
        assert "unknown" in sent[0]["message"]
