"""Tests for handler resolution and argument binding."""

import pytest

from leanapi.errors import HandlerResolutionError
from leanapi.http.request import Request
from leanapi.routing.route import ControllerHandler, FunctionHandler
from leanapi.server.invoker import build_handler_args, invoke_handler, resolve_handler


class Controller:
    created = 0

    def __init__(self) -> None:
        Controller.created += 1

    def show(self, request: Request, id: int):
        return {"id": id}

    label = "not callable"


class NeedsArgs:
    def __init__(self, db) -> None:
        self.db = db

    def show(self):
        return {}


class TestResolveHandler:
    def test_function(self) -> None:
        def handler():
            return None

        assert resolve_handler(FunctionHandler(handler)) is handler

    def test_controller_instantiated_each_time(self) -> None:
        ref = ControllerHandler(Controller, "show")
        before = Controller.created
        first = resolve_handler(ref)
        second = resolve_handler(ref)
        assert Controller.created == before + 2
        assert first.__self__ is not second.__self__

    def test_controller_constructor_fails(self) -> None:
        with pytest.raises(HandlerResolutionError, match="Cannot instantiate controller NeedsArgs"):
            resolve_handler(ControllerHandler(NeedsArgs, "show"))

    def test_non_callable_attribute(self) -> None:
        with pytest.raises(HandlerResolutionError, match="no callable method 'label'"):
            resolve_handler(ControllerHandler(Controller, "label"))


class TestBuildHandlerArgs:
    def test_request_by_name_and_annotation(self) -> None:
        request = Request.create("GET", "/")

        def by_name(request):
            pass

        def by_annotation(req: Request):
            pass

        assert build_handler_args(by_name, request, {}) == ([], {"request": request})
        assert build_handler_args(by_annotation, request, {}) == ([], {"req": request})

    def test_first_positional_gets_request(self) -> None:
        request = Request.create("GET", "/")

        def handler(r, id):
            pass

        assert build_handler_args(handler, request, {"id": "5"}) == ([], {"r": request, "id": "5"})

    def test_path_param_conversion(self) -> None:
        request = Request.create("GET", "/")

        def handler(id: int, slug: str, ratio: float):
            pass

        _, kwargs = build_handler_args(handler, request, {"id": "5", "slug": "a", "ratio": "0.5"})
        assert kwargs == {"id": 5, "slug": "a", "ratio": 0.5}

    def test_failed_conversion_keeps_string(self) -> None:
        def handler(id: int):
            pass

        _, kwargs = build_handler_args(handler, Request.create("GET", "/"), {"id": "abc"})
        assert kwargs == {"id": "abc"}

    def test_no_parameters(self) -> None:
        def handler():
            pass

        assert build_handler_args(handler, Request.create("GET", "/"), {"id": "1"}) == ([], {})

    def test_defaults_left_alone(self) -> None:
        def handler(limit=10, **extra):
            pass

        assert build_handler_args(handler, Request.create("GET", "/"), {}) == ([], {})

    def test_positional_only(self) -> None:
        request = Request.create("GET", "/")

        def handler(request, id: int, /):
            pass

        assert build_handler_args(handler, request, {"id": "3"}) == ([request, 3], {})


class TestInvokeHandler:
    async def test_sync_and_async(self) -> None:
        request = Request.create("GET", "/users/4").with_path_params({"id": "4"})

        async def async_handler(id: int):
            return {"async": id}

        sync = await invoke_handler(ControllerHandler(Controller, "show"), request)
        asynchronous = await invoke_handler(FunctionHandler(async_handler), request)
        assert sync.json() == {"id": 4}
        assert asynchronous.json() == {"async": 4}
