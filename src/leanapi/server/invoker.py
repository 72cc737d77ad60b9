"""Handler invocation: turn a matched route into a Response.

A ``HandlerRef`` is resolved to a callable (controllers are instantiated
with no arguments, per request), arguments are bound from the request and
its path parameters, and the return value goes through ``negotiate``.
"""

import inspect
from collections.abc import Callable, Mapping
from typing import Any

from leanapi._internal.invoke import invoke
from leanapi.errors import HandlerResolutionError
from leanapi.http.request import Request
from leanapi.http.response import Response
from leanapi.routing.route import ControllerHandler, FunctionHandler, HandlerRef
from leanapi.server.negotiation import negotiate

_POSITIONAL = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)


def resolve_handler(ref: HandlerRef) -> Callable[..., Any]:
    """Return the callable a handler reference points to.

    Raises ``HandlerResolutionError`` when a controller can't be
    instantiated or lacks a callable method of the stored name.
    """
    if isinstance(ref, FunctionHandler):
        return ref.func
    if isinstance(ref, ControllerHandler):
        try:
            instance = ref.controller()
        except Exception as exc:
            msg = f"Cannot instantiate controller {ref.controller.__qualname__}: {exc}"
            raise HandlerResolutionError(msg) from exc
        method = getattr(instance, ref.method, None)
        if not callable(method):
            msg = f"Controller {ref.controller.__qualname__} has no callable method {ref.method!r}"
            raise HandlerResolutionError(msg)
        return method
    msg = f"Unknown handler reference {ref!r}"
    raise HandlerResolutionError(msg)


def _signature(handler: Callable[..., Any]) -> inspect.Signature:
    try:
        return inspect.signature(handler, eval_str=True)
    except NameError:
        return inspect.signature(handler)


def _is_request_param(name: str, param: inspect.Parameter) -> bool:
    annotation = param.annotation
    return name == "request" or annotation is Request or annotation == "Request"


def build_handler_args(
    handler: Callable[..., Any],
    request: Request,
    path_params: Mapping[str, str],
) -> tuple[list[Any], dict[str, Any]]:
    """Bind handler arguments from the request.

    Resolution order per parameter:

    1. ``request`` (by name or ``Request`` annotation)
    2. Path parameters by name, converted with the annotation when it is
       a plain type (``id: int``); conversion failures keep the string
    3. The first remaining required positional parameter gets the request,
       so ``def handler(req)`` works without annotations
    """
    args: list[Any] = []
    kwargs: dict[str, Any] = {}
    request_bound = False

    for name, param in _signature(handler).parameters.items():
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        if _is_request_param(name, param):
            value: Any = request
            request_bound = True
        elif name in path_params:
            value = path_params[name]
            annotation = param.annotation
            if isinstance(annotation, type) and annotation not in (str, inspect.Parameter.empty):
                try:
                    value = annotation(value)
                except (ValueError, TypeError):
                    value = path_params[name]
        elif (
            not request_bound
            and param.kind in _POSITIONAL
            and param.default is inspect.Parameter.empty
        ):
            value = request
            request_bound = True
        else:
            continue

        if param.kind is inspect.Parameter.POSITIONAL_ONLY:
            args.append(value)
        else:
            kwargs[name] = value
    return args, kwargs


async def invoke_handler(ref: HandlerRef, request: Request) -> Response:
    """Resolve, call, and negotiate a handler for *request*."""
    handler = resolve_handler(ref)
    args, kwargs = build_handler_args(handler, request, request.path_params)
    result = await invoke(handler, *args, **kwargs)
    return negotiate(result)
