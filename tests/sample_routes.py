"""Importable handlers, controllers, and middleware for route cache tests."""

from leanapi.http.request import Request
from leanapi.http.response import Response


def list_users(request: Request):
    return {"users": []}


def show_user(request: Request, id: int):
    return {"id": id}


class UserController:
    instances = 0

    def __init__(self) -> None:
        UserController.instances += 1

    def show(self, request: Request, id: int):
        return {"controller": True, "id": id}

    async def create(self, request: Request):
        return await request.json(), 201


class TagMiddleware:
    """Appends ``X-Tag: tag`` to every response."""

    async def __call__(self, request: Request, next) -> Response:
        response = await next(request)
        return response.with_header("X-Tag", "tag")


async def stamp(request: Request, next) -> Response:
    response = await next(request)
    return response.with_header("X-Stamp", "1")


def define_routes(app) -> None:
    app.get("/users", list_users, middleware=[TagMiddleware])

    def v1(app) -> None:
        app.get("/users/{id:\\d+}", show_user, middleware=["auth", stamp], name="users.show")
        app.post("/users", (UserController, "create"))

    app.group("/v1", v1)
