"""Shared fixtures for leanapi tests."""

import logging

import pytest

from leanapi.app import App
from leanapi.config import AppConfig
from leanapi.http.request import Request
from leanapi.http.response import Response


class Recorder:
    """Middleware that records before/after events into a shared list."""

    def __init__(self, label: str, events: list[str]) -> None:
        self.label = label
        self.events = events

    async def __call__(self, request: Request, next) -> Response:
        self.events.append(f"{self.label}-before")
        response = await next(request)
        self.events.append(f"{self.label}-after")
        return response


@pytest.fixture
def events() -> list[str]:
    return []


@pytest.fixture
def recorder(events):
    def make(label: str) -> Recorder:
        return Recorder(label, events)

    return make


@pytest.fixture
def app(tmp_path) -> App:
    """An app whose route cache lives in a temp directory."""
    return App(AppConfig(route_cache_path=str(tmp_path / "routes.json")))


@pytest.fixture
def leanapi_logs(caplog):
    """caplog capturing everything under the ``leanapi`` logger."""
    caplog.set_level(logging.DEBUG, logger="leanapi")
    return caplog
