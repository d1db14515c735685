# tests/conftest.py
from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from tests.factories import FakeChain, build_chain
from threadline.api.dependencies import get_poll_settings
from threadline.html import PollSettings
from threadline.main import app as fastapi_app
from threadline.services.thread_service import ThreadAssembler, get_thread_assembler


@pytest.fixture()
def chain() -> FakeChain:
    """A five-post self-reply chain ``p0..p4`` by Alice."""
    source, _ = build_chain(5)
    return source


@pytest.fixture()
def assembler(chain: FakeChain) -> ThreadAssembler:
    return ThreadAssembler(chain, max_root_hops=50)


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_dependencies(app: FastAPI, assembler: ThreadAssembler) -> Iterator[None]:
    app.dependency_overrides[get_thread_assembler] = lambda: assembler
    app.dependency_overrides[get_poll_settings] = lambda: PollSettings(
        initial_interval=30.0, max_interval=120.0, disable_after=1800.0
    )
    try:
        yield
    finally:
        app.dependency_overrides.pop(get_thread_assembler, None)
        app.dependency_overrides.pop(get_poll_settings, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client
