from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from babylog.boundary import Boundary
from babylog.config import AppConfig
from babylog.main import create_app
from babylog.repositories import Repositories, build_repositories
from babylog.session import SessionCodec

from .helpers import FakeClock, make_config


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(params=["memory", "sqlite"])
def config(request: pytest.FixtureRequest, tmp_path: Path) -> AppConfig:
    return make_config(backend=request.param, database_path=str(tmp_path / "babylog.db"))


@pytest.fixture
def repos(config: AppConfig, clock: FakeClock) -> Repositories:
    return build_repositories(config, clock=clock)


@pytest.fixture
def codec(config: AppConfig, clock: FakeClock) -> SessionCodec:
    return SessionCodec(config.session_secret, ttl_seconds=config.session_ttl_seconds, clock=clock)


@pytest.fixture
def boundary(repos: Repositories, codec: SessionCodec) -> Boundary:
    return Boundary(repos, codec)


@pytest.fixture
def client(config: AppConfig, clock: FakeClock, repos: Repositories) -> TestClient:
    return TestClient(create_app(config, clock=clock, repositories=repos))
