from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from babylog.config import AppConfig
from babylog.repositories import Repositories

SECRET = "test-secret-key-for-testing-only"
PASSWORD = "hunter2hunter2"
START = datetime(2025, 3, 1, 8, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def make_config(**overrides) -> AppConfig:
    values = {
        "session_secret": SECRET,
        "cookie_secure": False,
        "allowed_emails": ["a@x", "b@x"],
        "default_password": PASSWORD,
        "password_hash_rounds": 4,
        "baby_id": "laura",
        "baby_name": "Laura",
    }
    values.update(overrides)
    return AppConfig(**values)


def sign_in(client: TestClient, email: str = "a@x", password: str = PASSWORD):
    return client.post("/api/v1/auth/sign-in", json={"email": email, "password": password})


def type_id_named(repos: Repositories, name: str, baby_id: str = "laura") -> str:
    for event_type in repos.event_types.list(baby_id):
        if event_type.name == name:
            return event_type.id
    raise AssertionError(f"no event type named {name}")
