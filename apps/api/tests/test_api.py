from __future__ import annotations

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

import babylog.main as main_module
from babylog.config import AppConfig
from babylog.main import create_app
from babylog.repositories import Repositories

from .helpers import PASSWORD, START, FakeClock, sign_in, type_id_named


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_importing_main_builds_no_app() -> None:
    assert not hasattr(main_module, "app")


def test_sign_in_sets_session_cookie(client: TestClient, config: AppConfig) -> None:
    response = sign_in(client)
    assert response.status_code == 200
    assert response.json()["email"] == "a@x"
    assert "passwordHash" not in response.json()

    set_cookie = response.headers["set-cookie"]
    assert set_cookie.startswith(f"{config.cookie_name}=")
    assert "HttpOnly" in set_cookie
    assert "Max-Age=2592000" in set_cookie
    assert "samesite=lax" in set_cookie.lower()

    me = client.get("/api/v1/me")
    assert me.status_code == 200
    body = me.json()
    assert body["user"]["email"] == "a@x"
    assert body["baby"]["id"] == "laura"
    assert body["baby"]["parentIds"] == ["a@x", "b@x"]


def test_secure_flag_follows_config(config: AppConfig, clock: FakeClock, repos: Repositories) -> None:
    secure_app = create_app(config.model_copy(update={"cookie_secure": True}), clock=clock, repositories=repos)
    response = sign_in(TestClient(secure_app))
    assert "Secure" in response.headers["set-cookie"]


def test_bad_credentials_are_uniform(client: TestClient) -> None:
    wrong_password = sign_in(client, password="nope")
    unknown_user = sign_in(client, email="nobody@x")
    assert wrong_password.status_code == 401
    assert unknown_user.status_code == 401
    assert wrong_password.json() == unknown_user.json()
    assert "set-cookie" not in wrong_password.headers


def test_expired_session_matches_missing_session(client: TestClient, clock: FakeClock, config: AppConfig) -> None:
    anonymous = client.get("/api/v1/babies/laura/events")

    sign_in(client)
    assert client.get("/api/v1/babies/laura/events").status_code == 200
    clock.advance(days=config.session_ttl_days)
    expired = client.get("/api/v1/babies/laura/events")

    assert anonymous.status_code == 401
    assert expired.status_code == 401
    assert expired.json() == anonymous.json() == {"detail": "Not authenticated"}


def test_forged_cookie_is_rejected(client: TestClient, config: AppConfig) -> None:
    sign_in(client)
    token = client.cookies.get(config.cookie_name)
    header, payload, signature = token.split(".")
    flipped = ("B" if signature[0] == "A" else "A") + signature[1:]
    client.cookies.clear()
    client.cookies.set(config.cookie_name, f"{header}.{payload}.{flipped}")
    response = client.get("/api/v1/me")
    assert response.status_code == 401
    assert response.json() == {"detail": "Not authenticated"}


def test_sign_out_clears_session(client: TestClient) -> None:
    sign_in(client)
    response = client.post("/api/v1/auth/sign-out")
    assert response.status_code == 204
    assert "babylog_session=" in response.headers["set-cookie"]
    assert client.get("/api/v1/me").status_code == 401

    # Signing out without a session is still fine.
    assert client.post("/api/v1/auth/sign-out").status_code == 204


def test_event_lifecycle(client: TestClient, repos: Repositories, clock: FakeClock) -> None:
    sign_in(client)
    feed = type_id_named(repos, "Feed")

    created = client.post("/api/v1/babies/laura/events", json={"typeId": feed, "note": "first"})
    assert created.status_code == 201
    event = created.json()
    assert event["id"]
    assert event["createdBy"] == "a@x"
    assert event["note"] == "first"
    assert datetime.fromisoformat(event["happenedAt"]) == START

    clock.advance(minutes=2)
    patched = client.patch(f"/api/v1/events/{event['id']}", json={"note": "updated"})
    assert patched.status_code == 200
    assert patched.json()["note"] == "updated"
    assert patched.json()["happenedAt"] == event["happenedAt"]
    assert patched.json()["updatedAt"] != event["updatedAt"]

    fetched = client.get(f"/api/v1/events/{event['id']}")
    assert fetched.json() == patched.json()

    assert client.delete(f"/api/v1/events/{event['id']}").status_code == 204
    missing = client.get(f"/api/v1/events/{event['id']}")
    assert missing.status_code == 404


def test_create_rejects_client_timestamps(client: TestClient, repos: Repositories) -> None:
    sign_in(client)
    response = client.post(
        "/api/v1/babies/laura/events",
        json={"typeId": type_id_named(repos, "Feed"), "happenedAt": "2020-01-01T00:00:00Z"},
    )
    assert response.status_code == 422
    assert repos.events.list("laura").items == []


def test_patch_with_audit_fields_is_rejected(client: TestClient, repos: Repositories) -> None:
    sign_in(client)
    event = client.post("/api/v1/babies/laura/events", json={"typeId": type_id_named(repos, "Feed")}).json()

    for body in [{"createdBy": "b@x"}, {"happenedAt": "2020-01-01T00:00:00Z"}, {"note": "x", "createdAt": "2020"}]:
        response = client.patch(f"/api/v1/events/{event['id']}", json=body)
        assert response.status_code == 422

    assert client.patch(f"/api/v1/events/{event['id']}", json={}).status_code == 422
    assert client.get(f"/api/v1/events/{event['id']}").json() == event


def test_unknown_type_is_rejected(client: TestClient) -> None:
    sign_in(client)
    response = client.post("/api/v1/babies/laura/events", json={"typeId": "nope"})
    assert response.status_code == 422


def test_pagination_over_http(client: TestClient, repos: Repositories, clock: FakeClock) -> None:
    sign_in(client)
    feed = type_id_named(repos, "Feed")
    created = []
    for _ in range(5):
        created.append(client.post("/api/v1/babies/laura/events", json={"typeId": feed}).json()["id"])
        clock.advance(seconds=30)

    seen = []
    params = {"limit": 2}
    while True:
        page = client.get("/api/v1/babies/laura/events", params=params)
        assert page.status_code == 200
        body = page.json()
        seen.extend(item["id"] for item in body["items"])
        if "nextCursor" not in body:
            break
        params = {"limit": 2, "cursor": body["nextCursor"]}

    assert seen == list(reversed(created))
    assert client.get("/api/v1/babies/laura/events", params={"cursor": "%%%"}).status_code == 422
    assert client.get("/api/v1/babies/laura/events", params={"limit": 0}).status_code == 422


def test_outsider_is_forbidden(client: TestClient, repos: Repositories) -> None:
    repos.auth.create("c@x", "outsider-password")
    sign_in(client, email="c@x", password="outsider-password")

    assert client.get("/api/v1/me").json()["user"]["email"] == "c@x"
    assert client.get("/api/v1/babies/laura/events").status_code == 403
    assert client.get("/api/v1/babies/laura/event-types").status_code == 403
    assert (
        client.post("/api/v1/babies/laura/events", json={"typeId": type_id_named(repos, "Feed")}).status_code
        == 403
    )


def test_event_type_endpoints(client: TestClient) -> None:
    sign_in(client, email="b@x")
    listed = client.get("/api/v1/babies/laura/event-types")
    assert listed.status_code == 200
    assert [item["name"] for item in listed.json()][:2] == ["Feed", "Diaper"]

    created = client.post("/api/v1/babies/laura/event-types", json={"name": "Pump"})
    assert created.status_code == 201
    type_id = created.json()["id"]
    assert created.json()["createdBy"] == "b@x"

    patched = client.patch(f"/api/v1/event-types/{type_id}", json={"active": False})
    assert patched.status_code == 200
    assert patched.json()["active"] is False
    assert client.patch(f"/api/v1/event-types/{type_id}", json={"createdBy": "a@x"}).status_code == 422

    assert client.delete(f"/api/v1/event-types/{type_id}").status_code == 204
    assert client.delete(f"/api/v1/event-types/{type_id}").status_code == 404


@pytest.mark.parametrize("order", ["NaN", "Infinity", "-Infinity"])
def test_event_type_order_must_be_finite(client: TestClient, order: str) -> None:
    sign_in(client, email="b@x")
    before = client.get("/api/v1/babies/laura/event-types").json()
    type_id = before[0]["id"]

    assert client.post(
        "/api/v1/babies/laura/event-types", json={"name": "Pump", "order": order}
    ).status_code == 422
    assert client.patch(f"/api/v1/event-types/{type_id}", json={"order": order}).status_code == 422
    # Bare NaN and Infinity tokens are accepted by the JSON decoder.
    bare = order.encode("ascii")
    assert client.post(
        "/api/v1/babies/laura/event-types",
        content=b'{"name": "Pump", "order": ' + bare + b"}",
        headers={"content-type": "application/json"},
    ).status_code == 422
    assert client.patch(
        f"/api/v1/event-types/{type_id}",
        content=b'{"order": ' + bare + b"}",
        headers={"content-type": "application/json"},
    ).status_code == 422

    assert client.get("/api/v1/babies/laura/event-types").json() == before


def test_change_password_endpoint(client: TestClient) -> None:
    assert client.post(
        "/api/v1/auth/password",
        json={"currentPassword": PASSWORD, "newPassword": "a-much-better-one"},
    ).status_code == 401

    sign_in(client)
    response = client.post(
        "/api/v1/auth/password",
        json={"currentPassword": PASSWORD, "newPassword": "a-much-better-one"},
    )
    assert response.status_code == 204
    assert sign_in(client).status_code == 401
    assert sign_in(client, password="a-much-better-one").status_code == 200
