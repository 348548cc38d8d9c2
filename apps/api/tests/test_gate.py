from __future__ import annotations

import pytest

from babylog.errors import Unauthenticated
from babylog.gate import AccessGate
from babylog.session import SessionCodec

from .helpers import SECRET, FakeClock


def make_gate(clock: FakeClock) -> AccessGate:
    return AccessGate(SessionCodec(SECRET, ttl_seconds=60, clock=clock), cookie_name="babylog_session")


@pytest.mark.parametrize("token", [None, ""])
def test_missing_token_is_unauthenticated(token) -> None:
    with pytest.raises(Unauthenticated):
        make_gate(FakeClock()).authenticate(token)


def test_valid_token_resolves_identity() -> None:
    clock = FakeClock()
    gate = make_gate(clock)
    assert gate.authenticate(gate.codec.issue("b@x")) == "b@x"


def test_invalid_and_missing_look_the_same() -> None:
    clock = FakeClock()
    gate = make_gate(clock)
    token = gate.codec.issue("a@x")
    clock.advance(seconds=60)

    with pytest.raises(Unauthenticated) as expired:
        gate.authenticate(token)
    with pytest.raises(Unauthenticated) as missing:
        gate.authenticate(None)
    assert expired.value.detail == missing.value.detail == "Not authenticated"
    assert expired.value.__cause__ is None
