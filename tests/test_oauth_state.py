# tests/test_oauth_state.py
import base64
import json
import uuid

import pytest

from crosspost.UAA.oauth_state import STATE_MAX_AGE_SECONDS, create_oauth_state, verify_oauth_state

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"
URL_SAFE = set(ALPHABET) | {"."}


def _mutate(state: str, index: int) -> str:
    current = state[index]
    replacement = next(c for c in ALPHABET if c != current)
    return state[:index] + replacement + state[index + 1:]


@pytest.mark.parametrize("user_id", [str(uuid.uuid4()), "42", "user with spaces/and+symbols"])
def test_round_trip_returns_user(user_id):
    check = verify_oauth_state(create_oauth_state(user_id))
    assert check.valid is True
    assert check.user_id == user_id


def test_state_is_url_safe():
    state = create_oauth_state(str(uuid.uuid4()))
    assert set(state) <= URL_SAFE
    assert "=" not in state


def test_any_single_character_change_is_rejected():
    state = create_oauth_state(str(uuid.uuid4()))
    for index in range(len(state)):
        assert verify_oauth_state(_mutate(state, index)).valid is False, index


def test_last_character_spare_bits_are_rejected():
    state = create_oauth_state("u1")
    last = state[-1]
    # flip only the low bits the decoder would otherwise ignore
    position = ALPHABET.index(last)
    for other in ALPHABET[position & ~0b11:(position & ~0b11) + 4]:
        if other != last:
            assert verify_oauth_state(state[:-1] + other).valid is False


def test_expired_state_is_rejected():
    now = 1_700_000_000
    state = create_oauth_state("u1", now=now - STATE_MAX_AGE_SECONDS - 1)
    assert verify_oauth_state(state, now=now).valid is False


def test_state_just_inside_window_is_accepted():
    now = 1_700_000_000
    state = create_oauth_state("u1", now=now - STATE_MAX_AGE_SECONDS + 1)
    assert verify_oauth_state(state, now=now).valid is True


def test_stale_state_is_rejected_against_the_wall_clock():
    state = create_oauth_state("u1", now=1_700_000_000)
    assert verify_oauth_state(state).valid is False


def test_state_signed_with_another_secret_is_rejected():
    state = create_oauth_state("u1", secret="someone-else")
    assert verify_oauth_state(state).valid is False


def test_unsigned_payload_is_rejected():
    # the shape older, unsigned states had
    forged = base64.urlsafe_b64encode(json.dumps({"userId": "u1", "timestamp": 0}).encode()).decode().rstrip("=")
    assert verify_oauth_state(forged).valid is False


def test_alg_none_is_rejected():
    header = base64.urlsafe_b64encode(b'{"alg":"none","typ":"JWT"}').decode().rstrip("=")
    body = base64.urlsafe_b64encode(b'{"sub":"u1","iat":0,"exp":9999999999}').decode().rstrip("=")
    assert verify_oauth_state(f"{header}.{body}.").valid is False


@pytest.mark.parametrize("garbage", [None, "", "!!!", "bm90IGpzb24", "e30", "a.b.c"])
def test_garbage_never_raises(garbage):
    assert verify_oauth_state(garbage).valid is False
