"""Tests for action dispatch: validate, disable, unrecognized types, and secure packets."""

import pytest
from cryptography.fernet import Fernet
from pydantic import ValidationError

from apps.quickstart.actions import ActionDispatcher, ActionType, is_secure_packet
from apps.quickstart.exceptions import MalformedActionError
from apps.quickstart.focals import DecryptionError, FernetEncryptionService

from .conftest import ABILITY_KEY, ABILITY_KEY_ID


@pytest.fixture
def encryption():
    return FernetEncryptionService(ABILITY_KEY, ABILITY_KEY_ID)


@pytest.fixture
def dispatcher(store, encryption):
    return ActionDispatcher(store, encryption)


def _secure_body(encryption, body):
    """Encrypt *body* the way the platform addresses it to this ability."""
    paths = ["/" + key for key in body]
    return encryption.encrypt_packet(body, paths, [{"keyId": ABILITY_KEY_ID, "key": ABILITY_KEY}])


# ---------------------------------------------------------------------------
# ActionType
# ---------------------------------------------------------------------------


def test_action_type_parse():
    assert ActionType.parse("integration:validate") is ActionType.VALIDATE
    assert ActionType.parse("integration:disable") is ActionType.DISABLE
    assert ActionType.parse("integration:explode") is None


# ---------------------------------------------------------------------------
# integration:validate
# ---------------------------------------------------------------------------


def test_validate_enables_user(dispatcher, store):
    store.mark_pending("state-1")
    result = dispatcher.dispatch({
        "type": "integration:validate",
        "body": {"state": "state-1", "userId": "user1"},
    })
    assert result.status_code == 200
    assert store.list_enabled() == ["user1"]
    assert store.is_pending("state-1") is False


def test_validate_stale_state_is_bad_request(dispatcher, store, clock):
    store.mark_pending("state-1")
    clock.advance(400)
    result = dispatcher.dispatch({
        "type": "integration:validate",
        "body": {"state": "state-1", "userId": "user1"},
    })
    assert result.status_code == 400
    assert store.list_enabled() == []
    assert store.is_pending("state-1") is True


def test_validate_unknown_state_is_bad_request(dispatcher, store):
    result = dispatcher.dispatch({
        "type": "integration:validate",
        "body": {"state": "nope", "userId": "user1"},
    })
    assert result.status_code == 400
    assert store.list_enabled() == []


@pytest.mark.parametrize(
    "body",
    [
        {"userId": "user1"},
        {"state": "", "userId": "user1"},
        {"state": 7, "userId": "user1"},
        None,
    ],
)
def test_validate_without_state_is_bad_request(dispatcher, store, body):
    store.mark_pending("state-1")
    result = dispatcher.dispatch({"type": "integration:validate", "body": body})
    assert result.status_code == 400
    assert store.list_enabled() == []
    assert store.is_pending("state-1") is True


def test_validate_missing_user_id_raises(dispatcher, store):
    store.mark_pending("state-1")
    with pytest.raises(MalformedActionError):
        dispatcher.dispatch({"type": "integration:validate", "body": {"state": "state-1"}})
    assert store.is_pending("state-1") is True


# ---------------------------------------------------------------------------
# integration:disable
# ---------------------------------------------------------------------------


def test_validate_then_disable_round_trip(dispatcher, store):
    store.mark_pending("s")
    dispatcher.dispatch({"type": "integration:validate", "body": {"state": "s", "userId": "u"}})
    assert store.is_enabled("u") is True
    result = dispatcher.dispatch({"type": "integration:disable", "body": {"userId": "u"}})
    assert result.ok
    assert store.is_enabled("u") is False


def test_disable_unknown_user_succeeds(dispatcher):
    result = dispatcher.dispatch({"type": "integration:disable", "body": {"userId": "ghost"}})
    assert result.status_code == 200


# ---------------------------------------------------------------------------
# Unrecognized / malformed
# ---------------------------------------------------------------------------


def test_unrecognized_type_is_bad_request(dispatcher, store):
    store.mark_pending("s")
    result = dispatcher.dispatch({"type": "unknown_type"})
    assert result.status_code == 400
    assert "unknown_type" in result.detail
    assert store.list_enabled() == []
    assert store.is_pending("s") is True


@pytest.mark.parametrize(
    "payload",
    [
        {"body": {"userId": "u"}},
        {"type": None, "body": {"userId": "u"}},
        {"type": 5},
        {"type": ["integration:disable"], "body": {"userId": "u"}},
    ],
)
def test_missing_or_non_string_type_is_bad_request(dispatcher, store, payload):
    store.mark_pending("s")
    store.promote("s", "u")
    result = dispatcher.dispatch(payload)
    assert result.status_code == 400
    assert store.list_enabled() == ["u"]


def test_non_object_body_fails_validation(dispatcher):
    with pytest.raises(ValidationError):
        dispatcher.dispatch({"type": "integration:disable", "body": "userId=u"})


# ---------------------------------------------------------------------------
# Secure packets
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "body,expected",
    [
        (None, False),
        ({}, False),
        ({"version": "1.9.9"}, False),
        ({"version": "2.0.0"}, True),
        ({"version": "2.1.0-beta.1"}, True),
        ({"version": "v2.0.0"}, True),
        ({"version": "=2.0.0"}, True),
        ({"version": " v3.1.4 "}, True),
        ({"version": "v1.9.9"}, False),
        ({"version": "not-a-version"}, False),
        ({"version": 2}, False),
    ],
)
def test_is_secure_packet(body, expected):
    assert is_secure_packet(body) is expected


def test_secure_validate_is_decrypted_before_dispatch(dispatcher, store, encryption):
    store.mark_pending("secure-state")
    body = _secure_body(encryption, {"state": "secure-state", "userId": "secure-user"})
    assert body["version"] == "2.0.0"

    result = dispatcher.dispatch({"type": "integration:validate", "body": body})

    assert result.status_code == 200
    assert store.list_enabled() == ["secure-user"]


def test_secure_packet_with_foreign_key_raises(dispatcher, store):
    foreign = FernetEncryptionService(Fernet.generate_key().decode(), "other")
    body = foreign.encrypt_packet(
        {"userId": "u"}, ["/userId"], [{"keyId": ABILITY_KEY_ID, "key": Fernet.generate_key().decode()}]
    )
    with pytest.raises(DecryptionError):
        dispatcher.dispatch({"type": "integration:disable", "body": body})


def test_secure_packet_with_loose_version_is_decrypted(dispatcher, store, encryption):
    store.mark_pending("loose-state")
    body = _secure_body(encryption, {"state": "loose-state", "userId": "loose-user"})
    body["version"] = "v2.0.0"

    result = dispatcher.dispatch({"type": "integration:validate", "body": body})

    assert result.status_code == 200
    assert store.list_enabled() == ["loose-user"]
