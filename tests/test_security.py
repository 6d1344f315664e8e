from datetime import timedelta

from components.core.security import create_access_token, get_password_hash, verify_password, verify_token
from components.user import utils
from tests.conftest import make_user


def test_password_hash_round_trip():
    hashed = get_password_hash("secret123")

    assert ":" in hashed
    assert verify_password("secret123", hashed)
    assert not verify_password("wrong", hashed)


def test_verify_password_rejects_malformed_hash():
    assert verify_password("secret123", "no-salt-here") is False


def test_token_carries_subject():
    payload = verify_token(create_access_token({"sub": "7"}))

    assert payload["sub"] == "7"


def test_expired_token_is_rejected():
    token = create_access_token({"sub": "7"}, expires_delta=timedelta(minutes=-1))

    assert verify_token(token) is None


def test_owner_holds_every_permission():
    owner = make_user(role="Owner")

    assert all(utils.has_permission(owner, name) for name in utils.PERMISSION_NAMES)


def test_worker_permissions_are_explicit():
    worker = make_user(role="Worker", permissions={utils.MANAGE_DEBTS: True, utils.EDIT_SALES: False})

    assert utils.has_permission(worker, utils.MANAGE_DEBTS)
    assert not utils.has_permission(worker, utils.EDIT_SALES)
    assert not utils.has_permission(worker, utils.RECORD_PAYMENTS)


def test_inactive_user():
    assert not utils.is_active(make_user(status="Inactive"))
    assert utils.is_active(make_user())
