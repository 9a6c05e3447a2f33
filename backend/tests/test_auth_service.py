import uuid
from datetime import datetime, timedelta, timezone

import pytest

from payment_ledger.core.exceptions import (
    DuplicateEmailError,
    InvalidCredentialsError,
    RefreshTokenInvalidError,
    WeakPasswordError,
)
from payment_ledger.models.security import RefreshToken
from payment_ledger.models.user import User
from payment_ledger.services.auth_service import Authenticator
from payment_ledger.services.credential_store import credential_store

from conftest import STRONG_PASSWORD


class _UnreachableStore:
    """Fails loudly if anything tries to use the store"""

    def __getattr__(self, name):
        raise AssertionError(f"store accessed: {name}")


def test_register_then_login_yields_usable_access_token(db, authenticator):
    registered = authenticator.register(db, "alice@example.com", STRONG_PASSWORD, "Alice")
    assert authenticator.verify(registered.access_token) == registered.user_id

    logged_in = authenticator.login(db, "alice@example.com", STRONG_PASSWORD)
    assert logged_in.user_id == registered.user_id
    assert authenticator.verify(logged_in.access_token) == registered.user_id
    assert logged_in.refresh_token != registered.refresh_token


def test_register_persists_hashed_password_and_one_hour_refresh_token(db, authenticator):
    before = datetime.now(timezone.utc)
    result = authenticator.register(db, "bob@example.com", STRONG_PASSWORD)

    user = db.get(User, result.user_id)
    assert user.full_name is None
    assert user.password_hash != STRONG_PASSWORD
    assert user.balance == 0

    record = db.query(RefreshToken).filter(RefreshToken.token == result.refresh_token).one()
    assert record.user_id == result.user_id
    expires_at = record.expires_at.replace(tzinfo=timezone.utc) if record.expires_at.tzinfo is None else record.expires_at
    assert before + timedelta(minutes=59) < expires_at <= before + timedelta(hours=1, seconds=5)


def test_duplicate_registration_is_rejected(db, authenticator):
    authenticator.register(db, "carol@example.com", STRONG_PASSWORD)
    with pytest.raises(DuplicateEmailError):
        authenticator.register(db, "carol@example.com", STRONG_PASSWORD)
    assert db.query(User).count() == 1


def test_email_lookup_is_case_sensitive(db, authenticator):
    authenticator.register(db, "Dave@example.com", STRONG_PASSWORD)
    with pytest.raises(InvalidCredentialsError):
        authenticator.login(db, "dave@example.com", STRONG_PASSWORD)


@pytest.mark.parametrize("password", ["Sh0rt!", "lower1234!", "UPPER1234!", "NoDigitsHere!", "NoSpecial123"])
def test_weak_password_creates_no_user(db, authenticator, password):
    with pytest.raises(WeakPasswordError):
        authenticator.register(db, "erin@example.com", password)
    assert db.query(User).count() == 0
    assert db.query(RefreshToken).count() == 0


def test_wrong_password_and_unknown_email_fail_identically(db, authenticator):
    authenticator.register(db, "frank@example.com", STRONG_PASSWORD)

    with pytest.raises(InvalidCredentialsError) as wrong_password:
        authenticator.login(db, "frank@example.com", "Wr0ng$password")
    with pytest.raises(InvalidCredentialsError) as unknown_email:
        authenticator.login(db, "nobody@example.com", STRONG_PASSWORD)

    assert type(wrong_password.value) is type(unknown_email.value)
    assert wrong_password.value.message == unknown_email.value.message == "Invalid credentials"
    assert wrong_password.value.status_code == unknown_email.value.status_code == 401
    assert wrong_password.value.details == unknown_email.value.details
    # Internal diagnostics still tell the two apart.
    assert wrong_password.value.reason != unknown_email.value.reason


def test_refresh_yields_new_pair_for_same_user(db, authenticator):
    registered = authenticator.register(db, "gina@example.com", STRONG_PASSWORD)

    refreshed = authenticator.refresh(db, registered.refresh_token)

    assert refreshed.user_id == registered.user_id
    assert authenticator.verify(refreshed.access_token) == registered.user_id
    assert refreshed.refresh_token != registered.refresh_token
    assert db.query(RefreshToken).filter(RefreshToken.user_id == registered.user_id).count() == 2


def test_refreshed_token_leaves_predecessor_usable_by_default(db, authenticator):
    registered = authenticator.register(db, "hank@example.com", STRONG_PASSWORD)
    authenticator.refresh(db, registered.refresh_token)

    again = authenticator.refresh(db, registered.refresh_token)
    assert again.user_id == registered.user_id


def test_revoke_on_refresh_invalidates_consumed_token(db, token_issuer, password_hasher):
    authenticator = Authenticator(token_issuer, password_hasher, revoke_on_refresh=True)
    registered = authenticator.register(db, "ivy@example.com", STRONG_PASSWORD)

    refreshed = authenticator.refresh(db, registered.refresh_token)

    with pytest.raises(RefreshTokenInvalidError):
        authenticator.refresh(db, registered.refresh_token)
    assert authenticator.refresh(db, refreshed.refresh_token).user_id == registered.user_id


def test_expired_refresh_token_is_rejected(db, authenticator):
    registered = authenticator.register(db, "jack@example.com", STRONG_PASSWORD)
    credential_store.store_refresh_token(
        db,
        user_id=registered.user_id,
        token="stale-refresh-token",
        expires_at=datetime.now(timezone.utc) - timedelta(seconds=1),
    )
    db.commit()

    with pytest.raises(RefreshTokenInvalidError) as excinfo:
        authenticator.refresh(db, "stale-refresh-token")
    assert excinfo.value.message == "Invalid refresh token"


def test_unknown_refresh_token_is_rejected(db, authenticator):
    with pytest.raises(RefreshTokenInvalidError):
        authenticator.refresh(db, "never-issued")


def test_verify_does_not_touch_the_store(token_issuer, password_hasher):
    authenticator = Authenticator(token_issuer, password_hasher, store=_UnreachableStore())
    token = token_issuer.create_access_token(uuid.uuid4())
    assert authenticator.verify(token)


def test_update_profile_rejects_email_of_another_account(db, authenticator):
    first = authenticator.register(db, "kate@example.com", STRONG_PASSWORD)
    authenticator.register(db, "liam@example.com", STRONG_PASSWORD)

    with pytest.raises(DuplicateEmailError):
        credential_store.update_profile(db, first.user_id, email="liam@example.com")

    user = credential_store.update_profile(db, first.user_id, full_name="Kate", email="kate@new.example.com")
    db.commit()
    assert credential_store.find_user_by_email(db, "kate@new.example.com").id == user.id
    assert user.full_name == "Kate"
