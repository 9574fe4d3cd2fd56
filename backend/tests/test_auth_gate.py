"""
Login gate tests.

Verifies:
- Three wrong secrets lock the identifier for five minutes
- A locked identifier is refused even with the right secret
- Success resets the counter and clears the lockout
- Case-insensitive username/email login, sharing one lockout bucket
- Fallback to store lookups when the snapshot lags
- Legacy plaintext secrets are verified and rehashed
- Non-string credentials are rejected, and untracked identifiers leave no state
"""

import pytest

from conftest import ADMIN_PASSWORD, USER_PASSWORD
from pos_ultimate.errors import (
    InvalidCredentialsError,
    LockedOutError,
    NotFoundError,
    ValidationError,
)
from pos_ultimate.services.auth_service import (
    PasswordValidationError,
    hash_password,
    validate_password_strength,
    verify_password,
)


def fail(gate, identifier, secret="WrongPassword1!"):
    with pytest.raises((InvalidCredentialsError, LockedOutError)) as exc_info:
        gate.login(identifier, secret)
    return exc_info.value


class TestLockout:

    def test_three_failures_lock_the_identifier(self, gate, seller_a):
        first = fail(gate, "maria")
        second = fail(gate, "maria")
        third = fail(gate, "maria")

        assert isinstance(first, InvalidCredentialsError)
        assert first.attempts == 1
        assert str(first) == "Incorrect password. Attempts: 1/3"
        assert second.attempts == 2
        assert isinstance(third, LockedOutError)
        assert third.minutes_remaining == 5

    def test_locked_identifier_refuses_correct_secret(self, gate, seller_a, clock):
        for _ in range(3):
            fail(gate, "maria")

        clock.advance(minutes=4, seconds=59)
        with pytest.raises(LockedOutError) as exc_info:
            gate.login("maria", USER_PASSWORD)
        assert exc_info.value.minutes_remaining == 1

    def test_remaining_minutes_round_up(self, gate, seller_a, clock):
        for _ in range(3):
            fail(gate, "maria")

        clock.advance(minutes=1, seconds=30)
        with pytest.raises(LockedOutError) as exc_info:
            gate.login("maria", USER_PASSWORD)
        assert exc_info.value.minutes_remaining == 4

    def test_lockout_expires(self, gate, seller_a, clock):
        for _ in range(3):
            fail(gate, "maria")

        clock.advance(minutes=5)
        assert gate.login("maria", USER_PASSWORD)["id"] == seller_a["id"]

    def test_counter_restarts_after_lockout(self, gate, seller_a, clock):
        for _ in range(3):
            fail(gate, "maria")
        clock.advance(minutes=5)

        assert fail(gate, "maria").attempts == 1

    def test_success_resets_counter(self, gate, seller_a):
        fail(gate, "maria")
        fail(gate, "maria")

        gate.login("maria", USER_PASSWORD)

        assert gate.lockout_status("maria")["failed_attempts"] == 0
        assert fail(gate, "maria").attempts == 1

    def test_identifiers_differing_in_case_share_a_bucket(self, gate, seller_a):
        fail(gate, "Maria")
        fail(gate, "MARIA")
        locked = fail(gate, " maria ")

        assert isinstance(locked, LockedOutError)
        with pytest.raises(LockedOutError):
            gate.login("Maria", USER_PASSWORD)

    def test_username_and_email_are_separate_buckets(self, gate, seller_a):
        for _ in range(3):
            fail(gate, "maria")

        assert gate.login("maria@pos.local", USER_PASSWORD)["id"] == seller_a["id"]

    def test_unknown_user_is_not_counted(self, gate, seller_a):
        for _ in range(5):
            with pytest.raises(NotFoundError):
                gate.login("nobody", "whatever")

        assert gate.lockout_status("nobody")["failed_attempts"] == 0

    def test_lockout_status(self, gate, seller_a):
        fail(gate, "maria")
        status = gate.lockout_status("maria")
        assert status == {
            "locked": False,
            "failed_attempts": 1,
            "max_attempts": 3,
            "minutes_until_unlock": None,
            "lockout_duration_minutes": 5,
        }

    def test_unknown_identifiers_leave_no_state(self, gate, seller_a):
        for n in range(20):
            with pytest.raises(NotFoundError):
                gate.login(f"nobody-{n}", "whatever")
            gate.lockout_status(f"stranger-{n}")

        assert len(gate.throttle) == 0

    def test_success_drops_the_entry(self, gate, seller_a):
        fail(gate, "maria")
        assert len(gate.throttle) == 1

        gate.login("maria", USER_PASSWORD)

        assert len(gate.throttle) == 0

    def test_expired_lockout_is_dropped(self, gate, seller_a, clock):
        for _ in range(3):
            fail(gate, "maria")
        clock.advance(minutes=5)

        assert gate.lockout_status("maria")["locked"] is False
        assert len(gate.throttle) == 0


class TestResolution:

    @pytest.mark.parametrize("identifier", ["Maria", "maria", "MARIA", "maria@pos.local", "MARIA@POS.LOCAL"])
    def test_case_insensitive_login(self, gate, seller_a, identifier):
        user = gate.login(identifier, USER_PASSWORD)
        assert user["id"] == seller_a["id"]
        assert "password_hash" not in user

    def test_bootstrap_admin_can_log_in(self, gate):
        assert gate.login("superadmin", ADMIN_PASSWORD)["role"] == "SUPER_ADMIN"

    def test_blank_identifier_rejected(self, gate):
        with pytest.raises(ValidationError):
            gate.login("   ", "x")

    @pytest.mark.parametrize("identifier, secret", [(123, USER_PASSWORD), (["maria"], USER_PASSWORD), ("maria", 12345)])
    def test_non_string_credentials_rejected(self, gate, seller_a, identifier, secret):
        with pytest.raises(ValidationError):
            gate.login(identifier, secret)

        assert len(gate.throttle) == 0

    def test_falls_back_to_store_when_snapshot_lags(self, gate, store, local_a):
        store.stop()
        store.documents.set("users", "late", {
            "id": "late",
            "username": "Late",
            "username_lower": "late",
            "password_hash": hash_password(USER_PASSWORD, 4),
            "role": "SELLER",
            "name": "Late Arrival",
            "local_id": local_a["id"],
        })
        assert store.find_user("late") is None

        assert gate.login("LATE", USER_PASSWORD)["id"] == "late"

    def test_record_without_secret_accepts_anything(self, gate, store, local_a):
        store.documents.set("users", "open", {
            "id": "open", "username": "kiosk", "username_lower": "kiosk",
            "role": "SELLER", "name": "Kiosk", "local_id": local_a["id"],
        })
        assert gate.login("kiosk", "")["id"] == "open"

    def test_legacy_plaintext_secret_is_rehashed(self, gate, store, local_a):
        store.documents.set("users", "legacy", {
            "id": "legacy", "username": "old", "username_lower": "old",
            "password": "plain-secret", "role": "SELLER", "name": "Old",
            "local_id": local_a["id"],
        })

        with pytest.raises(InvalidCredentialsError):
            gate.login("old", "Plain-secret")
        gate.login("old", "plain-secret")

        record = store.documents.get("users", "legacy")
        assert "password" not in record
        assert verify_password("plain-secret", record["password_hash"])


class TestPasswords:

    @pytest.mark.parametrize("password", ["Sh0rt!", "alllowercase1!", "ALLUPPERCASE1!", "NoDigits!!", "NoSpecial123"])
    def test_weak_passwords_rejected(self, password):
        with pytest.raises(PasswordValidationError):
            validate_password_strength(password)

    def test_hash_and_verify(self):
        hashed = hash_password("Password123!", 4)
        assert verify_password("Password123!", hashed)
        assert not verify_password("password123!", hashed)

    def test_malformed_hash_never_verifies(self):
        assert not verify_password("anything", "not-a-bcrypt-hash")
