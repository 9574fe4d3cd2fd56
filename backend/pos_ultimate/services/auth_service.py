# Overview: Password hashing and the login gate over the synced users collection.

"""
Authentication Service

WHY: Every sale, task and cancellation is attributed to a user. Secrets are
stored only as bcrypt hashes and checked with bcrypt's constant-time
comparison.

Login order:
1. an active lockout for the identifier fails fast with LockedOutError
2. the identifier resolves against the synced snapshot (username or email,
   case-insensitive), then by direct store lookups: exact username,
   lowercased username, exact email
3. no user -> NotFoundError (not counted as a failed attempt)
4. wrong secret -> counted; the third failure locks the identifier
5. success clears the identifier's counter and lockout

Records with no secret at all accept any secret. Legacy records holding a
plaintext `password` are compared in constant time and rehashed on success.
"""

from __future__ import annotations

import hmac
import logging
import re

import bcrypt

from ..errors import InvalidCredentialsError, LockedOutError, NotFoundError, ValidationError
from ..time_utils import utcnow
from .login_throttle_service import LoginThrottle

logger = logging.getLogger(__name__)


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str, rounds: int = 12, *, validate: bool = True) -> str:
    """
    Hash password using bcrypt.

    Strength is validated first unless `validate` is False (rehashing a
    legacy secret the user already has).
    """
    if validate:
        validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash on record
        return False


def public_user(user: dict | None) -> dict | None:
    """User document without secret material."""
    if user is None:
        return None
    return {k: v for k, v in user.items() if k not in ("password", "password_hash")}


class AuthGate:
    def __init__(self, store, throttle: LoginThrottle, clock=utcnow):
        self.store = store
        self.throttle = throttle
        self.clock = clock

    def resolve_user(self, identifier: str) -> dict | None:
        user = self.store.find_user(identifier)
        if user is not None:
            return user

        # Snapshot may not have caught up yet; ask the store directly
        lookups = (
            ("username", identifier),
            ("username_lower", identifier.lower()),
            ("email", identifier),
        )
        for field, value in lookups:
            hits = self.store.documents.find_by("users", field, value)
            if hits:
                return hits[0]
        return None

    def _secret_matches(self, user: dict, secret: str) -> bool:
        password_hash = user.get("password_hash")
        if password_hash:
            return verify_password(secret, password_hash)

        legacy = user.get("password")
        if legacy:
            matched = hmac.compare_digest(legacy.encode('utf-8'), secret.encode('utf-8'))
            if matched:
                self.store.upgrade_legacy_password(user["id"], secret)
            return matched

        return True

    def login(self, identifier: str, secret: str | None) -> dict:
        """Authenticate and return the public user document."""
        if identifier is not None and not isinstance(identifier, str):
            raise ValidationError("username or email must be a string")
        if secret is not None and not isinstance(secret, str):
            raise ValidationError("password must be a string")
        identifier = (identifier or "").strip()
        if not identifier:
            raise ValidationError("username or email is required")
        secret = secret or ""
        now = self.clock()

        minutes_remaining = self.throttle.locked_minutes_remaining(identifier, now)
        if minutes_remaining is not None:
            raise LockedOutError(minutes_remaining)

        user = self.resolve_user(identifier)
        if user is None:
            raise NotFoundError("User not found")

        if not self._secret_matches(user, secret):
            attempts, locked = self.throttle.record_failure(identifier, now)
            if locked:
                raise LockedOutError(int(self.throttle.lockout.total_seconds() // 60))
            raise InvalidCredentialsError(attempts, self.throttle.max_attempts)

        self.throttle.record_success(identifier)
        logger.info("User %s logged in", user.get("id"))
        return public_user(user)

    def lockout_status(self, identifier: str) -> dict:
        return self.throttle.status((identifier or "").strip(), self.clock())
