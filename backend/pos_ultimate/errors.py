# Overview: Error taxonomy shared by services and routes.

"""
Every failure a store operation can produce is one of these.

Services raise them; routes translate them to HTTP status codes. Remote
failures are never swallowed: they surface as RemoteOperationFailed.
"""


class PosError(Exception):
    """Base class for all domain errors."""
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(PosError):
    """Malformed input, rejected before any remote call."""
    status_code = 400


class NotFoundError(PosError):
    """An identifier does not resolve to an entity."""
    status_code = 404


class InvalidCredentialsError(PosError):
    status_code = 401

    def __init__(self, attempts: int, max_attempts: int):
        super().__init__(
            f"Incorrect password. Attempts: {attempts}/{max_attempts}",
            details={"attempts": attempts, "max_attempts": max_attempts},
        )
        self.attempts = attempts
        self.max_attempts = max_attempts


class LockedOutError(PosError):
    status_code = 429

    def __init__(self, minutes_remaining: int):
        super().__init__(
            f"Account locked. Try again in {minutes_remaining} minutes.",
            details={"minutes_remaining": minutes_remaining},
        )
        self.minutes_remaining = minutes_remaining


class ConflictError(PosError):
    """A business rule failed at commit time."""
    status_code = 409


class InsufficientStockError(ConflictError):
    pass


class InvalidTransitionError(ConflictError):
    """Sale cancellation state machine rejected the transition."""


class RemoteOperationFailed(PosError):
    """The document store rejected or could not complete an operation."""
    status_code = 503
