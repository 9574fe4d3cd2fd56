# Overview: Retry, timeout and locking helpers for document store operations.

from __future__ import annotations

import logging
import time

from flask import current_app
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import PosError, RemoteOperationFailed
from ..extensions import db

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; transactions there open with
    BEGIN IMMEDIATE instead.
    """
    if db.engine.dialect.name == "sqlite":
        return query
    return query.with_for_update()


def remote_policy() -> dict:
    """Retry/timeout settings for the current app."""
    config = current_app.config
    return {
        "attempts": config.get("REMOTE_RETRY_ATTEMPTS", 3),
        "backoff_base": config.get("REMOTE_RETRY_BACKOFF", 0.1),
        "timeout": config.get("REMOTE_OPERATION_TIMEOUT"),
    }


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, timeout: float | None = None):
    """
    Execute a store operation with bounded retry on concurrency-related failures.

    Retries on OperationalError (locks, dropped connections) and StaleDataError
    (optimistic locking conflicts) with exponential backoff, until `attempts`
    is exhausted or the `timeout` deadline would be passed. The terminal
    failure, and any other SQLAlchemyError, is raised as RemoteOperationFailed.
    Domain errors raised by `func` roll back and propagate unchanged.
    """
    deadline = time.monotonic() + timeout if timeout else None
    for attempt in range(attempts):
        try:
            return func()
        except PosError:
            db.session.rollback()
            raise
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                logger.error("Store operation failed after %d attempts: %s", attempts, exc)
                raise RemoteOperationFailed(
                    "The operation did not complete, please retry",
                    details={"attempts": attempts},
                ) from exc
            delay = backoff_base * (2 ** attempt)
            if deadline is not None and time.monotonic() + delay > deadline:
                logger.error("Store operation timed out after %d attempts: %s", attempt + 1, exc)
                raise RemoteOperationFailed(
                    "The operation timed out, please retry",
                    details={"attempts": attempt + 1},
                ) from exc
            logger.warning("Transient store failure (attempt %d/%d), retrying: %s", attempt + 1, attempts, exc)
            time.sleep(delay)
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error("Store rejected operation: %s", exc)
            raise RemoteOperationFailed("The operation did not complete, please retry") from exc
        except Exception:
            db.session.rollback()
            raise
    raise RemoteOperationFailed("The operation did not complete, please retry")
