"""
Sale Cancellation Workflow

States: COMPLETED (or no status) -> CANCELLATION_REQUESTED -> CANCELLED | COMPLETED

- Sellers request: COMPLETED -> CANCELLATION_REQUESTED, stock untouched.
- Admins cancel directly from COMPLETED or CANCELLATION_REQUESTED.
- Approve: CANCELLATION_REQUESTED -> CANCELLED.
- Reject: CANCELLATION_REQUESTED -> COMPLETED; the reason and requester stay
  on the sale as an audit trail and the rejection time is stamped.
- CANCELLED is terminal.

Reaching CANCELLED restores every line's quantity to its product and takes a
CASH sale's amount back out of the cash-in-register, in the same transaction
as the status change. The status is read inside that transaction, so the
reversal happens exactly once per sale.
"""

from __future__ import annotations

import logging

from ..constants import (
    ADMIN_ROLES,
    PAYMENT_CASH,
    ROLE_SELLER,
    ROLES,
    SALE_CANCELLATION_REQUESTED,
    SALE_CANCELLED,
    SALE_COMPLETED,
)
from ..errors import InvalidTransitionError, ValidationError
from ..time_utils import to_utc_z

logger = logging.getLogger(__name__)


def sale_status(sale: dict) -> str:
    return sale.get("status") or SALE_COMPLETED


def _restore_stock(tx, sale: dict) -> None:
    for item in sale.get("items", []):
        product = tx.get("products", item["id"])
        if product is None:
            logger.warning("Product %s of sale %s no longer exists; stock not restored", item["id"], sale["id"])
            continue
        restored = round(product.get("stock", 0) + item["quantity"], 3)
        if float(restored).is_integer():
            restored = int(restored)
        tx.update("products", item["id"], {"stock": restored})

    if sale.get("payment_method") == PAYMENT_CASH:
        amount = sale.get("final_total", sale.get("total", 0))
        if amount and tx.get("locales", sale["local_id"]) is not None:
            tx.increment("locales", sale["local_id"], "cash_in_register", -amount)


def request_or_perform_cancellation(store, sale_id: str, reason: str, actor_id: str, actor_role: str) -> dict:
    """
    Admins cancel immediately; sellers file a request for approval.
    """
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A cancellation reason is required")
    if actor_role not in ROLES:
        raise ValidationError(f"Unknown role: {actor_role}")

    now = to_utc_z(store.clock())

    def _op(tx):
        sale = tx.require("sales", sale_id)
        status = sale_status(sale)

        if actor_role == ROLE_SELLER:
            if status != SALE_COMPLETED:
                raise InvalidTransitionError(f"Cannot request cancellation of a sale in status {status}")
            return tx.update("sales", sale_id, {
                "status": SALE_CANCELLATION_REQUESTED,
                "cancellation_reason": reason,
                "cancellation_requested_by": actor_id,
            })

        if status not in (SALE_COMPLETED, SALE_CANCELLATION_REQUESTED):
            raise InvalidTransitionError(f"Cannot cancel a sale in status {status}")
        _restore_stock(tx, sale)
        return tx.update("sales", sale_id, {
            "status": SALE_CANCELLED,
            "cancellation_reason": reason,
            "cancellation_requested_by": (
                sale.get("cancellation_requested_by") if status == SALE_CANCELLATION_REQUESTED else actor_id
            ),
            "cancellation_approved_by": actor_id,
            "cancellation_date": now,
        })

    sale = store.documents.run_transaction(_op)
    logger.info("Sale %s moved to %s by %s", sale_id, sale["status"], actor_id)
    return sale


def approve_cancellation(store, sale_id: str, approver_id: str) -> dict:
    now = to_utc_z(store.clock())

    def _op(tx):
        sale = tx.require("sales", sale_id)
        status = sale_status(sale)
        if status != SALE_CANCELLATION_REQUESTED:
            raise InvalidTransitionError(f"Cannot approve cancellation of a sale in status {status}")
        _restore_stock(tx, sale)
        return tx.update("sales", sale_id, {
            "status": SALE_CANCELLED,
            "cancellation_approved_by": approver_id,
            "cancellation_date": now,
        })

    sale = store.documents.run_transaction(_op)
    logger.info("Cancellation of sale %s approved by %s", sale_id, approver_id)
    return sale


def reject_cancellation(store, sale_id: str, rejector_id: str | None = None) -> dict:
    now = to_utc_z(store.clock())

    def _op(tx):
        sale = tx.require("sales", sale_id)
        status = sale_status(sale)
        if status != SALE_CANCELLATION_REQUESTED:
            raise InvalidTransitionError(f"Cannot reject cancellation of a sale in status {status}")
        fields = {"status": SALE_COMPLETED, "cancellation_rejected_at": now}
        if rejector_id:
            fields["cancellation_rejected_by"] = rejector_id
        return tx.update("sales", sale_id, fields)

    sale = store.documents.run_transaction(_op)
    logger.info("Cancellation of sale %s rejected", sale_id)
    return sale


def can_approve(actor_role: str) -> bool:
    return actor_role in ADMIN_ROLES
