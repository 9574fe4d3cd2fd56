# Overview: Process-local notification feed (low-stock alerts and system messages).

from __future__ import annotations

import logging
import threading
import uuid

from ..constants import NOTIFICATION_LOW_STOCK, NOTIFICATION_SYSTEM
from ..errors import NotFoundError
from ..time_utils import to_utc_z, utcnow

logger = logging.getLogger(__name__)


class NotificationCenter:
    """
    Notifications live only in this process; they are not written to the
    document store. Newest first.
    """

    def __init__(self, clock=utcnow):
        self.clock = clock
        self._items: list[dict] = []
        self._lock = threading.Lock()

    def _add(self, **fields) -> dict:
        notification = {
            "id": str(uuid.uuid4()),
            "date": to_utc_z(self.clock()),
            "read": False,
            **fields,
        }
        with self._lock:
            self._items.insert(0, notification)
        return dict(notification)

    def add_low_stock(self, product: dict) -> dict:
        logger.info("Low stock for product %s (%s left)", product.get("id"), product.get("stock"))
        return self._add(
            local_id=product.get("local_id"),
            type=NOTIFICATION_LOW_STOCK,
            title="Low stock",
            message=(
                f"{product.get('name')} has {product.get('stock')} left "
                f"(minimum {product.get('min_stock')})"
            ),
            product_id=product.get("id"),
        )

    def add_system(self, local_id: str | None, title: str, message: str) -> dict:
        return self._add(local_id=local_id, type=NOTIFICATION_SYSTEM, title=title, message=message)

    def all(self) -> list[dict]:
        with self._lock:
            return [dict(n) for n in self._items]

    def mark_read(self, notification_id: str) -> dict:
        with self._lock:
            for notification in self._items:
                if notification["id"] == notification_id:
                    notification["read"] = True
                    return dict(notification)
        raise NotFoundError("Notification not found")

    def clear_read(self, notification_ids=None) -> int:
        """Drop read notifications (optionally only among `notification_ids`); unread ones stay."""
        with self._lock:
            before = len(self._items)
            self._items = [
                n for n in self._items
                if not n["read"] or (notification_ids is not None and n["id"] not in notification_ids)
            ]
            return before - len(self._items)
