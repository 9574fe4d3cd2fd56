"""
Point-of-sale cart.

A cart item is a snapshot of the product (price and cost frozen when added)
plus the requested quantity. Quantities are checked against the stock the
cart was built from; the sale transaction re-checks stock at commit time.
"""

from __future__ import annotations

from ..errors import NotFoundError, ValidationError
from .pricing_service import items_total

# Product fields frozen into each sale line
SNAPSHOT_FIELDS = (
    "id", "local_id", "name", "price", "stock", "min_stock", "category",
    "sku", "barcode", "cost_price", "measurement_unit",
)


def _check_quantity(quantity) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, (int, float)) or quantity <= 0:
        raise ValidationError("quantity must be a positive number")


class Cart:
    def __init__(self, local_id: str):
        self.local_id = local_id
        self._items: dict[str, dict] = {}

    def add(self, product: dict, quantity=1) -> dict:
        _check_quantity(quantity)
        if product.get("local_id") != self.local_id:
            raise ValidationError("Product belongs to another location")

        existing = self._items.get(product["id"])
        requested = quantity + (existing["quantity"] if existing else 0)
        if requested > product.get("stock", 0):
            raise ValidationError(
                "Not enough stock",
                details={
                    "product_id": product["id"],
                    "requested_quantity": requested,
                    "stock": product.get("stock", 0),
                },
            )

        item = {k: product[k] for k in SNAPSHOT_FIELDS if product.get(k) is not None}
        item["quantity"] = requested
        self._items[product["id"]] = item
        return dict(item)

    def set_quantity(self, product_id: str, quantity) -> dict:
        item = self._items.get(product_id)
        if item is None:
            raise NotFoundError("Product is not in the cart")
        _check_quantity(quantity)
        if quantity > item.get("stock", 0):
            raise ValidationError(
                "Not enough stock",
                details={"product_id": product_id, "requested_quantity": quantity, "stock": item.get("stock", 0)},
            )
        item["quantity"] = quantity
        return dict(item)

    def remove(self, product_id: str) -> None:
        self._items.pop(product_id, None)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def to_items(self) -> list[dict]:
        return [dict(item) for item in self._items.values()]

    def total(self) -> float:
        return items_total(self._items.values())
