# Overview: Synced collection store; mirrors the document store through live subscriptions.

"""
Synced Collection Store

WHY: Screens read users, locations, products, sales and tasks constantly.
The store keeps an in-memory copy of each collection, replaced wholesale on
every subscription delivery, and routes every write to the document store.

Rules:
- The snapshot cache has a single writer: the subscription callbacks.
  Mutating operations never patch the cache; the delivery that follows the
  commit makes the change visible.
- Every mutating operation raises on failure (ValidationError before any
  remote call, ConflictError/NotFoundError at commit, RemoteOperationFailed
  when the store cannot complete). Nothing is logged-and-swallowed.
- Compound writes (recording a sale: sale + stock decrements + cash) run in a
  single document store transaction with a stock precondition.
- An empty users collection is seeded with the bootstrap super-admin.
"""

from __future__ import annotations

import logging
import threading
import uuid

from flask import current_app

from ..constants import (
    BOOTSTRAP_ADMIN_ID,
    BOOTSTRAP_ADMIN_NAME,
    BOOTSTRAP_ADMIN_USERNAME,
    PAYMENT_CASH,
    PAYMENT_METHODS,
    ROLE_SUPER_ADMIN,
    SALE_COMPLETED,
    TASK_COMPLETED,
    TASK_PENDING,
)
from ..errors import ConflictError, InsufficientStockError, NotFoundError, ValidationError
from ..time_utils import parse_iso_datetime, to_utc_z, utcnow
from ..validation import (
    LOCAL_POLICY,
    PRODUCT_POLICY,
    TASK_POLICY,
    USER_POLICY,
    validate_payload,
)
from .auth_service import hash_password, public_user
from .document_store import COLLECTIONS, DocumentStore
from .notification_service import NotificationCenter
from .pricing_service import compute_change_due, compute_final_total, items_total
from .snapshot_cache import SnapshotCache

logger = logging.getLogger(__name__)


def _quantity(value: float) -> float:
    """Round stock arithmetic; weighed products carry fractional stock."""
    rounded = round(value, 3)
    return int(rounded) if float(rounded).is_integer() else rounded


def _new_id(payload: dict) -> str:
    doc_id = payload.pop("id", None)
    if doc_id is None:
        return str(uuid.uuid4())
    if not isinstance(doc_id, str) or not doc_id.strip():
        raise ValidationError("id must be a non-empty string")
    return doc_id.strip()


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class SyncedStore:
    def __init__(
        self,
        documents: DocumentStore | None = None,
        *,
        bcrypt_rounds: int = 12,
        bootstrap_password: str = "SuperSecurePassword123!",
        clock=utcnow,
    ):
        self.documents = documents or DocumentStore()
        self.cache = SnapshotCache(COLLECTIONS)
        self.clock = clock
        self.notifications = NotificationCenter(clock)
        self.bcrypt_rounds = bcrypt_rounds
        self.bootstrap_password = bootstrap_password
        self._unsubscribers: list = []
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Listener lifecycle
    # ------------------------------------------------------------------

    @property
    def listening(self) -> bool:
        return bool(self._unsubscribers)

    def start(self) -> None:
        """Subscribe to all five collections (idempotent)."""
        with self._lock:
            if self._unsubscribers:
                return
            for collection in COLLECTIONS:
                callback = self._on_users if collection == "users" else self._replacer(collection)
                self._unsubscribers.append(self.documents.subscribe(collection, callback))
            logger.info("Synced store listening on %s", ", ".join(COLLECTIONS))

    def stop(self) -> None:
        """Deregister every listener; the cache stops changing."""
        with self._lock:
            unsubscribers, self._unsubscribers = self._unsubscribers, []
        for unsubscribe in unsubscribers:
            unsubscribe()

    def ensure_listening(self) -> None:
        if not self.listening:
            self.start()

    def resync(self) -> None:
        self.documents.resync(COLLECTIONS)

    def _replacer(self, collection: str):
        def on_snapshot(documents):
            self.cache.replace(collection, documents)
        return on_snapshot

    def _on_users(self, documents) -> None:
        if documents:
            self.cache.replace("users", documents)
            return

        # Never leave the system without an administrator
        admin = self._bootstrap_admin()
        self.cache.replace("users", [admin])
        logger.warning("Users collection is empty; seeding bootstrap super-admin %s", BOOTSTRAP_ADMIN_ID)
        self.documents.set("users", admin["id"], admin)

    def _bootstrap_admin(self) -> dict:
        return {
            "id": BOOTSTRAP_ADMIN_ID,
            "username": BOOTSTRAP_ADMIN_USERNAME,
            "username_lower": BOOTSTRAP_ADMIN_USERNAME.lower(),
            "password_hash": hash_password(self.bootstrap_password, self.bcrypt_rounds, validate=False),
            "role": ROLE_SUPER_ADMIN,
            "name": BOOTSTRAP_ADMIN_NAME,
            "created_at": to_utc_z(self.clock()),
        }

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def users(self) -> tuple[dict, ...]:
        return self.cache.all("users")

    @property
    def locales(self) -> tuple[dict, ...]:
        return self.cache.all("locales")

    @property
    def products(self) -> tuple[dict, ...]:
        return self.cache.all("products")

    @property
    def sales(self) -> tuple[dict, ...]:
        return self.cache.all("sales")

    @property
    def tasks(self) -> tuple[dict, ...]:
        return self.cache.all("tasks")

    def get_user(self, user_id: str) -> dict | None:
        return self.cache.get("users", user_id)

    def get_local(self, local_id: str) -> dict | None:
        return self.cache.get("locales", local_id)

    def get_product(self, product_id: str) -> dict | None:
        return self.cache.get("products", product_id)

    def get_sale(self, sale_id: str) -> dict | None:
        return self.cache.get("sales", sale_id)

    def get_task(self, task_id: str) -> dict | None:
        return self.cache.get("tasks", task_id)

    def find_user(self, identifier: str) -> dict | None:
        """Case-insensitive match on username or email against the snapshot."""
        needle = (identifier or "").strip().lower()
        if not needle:
            return None
        return self.cache.find(
            "users",
            lambda u: (u.get("username") or "").lower() == needle
            or (u.get("email") or "").lower() == needle,
        )

    def find_product_by_code(self, local_id: str, code: str) -> dict | None:
        """Scan lookup: SKU first, then the secondary barcode, within one location."""
        code = (code or "").strip()
        if not code:
            return None
        product = self.cache.find("products", lambda p: p.get("local_id") == local_id and p.get("sku") == code)
        if product is None:
            product = self.cache.find(
                "products", lambda p: p.get("local_id") == local_id and p.get("barcode") == code
            )
        return product

    def receipt_context(self, sale_id: str) -> dict:
        """The sale, its location and its seller, for the receipt renderer."""
        sale = self.get_sale(sale_id) or self.documents.get("sales", sale_id)
        if sale is None:
            raise NotFoundError("Sale not found")
        local = self.get_local(sale["local_id"]) or self.documents.get("locales", sale["local_id"])
        if local is None:
            raise NotFoundError("Location for sale not found")
        seller = self.get_user(sale["seller_id"]) or self.documents.get("users", sale["seller_id"])
        if seller is None:
            raise NotFoundError("Seller for sale not found")
        return {"sale": sale, "local": local, "seller": public_user(seller)}

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def _check_user_rules(self, tx, user_id: str, user: dict) -> None:
        if user["role"] == ROLE_SUPER_ADMIN:
            user.pop("local_id", None)
        else:
            local_id = user.get("local_id")
            if not local_id:
                raise ValidationError("local_id is required for ADMIN and SELLER users")
            if tx.get("locales", local_id) is None:
                raise ValidationError("local_id must reference an existing location")

        for field in ("username_lower", "email_lower"):
            value = user.get(field)
            if not value:
                continue
            for other in tx.find_by("users", field, value):
                if other.get("id") != user_id:
                    label = "Username" if field == "username_lower" else "Email"
                    raise ConflictError(f"{label} already exists")

    def _apply_user_fields(self, user: dict, fields: dict) -> dict:
        password = fields.pop("password", None)
        user.update(fields)
        if password is not None:
            user["password_hash"] = hash_password(password, self.bcrypt_rounds)
            user.pop("password", None)
        if "username" in fields:
            user["username_lower"] = user["username"].lower()
        if "email" in fields:
            email = user.get("email")
            if email:
                user["email_lower"] = email.lower()
            else:
                user["email"] = None
                user["email_lower"] = None
        return user

    def add_user(self, data: dict) -> dict:
        payload = dict(data or {})
        user_id = _new_id(payload)
        fields = validate_payload(payload=payload, policy=USER_POLICY, partial=False)
        user = self._apply_user_fields({"id": user_id, "created_at": to_utc_z(self.clock())}, fields)
        user = {k: v for k, v in user.items() if v is not None}

        def _op(tx):
            if tx.get("users", user_id) is not None:
                raise ConflictError("User already exists")
            self._check_user_rules(tx, user_id, user)
            tx.set("users", user_id, user)
            return user

        created = self.documents.run_transaction(_op)
        logger.info("Created user %s (%s)", user_id, created["role"])
        return public_user(created)

    def update_user(self, user_id: str, updates: dict) -> dict:
        fields = validate_payload(payload=updates, policy=USER_POLICY, partial=True)

        def _op(tx):
            current = tx.require("users", user_id)
            merged = self._apply_user_fields(dict(current), dict(fields))
            self._check_user_rules(tx, user_id, merged)
            patch = {k: merged.get(k) for k in set(merged) | set(current) if merged.get(k) != current.get(k)}
            return tx.update("users", user_id, patch)

        return public_user(self.documents.run_transaction(_op))

    def delete_user(self, user_id: str) -> None:
        self.documents.delete("users", user_id)
        logger.info("Deleted user %s", user_id)

    def upgrade_legacy_password(self, user_id: str, secret: str) -> None:
        """Replace a plaintext secret with its bcrypt hash."""
        self.documents.update("users", user_id, {
            "password_hash": hash_password(secret, self.bcrypt_rounds, validate=False),
            "password": None,
        })
        logger.info("Rehashed legacy password for user %s", user_id)

    # ------------------------------------------------------------------
    # Locations
    # ------------------------------------------------------------------

    def add_local(self, data: dict) -> dict:
        payload = dict(data or {})
        local_id = _new_id(payload)
        fields = validate_payload(payload=payload, policy=LOCAL_POLICY, partial=False)
        local = {
            "id": local_id,
            "is_active": True,
            "subscription_status": "ACTIVE",
            "cash_in_register": 0,
            **{k: v for k, v in fields.items() if v is not None},
        }

        def _op(tx):
            if tx.get("locales", local_id) is not None:
                raise ConflictError("Location already exists")
            tx.set("locales", local_id, local)
            return local

        return self.documents.run_transaction(_op)

    def update_local(self, local_id: str, updates: dict) -> dict:
        fields = validate_payload(payload=updates, policy=LOCAL_POLICY, partial=True)
        return self.documents.update("locales", local_id, fields)

    def delete_local(self, local_id: str) -> None:
        # Products, users and sales of the location are left in place
        self.documents.delete("locales", local_id)
        logger.info("Deleted location %s", local_id)

    def toggle_local_status(self, local_id: str) -> dict:
        def _op(tx):
            local = tx.require("locales", local_id)
            return tx.update("locales", local_id, {"is_active": not local.get("is_active", True)})

        local = self.documents.run_transaction(_op)
        state = "reactivated" if local["is_active"] else "suspended"
        self.notifications.add_system(local_id, f"Location {state}", f"{local.get('name')} was {state}")
        return local

    def record_cash_count(self, local_id: str, amount) -> dict:
        """Manual register count: the counted amount becomes the balance."""
        fields = validate_payload(payload={"cash_in_register": amount}, policy=LOCAL_POLICY, partial=True)
        if fields["cash_in_register"] is None:
            raise ValidationError("amount is required")
        return self.documents.update("locales", local_id, fields)

    def adjust_cash(self, local_id: str, delta) -> float:
        if not _is_number(delta):
            raise ValidationError("delta must be a number")
        return self.documents.increment("locales", local_id, "cash_in_register", delta)

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def _check_unique_sku(self, tx, product_id: str, product: dict) -> None:
        for other in tx.find_by("products", "sku", product["sku"]):
            if other.get("id") != product_id and other.get("local_id") == product["local_id"]:
                raise ConflictError("SKU already exists in this location")

    def add_product(self, data: dict) -> dict:
        payload = dict(data or {})
        product_id = _new_id(payload)
        fields = validate_payload(payload=payload, policy=PRODUCT_POLICY, partial=False)
        product = {
            "id": product_id,
            "measurement_unit": "UNIT",
            **{k: v for k, v in fields.items() if v is not None},
        }

        def _op(tx):
            if tx.get("products", product_id) is not None:
                raise ConflictError("Product already exists")
            if tx.get("locales", product["local_id"]) is None:
                raise ValidationError("local_id must reference an existing location")
            self._check_unique_sku(tx, product_id, product)
            tx.set("products", product_id, product)
            return product

        return self.documents.run_transaction(_op)

    def update_product(self, product_id: str, updates: dict) -> dict:
        fields = validate_payload(payload=updates, policy=PRODUCT_POLICY, partial=True)

        def _op(tx):
            current = tx.require("products", product_id)
            merged = {**current, **fields}
            if "local_id" in fields and tx.get("locales", merged["local_id"]) is None:
                raise ValidationError("local_id must reference an existing location")
            if "sku" in fields or "local_id" in fields:
                self._check_unique_sku(tx, product_id, merged)
            return tx.update("products", product_id, fields)

        return self.documents.run_transaction(_op)

    def delete_product(self, product_id: str) -> None:
        self.documents.delete("products", product_id)

    # ------------------------------------------------------------------
    # Sales
    # ------------------------------------------------------------------

    def _prepare_sale(self, data: dict) -> dict:
        sale = {k: v for k, v in (data or {}).items() if v is not None}
        sale["id"] = _new_id(sale)

        for key in ("local_id", "seller_id"):
            if not isinstance(sale.get(key), str) or not sale[key].strip():
                raise ValidationError(f"{key} is required")

        items = sale.get("items")
        if not isinstance(items, list) or not items:
            raise ValidationError("Cannot record a sale with no items")
        for item in items:
            if not isinstance(item, dict) or not isinstance(item.get("id"), str):
                raise ValidationError("Each item needs a product id")
            quantity = item.get("quantity")
            if not _is_number(quantity) or quantity <= 0:
                raise ValidationError("Item quantity must be a positive number")
            if not _is_number(item.get("price")) or item["price"] < 0:
                raise ValidationError("Item price must be a number >= 0")
            if item.get("cost_price") is not None and (not _is_number(item["cost_price"]) or item["cost_price"] < 0):
                raise ValidationError("Item cost_price must be a number >= 0")

        if sale.get("payment_method") not in PAYMENT_METHODS:
            raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")

        for key in ("total", "final_total", "discount", "amount_tendered"):
            if sale.get(key) is not None and not _is_number(sale[key]):
                raise ValidationError(f"{key} must be a number")

        total = items_total(items)
        if sale.get("total") is not None and abs(sale["total"] - total) > 0.005:
            raise ValidationError("total does not match the items", details={"expected": total})
        sale["total"] = total

        discount = sale.get("discount")
        final_total = compute_final_total(total, discount, sale.get("discount_type"))
        if sale.get("final_total") is not None and abs(sale["final_total"] - final_total) > 0.005:
            raise ValidationError("final_total does not match the discount", details={"expected": final_total})
        if discount:
            sale["final_total"] = final_total
        else:
            sale.pop("discount", None)
            sale.pop("discount_type", None)
            sale.pop("final_total", None)

        tendered = sale.get("amount_tendered")
        if tendered is not None:
            if sale["payment_method"] == PAYMENT_CASH:
                compute_change_due(final_total, tendered)

        sale["status"] = SALE_COMPLETED
        for key in (
            "cancellation_reason", "cancellation_requested_by", "cancellation_approved_by",
            "cancellation_date", "cancellation_rejected_at", "cancellation_rejected_by",
        ):
            sale.pop(key, None)
        if sale.get("date") is None:
            sale["date"] = to_utc_z(self.clock())
        else:
            try:
                parse_iso_datetime(sale["date"])
            except (TypeError, ValueError, AttributeError):
                raise ValidationError("date must be an ISO-8601 datetime")
        return sale

    def add_sale(self, data: dict) -> dict:
        """
        Record a sale and decrement stock, atomically.

        Stock is checked inside the transaction (decrement-if-sufficient), so
        two sessions selling the last unit cannot both succeed. CASH sales add
        the amount due to the location's cash-in-register. One LOW_STOCK
        notification is raised per product left at or below its minimum.
        """
        sale = self._prepare_sale(data)
        amount_due = sale.get("final_total", sale["total"])

        requested: dict[str, float] = {}
        for item in sale["items"]:
            requested[item["id"]] = requested.get(item["id"], 0) + item["quantity"]

        def _op(tx):
            tx.require("locales", sale["local_id"])
            if tx.get("users", sale["seller_id"]) is None:
                raise NotFoundError("Seller not found")
            if tx.get("sales", sale["id"]) is not None:
                raise ConflictError("Sale already recorded")

            products = {}
            insufficient = []
            for product_id, quantity in requested.items():
                product = tx.get("products", product_id)
                if product is None:
                    raise NotFoundError(f"Product {product_id} not found")
                if product.get("local_id") != sale["local_id"]:
                    raise ValidationError(f"Product {product_id} belongs to another location")
                if product.get("stock", 0) < quantity:
                    insufficient.append({
                        "product_id": product_id,
                        "requested_quantity": quantity,
                        "stock": product.get("stock", 0),
                    })
                products[product_id] = product

            if insufficient:
                raise InsufficientStockError("Insufficient stock to record sale", details={"items": insufficient})

            low_stock = []
            for product_id, quantity in requested.items():
                product = products[product_id]
                product["stock"] = _quantity(product.get("stock", 0) - quantity)
                tx.update("products", product_id, {"stock": product["stock"]})
                if product["stock"] <= product.get("min_stock", 0):
                    low_stock.append(product)

            tx.set("sales", sale["id"], sale)
            if sale["payment_method"] == PAYMENT_CASH and amount_due:
                tx.increment("locales", sale["local_id"], "cash_in_register", amount_due)
            return low_stock

        low_stock = self.documents.run_transaction(_op)
        logger.info("Recorded sale %s at %s (%s items)", sale["id"], sale["local_id"], len(sale["items"]))

        for product in low_stock:
            self.notifications.add_low_stock(product)
        return sale

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def _check_task_rules(self, tx, task: dict, changed=None) -> None:
        """Validate a task; with `changed`, only the rules those fields touch."""
        if changed is None or changed & {"local_id", "assigned_to_id"}:
            self._check_task_placement(tx, task)
        if changed is None or changed & {"frequency", "is_recurring"}:
            if task.get("frequency") and not task.get("is_recurring"):
                raise ValidationError("frequency requires is_recurring")

    def _check_task_placement(self, tx, task: dict) -> None:
        if tx.get("locales", task["local_id"]) is None:
            raise ValidationError("local_id must reference an existing location")
        assignee = tx.get("users", task["assigned_to_id"])
        if assignee is None:
            raise ValidationError("assigned_to_id must reference an existing user")
        if assignee.get("local_id") != task["local_id"]:
            raise ValidationError("Tasks can only be assigned to users of the same location")

    def add_task(self, data: dict) -> dict:
        payload = dict(data or {})
        task_id = _new_id(payload)
        fields = validate_payload(payload=payload, policy=TASK_POLICY, partial=False)
        task = {
            "id": task_id,
            "status": TASK_PENDING,
            "is_recurring": False,
            "created_at": to_utc_z(self.clock()),
            **{k: v for k, v in fields.items() if v is not None},
        }
        if task["is_recurring"]:
            task.setdefault("frequency", "DAILY")
        if task["status"] == TASK_COMPLETED:
            task.setdefault("completed_at", to_utc_z(self.clock()))

        def _op(tx):
            if tx.get("tasks", task_id) is not None:
                raise ConflictError("Task already exists")
            self._check_task_rules(tx, task)
            tx.set("tasks", task_id, task)
            return task

        return self.documents.run_transaction(_op)

    def update_task(self, task_id: str, updates: dict) -> dict:
        fields = validate_payload(payload=updates, policy=TASK_POLICY, partial=True)
        if fields.get("status") == TASK_COMPLETED and "completed_at" not in fields:
            fields["completed_at"] = to_utc_z(self.clock())
        elif fields.get("status") == TASK_PENDING:
            fields["completed_at"] = None

        def _op(tx):
            current = tx.require("tasks", task_id)
            merged = {k: v for k, v in {**current, **fields}.items() if v is not None}
            self._check_task_rules(tx, merged, changed=set(fields))
            return tx.update("tasks", task_id, fields)

        return self.documents.run_transaction(_op)

    def toggle_task_status(self, task_id: str) -> dict:
        def _op(tx):
            task = tx.require("tasks", task_id)
            if task.get("status") == TASK_COMPLETED:
                return tx.update("tasks", task_id, {"status": TASK_PENDING, "completed_at": None})
            return tx.update("tasks", task_id, {
                "status": TASK_COMPLETED,
                "completed_at": to_utc_z(self.clock()),
            })

        return self.documents.run_transaction(_op)

    def delete_task(self, task_id: str) -> None:
        self.documents.delete("tasks", task_id)


def get_store() -> SyncedStore:
    """The synced store owned by the current app."""
    return current_app.extensions["pos_store"]
