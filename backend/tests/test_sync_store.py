"""
Synced store tests.

Verifies:
- Bootstrap super-admin seeding
- Snapshot cache follows the document store, and stops after teardown
- User index fields, uniqueness and location rules
- Atomic sale recording: stock, cash and low-stock notifications
- Task rules and status toggling
"""

import pytest

from conftest import sale_payload
from pos_ultimate.constants import BOOTSTRAP_ADMIN_ID
from pos_ultimate.errors import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from pos_ultimate.services.auth_service import PasswordValidationError


# =============================================================================
# BOOTSTRAP AND LISTENER LIFECYCLE
# =============================================================================


class TestBootstrap:

    def test_empty_users_collection_gets_one_super_admin(self, store):
        users = store.users
        assert len(users) == 1
        assert users[0]["id"] == BOOTSTRAP_ADMIN_ID
        assert users[0]["role"] == "SUPER_ADMIN"
        assert store.documents.get("users", BOOTSTRAP_ADMIN_ID) is not None

    def test_bootstrap_password_is_hashed(self, store):
        record = store.documents.get("users", BOOTSTRAP_ADMIN_ID)
        assert "password" not in record
        assert record["password_hash"].startswith("$2")

    def test_reseeds_when_last_user_is_deleted(self, store):
        store.delete_user(BOOTSTRAP_ADMIN_ID)

        users = store.users
        assert [u["id"] for u in users] == [BOOTSTRAP_ADMIN_ID]
        assert len(store.documents.snapshot("users")) == 1

    def test_existing_users_are_not_reseeded(self, store, seller_a):
        store.delete_user(BOOTSTRAP_ADMIN_ID)
        assert [u["id"] for u in store.users] == [seller_a["id"]]

    def test_start_is_idempotent(self, store):
        store.start()
        assert len(store.documents.subscribed_collections()) == 5


class TestSnapshotCache:

    def test_writes_become_visible_through_the_subscription(self, store, local_a):
        assert store.get_local(local_a["id"])["name"] == "Centro"

        store.update_local(local_a["id"], {"name": "Centro Sur"})

        assert store.get_local(local_a["id"])["name"] == "Centro Sur"

    def test_cache_reads_are_copies(self, store, coffee):
        store.products[0]["stock"] = 0
        assert store.get_product(coffee["id"])["stock"] == 10

    def test_stop_freezes_the_cache(self, store, local_a):
        store.stop()
        assert not store.listening

        store.add_local({"id": "local-c", "name": "Sur", "address": "South 3"})

        assert store.get_local("local-c") is None
        assert store.documents.get("locales", "local-c") is not None

    def test_resync_picks_up_writes_made_elsewhere(self, store, local_a):
        store.stop()
        store.documents.update("locales", local_a["id"], {"name": "Renamed"})
        store.start()

        assert store.get_local(local_a["id"])["name"] == "Renamed"


# =============================================================================
# USERS
# =============================================================================


class TestUsers:

    def test_index_fields_are_lowercase(self, store, seller_a):
        record = store.documents.get("users", seller_a["id"])
        assert record["username_lower"] == "maria"
        assert record["email_lower"] == "maria@pos.local"

    def test_returned_user_has_no_secret(self, store, seller_a):
        assert "password_hash" not in seller_a
        assert "password" not in seller_a

    def test_username_unique_case_insensitive(self, store, seller_a, local_a):
        with pytest.raises(ConflictError):
            store.add_user({
                "username": "MARIA",
                "password": "Password123!",
                "role": "SELLER",
                "name": "Other Maria",
                "local_id": local_a["id"],
            })

    def test_email_unique_case_insensitive(self, store, seller_a, local_a):
        with pytest.raises(ConflictError):
            store.add_user({
                "username": "maria2",
                "email": "MARIA@pos.local",
                "password": "Password123!",
                "role": "SELLER",
                "name": "Other Maria",
                "local_id": local_a["id"],
            })

    def test_seller_requires_existing_location(self, store):
        with pytest.raises(ValidationError):
            store.add_user({"username": "x", "password": "Password123!", "role": "SELLER", "name": "X"})
        with pytest.raises(ValidationError):
            store.add_user({
                "username": "x", "password": "Password123!", "role": "SELLER",
                "name": "X", "local_id": "nowhere",
            })

    def test_super_admin_is_not_location_scoped(self, store, local_a):
        user = store.add_user({
            "username": "owner2",
            "password": "Password123!",
            "role": "SUPER_ADMIN",
            "name": "Owner",
            "local_id": local_a["id"],
        })
        assert "local_id" not in user

    def test_weak_password_rejected_before_any_write(self, store, local_a):
        with pytest.raises(PasswordValidationError):
            store.add_user({
                "username": "weak", "password": "short", "role": "SELLER",
                "name": "Weak", "local_id": local_a["id"],
            })
        assert store.find_user("weak") is None

    def test_update_rederives_index_and_rehashes(self, store, seller_a):
        before = store.documents.get("users", seller_a["id"])["password_hash"]

        store.update_user(seller_a["id"], {"username": "MariaJose", "password": "NewPassword1!"})

        record = store.documents.get("users", seller_a["id"])
        assert record["username_lower"] == "mariajose"
        assert record["password_hash"] != before

    def test_update_can_clear_email(self, store, seller_a):
        store.update_user(seller_a["id"], {"email": None})
        record = store.documents.get("users", seller_a["id"])
        assert "email" not in record
        assert "email_lower" not in record

    def test_unknown_fields_rejected(self, store, seller_a):
        with pytest.raises(ValidationError):
            store.update_user(seller_a["id"], {"password_hash": "x"})


# =============================================================================
# LOCATIONS AND PRODUCTS
# =============================================================================


class TestLocales:

    def test_defaults(self, local_a):
        assert local_a["is_active"] is True
        assert local_a["subscription_status"] == "ACTIVE"
        assert local_a["cash_in_register"] == 0

    def test_toggle_status(self, store, local_a):
        assert store.toggle_local_status(local_a["id"])["is_active"] is False
        assert store.toggle_local_status(local_a["id"])["is_active"] is True

        titles = [n["title"] for n in store.notifications.all()]
        assert titles == ["Location reactivated", "Location suspended"]

    def test_cash_count_and_adjust(self, store, local_a):
        store.record_cash_count(local_a["id"], 1500)
        assert store.adjust_cash(local_a["id"], -200.5) == 1299.5
        assert store.get_local(local_a["id"])["cash_in_register"] == 1299.5

    def test_delete_does_not_cascade(self, store, local_a, coffee):
        store.delete_local(local_a["id"])
        assert store.get_local(local_a["id"]) is None
        assert store.get_product(coffee["id"]) is not None


class TestProducts:

    def test_negative_values_rejected(self, store, local_a):
        with pytest.raises(ValidationError):
            store.add_product({
                "local_id": local_a["id"], "name": "Bad", "price": -1, "stock": 1,
                "min_stock": 0, "category": "X", "sku": "B1",
            })

    def test_default_measurement_unit(self, coffee):
        assert coffee["measurement_unit"] == "UNIT"

    def test_sku_unique_per_location(self, store, coffee, local_a):
        with pytest.raises(ConflictError):
            store.add_product({
                "local_id": local_a["id"], "name": "Dup", "price": 1, "stock": 1,
                "min_stock": 0, "category": "X", "sku": coffee["sku"],
            })

    def test_same_sku_allowed_in_another_location(self, coffee, tea_b):
        assert tea_b["sku"] == coffee["sku"]

    def test_lookup_by_sku_then_barcode(self, store, coffee, tea_b, local_a, local_b):
        assert store.find_product_by_code(local_a["id"], "7790001")["id"] == coffee["id"]
        assert store.find_product_by_code(local_b["id"], "7790001")["id"] == tea_b["id"]
        assert store.find_product_by_code(local_a["id"], "CF-500")["id"] == coffee["id"]
        assert store.find_product_by_code(local_b["id"], "CF-500") is None


# =============================================================================
# SALES
# =============================================================================


class TestAddSale:

    def test_decrements_stock_by_sold_quantity(self, store, local_a, seller_a, coffee, sugar):
        store.add_sale(sale_payload(local_a["id"], seller_a["id"], [(coffee, 2), (sugar, 1.5)]))

        assert store.get_product(coffee["id"])["stock"] == 8
        assert store.get_product(sugar["id"])["stock"] == 3

    def test_sale_defaults(self, store, local_a, seller_a, coffee, clock):
        sale = store.add_sale(sale_payload(local_a["id"], seller_a["id"], [(coffee, 2)]))

        assert sale["status"] == "COMPLETED"
        assert sale["total"] == 2400
        assert sale["date"] == "2026-03-01T12:00:00Z"
        assert store.get_sale(sale["id"]) == sale

    def test_one_low_stock_notification_per_product(self, store, local_a, seller_a, coffee, sugar):
        store.add_sale(sale_payload(local_a["id"], seller_a["id"], [(coffee, 3), (coffee, 4), (sugar, 1)]))

        notifications = store.notifications.all()
        assert len(notifications) == 1
        assert notifications[0]["type"] == "LOW_STOCK"
        assert notifications[0]["product_id"] == coffee["id"]
        assert notifications[0]["local_id"] == local_a["id"]
        assert notifications[0]["read"] is False

    def test_oversell_rejected_and_nothing_written(self, store, local_a, seller_a, coffee, sugar):
        with pytest.raises(InsufficientStockError) as exc_info:
            store.add_sale(sale_payload(local_a["id"], seller_a["id"], [(sugar, 1), (coffee, 11)]))

        assert exc_info.value.details["items"][0]["product_id"] == coffee["id"]
        assert store.get_product(coffee["id"])["stock"] == 10
        assert store.get_product(sugar["id"])["stock"] == 4.5
        assert store.sales == ()
        assert store.notifications.all() == []

    def test_second_sale_of_stale_cart_fails_at_commit(self, store, local_a, seller_a, coffee):
        first = sale_payload(local_a["id"], seller_a["id"], [(coffee, 6)])
        second = sale_payload(local_a["id"], seller_a["id"], [(coffee, 6)])

        store.add_sale(first)
        with pytest.raises(InsufficientStockError):
            store.add_sale(second)

        assert store.get_product(coffee["id"])["stock"] == 4
        assert len(store.sales) == 1

    def test_cash_sale_feeds_register(self, store, local_a, seller_a, coffee):
        store.add_sale(sale_payload(
            local_a["id"], seller_a["id"], [(coffee, 2)],
            payment_method="CASH", discount=15, discount_type="PERCENTAGE", amount_tendered=3000,
        ))
        assert store.get_local(local_a["id"])["cash_in_register"] == 2040

    def test_card_sale_leaves_register_alone(self, store, local_a, seller_a, coffee):
        store.add_sale(sale_payload(local_a["id"], seller_a["id"], [(coffee, 2)]))
        assert store.get_local(local_a["id"])["cash_in_register"] == 0

    def test_final_total_must_match_discount(self, store, local_a, seller_a, coffee):
        with pytest.raises(ValidationError):
            store.add_sale(sale_payload(
                local_a["id"], seller_a["id"], [(coffee, 1)],
                discount=100, discount_type="FIXED", final_total=1000,
            ))

    def test_cash_tendered_must_cover_amount(self, store, local_a, seller_a, coffee):
        with pytest.raises(ValidationError):
            store.add_sale(sale_payload(
                local_a["id"], seller_a["id"], [(coffee, 1)],
                payment_method="CASH", amount_tendered=100,
            ))
        assert store.get_product(coffee["id"])["stock"] == 10

    def test_empty_sale_rejected(self, store, local_a, seller_a):
        with pytest.raises(ValidationError):
            store.add_sale(sale_payload(local_a["id"], seller_a["id"], []))

    def test_product_from_another_location_rejected(self, store, local_a, seller_a, tea_b):
        with pytest.raises(ValidationError):
            store.add_sale(sale_payload(local_a["id"], seller_a["id"], [(tea_b, 1)]))
        assert store.get_product(tea_b["id"])["stock"] == 5

    def test_unknown_product_rejected(self, store, local_a, seller_a, coffee):
        ghost = {**coffee, "id": "ghost"}
        with pytest.raises(NotFoundError):
            store.add_sale(sale_payload(local_a["id"], seller_a["id"], [(ghost, 1)]))

    def test_client_supplied_status_is_ignored(self, store, local_a, seller_a, coffee):
        sale = store.add_sale(sale_payload(
            local_a["id"], seller_a["id"], [(coffee, 1)],
            status="CANCELLED", cancellation_reason="sneaky",
            cancellation_rejected_by="intruder",
        ))
        assert sale["status"] == "COMPLETED"
        assert "cancellation_reason" not in sale
        assert "cancellation_rejected_by" not in sale

    def test_receipt_context(self, store, local_a, seller_a, coffee):
        sale = store.add_sale(sale_payload(local_a["id"], seller_a["id"], [(coffee, 1)]))

        receipt = store.receipt_context(sale["id"])

        assert receipt["sale"]["id"] == sale["id"]
        assert receipt["local"]["id"] == local_a["id"]
        assert receipt["seller"]["id"] == seller_a["id"]
        assert "password_hash" not in receipt["seller"]


# =============================================================================
# TASKS
# =============================================================================


class TestTasks:

    def _task(self, store, local_a, admin_a, seller_a, **extra):
        return store.add_task({
            "local_id": local_a["id"],
            "assigned_to_id": seller_a["id"],
            "assigned_by_id": admin_a["id"],
            "title": "Restock shelves",
            **extra,
        })

    def test_defaults(self, store, local_a, admin_a, seller_a):
        task = self._task(store, local_a, admin_a, seller_a)
        assert task["status"] == "PENDING"
        assert task["created_at"] == "2026-03-01T12:00:00Z"
        assert task["is_recurring"] is False

    def test_recurring_defaults_to_daily(self, store, local_a, admin_a, seller_a):
        task = self._task(store, local_a, admin_a, seller_a, is_recurring=True)
        assert task["frequency"] == "DAILY"

    def test_assignee_must_belong_to_location(self, store, local_a, admin_a, seller_b):
        with pytest.raises(ValidationError):
            self._task(store, local_a, admin_a, seller_b)

    def test_toggle_stamps_and_clears_completion(self, store, local_a, admin_a, seller_a, clock):
        task = self._task(store, local_a, admin_a, seller_a)
        clock.advance(hours=2)

        done = store.toggle_task_status(task["id"])
        assert done["status"] == "COMPLETED"
        assert done["completed_at"] == "2026-03-01T14:00:00Z"

        reopened = store.toggle_task_status(task["id"])
        assert reopened["status"] == "PENDING"
        assert "completed_at" not in reopened

    def test_status_update_survives_deleted_assignee(self, store, local_a, admin_a, seller_a):
        task = self._task(store, local_a, admin_a, seller_a)
        store.delete_user(seller_a["id"])

        updated = store.update_task(task["id"], {"status": "COMPLETED"})

        assert updated["status"] == "COMPLETED"

    def test_reassigning_to_missing_user_rejected(self, store, local_a, admin_a, seller_a):
        task = self._task(store, local_a, admin_a, seller_a)

        with pytest.raises(ValidationError):
            store.update_task(task["id"], {"assigned_to_id": "ghost"})
