# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/pos_ultimate/routes/sales.py
"""
Sales API routes

A sale is built from a cart of product snapshots and recorded in one
transaction with its stock decrements. Cancellation follows the request /
approve / reject workflow; admins may cancel directly.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..constants import PAYMENT_CASH
from ..errors import NotFoundError, PosError, ValidationError
from ..services import cancellation_service, scoping
from ..services.cart import Cart
from ..services.pricing_service import compute_change_due
from ..services.sync_store import get_store
from ..decorators import require_auth, forbidden


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _visible_sale(sale_id: str) -> dict | None:
    sale = get_store().get_sale(sale_id)
    if sale is None:
        return None
    if not scoping.visible_sales(g.current_user, [sale]):
        return None
    return sale


def _build_cart(store, local_id: str, lines) -> Cart:
    if not isinstance(lines, list) or not lines:
        raise ValidationError("items required")

    cart = Cart(local_id)
    for line in lines:
        if not isinstance(line, dict):
            raise ValidationError("Each item must be an object")
        product_id = line.get("product_id") or line.get("id")
        product = store.get_product(product_id) if product_id else None
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        cart.add(product, line.get("quantity", 1))
    return cart


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Record a sale from cart lines.

    Body:
        {
            "local_id": "...",            # defaults to the seller's location
            "items": [{"product_id": "...", "quantity": 2}],
            "payment_method": "CASH",
            "discount": 15, "discount_type": "PERCENTAGE",
            "amount_tendered": 100
        }
    """
    try:
        data = request.get_json(silent=True) or {}
        actor = g.current_user
        store = get_store()

        local_id = data.get("local_id") or actor.get("local_id")
        if not local_id:
            return jsonify({"error": "local_id required"}), 400
        if not scoping.in_scope(actor, local_id):
            return forbidden()

        cart = _build_cart(store, local_id, data.get("items"))
        sale = store.add_sale({
            "local_id": local_id,
            "seller_id": actor["id"],
            "items": cart.to_items(),
            "total": cart.total(),
            "payment_method": data.get("payment_method"),
            "discount": data.get("discount"),
            "discount_type": data.get("discount_type"),
            "amount_tendered": data.get("amount_tendered"),
        })

        change_due = 0
        if sale["payment_method"] == PAYMENT_CASH:
            change_due = compute_change_due(sale.get("final_total", sale["total"]), sale.get("amount_tendered"))
        return jsonify({"sale": sale, "change_due": change_due}), 201

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_auth
def list_sales_route():
    """
    Sales visible to the current user, newest first.

    Query: ?status=CANCELLATION_REQUESTED filters by lifecycle state.
    """
    sales = scoping.visible_sales(g.current_user, get_store().sales)

    status = request.args.get("status")
    if status:
        sales = [s for s in sales if cancellation_service.sale_status(s) == status]

    return jsonify({"sales": sales}), 200


@sales_bp.get("/<sale_id>")
@require_auth
def get_sale_route(sale_id: str):
    sale = _visible_sale(sale_id)
    if sale is None:
        return jsonify({"error": "Sale not found"}), 404
    return jsonify({"sale": sale}), 200


@sales_bp.get("/<sale_id>/receipt")
@require_auth
def receipt_route(sale_id: str):
    """Sale with its location and seller, for printing."""
    try:
        if _visible_sale(sale_id) is None:
            return jsonify({"error": "Sale not found"}), 404
        return jsonify(get_store().receipt_context(sale_id)), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build receipt")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<sale_id>/cancel")
@require_auth
def cancel_sale_route(sale_id: str):
    """
    Sellers request cancellation; admins cancel immediately.

    Body: {"reason": "..."}
    """
    try:
        actor = g.current_user
        if _visible_sale(sale_id) is None:
            return jsonify({"error": "Sale not found"}), 404

        data = request.get_json(silent=True) or {}
        sale = cancellation_service.request_or_perform_cancellation(
            get_store(),
            sale_id,
            reason=data.get("reason"),
            actor_id=actor["id"],
            actor_role=actor["role"],
        )
        return jsonify({"sale": sale}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<sale_id>/approve")
@require_auth
def approve_cancellation_route(sale_id: str):
    try:
        if not cancellation_service.can_approve(g.current_user["role"]):
            return forbidden("Only administrators can review cancellation requests")
        if _visible_sale(sale_id) is None:
            return jsonify({"error": "Sale not found"}), 404

        sale = cancellation_service.approve_cancellation(get_store(), sale_id, g.current_user["id"])
        return jsonify({"sale": sale}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to approve cancellation")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<sale_id>/reject")
@require_auth
def reject_cancellation_route(sale_id: str):
    try:
        if not cancellation_service.can_approve(g.current_user["role"]):
            return forbidden("Only administrators can review cancellation requests")
        if _visible_sale(sale_id) is None:
            return jsonify({"error": "Sale not found"}), 404

        sale = cancellation_service.reject_cancellation(get_store(), sale_id, g.current_user["id"])
        return jsonify({"sale": sale}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reject cancellation")
        return jsonify({"error": "Internal server error"}), 500
