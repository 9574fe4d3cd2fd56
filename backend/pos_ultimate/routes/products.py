# Overview: Flask API routes for the product catalogue; parses input and returns JSON responses.

# backend/pos_ultimate/routes/products.py

from flask import Blueprint, request, jsonify, current_app, g

from ..constants import ADMIN_ROLES, ROLE_SUPER_ADMIN
from ..errors import PosError
from ..services import scoping
from ..services.sync_store import get_store
from ..decorators import require_auth, require_role, forbidden


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route():
    """
    List products visible to the current user.

    Query: ?local_id=... narrows to one location.
    """
    store = get_store()
    products = scoping.visible_products(g.current_user, store.products)

    local_id = request.args.get("local_id")
    if local_id:
        products = [p for p in products if p.get("local_id") == local_id]

    return jsonify({"products": products}), 200


@products_bp.get("/lookup")
@require_auth
def lookup_product_route():
    """
    Scan lookup by SKU or barcode within a location.

    Query: ?code=...&local_id=... (local_id defaults to the user's location)
    """
    code = (request.args.get("code") or "").strip()
    if not code:
        return jsonify({"error": "code required"}), 400

    local_id = request.args.get("local_id") or g.current_user.get("local_id")
    if not local_id or not scoping.in_scope(g.current_user, local_id):
        return forbidden()

    product = get_store().find_product_by_code(local_id, code)
    if product is None:
        return jsonify({"error": "Product not found"}), 404
    return jsonify({"product": product}), 200


@products_bp.get("/<product_id>")
@require_auth
def get_product_route(product_id: str):
    product = get_store().get_product(product_id)
    if product is None or not scoping.in_scope(g.current_user, product.get("local_id")):
        return jsonify({"error": "Product not found"}), 404
    return jsonify({"product": product}), 200


@products_bp.post("")
@require_auth
@require_role(*ADMIN_ROLES)
def create_product_route():
    try:
        data = request.get_json(silent=True) or {}
        actor = g.current_user

        if actor["role"] != ROLE_SUPER_ADMIN:
            data.setdefault("local_id", actor.get("local_id"))
        if not scoping.can_manage_local(actor, data.get("local_id")):
            return forbidden()

        product = get_store().add_product(data)
        return jsonify({"product": product}), 201

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<product_id>")
@require_auth
@require_role(*ADMIN_ROLES)
def update_product_route(product_id: str):
    try:
        data = request.get_json(silent=True) or {}
        actor = g.current_user
        store = get_store()

        product = store.get_product(product_id)
        if product is None:
            return jsonify({"error": "Product not found"}), 404
        if not scoping.can_manage_local(actor, product.get("local_id")):
            return forbidden()
        if "local_id" in data and not scoping.can_manage_local(actor, data["local_id"]):
            return forbidden("Cannot move a product to that location")

        product = store.update_product(product_id, data)
        return jsonify({"product": product}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<product_id>")
@require_auth
@require_role(*ADMIN_ROLES)
def delete_product_route(product_id: str):
    try:
        store = get_store()
        product = store.get_product(product_id)
        if product is None:
            return jsonify({"error": "Product not found"}), 404
        if not scoping.can_manage_local(g.current_user, product.get("local_id")):
            return forbidden()

        store.delete_product(product_id)
        return jsonify({"message": "Product deleted"}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500
