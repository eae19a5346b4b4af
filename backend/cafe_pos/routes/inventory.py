# backend/cafe_pos/routes/inventory.py
"""
Raw-material inventory routes.

SECURITY: All routes require authentication; changes require admin.

Time semantics:
- Deduction log bounds accept ISO-8601 datetimes with Z/offsets or bare
  dates; a bare end date covers that whole day.
"""
from flask import Blueprint, request, jsonify, current_app

from ..services import inventory_service
from ..services.inventory_service import InventoryError, format_quantity
from ..validation import ValidationError, coerce_bool
from ..decorators import require_auth, require_role

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/items")
@require_auth
def list_items_route():
    """
    Query params:
    - low_stock: bool (optional) - only items at or below min_quantity
    """
    if coerce_bool(request.args.get("low_stock"), default=False):
        items = inventory_service.low_stock_items()
    else:
        items = inventory_service.list_items()
    return jsonify({"items": [i.to_dict() for i in items]}), 200


@inventory_bp.get("/items/<int:item_id>")
@require_auth
def get_item_route(item_id: int):
    try:
        item = inventory_service.get_item(item_id)
    except InventoryError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"item": item.to_dict()}), 200


@inventory_bp.post("/items")
@require_auth
@require_role("admin")
def create_item_route():
    try:
        item = inventory_service.create_item(request.get_json(silent=True) or {})
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"item": item.to_dict()}), 201


@inventory_bp.put("/items/<int:item_id>")
@require_auth
@require_role("admin")
def update_item_route(item_id: int):
    try:
        item = inventory_service.update_item(item_id, request.get_json(silent=True) or {})
    except InventoryError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"item": item.to_dict()}), 200


@inventory_bp.delete("/items/<int:item_id>")
@require_auth
@require_role("admin")
def delete_item_route(item_id: int):
    try:
        inventory_service.delete_item(item_id)
    except InventoryError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"message": "Inventory item deleted"}), 200


@inventory_bp.post("/items/<int:item_id>/adjust")
@require_auth
@require_role("admin")
def adjust_item_route(item_id: int):
    """
    Manual restock or write-off.

    Body: {"quantity_change": <non-zero number>}. A write-off larger than
    the stock on hand is rejected and nothing changes.
    """
    data = request.get_json(silent=True) or {}
    try:
        inventory_service.get_item(item_id)
    except InventoryError as e:
        return jsonify({"error": str(e)}), 404

    try:
        new_quantity = inventory_service.adjust_item(item_id, data.get("quantity_change"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except InventoryError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to adjust inventory item %s", item_id)
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info(
        "Inventory item %s adjusted by %s to %s",
        item_id, data.get("quantity_change"), format_quantity(new_quantity),
    )
    return jsonify({"item": inventory_service.get_item(item_id).to_dict()}), 200


@inventory_bp.get("/deductions")
@require_auth
@require_role("admin")
def deduction_log_route():
    """
    Automatic consumption audit trail, newest first (max 500 rows).

    Query params:
    - order_id: int (optional)
    - inventory_item_id: int (optional)
    - start / end: ISO-8601 (optional, inclusive)
    """
    try:
        entries = inventory_service.deduction_log(
            order_id=request.args.get("order_id", type=int),
            inventory_item_id=request.args.get("inventory_item_id", type=int),
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"deductions": [e.to_dict() for e in entries]}), 200
