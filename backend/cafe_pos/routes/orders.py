# Overview: Flask API routes for orders operations; parses input and returns JSON responses.

# backend/cafe_pos/routes/orders.py
"""Order API routes. Submitting an order is the cashier's main action."""

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..services import order_service
from ..services.order_service import (
    InsufficientStockError,
    OrderCoordinator,
    OrderError,
    OrderRequest,
)
from ..validation import ValidationError
from ..decorators import require_auth

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")

MAX_LIST_LIMIT = 500


@orders_bp.post("")
@require_auth
def create_order_route():
    """
    Place an order: price it, consume raw materials, record it and update
    today's totals, all or nothing.

    Body: {"lines": [{"product_id", "quantity", "unit_price"}],
           "discount_amount", "payment_method", "table_id"?}

    Returns:
    - 201: {order_id, order_number, subtotal, total_amount, tax_amount, discount_amount}
    - 400: validation problem, unknown product/table, or insufficient stock
      ("detail" names the first short item, "details.items" lists all)
    - 500: unexpected failure; nothing was written
    """
    try:
        order_request = OrderRequest.from_payload(request.get_json(silent=True))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    coordinator = OrderCoordinator.from_config(db.session, current_app.config)
    try:
        receipt = coordinator.place_order(order_request, g.current_user_id)
    except InsufficientStockError as e:
        return jsonify({"error": str(e), "detail": e.detail, "details": e.details}), 400
    except OrderError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(receipt.to_dict()), 201


@orders_bp.get("")
@require_auth
def list_orders_route():
    """
    Query params:
    - date: YYYY-MM-DD business date (optional)
    - status: str (optional)
    - table_id: int (optional) - 0 means takeaway orders
    - limit: int (optional, default 100, max 500)
    """
    limit = request.args.get("limit", default=100, type=int)
    limit = max(1, min(limit, MAX_LIST_LIMIT))
    try:
        orders = order_service.list_orders(
            day=request.args.get("date"),
            status=request.args.get("status"),
            table_id=request.args.get("table_id", type=int),
            limit=limit,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"orders": [o.to_dict() for o in orders]}), 200


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order, lines = order_service.get_order(order_id)
    except OrderError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({
        "order": order.to_dict(),
        "lines": [line.to_dict() for line in lines],
    }), 200
