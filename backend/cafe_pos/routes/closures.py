# Overview: Flask API routes for daily closure operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import closure_service
from ..services.closure_service import ClosureError
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth, require_role

closures_bp = Blueprint("closures", __name__, url_prefix="/api/daily-closures")


@closures_bp.get("/today-summary")
@require_auth
def today_summary_route():
    """Totals the cashier will close with, and whether today is already closed."""
    return jsonify(closure_service.today_summary()), 200


@closures_bp.post("")
@require_auth
def close_day_route():
    """
    Close the current business day.

    Body: {"opening_balance"?, "closing_balance"?, "notes"?}
    Returns 409 if the day is already closed.
    """
    try:
        closure = closure_service.close_day(g.current_user, request.get_json(silent=True) or {})
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to close day")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"closure": closure.to_dict()}), 201


@closures_bp.get("")
@require_auth
@require_role("admin")
def list_closures_route():
    """Query params: date_from, date_to (YYYY-MM-DD, inclusive, optional)."""
    try:
        closures = closure_service.list_closures(
            request.args.get("date_from"),
            request.args.get("date_to"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"closures": [c.to_dict() for c in closures]}), 200


@closures_bp.get("/<int:closure_id>")
@require_auth
@require_role("admin")
def get_closure_route(closure_id: int):
    try:
        closure = closure_service.get_closure(closure_id)
    except ClosureError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"closure": closure.to_dict()}), 200
