# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import auth_service, session_service
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth, require_role
from ..time_utils import to_utc_z

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate by email and password and create a session token.

    Token must be included as "Authorization: Bearer <token>" on protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        user = auth_service.authenticate(email, password)
        if not user:
            current_app.logger.info("Failed login for %s", email)
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(user.id)

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "expires_at": to_utc_z(session.expires_at),
            "message": "Login successful"
        }), 200

    except Exception:
        current_app.logger.exception("Login failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    token = request.headers["Authorization"].split(" ", 1)[1]
    session_service.revoke_session(token)
    return jsonify({"message": "Logout successful"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200


@auth_bp.get("/users")
@require_auth
@require_role("admin")
def list_users_route():
    return jsonify({"users": [u.to_dict() for u in auth_service.list_users()]}), 200


@auth_bp.post("/users")
@require_auth
@require_role("admin")
def create_user_route():
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.create_user(
            name=data.get("name"),
            email=data.get("email"),
            password=data.get("password"),
            role=data.get("role") or "cashier",
        )
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"user": user.to_dict()}), 201


@auth_bp.patch("/users/<int:user_id>")
@require_auth
@require_role("admin")
def update_user_route(user_id: int):
    """Activate or deactivate a staff account. Deactivation ends its sessions."""
    data = request.get_json(silent=True) or {}
    if not isinstance(data.get("is_active"), bool):
        return jsonify({"error": "is_active (boolean) required"}), 400
    if user_id == g.current_user.id and not data["is_active"]:
        return jsonify({"error": "Cannot deactivate your own account"}), 400
    try:
        user = auth_service.set_user_active(user_id, data["is_active"])
    except auth_service.AuthError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"user": user.to_dict()}), 200
