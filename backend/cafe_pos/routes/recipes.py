# Overview: Flask API routes for recipe links; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..services import recipe_service
from ..services.recipe_service import RecipeError
from ..validation import ValidationError
from ..decorators import require_auth, require_role

recipes_bp = Blueprint("recipes", __name__, url_prefix="/api/recipes")


@recipes_bp.get("")
@require_auth
def list_links_route():
    """
    Query params:
    - product_id: int (optional) - one product's raw materials with current stock
    """
    links = recipe_service.list_links(product_id=request.args.get("product_id", type=int))
    return jsonify({"links": [link.to_dict() for link in links]}), 200


@recipes_bp.post("")
@require_auth
@require_role("admin")
def set_link_route():
    """
    Link a product to a raw material.

    Body: {"product_id", "inventory_item_id", "quantity_per_order" (default 1)}.
    Linking an already linked pair overwrites quantity_per_order.
    """
    data = request.get_json(silent=True) or {}
    try:
        link = recipe_service.set_recipe_link(
            data.get("product_id"),
            data.get("inventory_item_id"),
            data.get("quantity_per_order", 1),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except RecipeError as e:
        return jsonify({"error": str(e), "details": e.details}), 404
    return jsonify({"link": link.to_dict()}), 200


@recipes_bp.delete("/<int:link_id>")
@require_auth
@require_role("admin")
def remove_link_route(link_id: int):
    try:
        recipe_service.remove_link(link_id)
    except RecipeError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"message": "Recipe link removed"}), 200
