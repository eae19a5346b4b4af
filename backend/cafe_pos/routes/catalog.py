# Overview: Flask API routes for menu categories and products; parses input and returns JSON responses.

"""
Menu catalog routes.

Reads are public (the customer-facing menu uses them); writes require an
admin session.
"""
from flask import Blueprint, request, jsonify, current_app

from ..services import catalog_service
from ..services.catalog_service import CatalogError
from ..validation import ValidationError, ConflictError, coerce_bool
from ..decorators import require_auth, require_role

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api")


@catalog_bp.get("/categories")
def list_categories_route():
    categories = catalog_service.list_categories()
    return jsonify({"categories": [c.to_dict() for c in categories]}), 200


@catalog_bp.post("/categories")
@require_auth
@require_role("admin")
def create_category_route():
    try:
        category = catalog_service.create_category(request.get_json(silent=True) or {})
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"category": category.to_dict()}), 201


@catalog_bp.put("/categories/<int:category_id>")
@require_auth
@require_role("admin")
def update_category_route(category_id: int):
    try:
        category = catalog_service.update_category(category_id, request.get_json(silent=True) or {})
    except CatalogError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"category": category.to_dict()}), 200


@catalog_bp.delete("/categories/<int:category_id>")
@require_auth
@require_role("admin")
def delete_category_route(category_id: int):
    try:
        catalog_service.delete_category(category_id)
    except CatalogError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    return jsonify({"message": "Category deleted"}), 200


@catalog_bp.get("/products")
def list_products_route():
    """
    Query params:
    - category_id: int (optional)
    - available: bool (optional) - only products currently on sale
    """
    products = catalog_service.list_products(
        category_id=request.args.get("category_id", type=int),
        available_only=coerce_bool(request.args.get("available"), default=False),
    )
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@catalog_bp.get("/products/<int:product_id>")
def get_product_route(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
    except CatalogError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"product": product.to_dict()}), 200


@catalog_bp.post("/products")
@require_auth
@require_role("admin")
def create_product_route():
    try:
        product = catalog_service.create_product(request.get_json(silent=True) or {})
    except CatalogError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"product": product.to_dict()}), 201


@catalog_bp.put("/products/<int:product_id>")
@require_auth
@require_role("admin")
def update_product_route(product_id: int):
    try:
        product = catalog_service.update_product(product_id, request.get_json(silent=True) or {})
    except CatalogError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"product": product.to_dict()}), 200


@catalog_bp.delete("/products/<int:product_id>")
@require_auth
@require_role("admin")
def delete_product_route(product_id: int):
    try:
        catalog_service.delete_product(product_id)
    except CatalogError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to delete product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"message": "Product deleted"}), 200
