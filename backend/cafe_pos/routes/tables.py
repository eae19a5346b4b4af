# Overview: Flask API routes for dining tables; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..services import catalog_service
from ..services.catalog_service import CatalogError
from ..validation import ValidationError
from ..decorators import require_auth, require_role

tables_bp = Blueprint("tables", __name__, url_prefix="/api/tables")


@tables_bp.get("")
@require_auth
def list_tables_route():
    return jsonify({"tables": [t.to_dict() for t in catalog_service.list_tables()]}), 200


@tables_bp.post("")
@require_auth
@require_role("admin")
def add_tables_route():
    """Body: {"count": N} appends "Table k" ... "Table k+N-1" and returns just those."""
    data = request.get_json(silent=True) or {}
    try:
        tables = catalog_service.add_tables(data.get("count"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"tables": [t.to_dict() for t in tables]}), 201


@tables_bp.put("/<int:table_id>")
@require_auth
@require_role("admin")
def rename_table_route(table_id: int):
    data = request.get_json(silent=True) or {}
    try:
        table = catalog_service.rename_table(table_id, data.get("name"))
    except CatalogError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"table": table.to_dict()}), 200


@tables_bp.delete("/<int:table_id>")
@require_auth
@require_role("admin")
def delete_table_route(table_id: int):
    try:
        catalog_service.delete_table(table_id)
    except CatalogError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"message": "Table deleted"}), 200
