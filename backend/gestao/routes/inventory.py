# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/gestao/routes/inventory.py
"""
Inventory management routes.

Items carry their on-hand quantity. Stock changes only through
POST /<id>/movements (inbound/outbound); sales do not touch stock.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..services import inventory_service
from .errors import DOMAIN_ERRORS, json_error


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/")
@require_auth
def create_item_route():
    try:
        item = inventory_service.create_item(
            g.org_id,
            request.get_json(silent=True) or {},
            created_by_user_id=g.current_user.id,
        )
        return jsonify({"item": item.to_dict()}), 201

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to create inventory item")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/")
@require_auth
def list_items_route():
    """
    Query params:
    - include_inactive: "true" to list deactivated items too
    - search: matches name, category or barcode
    """
    try:
        include_inactive = request.args.get("include_inactive", "false").lower() == "true"
        items = inventory_service.list_items(
            g.org_id,
            active_only=not include_inactive,
            search=request.args.get("search") or None,
        )
        return jsonify({"items": [i.to_dict() for i in items], "count": len(items)}), 200

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to list inventory items")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/low-stock")
@require_auth
def low_stock_route():
    try:
        items = inventory_service.list_low_stock(g.org_id)
        return jsonify({"items": [i.to_dict() for i in items], "count": len(items)}), 200

    except Exception:
        current_app.logger.exception("Failed to list low-stock items")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/<int:item_id>")
@require_auth
def get_item_route(item_id: int):
    try:
        item = inventory_service.get_item(g.org_id, item_id)
        return jsonify({"item": item.to_dict()}), 200

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to get inventory item")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.put("/<int:item_id>")
@require_auth
def update_item_route(item_id: int):
    """Catalog fields only; quantity changes go through /movements."""
    try:
        item = inventory_service.update_item(g.org_id, item_id, request.get_json(silent=True) or {})
        return jsonify({"item": item.to_dict()}), 200

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to update inventory item")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.delete("/<int:item_id>")
@require_auth
def delete_item_route(item_id: int):
    """Items already sold are deactivated instead of deleted."""
    try:
        outcome = inventory_service.delete_item(g.org_id, item_id)
        return jsonify({"result": outcome}), 200

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to delete inventory item")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/<int:item_id>/movements")
@require_auth
def stock_movement_route(item_id: int):
    """
    Apply a stock movement.

    Request body:
    {
        "direction": "inbound" | "outbound",
        "quantity": 5,
        "unit_cost_cents": 350,     (optional, inbound only; books a purchase OUTFLOW)
        "notes": "..."              (optional)
    }

    Returns:
        200: updated item and movement summary
        400: invalid quantity, direction or cost
        404: item not found
        409: insufficient stock
    """
    try:
        data = request.get_json(silent=True) or {}
        result = inventory_service.apply_stock_movement(
            g.org_id,
            item_id,
            data.get("direction"),
            data.get("quantity"),
            notes=data.get("notes"),
            unit_cost_cents=data.get("unit_cost_cents"),
            actor_user_id=g.current_user.id,
        )
        return jsonify(result.to_dict()), 200

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to apply stock movement")
        return jsonify({"error": "Internal server error"}), 500
