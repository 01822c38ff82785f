# Overview: Flask API routes for the basket (cesta) catalog; parses input and returns JSON responses.

"""
Basket catalog routes.

Sale lines reference a basket as "cesta-<id>"; the sale keeps a snapshot,
so editing or deleting a basket here never changes past sales.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..services import basket_service
from ..validation import coerce_int
from .errors import DOMAIN_ERRORS, json_error


baskets_bp = Blueprint("baskets", __name__, url_prefix="/api/baskets")


@baskets_bp.post("/")
@require_auth
def create_basket_route():
    """
    Request body:
    {
        "name": "Cesta Basica",
        "promo_price_cents": 8000,           (optional)
        "components": [{"item_id": 1, "quantity": 2}, ...]
    }
    """
    try:
        basket = basket_service.create_basket(
            g.org_id,
            request.get_json(silent=True) or {},
            created_by_user_id=g.current_user.id,
        )
        return jsonify({"basket": basket.to_dict()}), 201

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to create basket")
        return jsonify({"error": "Internal server error"}), 500


@baskets_bp.get("/")
@require_auth
def list_baskets_route():
    """
    Query params: search, page (default 1), limit (default 50, max 200)
    """
    try:
        page = coerce_int(request.args.get("page", "1"), "page")
        limit = min(coerce_int(request.args.get("limit", "50"), "limit"), 200)
        result = basket_service.list_baskets(
            g.org_id,
            search=request.args.get("search") or None,
            page=page,
            limit=limit,
        )
        result["baskets"] = [b.to_dict() for b in result["baskets"]]
        return jsonify(result), 200

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to list baskets")
        return jsonify({"error": "Internal server error"}), 500


@baskets_bp.get("/active")
@require_auth
def list_active_baskets_route():
    try:
        baskets = basket_service.list_active_baskets(g.org_id)
        return jsonify({"baskets": [b.to_dict() for b in baskets], "count": len(baskets)}), 200

    except Exception:
        current_app.logger.exception("Failed to list active baskets")
        return jsonify({"error": "Internal server error"}), 500


@baskets_bp.get("/possible")
@require_auth
def possible_baskets_route():
    """How many of each active basket current stock could assemble, keyed by basket id."""
    try:
        possible = basket_service.calculate_possible(g.org_id)
        return jsonify({"possible": {str(k): v for k, v in possible.items()}}), 200

    except Exception:
        current_app.logger.exception("Failed to calculate possible baskets")
        return jsonify({"error": "Internal server error"}), 500


@baskets_bp.get("/<int:basket_id>")
@require_auth
def get_basket_route(basket_id: int):
    try:
        basket = basket_service.get_basket(g.org_id, basket_id)
        return jsonify({"basket": basket.to_dict()}), 200

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to get basket")
        return jsonify({"error": "Internal server error"}), 500


@baskets_bp.put("/<int:basket_id>")
@require_auth
def update_basket_route(basket_id: int):
    try:
        basket = basket_service.update_basket(g.org_id, basket_id, request.get_json(silent=True) or {})
        return jsonify({"basket": basket.to_dict()}), 200

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to update basket")
        return jsonify({"error": "Internal server error"}), 500


@baskets_bp.delete("/<int:basket_id>")
@require_auth
def delete_basket_route(basket_id: int):
    try:
        basket_service.delete_basket(g.org_id, basket_id)
        return jsonify({"result": "deleted"}), 200

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to delete basket")
        return jsonify({"error": "Internal server error"}), 500
