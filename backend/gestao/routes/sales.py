# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/gestao/routes/sales.py
"""
Sales API routes

Lines reference either an inventory item ("item_ref": 12) or a basket
("item_ref": "cesta-<id>"). All money fields are integer cents.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..services import sales_service
from ..validation import coerce_int
from .errors import DOMAIN_ERRORS, json_error


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("/")
@require_auth
def create_sale_route():
    """
    Create a sale.

    Request body:
    {
        "client_id": 3,                    (optional)
        "vendor_id": 1,                    (optional)
        "items": [
            {"item_ref": 12, "quantity": 2, "unit_price_cents": 1000},
            {"item_ref": "cesta-7", "name": "Cesta Basica", "quantity": 1,
             "unit_price_cents": 8000, "subtotal_cents": 8000}
        ],
        "total_cents": 10000,
        "discount_cents": 0,               (optional)
        "payment_type": "fiado",           (optional, default "dinheiro")
        "delivery_method": "entrega",      (optional, default "retirada")
        "delivery_date": "2024-06-01",     (optional)
        "notes": "..."                     (optional)
    }

    Returns:
        201: sale, stock lines and basket lines
        400: invalid input
        404: client, vendor or item not found
    """
    try:
        sale, items = sales_service.create_sale(
            g.org_id,
            g.current_user.id,
            request.get_json(silent=True),
        )
        return jsonify({
            "sale": sale.to_dict(),
            "items": [i.to_dict() for i in items],
        }), 201

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/")
@require_auth
def list_sales_route():
    """
    Query params: status, page (default 1), limit (default 50, max 200)
    """
    try:
        page = coerce_int(request.args.get("page", "1"), "page")
        limit = min(coerce_int(request.args.get("limit", "50"), "limit"), 200)
        result = sales_service.list_sales(
            g.org_id,
            status=request.args.get("status") or None,
            page=page,
            limit=limit,
        )
        result["sales"] = [s.to_dict() for s in result["sales"]]
        return jsonify(result), 200

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/credit")
@require_auth
def list_credit_sales_route():
    """Open credit sales with their pending balances."""
    try:
        sales = sales_service.list_credit_sales(g.org_id)
        return jsonify({"sales": sales, "count": len(sales)}), 200

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to list credit sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(g.org_id, sale_id)
        return jsonify(sales_service.sale_detail(sale)), 200

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to get sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<int:sale_id>/cancel")
@require_auth
def cancel_sale_route(sale_id: int):
    try:
        sale = sales_service.cancel_sale(g.org_id, sale_id, actor_user_id=g.current_user.id)
        return jsonify({"sale": sale.to_dict()}), 200

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to cancel sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.delete("/<int:sale_id>")
@require_auth
def delete_sale_route(sale_id: int):
    try:
        sales_service.delete_sale(g.org_id, sale_id)
        return jsonify({"message": "Sale deleted"}), 200

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to delete sale")
        return jsonify({"error": "Internal server error"}), 500
