# Overview: Flask API routes for credit receipts; parses input and returns JSON responses.

# backend/gestao/routes/receipts.py
"""
Credit Receipt API Routes

Installment payments against credit ("fiado") sales. Each receipt is
stored PAID and books an INFLOW ledger entry; the sale completes when its
balance reaches zero.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..services import receipt_service
from .errors import DOMAIN_ERRORS, json_error


receipts_bp = Blueprint("receipts", __name__, url_prefix="/api/receipts")


@receipts_bp.post("/credit")
@require_auth
def register_credit_payment_route():
    """
    Receive a payment against a credit sale.

    Request body:
    {
        "sale_id": 123,
        "amount_cents": 5000,
        "method": "pix",                    (optional, default cash)
        "vendor_id": 2,                     (optional)
        "next_payment_at": "2024-07-10",    (optional)
        "notes": "..."                      (optional)
    }

    Returns:
        201: payment, remaining balance and whether the sale is fully paid
        400: invalid amount or amount exceeds balance
        404: sale not found
        409: sale already fully paid, cancelled or returned
    """
    try:
        data = request.get_json(silent=True) or {}

        sale_id = data.get("sale_id")
        if sale_id is None:
            return jsonify({"error": "sale_id and amount_cents required"}), 400

        result = receipt_service.register_credit_payment(
            g.org_id,
            sale_id,
            data.get("amount_cents"),
            data.get("method"),
            g.current_user.id,
            vendor_id=data.get("vendor_id"),
            notes=data.get("notes"),
            next_payment_at=data.get("next_payment_at"),
        )
        return jsonify(result.to_dict()), 201

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to register credit payment")
        return jsonify({"error": "Internal server error"}), 500


@receipts_bp.get("/sales/<int:sale_id>")
@require_auth
def get_sale_balance_route(sale_id: int):
    try:
        return jsonify(receipt_service.get_sale_balance(g.org_id, sale_id)), 200

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to get sale balance")
        return jsonify({"error": "Internal server error"}), 500
