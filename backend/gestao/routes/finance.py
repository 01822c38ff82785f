# Overview: Flask API routes for the financial ledger; parses input and returns JSON responses.

# backend/gestao/routes/finance.py
"""
Financial movement routes.

Automatic entries come from sales, credit receipts and priced stock
receipts; operators add manual entries here. The ledger is append-only.

Time semantics: start/end accept ISO-8601 dates or datetimes and are
inclusive.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..services import ledger_service
from ..validation import coerce_int, optional_datetime
from .errors import DOMAIN_ERRORS, json_error


finance_bp = Blueprint("finance", __name__, url_prefix="/api/finance")


def _date_range():
    return (
        optional_datetime(request.args.get("start") or None, "start"),
        optional_datetime(request.args.get("end") or None, "end"),
    )


@finance_bp.post("/movements")
@require_auth
def create_movement_route():
    """
    Request body:
    {
        "direction": "INFLOW" | "OUTFLOW",
        "amount_cents": 2500,
        "description": "Rent",
        "category": "Expenses",
        "movement_date": "2024-06-01",   (optional, default now)
        "payment_form": "pix",           (optional)
        "notes": "..."                   (optional)
    }
    """
    try:
        movement = ledger_service.create_movement(
            g.org_id,
            request.get_json(silent=True) or {},
            created_by_user_id=g.current_user.id,
        )
        return jsonify({"movement": movement.to_dict()}), 201

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to create financial movement")
        return jsonify({"error": "Internal server error"}), 500


@finance_bp.get("/movements")
@require_auth
def list_movements_route():
    """
    Query params: direction, category, start, end, page (default 1),
    limit (default 50, max 200)
    """
    try:
        start, end = _date_range()
        result = ledger_service.list_movements(
            g.org_id,
            direction=request.args.get("direction") or None,
            category=request.args.get("category") or None,
            start=start,
            end=end,
            page=coerce_int(request.args.get("page", "1"), "page"),
            limit=min(coerce_int(request.args.get("limit", "50"), "limit"), 200),
        )
        result["movements"] = [m.to_dict() for m in result["movements"]]
        return jsonify(result), 200

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to list financial movements")
        return jsonify({"error": "Internal server error"}), 500


@finance_bp.get("/summary")
@require_auth
def summary_route():
    try:
        start, end = _date_range()
        return jsonify(ledger_service.get_summary(g.org_id, start, end)), 200

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to summarize financial movements")
        return jsonify({"error": "Internal server error"}), 500
