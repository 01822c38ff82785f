# Overview: Flask API routes for clients and vendors; parses input and returns JSON responses.

# backend/gestao/routes/customers.py
"""
Client and vendor routes (tenant master data).
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..services import customer_service
from .errors import DOMAIN_ERRORS, json_error


clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")
vendors_bp = Blueprint("vendors", __name__, url_prefix="/api/vendors")


# =============================================================================
# CLIENTS
# =============================================================================

@clients_bp.post("/")
@require_auth
def create_client_route():
    try:
        client = customer_service.create_client(
            g.org_id,
            request.get_json(silent=True) or {},
            created_by_user_id=g.current_user.id,
        )
        return jsonify({"client": client.to_dict()}), 201

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to create client")
        return jsonify({"error": "Internal server error"}), 500


@clients_bp.get("/")
@require_auth
def list_clients_route():
    try:
        include_inactive = request.args.get("include_inactive", "false").lower() == "true"
        clients = customer_service.list_clients(
            g.org_id,
            active_only=not include_inactive,
            search=request.args.get("search") or None,
        )
        return jsonify({"clients": [c.to_dict() for c in clients], "count": len(clients)}), 200

    except Exception:
        current_app.logger.exception("Failed to list clients")
        return jsonify({"error": "Internal server error"}), 500


@clients_bp.get("/<int:client_id>")
@require_auth
def get_client_route(client_id: int):
    try:
        client = customer_service.get_client(g.org_id, client_id)
        return jsonify({"client": client.to_dict()}), 200

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to get client")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# VENDORS
# =============================================================================

@vendors_bp.post("/")
@require_auth
def create_vendor_route():
    try:
        vendor = customer_service.create_vendor(g.org_id, request.get_json(silent=True) or {})
        return jsonify({"vendor": vendor.to_dict()}), 201

    except DOMAIN_ERRORS as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to create vendor")
        return jsonify({"error": "Internal server error"}), 500


@vendors_bp.get("/")
@require_auth
def list_vendors_route():
    try:
        include_inactive = request.args.get("include_inactive", "false").lower() == "true"
        vendors = customer_service.list_vendors(g.org_id, active_only=not include_inactive)
        return jsonify({"vendors": [v.to_dict() for v in vendors], "count": len(vendors)}), 200

    except Exception:
        current_app.logger.exception("Failed to list vendors")
        return jsonify({"error": "Internal server error"}), 500
