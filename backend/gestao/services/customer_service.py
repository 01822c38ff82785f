# Overview: Service-layer operations for clients and vendors (tenant master data).

"""
Customer Service

Clients buy (and owe, on credit sales); vendors sell and collect. Both are
scoped to organizations via org_id and are referenced by sales and payments.
"""

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Client, Vendor
from ..validation import ModelValidationPolicy, ValidationError, validate_payload
from .concurrency import run_with_retry
from .tenant_service import get_owned, scoped_query


CLIENT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "address", "neighborhood", "notes", "is_active"},
    required_on_create={"name"},
)

VENDOR_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email", "commission_bps", "is_active"},
    required_on_create={"name"},
)


def _insert(row):
    def _op():
        db.session.add(row)
        db.session.commit()
        return row

    return run_with_retry(_op)


# =============================================================================
# CLIENTS
# =============================================================================

def create_client(org_id: int, payload: dict, created_by_user_id: int | None = None) -> Client:
    patch = validate_payload(model=Client, payload=payload, policy=CLIENT_POLICY, partial=False)
    return _insert(Client(org_id=org_id, created_by_user_id=created_by_user_id, **patch))


def get_client(org_id: int, client_id: int) -> Client:
    return get_owned(Client, client_id, org_id, label="Client")


def list_clients(org_id: int, *, active_only: bool = True, search: str | None = None) -> list[Client]:
    q = scoped_query(Client, org_id)
    if active_only:
        q = q.filter(Client.is_active.is_(True))
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(or_(Client.name.ilike(pattern), Client.phone.ilike(pattern)))
    return q.order_by(Client.name).all()


# =============================================================================
# VENDORS
# =============================================================================

def create_vendor(org_id: int, payload: dict) -> Vendor:
    patch = validate_payload(model=Vendor, payload=payload, policy=VENDOR_POLICY, partial=False)
    commission = patch.get("commission_bps")
    if commission is not None and not 0 <= commission <= 10_000:
        raise ValidationError("commission_bps must be between 0 and 10000")
    if commission is None:
        patch.pop("commission_bps", None)
    return _insert(Vendor(org_id=org_id, **patch))


def get_vendor(org_id: int, vendor_id: int) -> Vendor:
    return get_owned(Vendor, vendor_id, org_id, label="Vendor")


def list_vendors(org_id: int, *, active_only: bool = True) -> list[Vendor]:
    q = scoped_query(Vendor, org_id)
    if active_only:
        q = q.filter(Vendor.is_active.is_(True))
    return q.order_by(Vendor.name).all()
