"""
Multi-Tenant Service: Tenant Validation and Scoping Helpers

Every read and write is scoped to one organization. Rows owned by another
organization are reported exactly like missing rows (NotFoundError), so
their existence is never revealed.

USAGE:
    from gestao.services.tenant_service import get_owned, scoped_query

    sale = get_owned(Sale, sale_id, org_id, label="Sale")
    clients = scoped_query(Client, org_id).filter_by(is_active=True).all()
"""

from flask import current_app, g, has_request_context, request

from ..extensions import db
from ..models import Organization
from ..validation import NotFoundError
from .concurrency import lock_for_update


class TenantAccessError(Exception):
    """Raised when no tenant context is available."""
    pass


def get_current_org_id() -> int:
    """
    Current tenant's org_id from Flask g (set by @require_auth).

    Raises TenantAccessError if org_id not set.
    """
    org_id = getattr(g, "org_id", None)
    if org_id is None:
        raise TenantAccessError("Tenant context not established")
    return org_id


def scoped_query(model, org_id: int | None = None):
    """Base query for a tenant-owned model, filtered by org_id."""
    if org_id is None:
        org_id = get_current_org_id()
    return db.session.query(model).filter(model.org_id == org_id)


def get_owned(model, row_id, org_id: int, *, label: str | None = None, lock: bool = False):
    """
    Load one tenant-owned row or raise NotFoundError.

    lock=True reads with SELECT ... FOR UPDATE for read-validate-write paths.
    """
    label = label or model.__name__
    query = db.session.query(model).filter(model.id == row_id)
    if lock:
        query = lock_for_update(query)
    row = query.first()

    if row is None:
        raise NotFoundError(f"{label} not found")

    if row.org_id != org_id:
        _log_cross_tenant_attempt(f"{label} {row_id} belongs to org {row.org_id}, not {org_id}")
        raise NotFoundError(f"{label} not found")

    return row


def validate_org_active(org_id: int) -> Organization:
    org = db.session.query(Organization).filter_by(id=org_id).first()

    if not org:
        raise TenantAccessError("Organization not found")

    if not org.is_active:
        raise TenantAccessError("Organization is not active")

    return org


def _log_cross_tenant_attempt(reason: str) -> None:
    user = getattr(g, "current_user", None)
    current_app.logger.warning(
        "CROSS_TENANT_ACCESS_DENIED user=%s path=%s: %s",
        getattr(user, "id", None),
        request.path if has_request_context() else None,
        reason,
    )
