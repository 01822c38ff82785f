# Overview: Service-layer operations for the basket (cesta) catalog.

"""
Basket Service

A basket is a promotional bundle sold as one sale line, referenced as
"cesta-<id>". Sales store a snapshot of the basket line (name, quantity,
prices) in their basket_lines payload, so editing or deleting a basket
never rewrites past sales.

components describe what one basket contains. They drive the
"how many could we assemble right now" estimate only; selling a basket does
not move stock.
"""

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Basket, InventoryItem
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    require_cents,
    require_positive_int,
    validate_payload,
)
from .concurrency import run_with_retry
from .tenant_service import get_owned, scoped_query


BASKET_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "category", "promo_price_cents", "is_active"},
    required_on_create={"name"},
)


def _normalize_components(org_id: int, raw) -> list[dict]:
    """
    Validate [{"item_id", "quantity"}, ...] against this tenant's inventory.

    Raises:
        ValidationError: malformed entry, non-positive quantity, repeated item
        NotFoundError: item not in this tenant
    """
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("components must be a list")

    components = []
    seen = set()
    for i, entry in enumerate(raw, start=1):
        if not isinstance(entry, dict):
            raise ValidationError(f"components[{i}] must be an object")
        item_id = require_positive_int(entry.get("item_id"), f"components[{i}].item_id")
        quantity = require_positive_int(entry.get("quantity"), f"components[{i}].quantity")
        if item_id in seen:
            raise ValidationError(f"components[{i}].item_id is repeated")
        seen.add(item_id)
        components.append({"item_id": item_id, "quantity": quantity})

    if seen:
        found = {
            row.id for row in db.session.query(InventoryItem.id).filter(
                InventoryItem.org_id == org_id,
                InventoryItem.id.in_(sorted(seen)),
            )
        }
        missing = sorted(seen - found)
        if missing:
            raise NotFoundError(f"Inventory item not found: {missing[0]}")

    return components


def _check_price(patch: dict) -> None:
    if patch.get("promo_price_cents") is not None:
        require_cents(patch["promo_price_cents"], "promo_price_cents")


# =============================================================================
# CRUD
# =============================================================================

def create_basket(org_id: int, payload: dict, created_by_user_id: int | None = None) -> Basket:
    payload = dict(payload or {})
    raw_components = payload.pop("components", None)

    patch = validate_payload(model=Basket, payload=payload, policy=BASKET_POLICY, partial=False)
    _check_price(patch)
    if patch.get("is_active") is None:
        patch.pop("is_active", None)

    def _op():
        components = _normalize_components(org_id, raw_components)
        basket = Basket(
            org_id=org_id,
            created_by_user_id=created_by_user_id,
            components=components,
            **patch,
        )
        db.session.add(basket)
        db.session.commit()
        return basket

    return run_with_retry(_op)


def get_basket(org_id: int, basket_id: int) -> Basket:
    return get_owned(Basket, basket_id, org_id, label="Basket")


def list_baskets(org_id: int, *, search: str | None = None, page: int = 1, limit: int = 50) -> dict:
    """All baskets of the tenant (active or not), by name, paginated."""
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be >= 1")

    q = scoped_query(Basket, org_id)
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(or_(
            Basket.name.ilike(pattern),
            Basket.category.ilike(pattern),
            Basket.description.ilike(pattern),
        ))

    total = q.count()
    rows = q.order_by(Basket.name, Basket.id).offset((page - 1) * limit).limit(limit).all()
    return {
        "baskets": rows,
        "page": page,
        "limit": limit,
        "total": total,
        "pages": (total + limit - 1) // limit,
    }


def list_active_baskets(org_id: int) -> list[Basket]:
    return (
        scoped_query(Basket, org_id)
        .filter(Basket.is_active.is_(True))
        .order_by(Basket.name)
        .all()
    )


def update_basket(org_id: int, basket_id: int, payload: dict) -> Basket:
    payload = dict(payload or {})
    has_components = "components" in payload
    raw_components = payload.pop("components", None)

    patch = validate_payload(model=Basket, payload=payload, policy=BASKET_POLICY, partial=True)
    _check_price(patch)

    def _op():
        basket = get_owned(Basket, basket_id, org_id, label="Basket", lock=True)
        for field, value in patch.items():
            setattr(basket, field, value)
        if has_components:
            basket.components = _normalize_components(org_id, raw_components)
        db.session.commit()
        return basket

    return run_with_retry(_op)


def delete_basket(org_id: int, basket_id: int) -> None:
    def _op():
        basket = get_owned(Basket, basket_id, org_id, label="Basket", lock=True)
        db.session.delete(basket)
        db.session.commit()

    run_with_retry(_op)


# =============================================================================
# STOCK ESTIMATE
# =============================================================================

def calculate_possible(org_id: int) -> dict[int, int]:
    """
    How many of each active basket current stock could assemble.

    A basket with no components, or with a component that is missing,
    inactive or short of stock, counts as 0.
    """
    baskets = list_active_baskets(org_id)
    stock = dict(
        scoped_query(InventoryItem, org_id)
        .filter(InventoryItem.is_active.is_(True))
        .with_entities(InventoryItem.id, InventoryItem.quantity)
        .all()
    )

    possible = {}
    for basket in baskets:
        components = basket.components or []
        counts = [
            stock.get(c["item_id"], 0) // c["quantity"]
            for c in components
        ]
        possible[basket.id] = min(counts) if counts else 0
    return possible


def _catalog_id(ref: str) -> int | None:
    if ref.isascii() and ref.isdigit():
        return int(ref)
    return None


def resolve_basket_names(org_id: int, basket_ids) -> dict[str, str]:
    """
    Map "cesta-" suffixes to catalog names within the tenant.

    Raises NotFoundError for the first suffix with no basket in this tenant.
    """
    wanted = {ref: _catalog_id(ref) for ref in basket_ids}
    ids = sorted({i for i in wanted.values() if i is not None})

    names = {}
    if ids:
        rows = db.session.query(Basket.id, Basket.name).filter(
            Basket.org_id == org_id,
            Basket.id.in_(ids),
        )
        names = {basket_id: name for basket_id, name in rows}

    resolved = {}
    for ref in sorted(wanted):
        name = names.get(wanted[ref])
        if name is None:
            raise NotFoundError(f"Basket not found: {ref}")
        resolved[ref] = name
    return resolved
