# Overview: Service-layer operations for inventory; catalog items and stock movements.

# backend/gestao/services/inventory_service.py

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import or_

from flask import current_app

from ..extensions import db
from ..models import InventoryItem, SaleItem
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_inventory_item,
    require_cents,
    require_positive_int,
    validate_payload,
)
from gestao.time_utils import utcnow, to_utc_z
from .concurrency import run_with_retry
from .ledger_service import CATEGORY_INVENTORY, DIRECTION_OUTFLOW, record_movement
from .tenant_service import get_owned, scoped_query
"""
Inventory Invariants (authoritative)

- On-hand quantity is a column on InventoryItem, updated in place.
- quantity >= 0 at all times. Outbound movements are validated against the
  row read under lock, in the same transaction as the update, so two
  concurrent movements cannot both pass the check on a stale quantity
  (SELECT ... FOR UPDATE, plus version_id as the optimistic fallback).
- An inbound movement with a positive unit cost is a purchase: it appends
  one OUTFLOW ledger entry of quantity * unit_cost after the commit.
- Movements are not persisted as rows; the summary exists only in the result.
- Selling does NOT decrement stock. Stock changes only through movements.
"""


DIRECTION_INBOUND = "inbound"
DIRECTION_OUTBOUND = "outbound"
VALID_DIRECTIONS = (DIRECTION_INBOUND, DIRECTION_OUTBOUND)


ITEM_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "category", "quantity", "min_quantity", "max_quantity",
        "unit_cost_cents", "sale_price_cents", "unit", "location",
        "supplier", "barcode", "notes", "is_active",
    },
    required_on_create={"name"},
)

# Quantity is left out: on-hand stock changes only through movements.
ITEM_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=ITEM_POLICY.writable_fields - {"quantity"},
)

ITEM_DEFAULTS = {
    "quantity": 0,
    "min_quantity": 10,
    "max_quantity": 1000,
    "unit_cost_cents": 0,
    "sale_price_cents": 0,
    "unit": "un",
    "is_active": True,
}


@dataclass
class StockMovementResult:
    """Updated item plus the (non-persisted) movement summary."""
    item: InventoryItem
    movement: dict

    def to_dict(self) -> dict:
        return {"item": self.item.to_dict(), "movement": self.movement}


# =============================================================================
# CATALOG
# =============================================================================

def create_item(org_id: int, payload: dict, created_by_user_id: int | None = None) -> InventoryItem:
    patch = validate_payload(model=InventoryItem, payload=payload, policy=ITEM_POLICY, partial=False)
    values = {**ITEM_DEFAULTS, **{k: v for k, v in patch.items() if v is not None}}
    enforce_rules_inventory_item(values)

    def _op():
        item = InventoryItem(org_id=org_id, created_by_user_id=created_by_user_id, **values)
        db.session.add(item)
        db.session.commit()
        return item

    return run_with_retry(_op)


def get_item(org_id: int, item_id: int) -> InventoryItem:
    return get_owned(InventoryItem, item_id, org_id, label="Inventory item")


def list_items(org_id: int, *, active_only: bool = True, search: str | None = None) -> list[InventoryItem]:
    q = scoped_query(InventoryItem, org_id)
    if active_only:
        q = q.filter(InventoryItem.is_active.is_(True))
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(or_(
            InventoryItem.name.ilike(pattern),
            InventoryItem.category.ilike(pattern),
            InventoryItem.barcode.ilike(pattern),
        ))
    return q.order_by(InventoryItem.name).all()


def list_low_stock(org_id: int) -> list[InventoryItem]:
    """Active items at or below their minimum threshold."""
    return (
        scoped_query(InventoryItem, org_id)
        .filter(
            InventoryItem.is_active.is_(True),
            InventoryItem.quantity <= InventoryItem.min_quantity,
        )
        .order_by(InventoryItem.quantity, InventoryItem.name)
        .all()
    )


def update_item(org_id: int, item_id: int, payload: dict) -> InventoryItem:
    """
    Partial update of catalog fields (name, prices, thresholds, ...).

    Raises:
        ValidationError: unknown or read-only field (quantity), bad values,
            min_quantity above max_quantity after the update
        NotFoundError: item not in this tenant
    """
    patch = validate_payload(model=InventoryItem, payload=payload, policy=ITEM_UPDATE_POLICY, partial=True)

    def _op():
        item = get_owned(InventoryItem, item_id, org_id, label="Inventory item", lock=True)

        merged = {
            "min_quantity": item.min_quantity,
            "max_quantity": item.max_quantity,
            **patch,
        }
        enforce_rules_inventory_item(merged)

        for field, value in patch.items():
            setattr(item, field, value)
        db.session.commit()
        return item

    return run_with_retry(_op)


def delete_item(org_id: int, item_id: int) -> str:
    """
    Delete an inventory item.

    Items referenced by sale lines are deactivated instead, so historical
    sales keep their line references. Returns "deactivated" or "deleted".
    """
    def _op():
        item = get_owned(InventoryItem, item_id, org_id, label="Inventory item", lock=True)

        in_use = db.session.query(SaleItem.id).filter(
            SaleItem.org_id == org_id,
            SaleItem.item_id == item.id,
        ).first() is not None

        if in_use:
            item.is_active = False
            outcome = "deactivated"
        else:
            db.session.delete(item)
            outcome = "deleted"

        db.session.commit()
        return outcome

    return run_with_retry(_op)


# =============================================================================
# STOCK MOVEMENTS
# =============================================================================

def apply_stock_movement(
    org_id: int,
    item_id: int,
    direction: str,
    quantity,
    *,
    notes: str | None = None,
    unit_cost_cents=None,
    actor_user_id: int | None = None,
) -> StockMovementResult:
    """
    Apply an inbound/outbound quantity change to an inventory item.

    Raises:
        ValidationError: quantity not > 0, invalid direction or unit cost
        NotFoundError: item not in this tenant
        ConflictError: outbound movement would make stock negative
    """
    quantity = require_positive_int(quantity, "quantity")
    if direction not in VALID_DIRECTIONS:
        raise ValidationError("invalid movement type (must be 'inbound' or 'outbound')")
    if unit_cost_cents is not None:
        unit_cost_cents = require_cents(unit_cost_cents, "unit_cost_cents")

    def _op():
        item = get_owned(InventoryItem, item_id, org_id, label="Inventory item", lock=True)

        before = item.quantity
        if direction == DIRECTION_INBOUND:
            after = before + quantity
        else:
            after = before - quantity
            if after < 0:
                raise ConflictError("insufficient stock")

        item.quantity = after
        db.session.commit()

        return item, before, after

    item, before, after = run_with_retry(_op)

    current_app.logger.info(
        "Stock %s of %d on item %s (org %s): %d -> %d",
        direction, quantity, item.id, org_id, before, after,
    )

    if direction == DIRECTION_INBOUND and unit_cost_cents:
        total_cost_cents = quantity * unit_cost_cents
        record_movement(
            org_id,
            DIRECTION_OUTFLOW,
            total_cost_cents,
            f"Purchase of {quantity} {item.unit} of {item.name}",
            CATEGORY_INVENTORY,
            notes=notes,
            created_by_user_id=actor_user_id,
        )

    movement = {
        "direction": direction,
        "quantity": quantity,
        "quantity_before": before,
        "quantity_after": after,
        "notes": notes,
        "unit_cost_cents": unit_cost_cents,
        "occurred_at": to_utc_z(utcnow()),
    }
    return StockMovementResult(item, movement)
