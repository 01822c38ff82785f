"""
Sales Service - sale creation, lookup and removal

Sale lines come in two shapes. Stock-backed lines reference an inventory
item and are stored as SaleItem rows. Basket lines (promotional bundles,
referenced as "cesta-<id>") have no inventory row and are stored on the
sale's basket_lines JSON column. The header, its rows and its basket
payload are written in one transaction.

Sales never change stock quantities; stock is reconciled through explicit
stock movements (see inventory_service).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Union

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Client, InventoryItem, Payment, Sale, SaleItem, Vendor
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    coerce_int,
    optional_datetime,
    require_cents,
    require_positive_int,
)
from gestao.time_utils import to_utc_z
from .concurrency import run_with_retry
from .basket_service import resolve_basket_names
from .ledger_service import CATEGORY_SALES, DIRECTION_INFLOW, record_movement
from .tenant_service import get_owned, scoped_query


# =============================================================================
# SALE STATUS (CONSTANTS)
# =============================================================================

SALE_STATUS_PENDING = "PENDING"
SALE_STATUS_COMPLETED = "COMPLETED"
SALE_STATUS_CANCELLED = "CANCELLED"
SALE_STATUS_RETURNED = "RETURNED"

VALID_SALE_STATUSES = [
    SALE_STATUS_PENDING,
    SALE_STATUS_COMPLETED,
    SALE_STATUS_CANCELLED,
    SALE_STATUS_RETURNED,
]

# Deferred payment: no ledger entry at creation, money is booked per receipt.
# Matched exactly (case-sensitive).
CREDIT_PAYMENT_TYPES = frozenset({"fiado", "a prazo", "parcelado"})

DEFAULT_PAYMENT_TYPE = "dinheiro"
DEFAULT_DELIVERY_METHOD = "retirada"

BASKET_PREFIX = "cesta-"


# =============================================================================
# LINE MODEL
# =============================================================================

@dataclass(frozen=True)
class StockLine:
    item_ref: str
    quantity: int
    unit_price_cents: int
    subtotal_cents: int


@dataclass(frozen=True)
class BasketLine:
    basket_id: str
    name: str | None
    quantity: int
    unit_price_cents: int
    subtotal_cents: int

    def to_payload(self) -> dict:
        return {
            "type": "basket",
            "basket_id": self.basket_id,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "subtotal_cents": self.subtotal_cents,
        }


SaleLine = Union[StockLine, BasketLine]


def is_basket_ref(item_ref) -> bool:
    return isinstance(item_ref, str) and item_ref.startswith(BASKET_PREFIX)


def classify_line(raw: dict, position: int = 1) -> SaleLine:
    """
    Turn one line request into a StockLine or BasketLine.

    Only the "cesta-" prefix (case-sensitive) makes a basket line. Every other
    ref is stock-backed and stays unresolved here: an item id ("12") or a
    barcode ("sku-42"), looked up when the sale is written.

    A supplied subtotal must equal quantity * unit price; when omitted it
    is computed.
    """
    if not isinstance(raw, dict):
        raise ValidationError(f"items[{position}] must be an object")

    item_ref = raw.get("item_ref")
    if isinstance(item_ref, int) and not isinstance(item_ref, bool):
        item_ref = str(item_ref)
    if not isinstance(item_ref, str) or not item_ref.strip():
        raise ValidationError(f"items[{position}].item_ref is required")
    item_ref = item_ref.strip()

    quantity = require_positive_int(raw.get("quantity"), f"items[{position}].quantity")
    unit_price = require_cents(raw.get("unit_price_cents"), f"items[{position}].unit_price_cents")

    expected = quantity * unit_price
    subtotal = raw.get("subtotal_cents")
    if subtotal is None:
        subtotal = expected
    else:
        subtotal = require_cents(subtotal, f"items[{position}].subtotal_cents")
        if subtotal != expected:
            raise ValidationError(
                f"items[{position}].subtotal_cents must equal quantity * unit_price_cents ({expected})"
            )

    if is_basket_ref(item_ref):
        basket_id = item_ref[len(BASKET_PREFIX):]
        if not basket_id:
            raise ValidationError(f"items[{position}].item_ref has an empty basket id")
        return BasketLine(
            basket_id=basket_id,
            name=raw.get("name"),
            quantity=quantity,
            unit_price_cents=unit_price,
            subtotal_cents=subtotal,
        )

    return StockLine(
        item_ref=item_ref,
        quantity=quantity,
        unit_price_cents=unit_price,
        subtotal_cents=subtotal,
    )


def partition_lines(raw_lines: list) -> tuple[list[StockLine], list[BasketLine]]:
    if not isinstance(raw_lines, list):
        raise ValidationError("items must be a list")
    if not raw_lines:
        raise ValidationError("empty sale")

    stock: list[StockLine] = []
    baskets: list[BasketLine] = []
    for i, raw in enumerate(raw_lines, start=1):
        line = classify_line(raw, i)
        if isinstance(line, BasketLine):
            baskets.append(line)
        else:
            stock.append(line)
    return stock, baskets


def is_credit_sale(payment_type: str | None) -> bool:
    return payment_type in CREDIT_PAYMENT_TYPES


def _resolve_stock_refs(org_id: int, refs: set[str]) -> dict[str, int]:
    """
    Map stock line refs to this tenant's inventory item ids.

    A digit-only ref is an item id; anything else is matched against the
    item barcode (lowest id wins on duplicates).
    """
    by_id = {ref: int(ref) for ref in refs if ref.isascii() and ref.isdigit()}
    codes = sorted(refs - by_id.keys())

    found_ids = set()
    if by_id:
        found_ids = {
            row.id for row in db.session.query(InventoryItem.id).filter(
                InventoryItem.org_id == org_id,
                InventoryItem.id.in_(sorted(set(by_id.values()))),
            )
        }

    by_code = {}
    if codes:
        rows = (
            db.session.query(InventoryItem.id, InventoryItem.barcode)
            .filter(InventoryItem.org_id == org_id, InventoryItem.barcode.in_(codes))
            .order_by(InventoryItem.id)
        )
        for item_id, barcode in rows:
            by_code.setdefault(barcode, item_id)

    resolved = {}
    for ref in sorted(refs):
        item_id = by_id[ref] if ref in by_id and by_id[ref] in found_ids else by_code.get(ref)
        if item_id is None:
            raise NotFoundError(f"Inventory item not found: {ref}")
        resolved[ref] = item_id
    return resolved


# =============================================================================
# SALE CREATION
# =============================================================================

def create_sale(org_id: int, user_id: int | None, data: dict) -> tuple[Sale, list[SaleItem]]:
    """
    Create a sale with its lines in one transaction.

    Non-credit sales book one INFLOW ledger entry for the full total once
    the transaction has committed; credit sales book nothing until money
    is received.

    Raises:
        ValidationError: empty or malformed lines, negative amounts
        NotFoundError: client, vendor, inventory item or basket outside this tenant
    """
    if data is None or not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    stock_lines, basket_lines = partition_lines(data.get("items"))

    total_cents = require_cents(data.get("total_cents"), "total_cents")
    discount_cents = data.get("discount_cents")
    discount_cents = 0 if discount_cents is None else require_cents(discount_cents, "discount_cents")

    payment_type = data.get("payment_type") or DEFAULT_PAYMENT_TYPE
    delivery_method = data.get("delivery_method") or DEFAULT_DELIVERY_METHOD
    delivery_date = optional_datetime(data.get("delivery_date"), "delivery_date")
    notes = data.get("notes")

    client_id = data.get("client_id")
    if client_id is not None:
        client_id = coerce_int(client_id, "client_id")
    vendor_id = data.get("vendor_id")
    if vendor_id is not None:
        vendor_id = coerce_int(vendor_id, "vendor_id")

    def _op():
        if client_id is not None:
            get_owned(Client, client_id, org_id, label="Client")
        if vendor_id is not None:
            get_owned(Vendor, vendor_id, org_id, label="Vendor")

        item_ids = _resolve_stock_refs(org_id, {line.item_ref for line in stock_lines})
        names = resolve_basket_names(org_id, {line.basket_id for line in basket_lines})
        catalog_lines = [replace(line, name=names[line.basket_id]) for line in basket_lines]

        sale = Sale(
            org_id=org_id,
            client_id=client_id,
            vendor_id=vendor_id,
            created_by_user_id=user_id,
            total_cents=total_cents,
            discount_cents=discount_cents,
            status=SALE_STATUS_PENDING,
            notes=notes,
            payment_type=payment_type,
            delivery_date=delivery_date,
            delivery_method=delivery_method,
            basket_lines=[line.to_payload() for line in catalog_lines],
        )
        db.session.add(sale)
        db.session.flush()

        items = []
        for line in stock_lines:
            row = SaleItem(
                sale_id=sale.id,
                org_id=org_id,
                item_id=item_ids[line.item_ref],
                quantity=line.quantity,
                unit_price_cents=line.unit_price_cents,
                subtotal_cents=line.subtotal_cents,
            )
            db.session.add(row)
            items.append(row)

        db.session.commit()
        return sale, items

    sale, items = run_with_retry(_op)

    current_app.logger.info(
        "Created sale %s for org %s: %d stock lines, %d basket lines, total %d (%s)",
        sale.id, org_id, len(items), len(basket_lines), total_cents, payment_type,
    )

    if not is_credit_sale(payment_type):
        client_label = f"ID: {sale.client_id}" if sale.client_id else "N/A"
        record_movement(
            org_id,
            DIRECTION_INFLOW,
            total_cents,
            f"Sale - Client: {client_label}",
            CATEGORY_SALES,
            payment_form=payment_type,
            notes=f"Sale ID: {sale.id} - {notes or ''}",
            created_by_user_id=user_id,
        )

    return sale, items


# =============================================================================
# QUERIES
# =============================================================================

def get_sale(org_id: int, sale_id: int) -> Sale:
    return get_owned(Sale, sale_id, org_id, label="Sale")


def sale_detail(sale: Sale) -> dict:
    """Sale with its stock lines and a merged all_items view."""
    items = db.session.query(SaleItem).filter_by(sale_id=sale.id).order_by(SaleItem.id).all()
    names = {}
    if items:
        names = dict(
            db.session.query(InventoryItem.id, InventoryItem.name)
            .filter(InventoryItem.id.in_(sorted({i.item_id for i in items})))
            .all()
        )

    all_items = [
        {
            "type": "item",
            "item_ref": str(i.item_id),
            "name": names.get(i.item_id),
            "quantity": i.quantity,
            "unit_price_cents": i.unit_price_cents,
            "subtotal_cents": i.subtotal_cents,
        }
        for i in items
    ]
    all_items.extend(
        {
            "type": "basket",
            "item_ref": f"{BASKET_PREFIX}{entry.get('basket_id')}",
            "name": entry.get("name"),
            "quantity": entry.get("quantity"),
            "unit_price_cents": entry.get("unit_price_cents"),
            "subtotal_cents": entry.get("subtotal_cents"),
        }
        for entry in (sale.basket_lines or [])
        if entry.get("type") == "basket"
    )

    return {
        "sale": sale.to_dict(),
        "items": [i.to_dict() for i in items],
        "all_items": all_items,
    }


def list_sales(org_id: int, *, status: str | None = None, page: int = 1, limit: int = 50) -> dict:
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be >= 1")
    if status is not None and status not in VALID_SALE_STATUSES:
        raise ValidationError(f"Invalid status: {status}. Must be one of {VALID_SALE_STATUSES}")

    q = scoped_query(Sale, org_id)
    if status:
        q = q.filter(Sale.status == status)

    total = q.count()
    sales = q.order_by(Sale.created_at.desc(), Sale.id.desc()).offset((page - 1) * limit).limit(limit).all()
    return {
        "sales": sales,
        "page": page,
        "limit": limit,
        "total": total,
        "pages": (total + limit - 1) // limit,
    }


def list_credit_sales(org_id: int) -> list[dict]:
    """
    Open credit ("fiado") sales: credit-type, not cancelled, balance > 0.
    """
    from .receipt_service import PAYMENT_STATUS_PAID

    received = (
        db.session.query(
            Payment.sale_id.label("sale_id"),
            func.coalesce(func.sum(Payment.amount_cents), 0).label("received"),
        )
        .filter(Payment.org_id == org_id, Payment.status == PAYMENT_STATUS_PAID)
        .group_by(Payment.sale_id)
        .subquery()
    )

    rows = (
        db.session.query(Sale, func.coalesce(received.c.received, 0))
        .outerjoin(received, received.c.sale_id == Sale.id)
        .filter(
            Sale.org_id == org_id,
            Sale.status != SALE_STATUS_CANCELLED,
            Sale.payment_type.in_(sorted(CREDIT_PAYMENT_TYPES)),
        )
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .all()
    )

    result = []
    for sale, received_cents in rows:
        pending = sale.total_cents - int(received_cents)
        if pending <= 0:
            continue

        next_payment = (
            db.session.query(Payment.next_payment_at)
            .filter(
                Payment.sale_id == sale.id,
                Payment.status == PAYMENT_STATUS_PAID,
                Payment.next_payment_at.isnot(None),
            )
            .order_by(Payment.created_at.desc(), Payment.id.desc())
            .first()
        )

        result.append({
            "sale_id": sale.id,
            "client_id": sale.client_id,
            "client_name": sale.client.name if sale.client else None,
            "client_phone": sale.client.phone if sale.client else None,
            "vendor_name": sale.vendor.name if sale.vendor else None,
            "total_cents": sale.total_cents,
            "received_cents": int(received_cents),
            "pending_cents": pending,
            "next_payment_at": to_utc_z(next_payment[0]) if next_payment else None,
            "status": sale.status,
            "notes": sale.notes,
            "created_at": to_utc_z(sale.created_at),
        })
    return result


# =============================================================================
# CANCEL / DELETE
# =============================================================================

def cancel_sale(org_id: int, sale_id: int, actor_user_id: int | None = None) -> Sale:
    """PENDING -> CANCELLED. Any other status is a conflict."""
    def _op():
        sale = get_owned(Sale, sale_id, org_id, label="Sale", lock=True)
        if sale.status != SALE_STATUS_PENDING:
            raise ConflictError(f"Cannot cancel sale with status {sale.status}")
        sale.status = SALE_STATUS_CANCELLED
        db.session.commit()
        return sale

    sale = run_with_retry(_op)
    current_app.logger.info("Sale %s cancelled by user %s (org %s)", sale.id, actor_user_id, org_id)
    return sale


def delete_sale(org_id: int, sale_id: int) -> None:
    """
    Hard-delete a sale and its lines.

    Sales with any payment row are kept (ConflictError).
    """
    def _op():
        sale = get_owned(Sale, sale_id, org_id, label="Sale", lock=True)

        payment_count = db.session.query(func.count(Payment.id)).filter(Payment.sale_id == sale.id).scalar()
        if payment_count:
            raise ConflictError("Cannot delete a sale with associated payments")

        # SaleItem rows go with the header (delete-orphan cascade)
        db.session.delete(sale)
        db.session.commit()

    run_with_retry(_op)
