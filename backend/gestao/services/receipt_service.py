# Overview: Service-layer operations for receipts; settles credit sales payment by payment.

"""
Credit Receipt Service

Credit ("fiado") sales are paid in installments. Each receipt is stored as a
Payment row, created already PAID, and books its own INFLOW ledger entry.

DESIGN PRINCIPLES:
- Balance = sale total - sum of PAID payments. It never goes negative.
- The sale row is read under lock (plus version_id), so two concurrent
  receipts cannot both see the same pending balance.
- A sale flips to COMPLETED exactly once, when the received sum first
  reaches the total. Receipts on a completed sale are conflicts.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Payment, Sale
from ..validation import ConflictError, ValidationError, coerce_int, optional_datetime, require_cents
from gestao.time_utils import utcnow
from .concurrency import run_with_retry
from .ledger_service import CATEGORY_CREDIT_RECEIPTS, DIRECTION_INFLOW, record_movement
from .sales_service import (
    SALE_STATUS_CANCELLED,
    SALE_STATUS_COMPLETED,
    SALE_STATUS_RETURNED,
)
from .tenant_service import get_owned


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

METHOD_CASH = "CASH"
METHOD_CREDIT_CARD = "CREDIT_CARD"
METHOD_DEBIT_CARD = "DEBIT_CARD"
METHOD_PIX = "PIX"
METHOD_BANK_TRANSFER = "BANK_TRANSFER"
METHOD_STORE_CREDIT = "STORE_CREDIT"

VALID_PAYMENT_METHODS = [
    METHOD_CASH,
    METHOD_CREDIT_CARD,
    METHOD_DEBIT_CARD,
    METHOD_PIX,
    METHOD_BANK_TRANSFER,
    METHOD_STORE_CREDIT,
]

# Keys are matched lower-cased.
PAYMENT_METHOD_MAP = {
    "dinheiro": METHOD_CASH,
    "pix": METHOD_PIX,
    "cartao": METHOD_CREDIT_CARD,
    "cartão": METHOD_CREDIT_CARD,
    "cartao_credito": METHOD_CREDIT_CARD,
    "cartao_debito": METHOD_DEBIT_CARD,
    "transferencia": METHOD_BANK_TRANSFER,
    "fiado": METHOD_STORE_CREDIT,
}


# =============================================================================
# PAYMENT STATUS (CONSTANTS)
# =============================================================================

PAYMENT_STATUS_PENDING = "PENDING"
PAYMENT_STATUS_PAID = "PAID"
PAYMENT_STATUS_PARTIAL = "PARTIAL"
PAYMENT_STATUS_OVERDUE = "OVERDUE"
PAYMENT_STATUS_CANCELLED = "CANCELLED"


def normalize_payment_method(label: str | None) -> str:
    """Map a free-form method label to its canonical value; unknown labels are CASH."""
    if not isinstance(label, str):
        return METHOD_CASH
    return PAYMENT_METHOD_MAP.get(label.strip().lower(), METHOD_CASH)


@dataclass
class SettlementResult:
    payment: Payment
    remaining_balance_cents: int
    is_fully_paid: bool

    def to_dict(self) -> dict:
        return {
            "payment": self.payment.to_dict(),
            "remaining_balance_cents": self.remaining_balance_cents,
            "is_fully_paid": self.is_fully_paid,
        }


def _received_cents(sale_id: int) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(Payment.amount_cents), 0))
        .filter(Payment.sale_id == sale_id, Payment.status == PAYMENT_STATUS_PAID)
        .scalar()
    )
    return int(total or 0)


# =============================================================================
# SETTLEMENT
# =============================================================================

def register_credit_payment(
    org_id: int,
    sale_id: int,
    amount_cents,
    method: str | None,
    actor_user_id: int | None,
    *,
    vendor_id: int | None = None,
    notes: str | None = None,
    next_payment_at=None,
) -> SettlementResult:
    """
    Apply one received amount to a sale's outstanding balance.

    Args:
        amount_cents: must be > 0 and <= pending balance
        method: free-form label ("pix", "cartão", ...), see PAYMENT_METHOD_MAP
        next_payment_at: optional ISO-8601 date of the next scheduled installment

    Raises:
        ValidationError: amount not > 0, or larger than the pending balance
        NotFoundError: sale not in this tenant
        ConflictError: sale already fully paid, cancelled or returned
    """
    sale_id = coerce_int(sale_id, "sale_id")
    if vendor_id is not None:
        vendor_id = coerce_int(vendor_id, "vendor_id")
    amount_cents = require_cents(amount_cents, "amount_cents", allow_zero=False)
    next_payment_at = optional_datetime(next_payment_at, "next_payment_at")
    canonical_method = normalize_payment_method(method)

    def _op():
        sale = get_owned(Sale, sale_id, org_id, label="Sale", lock=True)

        if sale.status in (SALE_STATUS_CANCELLED, SALE_STATUS_RETURNED):
            raise ConflictError(f"Cannot receive payment for sale with status {sale.status}")

        received = _received_cents(sale.id)
        pending = sale.total_cents - received

        if pending <= 0:
            raise ConflictError("already fully paid")
        if amount_cents > pending:
            raise ValidationError(f"amount exceeds balance (pending: {pending})")

        now = utcnow()
        payment = Payment(
            org_id=org_id,
            sale_id=sale.id,
            client_id=sale.client_id,
            vendor_id=vendor_id if vendor_id is not None else sale.vendor_id,
            amount_cents=amount_cents,
            method=canonical_method,
            status=PAYMENT_STATUS_PAID,
            due_date=now,
            paid_at=now,
            next_payment_at=next_payment_at,
            notes=notes,
            created_by_user_id=actor_user_id,
        )
        db.session.add(payment)

        # Every receipt writes the sale row so version_id moves; a receipt
        # computed from a stale balance fails its UPDATE and is retried.
        sale.updated_at = now
        is_fully_paid = received + amount_cents >= sale.total_cents
        if is_fully_paid:
            sale.status = SALE_STATUS_COMPLETED
            sale.completed_at = now

        db.session.commit()
        return sale, payment, pending - amount_cents, is_fully_paid

    sale, payment, remaining, is_fully_paid = run_with_retry(_op)

    current_app.logger.info(
        "Credit payment %s of %d on sale %s (org %s): remaining %d%s",
        payment.id, amount_cents, sale.id, org_id, remaining,
        ", sale completed" if is_fully_paid else "",
    )

    client_name = sale.client.name if sale.client else "N/A"
    record_movement(
        org_id,
        DIRECTION_INFLOW,
        amount_cents,
        f"Credit payment received - Client: {client_name} - Sale ID: {sale.id}",
        CATEGORY_CREDIT_RECEIPTS,
        payment_form=canonical_method,
        notes=f"Sale ID: {sale.id}" + (f" - {notes}" if notes else ""),
        created_by_user_id=actor_user_id,
    )

    return SettlementResult(payment, remaining, is_fully_paid)


def get_sale_balance(org_id: int, sale_id: int) -> dict:
    """Total, received (PAID only) and pending amounts of a sale, with its PAID payments."""
    sale = get_owned(Sale, sale_id, org_id, label="Sale")

    payments = (
        db.session.query(Payment)
        .filter(Payment.sale_id == sale.id, Payment.status == PAYMENT_STATUS_PAID)
        .order_by(Payment.created_at, Payment.id)
        .all()
    )
    received = sum(p.amount_cents for p in payments)

    return {
        "sale_id": sale.id,
        "status": sale.status,
        "total_cents": sale.total_cents,
        "received_cents": received,
        "pending_cents": max(sale.total_cents - received, 0),
        "payments": [p.to_dict() for p in payments],
    }
