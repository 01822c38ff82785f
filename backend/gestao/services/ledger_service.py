# Overview: Service-layer operations for the financial ledger (cash movements).

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import FinancialMovement
from ..validation import (
    ModelValidationPolicy,
    PersistenceError,
    ValidationError,
    enforce_rules_financial_movement,
    validate_payload,
)
from gestao.time_utils import utcnow
from .concurrency import run_with_retry
"""
Ledger Invariants (authoritative)

- Append-only: core flows never update or delete a FinancialMovement.
- amount_cents > 0 always; direction carries the sign.
- Automatic entries (sales, credit receipts, priced stock receipts) are
  written AFTER the primary unit of work commits, in their own transaction.
  A ledger failure is retried, then logged and dropped; it never turns a
  committed sale, settlement or stock movement into a reported failure.
"""


DIRECTION_INFLOW = "INFLOW"
DIRECTION_OUTFLOW = "OUTFLOW"
VALID_DIRECTIONS = (DIRECTION_INFLOW, DIRECTION_OUTFLOW)

CATEGORY_SALES = "Sales"
CATEGORY_CREDIT_RECEIPTS = "Credit Receipts"
CATEGORY_INVENTORY = "Inventory"


MOVEMENT_POLICY = ModelValidationPolicy(
    writable_fields={
        "direction", "amount_cents", "description", "category",
        "movement_date", "payment_form", "notes",
    },
    required_on_create={"direction", "amount_cents", "description", "category"},
)


def _write_movement(movement: FinancialMovement) -> FinancialMovement:
    db.session.add(movement)
    db.session.commit()
    return movement


def record_movement(
    org_id: int,
    direction: str,
    amount_cents: int,
    description: str,
    category: str,
    payment_form: str | None = None,
    notes: str | None = None,
    created_by_user_id: int | None = None,
) -> FinancialMovement | None:
    """
    Append an automatic ledger entry; best-effort.

    Returns the movement, or None when nothing was written (non-positive
    amount, or the write kept failing). Never raises for persistence errors.
    """
    if direction not in VALID_DIRECTIONS:
        raise ValueError(f"invalid ledger direction: {direction}")

    if amount_cents is None or amount_cents <= 0:
        current_app.logger.warning(
            "Skipping %s ledger entry with non-positive amount %s for org %s",
            direction, amount_cents, org_id,
        )
        return None

    def _op():
        movement = FinancialMovement(
            org_id=org_id,
            direction=direction,
            amount_cents=amount_cents,
            description=description[:255],
            category=category,
            movement_date=utcnow(),
            payment_form=payment_form,
            notes=notes,
            created_by_user_id=created_by_user_id,
        )
        return _write_movement(movement)

    try:
        return run_with_retry(_op, attempts=current_app.config.get("LEDGER_RETRY_ATTEMPTS", 3))
    except (SQLAlchemyError, PersistenceError):
        db.session.rollback()
        current_app.logger.exception(
            "Failed to record %s ledger entry of %s cents for org %s (%s)",
            direction, amount_cents, org_id, description,
        )
        return None


def create_movement(org_id: int, payload: dict, created_by_user_id: int | None = None) -> FinancialMovement:
    """Manual ledger entry entered by an operator."""
    patch = validate_payload(
        model=FinancialMovement,
        payload=payload,
        policy=MOVEMENT_POLICY,
        partial=False,
    )
    if isinstance(patch.get("direction"), str):
        patch["direction"] = patch["direction"].upper()
    enforce_rules_financial_movement(patch)

    if patch.get("movement_date") is None:
        patch["movement_date"] = utcnow()

    def _op():
        movement = FinancialMovement(org_id=org_id, created_by_user_id=created_by_user_id, **patch)
        return _write_movement(movement)

    return run_with_retry(_op)


def _filtered(org_id: int, start: datetime | None, end: datetime | None):
    q = db.session.query(FinancialMovement).filter(FinancialMovement.org_id == org_id)
    if start is not None:
        q = q.filter(FinancialMovement.movement_date >= start)
    if end is not None:
        q = q.filter(FinancialMovement.movement_date <= end)
    return q


def list_movements(
    org_id: int,
    *,
    direction: str | None = None,
    category: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int = 1,
    limit: int = 50,
) -> dict:
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be >= 1")

    q = _filtered(org_id, start, end)
    if direction:
        q = q.filter(FinancialMovement.direction == direction.upper())
    if category:
        q = q.filter(FinancialMovement.category == category)

    total = q.count()
    rows = (
        q.order_by(FinancialMovement.movement_date.desc(), FinancialMovement.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "movements": rows,
        "page": page,
        "limit": limit,
        "total": total,
        "pages": (total + limit - 1) // limit,
    }


def get_summary(org_id: int, start: datetime | None = None, end: datetime | None = None) -> dict:
    """Inflow/outflow totals and resulting balance, in cents."""
    rows = (
        _filtered(org_id, start, end)
        .with_entities(FinancialMovement.direction, func.coalesce(func.sum(FinancialMovement.amount_cents), 0))
        .group_by(FinancialMovement.direction)
        .all()
    )
    totals = {direction: int(amount or 0) for direction, amount in rows}
    inflow = totals.get(DIRECTION_INFLOW, 0)
    outflow = totals.get(DIRECTION_OUTFLOW, 0)
    return {
        "inflow_cents": inflow,
        "outflow_cents": outflow,
        "balance_cents": inflow - outflow,
    }
