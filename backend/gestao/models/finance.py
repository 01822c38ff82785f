from __future__ import annotations

from ..extensions import db
from gestao.time_utils import to_utc_z


class FinancialMovement(db.Model):
    """
    Append-only cash ledger entry.

    Written automatically by sales, credit settlements and priced stock
    receipts, or manually by operators. Core flows never update or delete
    existing rows.

    DIRECTION: INFLOW (money in), OUTFLOW (money out)
    """
    __tablename__ = "financial_movements"
    __table_args__ = (
        db.Index("ix_financial_movements_org_date", "org_id", "movement_date"),
        db.Index("ix_financial_movements_org_direction", "org_id", "direction"),
        db.CheckConstraint("amount_cents > 0", name="ck_financial_movements_amount_pos"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    direction = db.Column(db.String(16), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=False, index=True)

    movement_date = db.Column(db.DateTime(timezone=True), nullable=False)
    payment_form = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "direction": self.direction,
            "amount_cents": self.amount_cents,
            "description": self.description,
            "category": self.category,
            "movement_date": to_utc_z(self.movement_date),
            "payment_form": self.payment_form,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
