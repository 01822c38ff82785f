from __future__ import annotations

from ..extensions import db
from gestao.time_utils import to_utc_z


class Sale(db.Model):
    """
    One commercial transaction.

    total_cents is what the caller agreed with the client; it is stored as
    given, not recomputed from lines. Stock-backed lines live in sale_items;
    basket (bundle) lines have no inventory row and are kept in basket_lines.

    STATUS: PENDING -> COMPLETED (settled in full), PENDING -> CANCELLED,
    RETURNED. Never moves backwards.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_org_status_created", "org_id", "status", "created_at"),
        db.Index("ix_sales_org_payment_type", "org_id", "payment_type"),
        db.CheckConstraint("total_cents >= 0", name="ck_sales_total_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=True, index=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    total_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)
    notes = db.Column(db.Text, nullable=True)

    # Free label: "dinheiro", "pix", "fiado", "a prazo", "parcelado", ...
    payment_type = db.Column(db.String(32), nullable=False, default="dinheiro")

    delivery_date = db.Column(db.DateTime(timezone=True), nullable=True)
    delivery_method = db.Column(db.String(32), nullable=False, default="retirada")

    basket_lines = db.Column(db.JSON, nullable=False, default=list)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    client = db.relationship("Client", backref=db.backref("sales", lazy=True))
    vendor = db.relationship("Vendor", backref=db.backref("sales", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "client_id": self.client_id,
            "vendor_id": self.vendor_id,
            "created_by_user_id": self.created_by_user_id,
            "total_cents": self.total_cents,
            "discount_cents": self.discount_cents,
            "status": self.status,
            "notes": self.notes,
            "payment_type": self.payment_type,
            "delivery_date": to_utc_z(self.delivery_date) if self.delivery_date else None,
            "delivery_method": self.delivery_method,
            "basket_lines": list(self.basket_lines or []),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "version_id": self.version_id,
        }


class SaleItem(db.Model):
    """Stock-backed line of a sale. Written once with its sale, never mutated."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_pos"),
        db.CheckConstraint("subtotal_cents = quantity * unit_price_cents", name="ck_sale_items_subtotal"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("items", lazy=True, cascade="all, delete-orphan"))
    item = db.relationship("InventoryItem")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "item_id": self.item_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "subtotal_cents": self.subtotal_cents,
            "created_at": to_utc_z(self.created_at),
        }


class Payment(db.Model):
    """
    Money received toward a sale's balance (a "receipt").

    METHODS: CASH, CREDIT_CARD, DEBIT_CARD, PIX, BANK_TRANSFER, STORE_CREDIT
    STATUS: PENDING, PAID, PARTIAL, OVERDUE, CANCELLED

    Only PAID payments count toward the sale balance. The sum of PAID
    amounts for a sale never exceeds the sale total.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_sale_status", "sale_id", "status"),
        db.CheckConstraint("amount_cents > 0", name="ck_payments_amount_pos"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=True, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(32), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)

    due_date = db.Column(db.DateTime(timezone=True), nullable=False)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    # Installment scheduling: when the client promised the next payment
    next_payment_at = db.Column(db.DateTime(timezone=True), nullable=True)

    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "sale_id": self.sale_id,
            "client_id": self.client_id,
            "vendor_id": self.vendor_id,
            "amount_cents": self.amount_cents,
            "method": self.method,
            "status": self.status,
            "due_date": to_utc_z(self.due_date),
            "paid_at": to_utc_z(self.paid_at) if self.paid_at else None,
            "next_payment_at": to_utc_z(self.next_payment_at) if self.next_payment_at else None,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
