from __future__ import annotations

from ..extensions import db
from gestao.time_utils import to_utc_z


class InventoryItem(db.Model):
    """
    One stock-keeping unit for a tenant.

    Unlike a ledger-derived stock model, on-hand quantity is a mutable column
    updated in place by stock movements. It must never go below zero; the
    movement service checks this under a row lock, and version_id gives an
    optimistic check on top of it.

    Soft-deleted (is_active=False) when sale lines reference it.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.Index("ix_inventory_items_org_active", "org_id", "is_active"),
        db.CheckConstraint("quantity >= 0", name="ck_inventory_items_quantity_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=True, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    min_quantity = db.Column(db.Integer, nullable=False, default=10)
    max_quantity = db.Column(db.Integer, nullable=False, default=1000)

    unit_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    sale_price_cents = db.Column(db.Integer, nullable=False, default=0)

    unit = db.Column(db.String(16), nullable=False, default="un")
    location = db.Column(db.String(128), nullable=True)
    supplier = db.Column(db.String(255), nullable=True)
    barcode = db.Column(db.String(64), nullable=True, index=True)
    notes = db.Column(db.Text, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} name={self.name!r} qty={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "category": self.category,
            "quantity": self.quantity,
            "min_quantity": self.min_quantity,
            "max_quantity": self.max_quantity,
            "unit_cost_cents": self.unit_cost_cents,
            "sale_price_cents": self.sale_price_cents,
            "unit": self.unit,
            "location": self.location,
            "supplier": self.supplier,
            "barcode": self.barcode,
            "notes": self.notes,
            "is_active": self.is_active,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class Basket(db.Model):
    """
    Promotional bundle ("cesta") sold as a single sale line.

    Sale lines reference it as "cesta-<id>". components is a list of
    {"item_id", "quantity"} pairs describing what one basket contains; it is
    used to estimate how many baskets stock could assemble and never moves
    stock by itself.
    """
    __tablename__ = "baskets"
    __table_args__ = (
        db.Index("ix_baskets_org_active", "org_id", "is_active"),
        db.CheckConstraint("promo_price_cents >= 0", name="ck_baskets_promo_price_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(128), nullable=True)
    promo_price_cents = db.Column(db.Integer, nullable=True)

    components = db.Column(db.JSON, nullable=False, default=list)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def __repr__(self) -> str:
        return f"<Basket id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "ref": f"cesta-{self.id}",
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "promo_price_cents": self.promo_price_cents,
            "components": list(self.components or []),
            "is_active": self.is_active,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
