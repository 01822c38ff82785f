# Overview: Pytest coverage for inventory catalog and stock movements.

import pytest

from conftest import sale_payload
from gestao.models import FinancialMovement, InventoryItem
from gestao.services import inventory_service
from gestao.services.inventory_service import apply_stock_movement
from gestao.services.sales_service import create_sale
from gestao.validation import ConflictError, NotFoundError, ValidationError


class TestStockMovement:

    def test_inbound_adds_quantity(self, db_session, org_a, item_a):
        result = apply_stock_movement(org_a.id, item_a.id, "inbound", 5, notes="reposicao")

        assert result.item.quantity == 15
        assert result.movement["quantity_before"] == 10
        assert result.movement["quantity_after"] == 15
        assert result.movement["direction"] == "inbound"
        assert result.movement["notes"] == "reposicao"
        assert result.movement["occurred_at"].endswith("Z")

    def test_outbound_subtracts_quantity(self, db_session, org_a, item_a):
        result = apply_stock_movement(org_a.id, item_a.id, "outbound", 4)
        assert result.item.quantity == 6

    def test_outbound_to_exactly_zero(self, db_session, org_a, item_a):
        result = apply_stock_movement(org_a.id, item_a.id, "outbound", 10)
        assert result.item.quantity == 0

    def test_insufficient_stock_conflicts_without_writes(self, db_session, org_a, item_a):
        with pytest.raises(ConflictError, match="insufficient stock"):
            apply_stock_movement(org_a.id, item_a.id, "outbound", 11)
        assert db_session.get(InventoryItem, item_a.id).quantity == 10

    def test_quantity_never_negative_over_sequence(self, db_session, org_a, item_a):
        steps = [("outbound", 4), ("outbound", 7), ("inbound", 3), ("outbound", 9), ("outbound", 1)]
        for direction, qty in steps:
            try:
                apply_stock_movement(org_a.id, item_a.id, direction, qty)
            except ConflictError:
                pass
            assert db_session.get(InventoryItem, item_a.id).quantity >= 0
        assert db_session.get(InventoryItem, item_a.id).quantity == 0

    @pytest.mark.parametrize("quantity", [0, -3, 2.5, None])
    def test_bad_quantity_rejected(self, db_session, org_a, item_a, quantity):
        with pytest.raises(ValidationError):
            apply_stock_movement(org_a.id, item_a.id, "inbound", quantity)

    def test_bad_direction_rejected(self, db_session, org_a, item_a):
        with pytest.raises(ValidationError):
            apply_stock_movement(org_a.id, item_a.id, "sideways", 1)

    def test_unknown_item_not_found(self, db_session, org_a):
        with pytest.raises(NotFoundError):
            apply_stock_movement(org_a.id, 99999, "inbound", 1)

    def test_priced_inbound_books_purchase_outflow(self, db_session, org_a, item_a):
        apply_stock_movement(org_a.id, item_a.id, "inbound", 4, unit_cost_cents=250)

        movement = db_session.query(FinancialMovement).one()
        assert movement.direction == "OUTFLOW"
        assert movement.amount_cents == 1000
        assert movement.category == "Inventory"
        assert movement.description == "Purchase of 4 un of Arroz 5kg"

    def test_unpriced_inbound_and_outbound_book_nothing(self, db_session, org_a, item_a):
        apply_stock_movement(org_a.id, item_a.id, "inbound", 4)
        apply_stock_movement(org_a.id, item_a.id, "inbound", 4, unit_cost_cents=0)
        apply_stock_movement(org_a.id, item_a.id, "outbound", 2, unit_cost_cents=500)
        assert db_session.query(FinancialMovement).count() == 0


class TestCatalog:

    def test_create_item_defaults(self, db_session, org_a, user_a):
        item = inventory_service.create_item(org_a.id, {"name": "Oleo 900ml"}, created_by_user_id=user_a.id)

        assert item.quantity == 0
        assert item.min_quantity == 10
        assert item.max_quantity == 1000
        assert item.unit == "un"
        assert item.is_active is True

    def test_create_item_requires_name(self, db_session, org_a):
        with pytest.raises(ValidationError, match="name"):
            inventory_service.create_item(org_a.id, {"quantity": 3})

    def test_create_item_rejects_unknown_field(self, db_session, org_a):
        with pytest.raises(ValidationError, match="not allowed"):
            inventory_service.create_item(org_a.id, {"name": "X", "org_id": 99})

    def test_create_item_rejects_min_above_max(self, db_session, org_a):
        with pytest.raises(ValidationError):
            inventory_service.create_item(org_a.id, {"name": "X", "min_quantity": 50, "max_quantity": 5})

    def test_low_stock_lists_items_at_or_below_minimum(self, db_session, org_a, item_a):
        inventory_service.create_item(org_a.id, {"name": "Sal", "quantity": 100})

        low = inventory_service.list_low_stock(org_a.id)
        assert [i.id for i in low] == [item_a.id]

    def test_list_items_search(self, db_session, org_a, item_a):
        inventory_service.create_item(org_a.id, {"name": "Acucar", "category": "Mercearia"})
        found = inventory_service.list_items(org_a.id, search="arroz")
        assert [i.id for i in found] == [item_a.id]

    def test_delete_unused_item_is_hard(self, db_session, org_a, item_a):
        item_id = item_a.id
        assert inventory_service.delete_item(org_a.id, item_id) == "deleted"
        assert db_session.get(InventoryItem, item_id) is None

    def test_delete_sold_item_is_soft(self, db_session, org_a, user_a, item_a):
        create_sale(org_a.id, user_a.id, sale_payload(item_a.id))

        assert inventory_service.delete_item(org_a.id, item_a.id) == "deactivated"
        assert db_session.get(InventoryItem, item_a.id).is_active is False
        assert inventory_service.list_items(org_a.id) == []

    def test_update_item_changes_catalog_fields(self, db_session, org_a, item_a):
        version = item_a.version_id

        item = inventory_service.update_item(org_a.id, item_a.id, {
            "sale_price_cents": 2700, "max_quantity": 50, "barcode": "7891234",
        })

        assert item.sale_price_cents == 2700
        assert item.max_quantity == 50
        assert item.barcode == "7891234"
        assert item.quantity == 10
        assert item.version_id == version + 1

    def test_update_item_cannot_set_quantity(self, db_session, org_a, item_a):
        with pytest.raises(ValidationError, match="not allowed: quantity"):
            inventory_service.update_item(org_a.id, item_a.id, {"quantity": 500})
        assert db_session.get(InventoryItem, item_a.id).quantity == 10

    def test_update_item_checks_merged_thresholds(self, db_session, org_a, item_a):
        # stored max is 1000
        with pytest.raises(ValidationError, match="min_quantity"):
            inventory_service.update_item(org_a.id, item_a.id, {"min_quantity": 1001})

    def test_update_foreign_item_not_found(self, db_session, org_b, item_a):
        with pytest.raises(NotFoundError):
            inventory_service.update_item(org_b.id, item_a.id, {"name": "Hacked"})
        assert db_session.get(InventoryItem, item_a.id).name == "Arroz 5kg"

    @pytest.mark.parametrize("value", ["false", "true", 0, 1, None])
    def test_is_active_must_be_boolean(self, db_session, org_a, item_a, value):
        with pytest.raises(ValidationError, match="is_active"):
            inventory_service.update_item(org_a.id, item_a.id, {"is_active": value})
        assert db_session.get(InventoryItem, item_a.id).is_active is True
