# Overview: Pytest coverage for the basket (cesta) catalog and the stock-based estimate.

import pytest

from conftest import sale_payload
from gestao.models import Basket, InventoryItem
from gestao.services import basket_service
from gestao.services.sales_service import create_sale, get_sale, sale_detail
from gestao.validation import NotFoundError, ValidationError


class TestBasketCatalog:

    def test_create_basket_with_components(self, db_session, org_a, user_a, item_a):
        basket = basket_service.create_basket(org_a.id, {
            "name": "Cesta Basica",
            "promo_price_cents": 8000,
            "components": [{"item_id": item_a.id, "quantity": 2}],
        }, created_by_user_id=user_a.id)

        assert basket.is_active is True
        assert basket.components == [{"item_id": item_a.id, "quantity": 2}]
        assert basket.to_dict()["ref"] == f"cesta-{basket.id}"

    def test_component_from_other_tenant_rejected(self, db_session, org_a, item_b):
        with pytest.raises(NotFoundError):
            basket_service.create_basket(org_a.id, {
                "name": "Cesta", "components": [{"item_id": item_b.id, "quantity": 1}],
            })
        assert db_session.query(Basket).count() == 0

    @pytest.mark.parametrize("components", [
        "item 1",
        [{"item_id": 1}],
        [{"item_id": 1, "quantity": 0}],
        [{"item_id": 1, "quantity": 1}, {"item_id": 1, "quantity": 2}],
    ])
    def test_malformed_components_rejected(self, db_session, org_a, item_a, components):
        with pytest.raises(ValidationError):
            basket_service.create_basket(org_a.id, {"name": "Cesta", "components": components})

    def test_negative_promo_price_rejected(self, db_session, org_a):
        with pytest.raises(ValidationError):
            basket_service.create_basket(org_a.id, {"name": "Cesta", "promo_price_cents": -1})

    def test_update_basket_replaces_components(self, db_session, org_a, item_a, basket_a):
        other = InventoryItem(org_id=org_a.id, name="Oleo 900ml", quantity=4)
        db_session.add(other)
        db_session.commit()

        basket = basket_service.update_basket(org_a.id, basket_a.id, {
            "name": "Cesta Completa",
            "components": [{"item_id": other.id, "quantity": 1}],
        })

        assert basket.name == "Cesta Completa"
        assert basket.components == [{"item_id": other.id, "quantity": 1}]
        assert basket.promo_price_cents == 8000

    def test_list_search_and_active(self, db_session, org_a, basket_a):
        basket_service.create_basket(org_a.id, {"name": "Cesta Natal", "category": "Sazonal", "is_active": False})

        assert basket_service.list_baskets(org_a.id)["total"] == 2
        assert [b.name for b in basket_service.list_baskets(org_a.id, search="sazonal")["baskets"]] == ["Cesta Natal"]
        assert [b.id for b in basket_service.list_active_baskets(org_a.id)] == [basket_a.id]

    def test_foreign_basket_not_visible(self, db_session, org_b, basket_a):
        with pytest.raises(NotFoundError):
            basket_service.get_basket(org_b.id, basket_a.id)
        with pytest.raises(NotFoundError):
            basket_service.delete_basket(org_b.id, basket_a.id)
        assert basket_service.list_baskets(org_b.id)["total"] == 0

    def test_delete_keeps_sale_snapshot(self, db_session, org_a, user_a, item_a, basket_a):
        sale, _ = create_sale(org_a.id, user_a.id, sale_payload(item_a.id, basket_a.id))

        basket_service.delete_basket(org_a.id, basket_a.id)

        assert db_session.query(Basket).count() == 0
        detail = sale_detail(get_sale(org_a.id, sale.id))
        assert detail["all_items"][1]["name"] == "Cesta Basica"


class TestCalculatePossible:

    def test_limited_by_scarcest_component(self, db_session, org_a, item_a, basket_a):
        oil = InventoryItem(org_id=org_a.id, name="Oleo 900ml", quantity=3)
        db_session.add(oil)
        db_session.commit()
        basket_service.update_basket(org_a.id, basket_a.id, {"components": [
            {"item_id": item_a.id, "quantity": 2},
            {"item_id": oil.id, "quantity": 1},
        ]})

        # item_a: 10 // 2 = 5, oil: 3 // 1 = 3
        assert basket_service.calculate_possible(org_a.id) == {basket_a.id: 3}

    def test_inactive_component_or_empty_basket_is_zero(self, db_session, org_a, item_a, basket_a):
        empty = basket_service.create_basket(org_a.id, {"name": "Cesta Vazia"})
        item_a.is_active = False
        db_session.commit()

        assert basket_service.calculate_possible(org_a.id) == {basket_a.id: 0, empty.id: 0}

    def test_inactive_baskets_are_skipped(self, db_session, org_a, basket_a):
        basket_service.update_basket(org_a.id, basket_a.id, {"is_active": False})
        assert basket_service.calculate_possible(org_a.id) == {}
