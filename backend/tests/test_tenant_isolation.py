# Overview: Pytest coverage for tenant isolation behavior.

"""
Multi-Tenant Isolation Tests

Two organizations with their own users, items and sales. Every service call
made with org A's id must behave as if org B's rows do not exist:
NotFoundError on direct access, empty results on listings, and no writes.
"""

import pytest
from flask import g

from conftest import sale_payload
from gestao.models import FinancialMovement, InventoryItem, Payment, Sale
from gestao.services import customer_service, inventory_service, ledger_service, sales_service
from gestao.services.receipt_service import get_sale_balance, register_credit_payment
from gestao.services.tenant_service import TenantAccessError, get_current_org_id, scoped_query
from gestao.validation import NotFoundError


@pytest.fixture
def sale_b(db_session, org_b, user_b, item_b):
    sale, _ = sales_service.create_sale(
        org_b.id, user_b.id,
        sale_payload(item_b.id, payment_type="fiado"),
    )
    return sale


class TestTenantServiceHelpers:

    def test_current_org_requires_context(self, app, db_session):
        with app.test_request_context():
            with pytest.raises(TenantAccessError):
                get_current_org_id()

    def test_scoped_query_uses_request_org(self, app, db_session, org_a, item_a, item_b):
        with app.test_request_context():
            g.org_id = org_a.id
            assert [i.id for i in scoped_query(InventoryItem).all()] == [item_a.id]

    def test_cross_tenant_access_is_logged(self, app, db_session, org_a, item_b, caplog):
        with pytest.raises(NotFoundError):
            inventory_service.get_item(org_a.id, item_b.id)
        assert "CROSS_TENANT_ACCESS_DENIED" in caplog.text


class TestSalesIsolation:

    def test_sale_with_foreign_item_rejected(self, db_session, org_a, user_a, item_b):
        with pytest.raises(NotFoundError):
            sales_service.create_sale(org_a.id, user_a.id, sale_payload(item_b.id))
        assert db_session.query(Sale).count() == 0

    def test_foreign_sale_not_visible(self, db_session, org_a, sale_b):
        with pytest.raises(NotFoundError):
            sales_service.get_sale(org_a.id, sale_b.id)
        assert sales_service.list_sales(org_a.id)["total"] == 0
        assert sales_service.list_credit_sales(org_a.id) == []

    def test_foreign_sale_cannot_be_cancelled_or_deleted(self, db_session, org_a, org_b, sale_b):
        with pytest.raises(NotFoundError):
            sales_service.cancel_sale(org_a.id, sale_b.id)
        with pytest.raises(NotFoundError):
            sales_service.delete_sale(org_a.id, sale_b.id)
        assert db_session.get(Sale, sale_b.id).status == "PENDING"


class TestReceiptIsolation:

    def test_foreign_sale_cannot_be_settled(self, db_session, org_a, user_a, sale_b):
        with pytest.raises(NotFoundError):
            register_credit_payment(org_a.id, sale_b.id, 1000, "pix", user_a.id)
        assert db_session.query(Payment).count() == 0
        assert db_session.query(FinancialMovement).count() == 0

    def test_foreign_balance_not_visible(self, db_session, org_a, sale_b):
        with pytest.raises(NotFoundError):
            get_sale_balance(org_a.id, sale_b.id)


class TestInventoryIsolation:

    def test_foreign_item_movement_rejected(self, db_session, org_a, item_b):
        with pytest.raises(NotFoundError):
            inventory_service.apply_stock_movement(org_a.id, item_b.id, "outbound", 1)
        assert db_session.get(InventoryItem, item_b.id).quantity == 5

    def test_listings_are_scoped(self, db_session, org_a, org_b, item_a, item_b):
        assert [i.id for i in inventory_service.list_items(org_a.id)] == [item_a.id]
        assert [i.id for i in inventory_service.list_low_stock(org_b.id)] == [item_b.id]


class TestLedgerAndCustomerIsolation:

    def test_ledger_is_scoped(self, db_session, org_a, org_b):
        ledger_service.record_movement(org_b.id, "INFLOW", 5000, "Sale", "Sales")
        assert ledger_service.list_movements(org_a.id)["total"] == 0
        assert ledger_service.get_summary(org_a.id)["inflow_cents"] == 0

    def test_foreign_client_not_visible(self, db_session, org_a, org_b):
        client_b = customer_service.create_client(org_b.id, {"name": "Cliente Beta"})
        with pytest.raises(NotFoundError):
            customer_service.get_client(org_a.id, client_b.id)
        assert customer_service.list_clients(org_a.id) == []
