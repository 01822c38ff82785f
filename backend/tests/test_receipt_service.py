# Overview: Pytest coverage for credit settlement (receipts against fiado sales).

"""
Credit Settlement Tests

Covers the balance invariant (PAID sum never exceeds the sale total), the
single PENDING -> COMPLETED transition, payment-method normalization and the
INFLOW ledger entry booked per receipt.
"""

import pytest

from conftest import sale_payload
from gestao.models import FinancialMovement, Payment, Sale
from gestao.services import ledger_service
from gestao.services.receipt_service import (
    get_sale_balance,
    normalize_payment_method,
    register_credit_payment,
)
from gestao.services.sales_service import cancel_sale, create_sale
from gestao.validation import ConflictError, NotFoundError, ValidationError


@pytest.fixture
def credit_sale(db_session, org_a, user_a, item_a, client_a):
    """Fiado sale of 100.00 for Dona Maria."""
    sale, _ = create_sale(
        org_a.id, user_a.id,
        sale_payload(item_a.id, payment_type="fiado", client_id=client_a.id),
    )
    return sale


def _paid_sum(db_session, sale_id):
    return sum(p.amount_cents for p in db_session.query(Payment).filter_by(sale_id=sale_id, status="PAID"))


class TestNormalizePaymentMethod:

    @pytest.mark.parametrize("label,expected", [
        ("dinheiro", "CASH"),
        ("pix", "PIX"),
        ("PIX", "PIX"),
        ("cartao", "CREDIT_CARD"),
        ("cartão", "CREDIT_CARD"),
        ("Cartao_Credito", "CREDIT_CARD"),
        ("cartao_debito", "DEBIT_CARD"),
        ("transferencia", "BANK_TRANSFER"),
        ("fiado", "STORE_CREDIT"),
        ("cheque", "CASH"),
        ("", "CASH"),
        (None, "CASH"),
    ])
    def test_mapping(self, label, expected):
        assert normalize_payment_method(label) == expected


class TestRegisterCreditPayment:

    def test_full_settlement_scenario(self, db_session, org_a, user_a, credit_sale):
        """Fiado sale of 100.00 settled in one receipt, then re-settlement refused."""
        assert db_session.query(FinancialMovement).count() == 0

        result = register_credit_payment(org_a.id, credit_sale.id, 10000, "dinheiro", user_a.id)

        assert result.remaining_balance_cents == 0
        assert result.is_fully_paid is True
        assert result.payment.status == "PAID"
        assert result.payment.paid_at is not None
        assert db_session.get(Sale, credit_sale.id).status == "COMPLETED"

        movement = db_session.query(FinancialMovement).one()
        assert movement.direction == "INFLOW"
        assert movement.amount_cents == 10000
        assert movement.category == "Credit Receipts"
        assert movement.description == f"Credit payment received - Client: Dona Maria - Sale ID: {credit_sale.id}"

        with pytest.raises(ConflictError, match="already fully paid"):
            register_credit_payment(org_a.id, credit_sale.id, 1, "pix", user_a.id)
        assert db_session.query(Payment).filter_by(sale_id=credit_sale.id).count() == 1

    def test_partial_payments_complete_exactly_at_total(self, db_session, org_a, user_a, credit_sale):
        amounts = [3000, 2500, 4500]
        results = []
        for amount in amounts:
            results.append(register_credit_payment(org_a.id, credit_sale.id, amount, "pix", user_a.id))
            sale = db_session.get(Sale, credit_sale.id)
            paid = _paid_sum(db_session, credit_sale.id)
            assert paid <= sale.total_cents
            assert (sale.status == "COMPLETED") == (paid == sale.total_cents)

        assert [r.remaining_balance_cents for r in results] == [7000, 4500, 0]
        assert [r.is_fully_paid for r in results] == [False, False, True]
        assert db_session.query(FinancialMovement).count() == 3

    def test_partial_payment_bumps_sale_version(self, db_session, org_a, user_a, credit_sale):
        """A receipt that leaves the sale PENDING must still move its version_id."""
        before = db_session.get(Sale, credit_sale.id).version_id

        register_credit_payment(org_a.id, credit_sale.id, 1000, "pix", user_a.id)

        sale = db_session.get(Sale, credit_sale.id)
        db_session.refresh(sale)
        assert sale.status == "PENDING"
        assert sale.version_id == before + 1

    def test_amount_over_balance_rejected_without_writes(self, db_session, org_a, user_a, credit_sale):
        register_credit_payment(org_a.id, credit_sale.id, 6000, "pix", user_a.id)

        with pytest.raises(ValidationError, match="exceeds balance"):
            register_credit_payment(org_a.id, credit_sale.id, 4001, "pix", user_a.id)

        assert _paid_sum(db_session, credit_sale.id) == 6000
        assert db_session.get(Sale, credit_sale.id).status == "PENDING"
        assert db_session.query(FinancialMovement).count() == 1

    @pytest.mark.parametrize("amount", [0, -100, 10.5, None])
    def test_non_positive_amount_rejected(self, db_session, org_a, user_a, credit_sale, amount):
        with pytest.raises(ValidationError):
            register_credit_payment(org_a.id, credit_sale.id, amount, "pix", user_a.id)
        assert db_session.query(Payment).count() == 0

    def test_method_is_normalized_on_payment_and_ledger(self, db_session, org_a, user_a, credit_sale):
        result = register_credit_payment(org_a.id, credit_sale.id, 500, "Cartão", user_a.id)

        assert result.payment.method == "CREDIT_CARD"
        assert db_session.query(FinancialMovement).one().payment_form == "CREDIT_CARD"

    def test_cancelled_sale_conflicts(self, db_session, org_a, user_a, credit_sale):
        cancel_sale(org_a.id, credit_sale.id)
        with pytest.raises(ConflictError):
            register_credit_payment(org_a.id, credit_sale.id, 100, "pix", user_a.id)

    def test_unknown_sale_not_found(self, db_session, org_a, user_a):
        with pytest.raises(NotFoundError):
            register_credit_payment(org_a.id, 123456, 100, "pix", user_a.id)

    def test_ledger_failure_does_not_fail_settlement(self, db_session, org_a, user_a, credit_sale, monkeypatch):
        def boom(movement):
            raise ledger_service.PersistenceError("ledger down")

        monkeypatch.setattr(ledger_service, "_write_movement", boom)

        result = register_credit_payment(org_a.id, credit_sale.id, 10000, "pix", user_a.id)

        assert result.is_fully_paid is True
        assert db_session.get(Sale, credit_sale.id).status == "COMPLETED"
        assert db_session.query(FinancialMovement).count() == 0


class TestSaleBalance:

    def test_balance_counts_paid_only(self, db_session, org_a, user_a, credit_sale):
        register_credit_payment(org_a.id, credit_sale.id, 2500, "pix", user_a.id)
        db_session.add(Payment(
            org_id=org_a.id,
            sale_id=credit_sale.id,
            amount_cents=5000,
            method="CASH",
            status="PENDING",
            due_date=credit_sale.created_at,
        ))
        db_session.commit()

        balance = get_sale_balance(org_a.id, credit_sale.id)

        assert balance["total_cents"] == 10000
        assert balance["received_cents"] == 2500
        assert balance["pending_cents"] == 7500
        assert len(balance["payments"]) == 1
