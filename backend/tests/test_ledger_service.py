# Overview: Pytest coverage for the financial ledger (automatic and manual entries).

from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError

from gestao.models import FinancialMovement
from gestao.services import ledger_service
from gestao.validation import ValidationError


def _operational_error():
    return OperationalError("INSERT INTO financial_movements", {}, Exception("database is locked"))


class TestRecordMovement:

    def test_records_entry(self, db_session, org_a):
        movement = ledger_service.record_movement(
            org_a.id, "INFLOW", 1500, "Sale - Client: N/A", "Sales", payment_form="pix",
        )
        assert movement is not None
        assert db_session.query(FinancialMovement).one().amount_cents == 1500

    @pytest.mark.parametrize("amount", [0, -10, None])
    def test_non_positive_amount_skipped(self, db_session, org_a, amount):
        assert ledger_service.record_movement(org_a.id, "INFLOW", amount, "x", "Sales") is None
        assert db_session.query(FinancialMovement).count() == 0

    def test_invalid_direction_raises(self, db_session, org_a):
        with pytest.raises(ValueError):
            ledger_service.record_movement(org_a.id, "SIDEWAYS", 100, "x", "Sales")

    def test_transient_failure_is_retried(self, app, db_session, org_a, monkeypatch):
        real_write = ledger_service._write_movement
        calls = {"n": 0}

        def flaky(movement):
            calls["n"] += 1
            if calls["n"] == 1:
                raise _operational_error()
            return real_write(movement)

        monkeypatch.setattr(ledger_service, "_write_movement", flaky)

        assert ledger_service.record_movement(org_a.id, "OUTFLOW", 700, "Purchase", "Inventory") is not None
        assert calls["n"] == 2
        assert db_session.query(FinancialMovement).count() == 1

    def test_persistent_failure_is_logged_and_swallowed(self, app, db_session, org_a, monkeypatch, caplog):
        calls = {"n": 0}

        def broken(movement):
            calls["n"] += 1
            raise _operational_error()

        monkeypatch.setattr(ledger_service, "_write_movement", broken)

        result = ledger_service.record_movement(org_a.id, "INFLOW", 900, "Sale", "Sales")

        assert result is None
        assert calls["n"] == app.config["LEDGER_RETRY_ATTEMPTS"]
        assert "Failed to record INFLOW ledger entry" in caplog.text
        assert db_session.query(FinancialMovement).count() == 0


class TestManualMovements:

    def test_create_movement_defaults_date(self, db_session, org_a, user_a):
        movement = ledger_service.create_movement(
            org_a.id,
            {"direction": "outflow", "amount_cents": 12000, "description": "Aluguel", "category": "Despesas"},
            created_by_user_id=user_a.id,
        )
        assert movement.direction == "OUTFLOW"
        assert movement.movement_date is not None

    @pytest.mark.parametrize("payload", [
        {"direction": "INFLOW", "amount_cents": 0, "description": "x", "category": "y"},
        {"direction": "INFLOW", "amount_cents": 10.5, "description": "x", "category": "y"},
        {"direction": "UP", "amount_cents": 100, "description": "x", "category": "y"},
        {"direction": "INFLOW", "amount_cents": 100, "category": "y"},
    ])
    def test_create_movement_validation(self, db_session, org_a, payload):
        with pytest.raises(ValidationError):
            ledger_service.create_movement(org_a.id, payload)

    def test_list_and_summary(self, db_session, org_a, org_b):
        base = {"description": "x", "category": "Manual"}
        ledger_service.create_movement(org_a.id, {**base, "direction": "INFLOW", "amount_cents": 5000,
                                                  "movement_date": "2024-03-01"})
        ledger_service.create_movement(org_a.id, {**base, "direction": "OUTFLOW", "amount_cents": 1500,
                                                  "movement_date": "2024-03-05"})
        ledger_service.create_movement(org_a.id, {**base, "direction": "INFLOW", "amount_cents": 700,
                                                  "movement_date": "2024-04-01"})
        ledger_service.create_movement(org_b.id, {**base, "direction": "INFLOW", "amount_cents": 99999})

        listing = ledger_service.list_movements(org_a.id, direction="inflow")
        assert listing["total"] == 2
        assert [m.amount_cents for m in listing["movements"]] == [700, 5000]

        assert ledger_service.get_summary(org_a.id) == {
            "inflow_cents": 5700,
            "outflow_cents": 1500,
            "balance_cents": 4200,
        }

        march = ledger_service.get_summary(org_a.id, datetime(2024, 3, 1), datetime(2024, 3, 31))
        assert march["balance_cents"] == 3500
