"""
Invoice service tests.

Verifies:
- Totals are recomputed from lines and never include the carried balance
- Stock decrements commit with the invoice or not at all
- Payments keep amount_paid equal to the sum of payment rows
- Carry-forward and running ledger reconcile
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import text

from billbook.extensions import db
from billbook.models import Invoice, InvoicePayment, Stock
from billbook.services import customer_service, invoice_service
from billbook.services.calculations import PaymentStatus
from billbook.services.invoice_service import (
    InsufficientStockError,
    InvoiceError,
    StockNotFoundError,
)
from billbook.validation import NotFoundError, ValidationError

from conftest import NOW, invoice_header


ITEMS = [
    {"name": "Steel rod", "quantity": 2, "rate_cents": 50000},
    {"name": "Cement bag", "quantity": 3, "rate_cents": 35000},
]


class TestCreateInvoice:

    def test_totals_recomputed(self, db_session):
        invoice = invoice_service.create_invoice(
            patch=invoice_header(), items=ITEMS, now=NOW
        )
        assert [item.total_cents for item in invoice.items] == [100000, 105000]
        assert invoice.grand_total_cents == 205000
        assert invoice.balance_due_cents == 205000
        assert invoice.payment_status == PaymentStatus.UNPAID.value

    def test_generates_invoice_number(self, db_session):
        invoice = invoice_service.create_invoice(patch=invoice_header(), items=ITEMS, now=NOW)
        assert invoice.invoice_number.startswith("AB-240615-")

    def test_keeps_supplied_invoice_number(self, db_session):
        invoice = invoice_service.create_invoice(
            patch=invoice_header(invoice_number="AB-MANUAL-1"), items=ITEMS, now=NOW
        )
        assert invoice.invoice_number == "AB-MANUAL-1"

    def test_carried_balance_not_in_grand_total(self, db_session):
        invoice = invoice_service.create_invoice(
            patch=invoice_header(previous_outstanding_cents=60000),
            items=ITEMS,
            now=NOW,
        )
        assert invoice.grand_total_cents == 205000
        assert invoice.total_due_cents == 265000
        assert invoice.total_pending_amount_cents == 60000

    def test_initial_payment_recorded(self, db_session):
        invoice = invoice_service.create_invoice(
            patch=invoice_header(amount_paid_cents=5000), items=ITEMS, now=NOW
        )
        assert invoice.amount_paid_cents == 5000
        assert len(invoice.payments) == 1
        assert invoice.payments[0].notes == invoice_service.INITIAL_PAYMENT_NOTE
        assert invoice.payments[0].paid_at == NOW
        assert invoice.payment_status == PaymentStatus.PARTIAL.value

    def test_requires_items(self, db_session):
        with pytest.raises(ValidationError):
            invoice_service.create_invoice(patch=invoice_header(), items=[], now=NOW)

    def test_overdue_when_unpaid_past_due(self, db_session):
        invoice = invoice_service.create_invoice(
            patch=invoice_header(due_date=date(2024, 6, 10)), items=ITEMS, now=NOW
        )
        assert invoice.payment_status == PaymentStatus.OVERDUE.value


class TestStockDecrement:

    def test_decrements_referenced_stock(self, db_session, make_stock):
        rod = make_stock("Steel rod", 10)
        items = [{"name": "Steel rod", "quantity": 4, "rate_cents": 50000, "stock_id": rod.id}]

        invoice_service.create_invoice(patch=invoice_header(), items=items, now=NOW)

        assert db.session.get(Stock, rod.id).quantity == 6

    def test_same_stock_on_two_lines(self, db_session, make_stock):
        rod = make_stock("Steel rod", 10)
        items = [
            {"name": "Steel rod", "quantity": 4, "rate_cents": 50000, "stock_id": rod.id},
            {"name": "Steel rod (cut)", "quantity": 6, "rate_cents": 55000, "stock_id": rod.id},
        ]

        invoice_service.create_invoice(patch=invoice_header(), items=items, now=NOW)

        assert db.session.get(Stock, rod.id).quantity == 0

    def test_insufficient_stock_rolls_back_everything(self, db_session, make_stock):
        rod = make_stock("Steel rod", 10)
        cement = make_stock("Cement bag", 1)
        rod_id, cement_id = rod.id, cement.id
        items = [
            {"name": "Steel rod", "quantity": 4, "rate_cents": 50000, "stock_id": rod_id},
            {"name": "Cement bag", "quantity": 3, "rate_cents": 35000, "stock_id": cement_id},
        ]

        with pytest.raises(InsufficientStockError) as exc:
            invoice_service.create_invoice(patch=invoice_header(), items=items, now=NOW)

        assert isinstance(exc.value, InvoiceError)
        assert exc.value.details["stock_id"] == cement_id
        assert exc.value.details["requested_quantity"] == 3
        assert exc.value.details["available_quantity"] == 1
        assert db.session.get(Stock, rod_id).quantity == 10
        assert db.session.get(Stock, cement_id).quantity == 1
        assert db.session.query(Invoice).count() == 0

    def test_missing_stock(self, db_session):
        items = [{"name": "Ghost", "quantity": 1, "rate_cents": 100, "stock_id": 999}]

        with pytest.raises(StockNotFoundError) as exc:
            invoice_service.create_invoice(patch=invoice_header(), items=items, now=NOW)

        assert exc.value.details["stock_id"] == 999
        assert db.session.query(Invoice).count() == 0

    def test_available_quantity_is_advisory(self, db_session, make_stock):
        rod = make_stock("Steel rod", 5)
        items = [{
            "name": "Steel rod",
            "quantity": 5,
            "rate_cents": 100,
            "stock_id": rod.id,
            "available_quantity": 0,
        }]

        invoice = invoice_service.create_invoice(patch=invoice_header(), items=items, now=NOW)

        assert invoice.items[0].available_quantity == 0
        assert db.session.get(Stock, rod.id).quantity == 0

    def test_fractional_line_cannot_take_stock(self, db_session, make_stock):
        rod = make_stock("Steel rod", 10)
        rod_id = rod.id
        items = [{"name": "Steel rod", "quantity": Decimal("1.5"), "rate_cents": 50000, "stock_id": rod_id}]

        with pytest.raises(ValidationError):
            invoice_service.create_invoice(patch=invoice_header(), items=items, now=NOW)

        assert db.session.get(Stock, rod_id).quantity == 10
        assert db.session.query(Invoice).count() == 0

    def test_details_report_live_quantity(self, db_session, make_stock):
        rod = make_stock("Steel rod", 1)
        rod_id = rod.id
        assert rod.quantity == 1
        # Change the row behind the session's back
        db.session.execute(text("UPDATE stocks SET quantity = 2 WHERE id = :id"), {"id": rod_id})
        items = [{"name": "Steel rod", "quantity": 3, "rate_cents": 50000, "stock_id": rod_id}]

        with pytest.raises(InsufficientStockError) as exc:
            invoice_service.create_invoice(patch=invoice_header(), items=items, now=NOW)

        assert exc.value.details["available_quantity"] == 2
        assert exc.value.details["requested_quantity"] == 3

    def test_edit_does_not_touch_stock(self, db_session, make_stock):
        rod = make_stock("Steel rod", 10)
        items = [{"name": "Steel rod", "quantity": 4, "rate_cents": 50000, "stock_id": rod.id}]
        invoice = invoice_service.create_invoice(patch=invoice_header(), items=items, now=NOW)

        invoice_service.update_invoice(
            invoice.id,
            patch={},
            items=[{"name": "Steel rod", "quantity": 8, "rate_cents": 50000, "stock_id": rod.id}],
            now=NOW,
        )

        assert db.session.get(Stock, rod.id).quantity == 6


class TestUpdateInvoice:

    def test_replaces_items_and_recomputes(self, db_session):
        invoice = invoice_service.create_invoice(patch=invoice_header(), items=ITEMS, now=NOW)

        updated = invoice_service.update_invoice(
            invoice.id,
            patch={"customer_name": "Asha Traders Pvt Ltd"},
            items=[{"name": "Tiles", "quantity": 10, "rate_cents": 4500}],
            now=NOW,
        )

        assert updated.customer_name == "Asha Traders Pvt Ltd"
        assert [i.name for i in updated.items] == ["Tiles"]
        assert updated.grand_total_cents == 45000

    def test_fractional_quantities(self, db_session):
        invoice = invoice_service.create_invoice(
            patch=invoice_header(),
            items=[
                {"name": "Wallpaper", "quantity": Decimal("2.5"), "rate_cents": 15000},
                {"name": "Labour", "quantity": Decimal("1.25"), "rate_cents": 999},
            ],
            now=NOW,
        )

        stored = db.session.get(Invoice, invoice.id)
        assert [i.total_cents for i in stored.items] == [37500, 1249]
        assert stored.grand_total_cents == 38749
        assert stored.items[0].quantity == Decimal("2.5")

    def test_due_date_checked_against_stored_invoice_date(self, db_session):
        invoice = invoice_service.create_invoice(patch=invoice_header(), items=ITEMS, now=NOW)
        invoice_id = invoice.id

        with pytest.raises(ValidationError):
            invoice_service.update_invoice(invoice_id, patch={"due_date": date(2020, 1, 1)}, now=NOW)
        with pytest.raises(ValidationError):
            invoice_service.update_invoice(invoice_id, patch={"invoice_date": date(2024, 7, 1)}, now=NOW)

        assert db.session.get(Invoice, invoice_id).due_date == date(2024, 6, 30)

    def test_missing_invoice(self, db_session):
        assert invoice_service.update_invoice(12345, patch={}, now=NOW) is None

    def test_empty_items_rejected(self, db_session):
        invoice = invoice_service.create_invoice(patch=invoice_header(), items=ITEMS, now=NOW)
        with pytest.raises(ValidationError):
            invoice_service.update_invoice(invoice.id, patch={}, items=[], now=NOW)

    def test_status_refreshed_on_edit(self, db_session):
        invoice = invoice_service.create_invoice(
            patch=invoice_header(amount_paid_cents=45000), items=ITEMS, now=NOW
        )
        assert invoice.payment_status == PaymentStatus.PARTIAL.value

        updated = invoice_service.update_invoice(
            invoice.id,
            patch={},
            items=[{"name": "Tiles", "quantity": 10, "rate_cents": 4500}],
            now=NOW,
        )
        assert updated.payment_status == PaymentStatus.PAID.value


class TestPayments:

    def test_payments_accumulate(self, db_session):
        invoice = invoice_service.create_invoice(patch=invoice_header(), items=ITEMS, now=NOW)

        invoice_service.record_payment(invoice.id, 100000, notes="Cash", now=NOW)
        invoice = invoice_service.record_payment(invoice.id, 105000, now=NOW)

        assert invoice.amount_paid_cents == 205000
        assert invoice.amount_paid_cents == sum(p.amount_cents for p in invoice.payments)
        assert invoice.payment_status == PaymentStatus.PAID.value
        assert invoice.balance_due_cents == 0

    def test_overpayment_leaves_credit(self, db_session):
        invoice = invoice_service.create_invoice(patch=invoice_header(), items=ITEMS, now=NOW)
        invoice = invoice_service.record_payment(invoice.id, 300000, now=NOW)
        assert invoice.balance_due_cents == -95000
        assert invoice.payment_status == PaymentStatus.PAID.value

    @pytest.mark.parametrize("amount", [0, -100, 10.5, "100", True])
    def test_invalid_amount_changes_nothing(self, db_session, amount):
        invoice = invoice_service.create_invoice(patch=invoice_header(), items=ITEMS, now=NOW)

        with pytest.raises(ValidationError):
            invoice_service.record_payment(invoice.id, amount, now=NOW)

        assert db.session.query(InvoicePayment).count() == 0
        assert db.session.get(Invoice, invoice.id).amount_paid_cents == 0

    def test_missing_invoice(self, db_session):
        with pytest.raises(NotFoundError):
            invoice_service.record_payment(999, 100, now=NOW)

    def test_partial_past_due_not_overdue(self, db_session):
        invoice = invoice_service.create_invoice(
            patch=invoice_header(due_date=date(2024, 6, 10)), items=ITEMS, now=NOW
        )
        invoice = invoice_service.record_payment(invoice.id, 1000, now=NOW)
        assert invoice.payment_status == PaymentStatus.PARTIAL.value

    def test_refresh_all_statuses(self, db_session):
        invoice = invoice_service.create_invoice(
            patch=invoice_header(due_date=date(2024, 6, 20)), items=ITEMS, now=NOW
        )
        assert invoice.payment_status == PaymentStatus.UNPAID.value

        changed = invoice_service.refresh_all_statuses(now=datetime(2024, 7, 1))

        assert changed == 1
        assert db.session.get(Invoice, invoice.id).payment_status == PaymentStatus.OVERDUE.value


class TestCarryForward:

    def test_no_invoices(self, db_session):
        result = customer_service.get_carry_forward("9000000000", now=NOW)
        assert result["latest_invoice"] is None
        assert result["previous_outstanding_cents"] == 0
        assert result["previous_pending_amounts"] == []

    def test_blank_phone_rejected(self, db_session):
        with pytest.raises(ValidationError):
            customer_service.get_carry_forward("  ", now=NOW)

    def test_latest_invoice_outstanding(self, db_session):
        first = invoice_service.create_invoice(
            patch=invoice_header(amount_paid_cents=40000),
            items=[{"name": "Steel rod", "quantity": 2, "rate_cents": 50000}],
            now=NOW,
        )

        result = customer_service.get_carry_forward("9876543210", now=NOW)

        assert result["latest_invoice"]["id"] == first.id
        assert result["previous_outstanding_cents"] == 60000
        assert result["previous_pending_amounts"] == [{
            "invoice_id": first.id,
            "invoice_number": first.invoice_number,
            "amount_cents": 60000,
            "date": "2024-06-01",
            "status": "Partial",
        }]

    def test_fully_paid_latest_carries_nothing(self, db_session):
        first = invoice_service.create_invoice(
            patch=invoice_header(amount_paid_cents=40000),
            items=[{"name": "Steel rod", "quantity": 2, "rate_cents": 50000}],
            now=NOW,
        )
        second = invoice_service.create_invoice(
            patch=invoice_header(
                invoice_date=date(2024, 6, 10),
                previous_outstanding_cents=60000,
                amount_paid_cents=80000,
            ),
            items=[{"name": "Cement bag", "quantity": 1, "rate_cents": 20000}],
            now=NOW,
        )
        assert second.payment_status == PaymentStatus.PAID.value

        result = customer_service.get_carry_forward("9876543210", now=NOW)

        assert result["latest_invoice"]["id"] == second.id
        assert result["previous_outstanding_cents"] == 0
        # The earlier invoice's own balance is never rewritten
        assert [p["invoice_id"] for p in result["previous_pending_amounts"]] == [first.id]

    def test_same_day_tie_broken_by_insertion(self, db_session):
        invoice_service.create_invoice(patch=invoice_header(), items=ITEMS, now=NOW)
        later = invoice_service.create_invoice(
            patch=invoice_header(amount_paid_cents=5000), items=ITEMS, now=NOW
        )

        latest = customer_service.get_latest_invoice("9876543210")

        assert latest.id == later.id

    def test_attach_is_opt_in(self, db_session):
        invoice_service.create_invoice(patch=invoice_header(), items=ITEMS, now=NOW)
        second = invoice_service.create_invoice(
            patch=invoice_header(invoice_date=date(2024, 6, 5)), items=ITEMS, now=NOW
        )
        assert second.previous_outstanding_cents == 0

    def test_snapshot_is_frozen(self, db_session):
        first = invoice_service.create_invoice(patch=invoice_header(), items=ITEMS, now=NOW)
        carry = customer_service.get_carry_forward("9876543210", now=NOW)
        second = invoice_service.create_invoice(
            patch=invoice_header(
                invoice_date=date(2024, 6, 5),
                previous_outstanding_cents=carry["previous_outstanding_cents"],
                previous_pending_amounts=carry["previous_pending_amounts"],
            ),
            items=ITEMS,
            now=NOW,
        )

        invoice_service.record_payment(first.id, 205000, now=NOW)

        stored = db.session.get(Invoice, second.id)
        assert stored.previous_pending_amounts[0]["amount_cents"] == 205000
        assert stored.previous_pending_amounts[0]["status"] == "Unpaid"

    def test_customer_invoice_list_annotated(self, db_session):
        invoice_service.create_invoice(
            patch=invoice_header(invoice_date=date(2024, 6, 5)), items=ITEMS, now=NOW
        )
        invoice_service.create_invoice(
            patch=invoice_header(amount_paid_cents=205000), items=ITEMS, now=NOW
        )

        rows = customer_service.list_customer_invoices("9876543210", now=NOW)

        assert [r["invoice_date"] for r in rows] == ["2024-06-01", "2024-06-05"]
        assert [r["outstanding_at_time_cents"] for r in rows] == [0, 205000]


class TestLedger:

    def test_running_balance_ties_out(self, db_session):
        first = invoice_service.create_invoice(
            patch=invoice_header(amount_paid_cents=40000),
            items=[{"name": "Steel rod", "quantity": 2, "rate_cents": 50000}],
            now=datetime(2024, 6, 1, 10, 0, 0),
        )
        invoice_service.create_invoice(
            patch=invoice_header(invoice_date=date(2024, 6, 10), previous_outstanding_cents=60000),
            items=[{"name": "Cement bag", "quantity": 1, "rate_cents": 20000}],
            now=datetime(2024, 6, 10, 9, 0, 0),
        )
        invoice_service.record_payment(first.id, 10000, now=datetime(2024, 6, 5, 8, 0, 0))

        ledger = customer_service.build_customer_ledger("9876543210")

        kinds = [(e["kind"], e["timestamp"]) for e in ledger["entries"]]
        assert kinds == [
            ("invoice", "2024-06-01T00:00:00Z"),
            ("payment", "2024-06-01T10:00:00Z"),
            ("payment", "2024-06-05T08:00:00Z"),
            ("invoice", "2024-06-10T00:00:00Z"),
        ]
        assert [e["running_balance_cents"] for e in ledger["entries"]] == [
            100000, 60000, 50000, 130000,
        ]
        assert ledger["total_debits_cents"] == 180000
        assert ledger["total_credits_cents"] == 50000
        assert ledger["final_balance_cents"] == ledger["total_debits_cents"] - ledger["total_credits_cents"]

    def test_debit_before_credit_at_same_instant(self, db_session):
        invoice_service.create_invoice(
            patch=invoice_header(amount_paid_cents=1000),
            items=ITEMS,
            now=datetime(2024, 6, 1, 0, 0, 0),
        )

        entries = customer_service.build_customer_ledger("9876543210")["entries"]

        assert [e["kind"] for e in entries] == ["invoice", "payment"]
        assert entries[0]["running_balance_cents"] == 205000

    def test_aware_payment_timestamp_sorts_with_debits(self, db_session):
        invoice = invoice_service.create_invoice(patch=invoice_header(), items=ITEMS, now=NOW)
        invoice = invoice_service.record_payment(invoice.id, 1000, now=NOW)
        ist = timezone(timedelta(hours=5, minutes=30))
        # 05:30 IST on the invoice date is midnight UTC
        invoice.payments[0].paid_at = datetime(2024, 6, 1, 5, 30, 0, tzinfo=ist)

        entries = customer_service.build_customer_ledger("9876543210")["entries"]

        assert [e["kind"] for e in entries] == ["invoice", "payment"]
        assert entries[1]["timestamp"] == "2024-06-01T00:00:00Z"
        assert entries[1]["running_balance_cents"] == 204000

    def test_empty_ledger(self, db_session):
        ledger = customer_service.build_customer_ledger("9000000000")
        assert ledger["entries"] == []
        assert ledger["final_balance_cents"] == 0


class TestScenarios:

    def test_stock_of_five_cannot_cover_six(self, db_session, make_stock):
        stock = make_stock("Steel rod", 5)
        stock_id = stock.id

        with pytest.raises(InsufficientStockError):
            invoice_service.create_invoice(
                patch=invoice_header(),
                items=[{"name": "Steel rod", "quantity": 6, "rate_cents": 100, "stock_id": stock_id}],
                now=NOW,
            )

        assert db.session.get(Stock, stock_id).quantity == 5
        assert db.session.query(Invoice).count() == 0

    def test_paid_invoice_carries_zero(self, db_session):
        invoice_service.create_invoice(
            patch=invoice_header(amount_paid_cents=1000),
            items=[{"name": "Tiles", "quantity": 1, "rate_cents": 1000}],
            now=NOW,
        )
        carry = customer_service.get_carry_forward("9876543210", now=NOW)

        second = invoice_service.create_invoice(
            patch=invoice_header(
                invoice_date=date(2024, 6, 2),
                previous_outstanding_cents=carry["previous_outstanding_cents"],
            ),
            items=[{"name": "Tiles", "quantity": 1, "rate_cents": 1000}],
            now=NOW,
        )

        assert second.previous_outstanding_cents == 0
        assert second.total_due_cents == 1000
