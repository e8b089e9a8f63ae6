"""
SchoolBooks - Tests for voucher, invoice and customer numbering
"""
import pytest

from books import Book, BankEntry, KitchenEntry
from errors import ValidationError
from vouchers import next_customer_id, next_invoice_no, next_voucher_no


class TestVoucherNumbers:

    def test_first_voucher_of_the_day(self):
        assert next_voucher_no(Book.BANK, "2025-05-10", []) == "BK-100525-001"

    def test_counts_only_same_date(self):
        existing = [{"date": "2025-05-10"}, {"date": "2025-05-10"}, {"date": "2025-05-09"}]
        assert next_voucher_no(Book.BANK, "2025-05-10", existing) == "BK-100525-003"

    def test_accepts_entry_objects(self):
        existing = [BankEntry(date="2025-05-10", id=1)]
        assert next_voucher_no("bank", "10-05-2025", existing) == "BK-100525-002"

    def test_prefix_per_book(self):
        assert next_voucher_no(Book.CASH, "2025-05-10", []) == "CS-100525-001"
        assert next_voucher_no(Book.OFFICE, "2025-05-10", []) == "Exp-100525-001"
        assert next_voucher_no(Book.SALARY, "2025-05-10", []) == "Staff-100525-001"

    def test_income_has_no_prefix(self):
        assert next_voucher_no(Book.INCOME, "2025-05-10", []) == "100525-001"

    def test_kitchen_counts_the_same_date(self):
        existing = [KitchenEntry(date="2025-05-01"), KitchenEntry(date="2025-05-02")]
        assert next_voucher_no(Book.KITCHEN, "2025-05-10", existing) == "Kit-100525-001"
        existing.append(KitchenEntry(date="10-05-2025"))
        assert next_voucher_no(Book.KITCHEN, "2025-05-10", existing) == "Kit-100525-002"

    def test_unreadable_date(self):
        with pytest.raises(ValidationError) as exc:
            next_voucher_no(Book.BANK, "someday", [])
        assert "date" in exc.value.fields


class TestInvoiceAndCustomerIds:

    def test_first_invoice(self):
        assert next_invoice_no([], "2025-05-10") == "INV-25-26-0001"

    def test_invoice_sequence_restarts_each_year(self):
        existing = [{"date": "2025-04-02"}, {"date": "2025-03-30"}]
        assert next_invoice_no(existing, "2025-05-10") == "INV-25-26-0002"
        assert next_invoice_no(existing, "2025-03-31") == "INV-24-25-0002"

    def test_customer_id(self):
        customers = [{"date": "2025-04-10"}, {"date": "2025-06-01"}, {"date": "2024-06-01"}]
        assert next_customer_id(customers, "2025-07-01") == "ID-0003"
        assert next_customer_id([], "2025-07-01") == "ID-0001"
