"""
SchoolBooks - Tests for entry enrichment
"""
import pytest

from books import BankEntry, Book, IncomeEntry, OfficeEntry
from enrich import enrich, enrich_customer, enrich_rule
from errors import ValidationError

TODAY = "2025-05-10"


class TestIncomeEntries:

    def test_registration_is_priced_from_rules(self, rules, income_form):
        """A new Boarder G _3 registration takes its fee from the rules table."""
        entry = enrich(Book.INCOME, income_form, existing=[], rules=rules, today=TODAY)
        assert isinstance(entry, IncomeEntry)
        assert entry.financial_year == "FY 25-26"
        assert entry.auto_fee == 20000
        assert entry.amount == 20000
        assert entry.voucher_no == "100525-001"
        assert entry.invoice_no == "INV-25-26-0001"
        assert entry.entry_date == TODAY
        assert entry.id is None

    def test_typed_amount_wins_over_rule(self, rules, income_form):
        form = dict(income_form, amount="25,000")
        entry = enrich(Book.INCOME, form, rules=rules, today=TODAY)
        assert entry.amount == 25000
        assert entry.auto_fee == 20000

    def test_padded_head_and_class_still_priced(self, rules, income_form):
        form = dict(income_form, account_head="Boarder ", account_name=" G _3")
        entry = enrich(Book.INCOME, form, rules=rules, today=TODAY)
        assert entry.auto_fee == 20000
        assert entry.amount == 20000
        assert entry.account_head == "Boarder"

    def test_hand_priced_fee_needs_amount(self, rules, income_form):
        form = dict(income_form, fee_type="Ferry")
        with pytest.raises(ValidationError) as exc:
            enrich(Book.INCOME, form, rules=rules, today=TODAY)
        assert "amount" in exc.value.fields

    def test_missing_fields_are_all_reported(self, rules):
        with pytest.raises(ValidationError) as exc:
            enrich(Book.INCOME, {"fee_type": "Registration"}, rules=rules, today=TODAY)
        for name in ("date", "account_head", "account_name", "name", "method"):
            assert name in exc.value.fields

    def test_old_screen_keys(self, rules):
        form = {"date": "10-05-2025", "acHead": "Boarder", "acClass": "G _3",
                "name": "Ko Ko", "gender": "Male", "feesName": "Services", "method": "Kpay"}
        entry = enrich("income", form, rules=rules, today=TODAY)
        assert entry.account_name == "G _3"
        assert entry.amount == 15000

    def test_same_inputs_same_entry(self, rules, income_form):
        existing = [{"date": "2025-05-10", "id": 1}]
        a = enrich(Book.INCOME, income_form, existing=existing, rules=rules, today=TODAY)
        b = enrich(Book.INCOME, income_form, existing=existing, rules=rules, today=TODAY)
        assert a == b
        assert a.voucher_no == "100525-002"


class TestFundAndExpenseEntries:

    def test_bank_entry(self):
        entry = enrich(Book.BANK, {"date": "10-05-2025", "description": "Deposit",
                                   "debit": "1,000"}, today=TODAY)
        assert isinstance(entry, BankEntry)
        assert entry.date == "2025-05-10"
        assert entry.voucher_no == "BK-100525-001"
        assert entry.debit == 1000
        assert entry.credit == 0

    def test_bad_amount(self):
        with pytest.raises(ValidationError) as exc:
            enrich(Book.BANK, {"date": "2025-05-10", "description": "x", "debit": "abc"})
        assert "debit" in exc.value.fields

    def test_unreadable_date(self):
        with pytest.raises(ValidationError) as exc:
            enrich(Book.CASH, {"date": "someday", "description": "x"})
        assert "date" in exc.value.fields

    def test_office_credit_is_the_amount(self):
        entry = enrich(Book.OFFICE, {"date": "2025-05-10", "account_head": "Admin Expenses",
                                     "credit": "15000", "method": "Cash"}, today=TODAY)
        assert isinstance(entry, OfficeEntry)
        assert entry.amount == 15000
        assert entry.voucher_no == "Exp-100525-001"

    def test_expense_needs_amount(self):
        with pytest.raises(ValidationError) as exc:
            enrich(Book.SALARY, {"date": "2025-05-10", "account_head": "Salary"})
        assert "amount" in exc.value.fields

    def test_edit_keeps_identity(self):
        original = BankEntry(date="2025-05-01", voucher_no="BK-010525-001",
                             entry_date="2025-05-01", description="old", id=7)
        entry = enrich(Book.BANK, {"date": "2025-05-02", "description": "new", "debit": "5"},
                       existing=[original], original=original, today=TODAY)
        assert entry.id == 7
        assert entry.voucher_no == "BK-010525-001"
        assert entry.entry_date == "2025-05-01"
        assert entry.description == "new"
        assert entry.date == "2025-05-02"


class TestRegisterAndRules:

    def test_customer_gets_fy_id(self):
        rec = enrich_customer({"date": "2025-05-10", "account_head": "Boarder",
                               "account_class": "G_10", "gender": "Male", "name": "Mg Mg"},
                              customers=[], today=TODAY)
        assert rec.custom_id == "ID-0001"
        assert rec.display_name == "G_10-M-ID-0001-Mg Mg"

    def test_customer_required_fields(self):
        with pytest.raises(ValidationError) as exc:
            enrich_customer({"name": "Mg Mg"}, today=TODAY)
        assert set(exc.value.fields) == {"account_head", "account_class", "gender"}

    def test_rule_rejects_negative_fee(self):
        with pytest.raises(ValidationError) as exc:
            enrich_rule({"account_head": "Day", "account_class": "Pre-",
                         "registration_fee": "-10"}, today=TODAY)
        assert "registration_fee" in exc.value.fields

    def test_rule_defaults(self):
        rule = enrich_rule({"account_head": "Day", "account_class": "Pre-",
                            "registration_fee": "12,000", "remark": '""'}, today=TODAY)
        assert rule.date == TODAY
        assert rule.registration_fee == 12000
        assert rule.services_fee == 0
        assert rule.remark == ""
