"""
SchoolBooks - Tests for the SQLite store
"""
import json

import pytest

import models
from books import BankEntry, Book, CustomerRecord, IncomeEntry, RuleEntry
from errors import PersistenceFailure


class TestRecords:

    def test_insert_and_list(self, db):
        new_id = models.insert(Book.BANK, BankEntry(date="2025-05-10", description="Deposit",
                                                    debit=100.0))
        entries = models.list_records("bank")
        assert len(entries) == 1
        assert isinstance(entries[0], BankEntry)
        assert entries[0].id == new_id
        assert entries[0].debit == 100
        assert entries[0].financial_year == "FY 25-26"

    def test_financial_year_is_not_stored(self, db):
        models.insert("income", {"date": "2025-05-10", "amount": 5, "financial_year": "FY 99-00"})
        with models.get_db() as conn:
            data = json.loads(conn.execute("SELECT data FROM records").fetchone()["data"])
        assert "financial_year" not in data
        assert models.list_records("income")[0].financial_year == "FY 25-26"

    def test_ids_are_unique_across_books(self, db):
        a = models.insert("bank", {"date": "2025-05-10"})
        b = models.insert("cash", {"date": "2025-05-10"})
        assert a != b

    def test_update(self, db):
        rid = models.insert("office", {"date": "2025-05-10", "amount": 50, "account_head": "Admin"})
        models.update("office", rid, {"date": "2025-05-11", "amount": 75, "account_head": "Admin"})
        entry = models.get_record("office", rid)
        assert entry.amount == 75
        assert entry.date == "2025-05-11"

    def test_update_needs_an_id(self, db):
        with pytest.raises(PersistenceFailure):
            models.update("bank", None, BankEntry(date="2025-05-10"))

    def test_update_unknown_id(self, db):
        with pytest.raises(PersistenceFailure):
            models.update("bank", 999, BankEntry(date="2025-05-10"))

    def test_update_checks_collection(self, db):
        rid = models.insert("bank", {"date": "2025-05-10"})
        with pytest.raises(PersistenceFailure):
            models.update("cash", rid, {"date": "2025-05-10"})

    def test_delete(self, db):
        rid = models.insert("kitchen", {"date": "2025-05-10", "amount": 1})
        models.delete("kitchen", rid)
        assert models.list_records("kitchen") == []
        with pytest.raises(PersistenceFailure):
            models.delete("kitchen", rid)
        with pytest.raises(PersistenceFailure):
            models.delete("kitchen", None)

    def test_customers_and_rules(self, db):
        models.insert("customers", CustomerRecord(date="2025-05-10", custom_id="ID-0001",
                                                  name="Mg Mg"))
        models.insert("rules", RuleEntry(date="2025-04-01", account_head="Day",
                                         account_class="Pre-", registration_fee=1000.0))
        assert models.list_records("customers")[0].custom_id == "ID-0001"
        assert models.list_records("rules")[0].fee_for("Registration") == 1000

    def test_bulk_insert(self, db):
        ids = models.bulk_insert("cash", [{"date": "2025-05-10"}, {"date": "2025-05-11"}])
        assert len(ids) == 2
        assert models.count_records("cash") == 2

    def test_unknown_collection(self, db):
        with pytest.raises(ValueError):
            models.list_records("ledger")


class TestSnapshot:

    def test_every_book_present(self, db):
        models.insert("income", IncomeEntry(date="2025-05-10", amount=10.0))
        models.insert("rules", {"date": "2025-04-01"})
        snap = models.snapshot()
        assert set(snap) == set(Book)
        assert len(snap[Book.INCOME]) == 1
        assert snap[Book.BANK] == []


class TestSubscribe:

    def test_callback_gets_records(self, db):
        seen = []
        unsubscribe = models.subscribe("bank", seen.append)
        models.insert("bank", {"date": "2025-05-10"})
        assert len(seen) == 1
        assert len(seen[0]) == 1
        unsubscribe()
        models.insert("bank", {"date": "2025-05-11"})
        assert len(seen) == 1

    def test_other_books_do_not_notify(self, db):
        seen = []
        models.subscribe("bank", seen.append)
        models.insert("cash", {"date": "2025-05-10"})
        assert seen == []

    def test_failing_subscriber_does_not_break_save(self, db):
        def boom(records):
            raise RuntimeError("screen closed")
        models.subscribe("bank", boom)
        assert models.insert("bank", {"date": "2025-05-10"})


class TestMeta:

    def test_school_name(self, db):
        assert models.get_meta("school_name") == "Test School"
        models.set_meta("school_name", "Hill School")
        assert models.get_meta("school_name") == "Hill School"
        assert models.get_meta("missing", "x") == "x"

    def test_no_books_open(self, db):
        models.set_db_path(None)
        with pytest.raises(PersistenceFailure):
            models.list_records("bank")
