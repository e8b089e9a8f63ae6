"""
SchoolBooks - Tests for CSV / Excel import and export
"""
import io

import openpyxl
import pytest

from balances import aggregate
from books import BankEntry, Book, IncomeEntry, OfficeEntry
from errors import ImportFormatError
from exchange import (COLUMNS, export_rows, headers_for, import_rows, read_rows, report_summary,
                      sample_csv, write_csv, write_report_xlsx, write_xlsx)

BANK = [
    BankEntry(date="2025-05-10", voucher_no="BK-100525-001", account_head="Bank",
              account_name="Deposite", description="Fees, banked", method="Bank",
              debit=150000.0, entry_date="2025-05-10", id=4),
    BankEntry(date="2025-05-11", voucher_no="BK-110525-001", account_head="Bank",
              account_name="Withdrawl", description="To office", method="Bank",
              credit=2500.5, transfer="Office Exp", entry_date="2025-05-11", id=5),
]


class TestExport:

    def test_bank_columns_in_order(self):
        assert export_rows(Book.BANK, [])[0] == [
            "Date", "FY", "VR No", "A/C Head", "A/C Name", "Description", "Method",
            "Debit", "Credit", "Transfer", "Entry Date"]

    def test_row_values(self):
        row = export_rows("bank", BANK)[1]
        assert row[0] == "10-05-2025"
        assert row[1] == "FY 25-26"
        assert row[7] == "150000"
        assert row[8] == ""
        assert row[10] == "10-05-2025"

    def test_plain_dicts_export_in_column_order(self):
        record = {"credit": 0, "debit": 10, "description": "x", "date": "2025-04-01"}
        row = export_rows("cash", [record])[1]
        assert row[0] == "01-04-2025"
        assert row[5] == "x"
        assert row[7] == "10"

    def test_expense_amount_goes_in_credit_column(self):
        rows = export_rows(Book.OFFICE, [OfficeEntry(date="2025-05-03", amount=400.0)])
        assert rows[0][7] == "Credit"
        assert rows[1][7] == "400"

    def test_salary_has_no_remark(self):
        assert "Remark" not in headers_for("salary")
        assert "Remark" in headers_for("office")


class TestImport:

    def test_csv_round_trip(self):
        text = write_csv(Book.BANK, BANK)
        rows = read_rows(text.encode("utf-8"), "bank.csv")
        result = import_rows(Book.BANK, rows, today="2025-06-01")
        assert result.total_rows == 2
        assert result.imported == 2
        assert result.skipped == 0
        for got, want in zip(result.entries, BANK):
            assert got.date == want.date
            assert got.voucher_no == want.voucher_no
            assert got.description == want.description
            assert got.debit == want.debit
            assert got.credit == want.credit
            assert got.transfer == want.transfer
            assert got.entry_date == "2025-06-01"
            assert got.id is None

    def test_xlsx_round_trip(self):
        data = write_xlsx(Book.BANK, BANK)
        rows = read_rows(data, "bank.xlsx")
        result = import_rows(Book.BANK, rows, today="2025-06-01")
        assert result.imported == 2
        assert result.entries[0].debit == 150000
        assert result.entries[1].credit == 2500.5
        assert result.entries[1].transfer == "Office Exp"

    def test_amounts_keep_every_decimal(self):
        entry = BankEntry(date="2025-05-10", description="odd", debit=1234.567, credit=0.125)
        assert export_rows(Book.BANK, [entry])[1][7] == "1234.567"
        rows = read_rows(write_csv(Book.BANK, [entry]).encode("utf-8"), "bank.csv")
        got = import_rows(Book.BANK, rows).entries[0]
        assert got.debit == 1234.567
        assert got.credit == 0.125
        got = import_rows(Book.BANK, read_rows(write_xlsx(Book.BANK, [entry]), "bank.xlsx")).entries[0]
        assert got.debit == 1234.567

    def test_income_round_trip(self):
        entry = IncomeEntry(date="2025-05-10", voucher_no="100525-001", invoice_no="INV-25-26-0001",
                            account_head="Boarder", account_name="G _3", gender="Female",
                            name="Ma Ma", fee_type="Registration", method="Cash", amount=20000.0)
        rows = read_rows(write_csv(Book.INCOME, [entry]).encode("utf-8"), "income.csv")
        got = import_rows(Book.INCOME, rows, today="2025-06-01").entries[0]
        assert got.amount == 20000
        assert got.invoice_no == "INV-25-26-0001"
        assert got.fee_type == "Registration"

    def test_header_mismatch_rejects_file(self):
        rows = [["Date", "FY", "Voucher", "A/C Head"], ["10-05-2025", "", "", "Bank"]]
        with pytest.raises(ImportFormatError) as exc:
            import_rows(Book.BANK, rows)
        problems = exc.value.problems
        assert any(p.startswith("Column 3:") and "VR No" in p for p in problems)
        assert any(p.startswith("Column 5:") for p in problems)
        assert exc.value.expected == headers_for("bank")

    def test_empty_file(self):
        with pytest.raises(ImportFormatError):
            import_rows(Book.BANK, [])

    def test_bad_rows_are_skipped(self):
        header = headers_for("bank")
        rows = [
            header,
            ["10-05-2025", "", "", "Bank", "", "Good row", "Bank", "100", "", "", ""],
            ["someday", "", "", "Bank", "", "Bad date", "Bank", "100", "", "", ""],
            ["", "", "", "", "", "", "", "", "", "", ""],
            ["11-05-2025", "", "", "Bank", "", "Bad amount", "Bank", "lots", "", "", ""],
            ["12-05-2025", "", "", "Bank", "", "", "Bank", "5", "", "", ""],
        ]
        result = import_rows(Book.BANK, rows, today="2025-06-01")
        assert result.total_rows == 4
        assert result.imported == 1
        assert result.skipped == 3
        assert result.errors[0].startswith("Row 3:")
        assert "Description" in result.errors[2]

    def test_csv_with_bom(self):
        text = "\ufeff" + write_csv(Book.CASH, [])
        rows = read_rows(text.encode("utf-8"), "cash.csv")
        assert rows[0] == headers_for("cash")

    @pytest.mark.parametrize("collection", sorted(COLUMNS))
    def test_sample_imports_cleanly(self, collection):
        rows = read_rows(sample_csv(collection).encode("utf-8"), "sample.csv")
        result = import_rows(collection, rows, today="2025-06-01")
        assert result.imported == 1, result.errors


class TestReportWorkbook:

    SNAPSHOT = {
        Book.BANK: BANK + [BankEntry(date="2024-05-10", description="last year", debit=99.0)],
        Book.OFFICE: [OfficeEntry(date="2025-05-12", account_head="Admin Expenses", amount=400.0,
                                  method="Cash")],
    }

    def test_summary_counts_only_the_chosen_year(self):
        report = aggregate(self.SNAPSHOT, fy="FY 25-26")
        rows, scoped = report_summary(report, self.SNAPSHOT, school="Hill School",
                                      today="2025-06-01")
        assert rows[0] == ["Hill School Report - All Books"]
        assert rows[3] == ["Financial Year:", "FY 25-26"]
        assert rows[5] == ["Book", "Total Debit", "Total Credit", "Net Balance", "Entry Count"]
        assert rows[6] == ["Bank Book", 150000.0, 2500.5, 147499.5, 2]
        assert ["Office Exp", 0.0, 400.0, -400.0, 1] in rows
        assert rows[-1] == ["Total Entries", 3]
        assert len(scoped[Book.BANK]) == 2

    def test_workbook_has_summary_and_book_sheets(self):
        report = aggregate(self.SNAPSHOT, fy="FY 25-26")
        wb = openpyxl.load_workbook(io.BytesIO(write_report_xlsx(report, self.SNAPSHOT)))
        assert wb.sheetnames == ["Summary", "Bank Book", "Cash Book", "Income Book",
                                 "Office Exp", "Salary Exp", "Kitchen Exp"]
        bank = wb["Bank Book"]
        assert bank.max_row == 3
        assert bank.cell(row=2, column=8).value == 150000
        assert wb["Summary"].cell(row=7, column=1).value == "Bank Book"

    def test_one_book_and_date_range(self):
        report = aggregate(self.SNAPSHOT, date_from="2025-05-11", date_to="2025-05-31")
        wb = openpyxl.load_workbook(io.BytesIO(
            write_report_xlsx(report, self.SNAPSHOT, book="bank")))
        assert wb.sheetnames == ["Summary", "Bank Book"]
        assert wb["Bank Book"].max_row == 2
        assert wb["Summary"].cell(row=3, column=2).value == "11-05-2025"
