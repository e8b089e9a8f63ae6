"""
SchoolBooks MCP Server — structured agent interface to the school's books.

Wraps the engine modules as MCP tools. Every tool takes db_path as its first
parameter so the agent can work with any database file.

Usage:
    pip install mcp
    python mcp_server.py          # stdio transport
"""
import sys, os
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from datetime import date
from mcp.server.fastmcp import FastMCP
import models
import config
from balances import aggregate, balance_summary, daily_balances
from books import Book
from enrich import enrich, enrich_customer, enrich_rule
from exchange import (collection_name, import_rows, read_rows, write_csv, write_report_xlsx,
                      write_xlsx)
from fees import resolve_fee
from filters import filter_date_range, filter_entries, sort_newest_first
from fiscal import fiscal_year_of
from vouchers import next_voucher_no

mcp = FastMCP("SchoolBooks", instructions="School multi-book bookkeeping: bank, cash, "
              "income, office, salary and kitchen books with a fee schedule")

_initialized_db = None

def _init(db_path: str):
    """Initialize database connection, only re-init if path changes."""
    global _initialized_db
    db_path = os.path.expanduser(db_path)
    if not config.check_workspace(db_path):
        raise ValueError(f"Access denied: '{db_path}' is outside the workspace")
    if _initialized_db != db_path:
        models.init_db(db_path)
        _initialized_db = db_path


def _as_dict(model):
    d = model.to_record()
    d["financial_year"] = model.financial_year
    return d


def _collection(name):
    try:
        return collection_name(name)
    except ValueError:
        raise ValueError(f"Unknown book: {name}. Use bank, cash, income, office, "
                         "salary, kitchen, customers or rules") from None


def _enrich_for(c, form, original=None):
    if c == "customers":
        return enrich_customer(form, models.list_records("customers"), original=original)
    if c == "rules":
        return enrich_rule(form, original=original)
    rules = models.list_records("rules") if c == "income" else None
    return enrich(c, form, existing=models.list_records(c), rules=rules, original=original)


# ═══════════════════════════════════════════════════════════════════
# READ-ONLY TOOLS
# ═══════════════════════════════════════════════════════════════════

@mcp.tool()
def get_info(db_path: str) -> dict:
    """School name and the number of records in every book."""
    _init(db_path)
    return {
        "school_name": models.get_meta("school_name", ""),
        "today_fy": fiscal_year_of(date.today()),
        "counts": {c: models.count_records(c) for c in models.COLLECTIONS},
    }


@mcp.tool()
def list_entries(
    db_path: str,
    book: str,
    filters: dict | None = None,
    date_from: str = "",
    date_to: str = "",
    limit: int = 100,
) -> list[dict]:
    """List entries of a book, newest first.

    filters maps field names to text, e.g. {"fy": "FY 25-26", "account_head": "Boarder"}.
    Text matches anywhere in the field, ignoring case."""
    _init(db_path)
    c = _collection(book)
    entries = filter_entries(models.list_records(c), filters or {})
    entries = filter_date_range(entries, date_from or None, date_to or None)
    return [_as_dict(e) for e in sort_newest_first(entries)[:limit]]


@mcp.tool()
def next_voucher(db_path: str, book: str, entry_date: str = "") -> dict:
    """Voucher number the next entry in a book would get on a date (default today)."""
    _init(db_path)
    b = Book.parse(book)
    when = entry_date or date.today().isoformat()
    return {"voucher_no": next_voucher_no(b, when, models.list_records(b)),
            "financial_year": fiscal_year_of(when)}


@mcp.tool()
def fee_for(db_path: str, account_head: str, account_class: str, fee_type: str) -> dict:
    """Fee from the rules table. fee is null when the fee type is entered by hand
    (Promotion, Ferry, Hostel) or no rule matches."""
    _init(db_path)
    return {"fee": resolve_fee(models.list_records("rules"), account_head,
                               account_class, fee_type)}


@mcp.tool()
def dashboard(db_path: str, fy: str = "", date_from: str = "", date_to: str = "") -> dict:
    """Balances per book and payment method, transfer balances of the expense
    books, income and expense totals, and student counts by class and gender."""
    _init(db_path)
    report = aggregate(models.snapshot(), fy=fy or None,
                       date_from=date_from or None, date_to=date_to or None)
    return report.as_dict()


@mcp.tool()
def get_daily_balances(db_path: str, since: str = "") -> dict:
    """Money in, money out and balance per book for every day, newest first."""
    _init(db_path)
    days = daily_balances(models.snapshot(), since=since or None)
    return {"days": days, "summary": balance_summary(days)}


# ═══════════════════════════════════════════════════════════════════
# WRITE TOOLS
# ═══════════════════════════════════════════════════════════════════

@mcp.tool()
def add_entry(db_path: str, book: str, fields: dict) -> dict:
    """Add an entry. The voucher number (and for income the invoice number and
    rule fee) are filled in. Raises with every bad field listed."""
    _init(db_path)
    c = _collection(book)
    record = _enrich_for(c, fields)
    record.id = models.insert(c, record)
    return _as_dict(record)


@mcp.tool()
def edit_entry(db_path: str, book: str, entry_id: int, fields: dict) -> dict:
    """Change an entry. Only the fields given are changed; the voucher number
    and entry date are kept."""
    _init(db_path)
    c = _collection(book)
    original = models.get_record(c, entry_id)
    if original is None:
        raise ValueError(f"No {c} entry with id {entry_id}")
    form = original.to_record()
    form.update(fields)
    record = _enrich_for(c, form, original=original)
    models.update(c, record.id, record)
    return _as_dict(record)


@mcp.tool()
def delete_entry(db_path: str, book: str, entry_id: int) -> dict:
    """Delete an entry by id."""
    _init(db_path)
    models.delete(_collection(book), entry_id)
    return {"deleted": entry_id}


@mcp.tool()
def export_book(db_path: str, book: str, file_path: str, fy: str = "") -> dict:
    """Export a book to .csv or .xlsx in the fixed column order."""
    _init(db_path)
    c = _collection(book)
    file_path = os.path.expanduser(file_path)
    if not config.check_workspace(file_path):
        raise ValueError(f"Access denied: '{file_path}' is outside the workspace")
    entries = models.list_records(c)
    if fy:
        entries = filter_entries(entries, {"fy": fy}, exact=("financial_year",))
    if file_path.lower().endswith(".xlsx"):
        write_xlsx(c, entries, file_path)
    else:
        with open(file_path, "w", newline="", encoding="utf-8") as f:
            f.write(write_csv(c, entries))
    return {"exported": len(entries), "file": file_path}


@mcp.tool()
def export_report(db_path: str, file_path: str, fy: str = "", book: str = "",
                  date_from: str = "", date_to: str = "") -> dict:
    """Write the report workbook: a Summary sheet with debit, credit, net and
    entry count per book, then one sheet per book. Empty book means all books."""
    _init(db_path)
    file_path = os.path.expanduser(file_path)
    if not config.check_workspace(file_path):
        raise ValueError(f"Access denied: '{file_path}' is outside the workspace")
    snapshot = models.snapshot()
    report = aggregate(snapshot, fy=fy or None, date_from=date_from or None,
                       date_to=date_to or None)
    if fy and not report.fy:
        raise ValueError(f"Not a financial year: {fy!r}")
    write_report_xlsx(report, snapshot, book=Book.parse(book) if book else None,
                      school=models.get_meta("school_name", ""), target=file_path)
    return {"file": file_path, "fy": report.fy, "entries": report.entry_count}


@mcp.tool()
def import_book(db_path: str, book: str, file_path: str) -> dict:
    """Import a .csv or .xlsx file laid out like an export of the same book.
    A wrong header rejects the whole file; bad rows are skipped and listed."""
    _init(db_path)
    c = _collection(book)
    file_path = os.path.expanduser(file_path)
    if not config.check_workspace(file_path):
        raise ValueError(f"Access denied: '{file_path}' is outside the workspace")
    if not os.path.exists(file_path):
        raise ValueError(f"File not found: {file_path}")
    result = import_rows(c, read_rows(file_path))
    models.bulk_insert(c, result.entries)
    return {"total_rows": result.total_rows, "imported": result.imported,
            "skipped": result.skipped, "errors": result.errors[:20]}


if __name__ == "__main__":
    mcp.run()
