"""
SchoolBooks — CSV / Excel import and export.
Every book has one fixed column list. Exports always write it in that
order; imports refuse a file whose header row differs.
"""
import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import date, datetime

import openpyxl

from balances import in_scope, iter_snapshot
from books import (Book, customer_from_record, entry_from_record, fmt_plain, parse_amount,
                   rule_from_record, book_spec)
from errors import ImportFormatError, LedgerError
from fiscal import fiscal_year_of, format_display_date, normalize_date

log = logging.getLogger(__name__)

_FUND = [('Date', 'date'), ('FY', 'financial_year'), ('VR No', 'voucher_no'),
         ('A/C Head', 'account_head'), ('A/C Name', 'account_name'),
         ('Description', 'description'), ('Method', 'method'),
         ('Debit', 'debit'), ('Credit', 'credit'), ('Transfer', 'transfer'),
         ('Entry Date', 'entry_date')]

_EXPENSE = [('Date', 'date'), ('FY', 'financial_year'), ('VR No', 'voucher_no'),
            ('A/C Head', 'account_head'), ('A/C Class', 'account_name'),
            ('Description', 'description'), ('Method', 'method'),
            ('Credit', 'amount'), ('Remark', 'remark'), ('Entry Date', 'entry_date')]

COLUMNS = {
    'bank': _FUND,
    'cash': _FUND,
    'income': [('Date', 'date'), ('FY', 'financial_year'), ('VR No', 'voucher_no'),
               ('Invoice No', 'invoice_no'), ('ID', 'customer_id'),
               ('A/C Head', 'account_head'), ('A/C Class', 'account_name'),
               ('Gender', 'gender'), ('Name', 'name'), ('Fees Name', 'fee_type'),
               ('Method', 'method'), ('Amount', 'amount'), ('Remark', 'remark'),
               ('Entry Date', 'entry_date')],
    'office': _EXPENSE,
    'salary': [c for c in _EXPENSE if c[0] != 'Remark'],
    'kitchen': _EXPENSE,
    'customers': [('Date', 'date'), ('FY', 'financial_year'), ('ID', 'custom_id'),
                  ('A/C Head', 'account_head'), ('A/C Class', 'account_class'),
                  ('Gender', 'gender'), ('Name', 'name'), ('Remark', 'remark'),
                  ('Entry Date', 'entry_date')],
    'rules': [('Date', 'date'), ('FY', 'financial_year'), ('A/C Head', 'account_head'),
              ('A/C Class', 'account_class'), ('Registration', 'registration_fee'),
              ('Services', 'services_fee'), ('Promotion', 'promotion_fee'),
              ('Remark', 'remark')],
}

SHEET_NAMES = {'bank': 'Bank Book', 'cash': 'Cash Book', 'income': 'Income Book',
               'office': 'Office Exp', 'salary': 'Salary Exp', 'kitchen': 'Kitchen Exp',
               'customers': 'Customers', 'rules': 'Rules'}

NUMBER_FIELDS = {'debit', 'credit', 'amount', 'registration_fee', 'services_fee',
                 'promotion_fee'}
DATE_FIELDS = {'date', 'entry_date'}

# Required on import, beyond what the book itself requires
_IMPORT_REQUIRED = {
    'customers': ('date', 'account_head', 'account_class', 'name'),
    'rules': ('date', 'account_head', 'account_class'),
}

SAMPLES = {
    'bank': ['01-04-2025', '', 'BK-010425-001', 'Bank', 'Deposite', 'Fees banked',
             'Bank', '500000', '', '', ''],
    'cash': ['01-04-2025', '', 'CS-010425-001', 'Cash', 'Payment', 'To office',
             'Cash', '', '100000', 'Office Exp', ''],
    'income': ['10-05-2025', '', '100525-001', '', 'ID-0001', 'Boarder', 'G _3', 'Female',
               'Ma Ma', 'Registration', 'Cash', '20000', '', ''],
    'office': ['02-04-2025', '', 'Exp-020425-001', 'Admin Expenses', 'Stationary Cost',
               'Paper and pens', 'Cash', '15000', '', ''],
    'salary': ['30-04-2025', '', 'Staff-300425-001', 'Staff salaries & benefits', 'Salary',
               'April salary', 'Bank', '300000', ''],
    'kitchen': ['03-04-2025', '', 'Kit-030425-001', 'Kitchen', 'Rice', 'Two bags', 'Cash',
                '60000', '', ''],
    'customers': ['01-04-2025', '', 'ID-0001', 'Boarder', 'G_10', 'Male', 'Mg Mg', '', ''],
    'rules': ['01-04-2025', '', 'Boarder', 'G _3', '20000', '15000', '0', ''],
}


def collection_name(collection):
    name = str(getattr(collection, 'value', collection) or '').strip().lower()
    if name in COLUMNS:
        return name
    return Book.parse(name).value


def headers_for(collection):
    return [h for h, _ in COLUMNS[collection_name(collection)]]


def _to_model(collection, record):
    if collection == 'customers':
        return customer_from_record(record)
    if collection == 'rules':
        return rule_from_record(record)
    return entry_from_record(collection, record)


# ─── Export ────────────────────────────────────────────────────────

def _cell(model, name):
    if name == 'financial_year':
        return fiscal_year_of(model.date)
    value = getattr(model, name, '')
    if name in DATE_FIELDS:
        return format_display_date(value) if value else ''
    if name in NUMBER_FIELDS:
        return fmt_plain(value) if value else ''
    return '' if value is None else str(value)


def export_rows(collection, records):
    """Header row plus one row per record, in the fixed column order."""
    collection = collection_name(collection)
    cols = COLUMNS[collection]
    rows = [[h for h, _ in cols]]
    for r in records:
        model = _to_model(collection, r)
        rows.append([_cell(model, name) for _, name in cols])
    return rows


def write_csv(collection, records):
    """CSV text for a collection."""
    buf = io.StringIO()
    w = csv.writer(buf)
    w.writerows(export_rows(collection, records))
    return buf.getvalue()


def write_xlsx(collection, records, target=None):
    """Write an .xlsx workbook to a path or file object. With no target,
    returns the workbook bytes."""
    collection = collection_name(collection)
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = SHEET_NAMES[collection]
    numeric_cols = {i for i, (_, name) in enumerate(COLUMNS[collection]) if name in NUMBER_FIELDS}
    for n, row in enumerate(export_rows(collection, records)):
        if n:
            row = [_xlsx_number(v) if i in numeric_cols else v for i, v in enumerate(row)]
        ws.append(row)
    if target is not None:
        wb.save(target)
        return target
    out = io.BytesIO()
    wb.save(out)
    return out.getvalue()


def _xlsx_number(text):
    if text == '':
        return None
    v = float(text)
    return int(v) if v.is_integer() else v


def report_summary(report, snapshot, book=None, school='', today=None):
    """Rows for the Summary sheet of a report workbook, plus the in-scope
    entries per book. `report` is an aggregate() result; its FY and date
    range decide which entries count. `book` limits the report to one book."""
    books = [Book.parse(book)] if book else list(Book)
    scoped = {b: [] for b in books}
    for b, e in iter_snapshot(snapshot)[0]:
        if b in scoped and in_scope(e, report.fy, report.date_from, report.date_to):
            scoped[b].append(e)

    rows = [
        [f"{school or 'SchoolBooks'} Report - {SHEET_NAMES[books[0].value] if book else 'All Books'}"],
        ['Generated on:', format_display_date(today or date.today())],
        ['Report Period:', format_display_date(report.date_from) or 'All Time', 'to',
         format_display_date(report.date_to) or 'Current'],
        ['Financial Year:', report.fy or 'All'],
        [],
        ['Book', 'Total Debit', 'Total Credit', 'Net Balance', 'Entry Count'],
    ]
    total_in = total_out = 0.0
    for b in books:
        money_in = sum(e.money_in for e in scoped[b])
        money_out = sum(e.money_out for e in scoped[b])
        total_in += money_in
        total_out += money_out
        rows.append([SHEET_NAMES[b.value], money_in, money_out, money_in - money_out,
                     len(scoped[b])])
    rows += [
        [],
        ['OVERALL TOTALS'],
        ['Total Debit', total_in],
        ['Total Credit', total_out],
        ['Net Balance', total_in - total_out],
        ['Income', report.income_total],
        ['Expenses', report.expense_total],
        ['Net Income', report.net_income],
        ['Students', report.student_totals.get('total', 0)],
        ['Total Entries', sum(len(v) for v in scoped.values())],
    ]
    return rows, scoped


def write_report_xlsx(report, snapshot, book=None, school='', today=None, target=None):
    """Report workbook: a Summary sheet, then one sheet per book holding
    that book's in-scope entries in its export columns. With no target,
    returns the workbook bytes."""
    rows, scoped = report_summary(report, snapshot, book, school, today)
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = 'Summary'
    for row in rows:
        ws.append(row)
    for b, entries in scoped.items():
        sheet = wb.create_sheet(SHEET_NAMES[b.value])
        numeric_cols = {i for i, (_, name) in enumerate(COLUMNS[b.value]) if name in NUMBER_FIELDS}
        for n, row in enumerate(export_rows(b, entries)):
            if n:
                row = [_xlsx_number(v) if i in numeric_cols else v for i, v in enumerate(row)]
            sheet.append(row)
    log.info("Report workbook: %d entries across %d books", sum(map(len, scoped.values())),
             len(scoped))
    if target is not None:
        wb.save(target)
        return target
    out = io.BytesIO()
    wb.save(out)
    return out.getvalue()


def sample_csv(collection):
    """Header row and one example row, as CSV text."""
    collection = collection_name(collection)
    buf = io.StringIO()
    w = csv.writer(buf)
    w.writerow(headers_for(collection))
    w.writerow(SAMPLES[collection])
    return buf.getvalue()


# ─── Import ────────────────────────────────────────────────────────

def _xlsx_text(v):
    if v is None:
        return ''
    if isinstance(v, datetime):
        return v.date().isoformat()
    if isinstance(v, date):
        return v.isoformat()
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v)


def read_rows(source, filename=''):
    """Read a csv or xlsx file into a list of lists of strings.
    `source` is a path, a file object or the raw bytes."""
    fname = (filename or getattr(source, 'filename', '') or getattr(source, 'name', '')
             or (source if isinstance(source, str) else '')).lower()

    if isinstance(source, str):
        with open(source, 'rb') as f:
            raw = f.read()
    elif isinstance(source, (bytes, bytearray)):
        raw = bytes(source)
    else:
        raw = source.read()

    if fname.endswith('.xlsx'):
        wb = openpyxl.load_workbook(io.BytesIO(raw), data_only=True, read_only=True)
        ws = wb.active
        rows = [[_xlsx_text(v) for v in row] for row in ws.iter_rows(values_only=True)]
        wb.close()
        return rows
    if fname.endswith('.xls'):
        raise LedgerError('Old .xls workbooks are not supported; save the file as .xlsx or .csv')

    # CSV: try the usual encodings in turn
    if isinstance(raw, str):
        content = raw
    else:
        for enc in ['utf-8-sig', 'utf-8', 'latin-1', 'cp1252']:
            try:
                content = raw.decode(enc)
                break
            except UnicodeDecodeError:
                continue
        else:
            content = raw.decode('utf-8', errors='replace')
    return [row for row in csv.reader(io.StringIO(content))]


def check_header(collection, header):
    """List of 'Column N: ...' problems; empty when the header matches.
    Extra trailing columns are ignored."""
    expected = headers_for(collection)
    found = [str(h).strip().lstrip('\ufeff') for h in header or []]
    problems = []
    for i, want in enumerate(expected):
        have = found[i] if i < len(found) else ''
        if have != want:
            problems.append(f'Column {i + 1}: expected "{want}", found "{have or "missing"}"')
    return problems


@dataclass
class ImportResult:
    collection: str
    entries: list = field(default_factory=list)
    total_rows: int = 0
    skipped: int = 0
    errors: list = field(default_factory=list)

    @property
    def imported(self):
        return len(self.entries)

    @property
    def message(self):
        msg = f"Imported {self.imported} of {self.total_rows} rows"
        if self.skipped:
            msg += f" ({self.skipped} skipped)"
        return msg


_LABELS = {name: h for cols in COLUMNS.values() for h, name in cols}


def _required(collection):
    if collection in _IMPORT_REQUIRED:
        return _IMPORT_REQUIRED[collection]
    return book_spec(collection).required


def _row_record(collection, values):
    """Dict record from one data row. Raises ValueError naming the bad cell."""
    record, missing = {}, []
    for i, (header, name) in enumerate(COLUMNS[collection]):
        raw = values[i].strip() if i < len(values) and values[i] is not None else ''
        if name == 'financial_year':
            continue
        if name in DATE_FIELDS and raw:
            iso = normalize_date(raw)
            if not iso:
                raise ValueError(f"can't read {header} {raw!r}")
            raw = iso
        elif name in NUMBER_FIELDS and raw:
            try:
                parse_amount(raw)
            except ValueError:
                raise ValueError(f"{header} is not a number: {raw!r}") from None
        record[name] = raw
    for name in _required(collection):
        if not record.get(name):
            missing.append(_LABELS.get(name, name))
    if missing:
        raise ValueError(f"Missing required fields: {', '.join(missing)}")
    return record


def import_rows(collection, rows, today=None):
    """Turn rows read from a file into records ready to insert.

    A header mismatch fails the whole import before any row is read. Bad
    rows are skipped with a reason; the rest come back as typed records
    with no id and today's entry date."""
    collection = collection_name(collection)
    rows = list(rows or [])
    if not rows:
        raise ImportFormatError(collection, ['The file is empty'], headers_for(collection))
    problems = check_header(collection, rows[0])
    if problems:
        raise ImportFormatError(collection, problems, headers_for(collection))

    stamp = normalize_date(today) if today else date.today().isoformat()
    result = ImportResult(collection)
    for n, values in enumerate(rows[1:], start=2):
        if not any(str(v or '').strip() for v in values):
            continue
        result.total_rows += 1
        try:
            record = _row_record(collection, values)
        except ValueError as e:
            result.skipped += 1
            result.errors.append(f"Row {n}: {e}")
            log.info("Import %s row %d skipped: %s", collection, n, e)
            continue
        record['entry_date'] = stamp
        record['id'] = None
        result.entries.append(_to_model(collection, record))
    log.info("Import %s: %s", collection, result.message)
    return result
