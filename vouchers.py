"""
SchoolBooks — voucher, invoice and customer numbers.
Sequences are re-derived from the snapshot handed in, not from a stored
counter, so two people saving at the same moment can get the same voucher
number. Voucher numbers are for humans; the store's record id is the key.
"""
from books import Book, book_spec, entry_from_record, customer_from_record
from errors import ValidationError
from fiscal import fiscal_year_of, fiscal_year_start, normalize_date


def _target_date(date_value):
    iso = normalize_date(date_value)
    if not iso:
        raise ValidationError({'date': f"can't read date {date_value!r}"})
    return iso


def _entry_date(e):
    d = e.get('date') if isinstance(e, dict) else getattr(e, 'date', '')
    return normalize_date(d)


def date_prefix(iso):
    """DDMMYY"""
    return f"{iso[8:10]}{iso[5:7]}{iso[2:4]}"


def next_voucher_no(book, date_value, existing):
    """Next voucher number for a book on a date, e.g. BK-100525-003.
    Only entries on the same date count towards the sequence."""
    spec = book_spec(book)
    iso = _target_date(date_value)
    same = sum(1 for e in existing if _entry_date(e) == iso)
    seq = f"{same + 1:03d}"
    if spec.voucher_prefix:
        return f"{spec.voucher_prefix}-{date_prefix(iso)}-{seq}"
    return f"{date_prefix(iso)}-{seq}"


def _count_in_fy(items, iso):
    fy = fiscal_year_of(iso)
    return sum(1 for d in items if fiscal_year_of(d) == fy)


def next_invoice_no(existing_income, date_value):
    """INV-25-26-0007: per financial year."""
    iso = _target_date(date_value)
    dates = [entry_from_record(Book.INCOME, e).date for e in existing_income]
    start = fiscal_year_start(iso)
    fy_code = f"{str(start)[-2:]}-{str(start + 1)[-2:]}"
    return f"INV-{fy_code}-{_count_in_fy(dates, iso) + 1:04d}"


def next_customer_id(customers, date_value):
    """ID-0001: the register restarts numbering every financial year."""
    iso = _target_date(date_value)
    dates = [customer_from_record(c).date for c in customers]
    return f"ID-{_count_in_fy(dates, iso) + 1:04d}"
