"""
SchoolBooks — entry enrichment.
Turns a form submission into a complete record ready for the store:
validates it, fills in the voucher number, invoice number and auto fee,
and keeps the identity fields of an entry being edited.
Nothing here touches the store; saving is the caller's job.
"""
import logging
from dataclasses import replace
from datetime import date

from books import (Book, IncomeEntry, book_spec, customer_from_record, entry_from_record,
                   parse_amount, rule_from_record, sanitize_remark, FIELD_ALIASES)
from errors import ValidationError
from fees import resolve_fee
from fiscal import normalize_date
from vouchers import next_customer_id, next_invoice_no, next_voucher_no

log = logging.getLogger(__name__)

AMOUNT_FIELDS = {
    Book.BANK: ('debit', 'credit'),
    Book.CASH: ('debit', 'credit'),
    Book.INCOME: ('amount',),
    Book.OFFICE: ('amount',),
    Book.SALARY: ('amount',),
    Book.KITCHEN: ('amount',),
}


def _today(today):
    return normalize_date(today) if today else date.today().isoformat()


def _form(form):
    """Form with old-screen keys mapped to field names."""
    out = {}
    for key, value in dict(form).items():
        out.setdefault(FIELD_ALIASES.get(key, key), value)
    return out


def _blank(value):
    return value is None or str(value).strip() == ''


def _check_required(form, required, problems):
    for name in required:
        if name == 'date':
            continue
        if _blank(form.get(name)):
            problems[name] = 'required'


def _check_date(form, problems):
    raw = form.get('date')
    if _blank(raw):
        problems['date'] = 'required'
        return None
    iso = normalize_date(raw)
    if not iso:
        problems['date'] = f"can't read date {raw!r}"
    return iso


def _read_amount(form, name, problems):
    try:
        return parse_amount(form.get(name))
    except (TypeError, ValueError):
        problems[name] = f"not a number: {form.get(name)!r}"
        return None


def enrich(book, form, existing=(), rules=None, original=None, today=None):
    """Validate a form and compute every derived field of a ledger entry.

    `existing` is the book's current snapshot (for the voucher sequence),
    `rules` the fee schedule (income only), `original` the stored entry
    when editing. Raises ValidationError listing every bad field."""
    spec = book_spec(book)
    book = spec.book
    form = _form(form)
    if book is Book.INCOME and 'amount' not in form and 'debit' in form:
        form['amount'] = form.pop('debit')
    if book.is_expense and 'amount' not in form and 'credit' in form:
        form['amount'] = form.pop('credit')
    problems = {}

    iso = _check_date(form, problems)
    _check_required(form, spec.required, problems)

    amounts = {}
    for name in AMOUNT_FIELDS[book]:
        amounts[name] = _read_amount(form, name, problems)

    auto_fee = None
    if book is Book.INCOME:
        auto_fee = resolve_fee(rules, str(form.get('account_head') or '').strip(),
                               str(form.get('account_name') or '').strip(),
                               form.get('fee_type', ''))
        if amounts['amount'] is None and 'amount' not in problems:
            if auto_fee is not None:
                amounts['amount'] = auto_fee
        amt = amounts['amount']
        if 'amount' not in problems and (amt is None or amt <= 0):
            problems['amount'] = 'must be greater than 0'
    elif book.is_expense:
        if 'amount' not in problems and amounts['amount'] is None:
            problems['amount'] = 'required'

    if problems:
        raise ValidationError(problems)

    data = dict(form)
    data['date'] = iso
    for name, v in amounts.items():
        data[name] = v if v is not None else 0.0
    data.pop('financial_year', None)
    data.pop('fy', None)
    entry = entry_from_record(book, data)
    if isinstance(entry, IncomeEntry):
        entry.auto_fee = auto_fee

    if original is not None:
        original = entry_from_record(book, original)
        keep = dict(voucher_no=original.voucher_no, id=original.id,
                    entry_date=original.entry_date)
        if isinstance(original, IncomeEntry):
            keep['invoice_no'] = original.invoice_no
        return replace(entry, **keep)

    others = [e for e in existing if not _same_record(e, entry)]
    entry.voucher_no = next_voucher_no(book, iso, others)
    entry.entry_date = _today(today)
    entry.id = None
    if isinstance(entry, IncomeEntry):
        entry.invoice_no = next_invoice_no(others, iso)
    log.debug("Enriched %s entry %s (%s)", book.value, entry.voucher_no, entry.financial_year)
    return entry


def _same_record(a, b):
    a_id = a.get('id') if isinstance(a, dict) else getattr(a, 'id', None)
    return a_id is not None and a_id == b.id


def enrich_customer(form, customers=(), original=None, today=None):
    """Validate a register form and assign the per-FY customer id."""
    form = dict(form)
    problems = {}
    iso = _check_date(form, problems) if not _blank(form.get('date')) else _today(today)
    for name in ('account_head', 'account_class', 'gender', 'name'):
        if _blank(form.get(name)):
            problems[name] = 'required'
    if problems:
        raise ValidationError(problems)
    form['date'] = iso
    record = customer_from_record(form)
    if original is not None:
        original = customer_from_record(original)
        return replace(record, custom_id=original.custom_id, id=original.id,
                       entry_date=original.entry_date)
    record.custom_id = next_customer_id(customers, iso)
    record.entry_date = _today(today)
    record.id = None
    return record


def enrich_rule(form, original=None, today=None):
    """Validate a fee-schedule row. Fees must be non-negative numbers."""
    form = dict(form)
    problems = {}
    iso = _check_date(form, problems) if not _blank(form.get('date')) else _today(today)
    for name in ('account_head', 'account_class'):
        if _blank(form.get(name)):
            problems[name] = 'required'
    for name in ('registration_fee', 'services_fee', 'promotion_fee'):
        v = _read_amount(form, name, problems)
        if name in problems:
            continue
        if v is not None and v < 0:
            problems[name] = 'must not be negative'
        form[name] = v or 0.0
    if problems:
        raise ValidationError(problems)
    form['date'] = iso
    form['remark'] = sanitize_remark(form.get('remark'))
    rule = rule_from_record(form)
    if original is not None:
        rule.id = rule_from_record(original).id
    else:
        rule.id = None
    return rule
