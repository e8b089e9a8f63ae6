"""
SchoolBooks — cross-book balances.
Everything here is recomputed from a snapshot on every call: no state is
kept between calls, so the same snapshot always gives the same report.

Sign rules:
  Bank, Cash     debit − credit
  Income         + amount
  Office, Salary, Kitchen   − amount (these books only spend)

Transfers: a Bank/Cash credit tagged "Office Exp" (etc.) moves money into
that expense book on the entry's payment channel; every expense entry
spends from its book on its own channel. What is left per channel is the
unspent transferred money.
"""
import logging
import re
from collections import OrderedDict
from dataclasses import dataclass, field, asdict

from books import (ACADEMIC_HEADS, CHANNELS, EXPENSE_BOOKS, Book, FundEntry, IncomeEntry,
                   Method, entry_from_record)
from fiscal import normalize_date, normalize_fy_label

log = logging.getLogger(__name__)

GRADES = ['Pre', 'KG'] + [f"G_{n}" for n in range(1, 13)]


def extract_grade(entry):
    """'Pre', 'KG', 'G_1' … 'G_12' from the many ways a class gets typed."""
    raw = str(getattr(entry, 'account_name', '') or '').strip().upper()
    if not raw:
        return ''
    if raw.startswith('PRE'):
        return 'Pre'
    if raw == 'KG' or raw.startswith('K G') or raw.startswith('K-G') or raw.startswith('KG'):
        return 'KG'
    m = re.match(r'^G\s*[_\-\s]?\s*(\d{1,2})', raw)
    if m and 1 <= int(m.group(1)) <= 12:
        return f"G_{int(m.group(1))}"
    return ''


def extract_gender(entry):
    """'male', 'female' or ''. Falls back to the -M- / -F- in a display name."""
    g = str(getattr(entry, 'gender', '') or '').strip().lower()
    if g.startswith('m'):
        return 'male'
    if g.startswith('f'):
        return 'female'
    disp = str(getattr(entry, 'name', '') or '').upper()
    if '-M-' in disp:
        return 'male'
    if '-F-' in disp:
        return 'female'
    return ''


@dataclass
class BalanceReport:
    fy: str = ''
    date_from: str = ''
    date_to: str = ''
    books: dict = field(default_factory=dict)
    method_totals: dict = field(default_factory=dict)
    grand_total: float = 0.0
    transfers: dict = field(default_factory=dict)
    income_total: float = 0.0
    income_by_head: dict = field(default_factory=dict)
    expense_by_book: dict = field(default_factory=dict)
    expense_total: float = 0.0
    net_income: float = 0.0
    advance: dict = field(default_factory=dict)
    student_counts: dict = field(default_factory=dict)
    student_totals: dict = field(default_factory=dict)
    entry_count: int = 0
    skipped: int = 0

    def balance(self, book, method):
        return self.books.get(Book.parse(book).value, {}).get(Method(method).value, 0.0)

    def transfer_balance(self, book, method):
        return self.transfers.get(Book.parse(book).value, {}).get(Method(method).value, 0.0)

    def as_dict(self):
        return asdict(self)


def iter_snapshot(snapshot):
    """(book, entry) pairs from a {book: [entries or dicts]} snapshot.
    Returns the pairs and the number of items that could not be read."""
    pairs, skipped = [], 0
    for key, items in (snapshot or {}).items():
        try:
            book = Book.parse(key)
        except ValueError:
            log.warning("Ignoring unknown book %r in snapshot", key)
            continue
        for raw in items or ():
            try:
                entry = entry_from_record(book, raw)
            except (TypeError, ValueError, AttributeError) as e:
                log.warning("Skipping malformed %s entry %r: %s", book.value, raw, e)
                skipped += 1
                continue
            pairs.append((book, entry))
    return pairs, skipped


def in_scope(entry, fy, lo, hi):
    """True when an entry falls inside the FY and date range (all optional)."""
    if not (fy or lo or hi):
        return True
    d = normalize_date(entry.date)
    if not d:
        return False
    if fy and entry.financial_year != fy:
        return False
    if lo and d < lo:
        return False
    if hi and d > hi:
        return False
    return True


def _add(table, key, amount):
    table[key] = table.get(key, 0.0) + amount


def aggregate(snapshot, fy=None, date_from=None, date_to=None):
    """Balances per book and channel, transfer netting, FY income/expense
    totals and the student table for one consistent snapshot."""
    fy = normalize_fy_label(fy) if fy else ''
    lo = normalize_date(date_from) if date_from else None
    hi = normalize_date(date_to) if date_to else None
    pairs, skipped = iter_snapshot(snapshot)

    report = BalanceReport(fy=fy, date_from=lo or '', date_to=hi or '', skipped=skipped)
    report.books = OrderedDict((b.value, OrderedDict()) for b in Book)
    report.transfers = OrderedDict(
        (b.value, OrderedDict((m.value, 0.0) for m in CHANNELS)) for b in EXPENSE_BOOKS)
    report.income_by_head = OrderedDict((h, 0.0) for h in ACADEMIC_HEADS)
    report.expense_by_book = OrderedDict((b.value, 0.0) for b in EXPENSE_BOOKS)
    report.advance = OrderedDict((m.value, 0.0) for m in (Method.CASH, Method.KPAY))
    counts = OrderedDict((g, {'male': 0, 'female': 0}) for g in GRADES)
    seen_students = set()

    for book, e in pairs:
        if not in_scope(e, fy, lo, hi):
            continue
        report.entry_count += 1
        method = e.effective_method
        _add(report.books[book.value], method.value, e.net)

        if isinstance(e, FundEntry):
            tag = e.transfer_tag
            target = tag.target_book if tag else None
            if target is not None and e.credit > 0 and method in CHANNELS:
                _add(report.transfers[target.value], method.value, e.credit)

        elif isinstance(e, IncomeEntry):
            report.income_total += e.amount
            head = next((h for h in ACADEMIC_HEADS
                         if h.lower() == e.account_head.strip().lower()), e.account_head)
            _add(report.income_by_head, head, e.amount)
            grade, sex = extract_grade(e), extract_gender(e)
            key = (e.name.strip().lower(), e.account_name.strip(), sex)
            if e.name.strip() and grade and sex and key not in seen_students:
                seen_students.add(key)
                counts[grade][sex] += 1

        else:
            _add(report.expense_by_book, book.value, e.amount)
            report.expense_total += e.amount
            if method in CHANNELS:
                _add(report.transfers[book.value], method.value, -e.amount)
            if book is Book.OFFICE and 'advance' in e.account_head.lower() \
                    and method in (Method.CASH, Method.KPAY):
                _add(report.advance, method.value, e.amount)

    for per_method in report.books.values():
        for m, v in per_method.items():
            _add(report.method_totals, m, v)
    report.grand_total = sum(report.method_totals.values())
    report.net_income = report.income_total - report.expense_total
    report.student_counts = counts
    male = sum(c['male'] for c in counts.values())
    female = sum(c['female'] for c in counts.values())
    report.student_totals = {'male': male, 'female': female, 'total': male + female}
    return report


# ─── Daily balances ───────────────────────────────────────────────

def daily_balances(snapshot, since=None):
    """Per-day money in/out/balance for every book, newest day first."""
    lo = normalize_date(since) if since else None
    pairs, _ = iter_snapshot(snapshot)
    days = {}
    for book, e in pairs:
        d = normalize_date(e.date)
        if not d or (lo and d < lo):
            continue
        day = days.get(d)
        if day is None:
            day = {'date': d, 'total_balance': 0.0}
            for b in Book:
                day[b.value] = {'money_in': 0.0, 'money_out': 0.0, 'balance': 0.0}
            days[d] = day
        cell = day[book.value]
        cell['money_in'] += e.money_in
        cell['money_out'] += e.money_out
    for day in days.values():
        total = 0.0
        for b in Book:
            cell = day[b.value]
            cell['balance'] = cell['money_in'] - cell['money_out']
            total += cell['balance']
        day['total_balance'] = total
    return [days[d] for d in sorted(days, reverse=True)]


def balance_summary(days):
    """Count, average, highest and lowest of the daily totals."""
    if not days:
        return {'total_days': 0, 'avg_daily_balance': 0.0,
                'highest_balance': 0.0, 'lowest_balance': 0.0}
    totals = [d['total_balance'] for d in days]
    return {'total_days': len(totals),
            'avg_daily_balance': sum(totals) / len(totals),
            'highest_balance': max(totals),
            'lowest_balance': min(totals)}
