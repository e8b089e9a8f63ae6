"""
SchoolBooks — data model.
One record shape per book, all sharing a common base so the aggregator and
the filters can work over any book without per-book branching.
Financial year is never stored: it is always derived from the date.
"""
import logging
import math
from dataclasses import dataclass, field, fields, asdict
from enum import Enum
from typing import ClassVar, Optional

from fiscal import fiscal_year_of, normalize_date

log = logging.getLogger(__name__)


# ─── Enumerations ─────────────────────────────────────────────────

class Book(str, Enum):
    BANK = 'bank'
    CASH = 'cash'
    INCOME = 'income'
    OFFICE = 'office'
    SALARY = 'salary'
    KITCHEN = 'kitchen'

    @property
    def label(self):
        return self.value.capitalize()

    @property
    def is_fund(self):
        return self in (Book.BANK, Book.CASH)

    @property
    def is_expense(self):
        return self in EXPENSE_BOOKS

    @classmethod
    def parse(cls, value):
        """Book from an enum, 'bank', 'Bank' or 'Bank Book'. Raises ValueError."""
        if isinstance(value, cls):
            return value
        key = str(value or '').strip().lower()
        if key.endswith(' book'):
            key = key[:-5]
        if key.endswith(' exp'):
            key = key[:-4]
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"Unknown book: {value!r}") from None


EXPENSE_BOOKS = (Book.OFFICE, Book.SALARY, Book.KITCHEN)


class Method(str, Enum):
    CASH = 'Cash'
    KPAY = 'Kpay'
    BANK = 'Bank'
    OTHERS = 'Others'

    @classmethod
    def parse(cls, value):
        """Case-insensitive lookup; None for empty or unknown text."""
        key = str(value or '').strip().lower()
        for m in cls:
            if m.value.lower() == key:
                return m
        return None


# Channels tracked by the transfer reconciliation
CHANNELS = (Method.CASH, Method.KPAY, Method.BANK)


class TransferTag(str, Enum):
    OFFICE_EXP = 'Office Exp'
    SALARY_EXP = 'Salary Exp'
    KITCHEN_EXP = 'Kitchen Exp'
    BANK_CASH = 'Bank-Cash'
    BANK_KPAY = 'Bank-Kpay'
    BANK_BANK = 'Bank-Bank'
    CASH_BANK = 'Cash-Bank'
    KPAY_BANK = 'Kpay-Bank'
    UNRECOGNIZED = '?'

    @classmethod
    def parse(cls, value):
        """None for no tag, the member for a known tag, UNRECOGNIZED otherwise."""
        text = str(value or '').strip()
        if not text:
            return None
        for tag in cls:
            if tag is not cls.UNRECOGNIZED and tag.value == text:
                return tag
        return cls.UNRECOGNIZED

    @property
    def target_book(self):
        return _TRANSFER_TARGETS.get(self)


_TRANSFER_TARGETS = {
    TransferTag.OFFICE_EXP: Book.OFFICE,
    TransferTag.SALARY_EXP: Book.SALARY,
    TransferTag.KITCHEN_EXP: Book.KITCHEN,
}


class FeeType(str, Enum):
    REGISTRATION = 'Registration'
    SERVICES = 'Services'
    PROMOTION = 'Promotion'
    FERRY = 'Ferry'
    HOSTEL = 'Hostel'

    @classmethod
    def parse(cls, value):
        key = str(value or '').strip().lower()
        for f in cls:
            if f.value.lower() == key:
                return f
        return None


# ─── Amounts ──────────────────────────────────────────────────────

def parse_amount(s):
    """Parse an amount typed or imported by a person. Handles 1500,
    1,500.00, (500), -500, 500-, 'Ks 1,500'. Returns a float, None for
    an empty value, and raises ValueError for anything else."""
    if s is None:
        return None
    if isinstance(s, bool):
        raise ValueError(f"Not an amount: {s!r}")
    if isinstance(s, (int, float)):
        v = float(s)
    else:
        s = str(s).strip().replace(',', '').replace('$', '')
        for unit in ('MMK', 'Ks', 'ks', 'K'):
            if s.startswith(unit) or s.endswith(unit):
                s = s.replace(unit, '').strip()
        if not s:
            return None
        neg = False
        if s.startswith('(') and s.endswith(')'): neg = True; s = s[1:-1]
        if s.startswith('-'): neg = True; s = s[1:]
        if s.endswith('-'): neg = True; s = s[:-1]
        s = s.strip()
        if not s:
            return None
        v = float(s)
        if neg:
            v = -v
    if not math.isfinite(v):
        raise ValueError(f"Not a finite amount: {s!r}")
    return v


def to_number(value):
    """Best-effort amount: anything unreadable counts as 0."""
    try:
        v = parse_amount(value)
    except (TypeError, ValueError):
        return 0.0
    return v if v is not None else 0.0


def fmt_amount(value):
    """1,500 or 1,500.50. Negatives in parens. Zero shows as a dash."""
    v = to_number(value)
    if v == 0:
        return '—'
    s = f"{abs(v):,.0f}" if v == int(v) else f"{abs(v):,.2f}"
    return f"({s})" if v < 0 else s


def fmt_plain(value):
    """Plain number for CSV cells: no grouping, no trailing .0, no rounding."""
    if value is None or value == '':
        return ''
    v = to_number(value)
    return str(int(v)) if v == int(v) else repr(v)


# ─── Records ──────────────────────────────────────────────────────

# Keys used by the old screens and by imports, mapped to field names
FIELD_ALIASES = {
    'acHead': 'account_head', 'acName': 'account_name', 'acClass': 'account_name',
    'account_class': 'account_name', 'vrNo': 'voucher_no', 'bookVR': 'voucher_no',
    'entryDate': 'entry_date', 'feesName': 'fee_type', 'customId': 'customer_id',
    'invoiceNo': 'invoice_no', 'autoFee': 'auto_fee',
}

NUMERIC_FIELDS = {'debit', 'credit', 'amount'}


def _clean(value):
    if value is None:
        return ''
    return str(value).strip()


@dataclass
class LedgerEntry:
    """Common shape of every book entry."""
    book: ClassVar[Book]
    default_method: ClassVar[Method] = Method.CASH

    date: str = ''
    voucher_no: str = ''
    account_head: str = ''
    account_name: str = ''
    description: str = ''
    method: str = ''
    remark: str = ''
    entry_date: str = ''
    id: Optional[int] = None

    @property
    def financial_year(self):
        return fiscal_year_of(self.date)

    @property
    def account_class(self):
        return self.account_name

    @property
    def is_persisted(self):
        return self.id is not None

    @property
    def effective_method(self):
        return Method.parse(self.method) or self.default_method

    @property
    def money_in(self):
        return 0.0

    @property
    def money_out(self):
        return 0.0

    @property
    def net(self):
        return self.money_in - self.money_out

    def to_record(self):
        """Plain dict for the store. FY is left out on purpose: it is derived."""
        return asdict(self)


@dataclass
class FundEntry(LedgerEntry):
    """Bank and Cash books: debit is money in, credit is money out."""
    debit: float = 0.0
    credit: float = 0.0
    transfer: str = ''

    @property
    def money_in(self):
        return self.debit

    @property
    def money_out(self):
        return self.credit

    @property
    def transfer_tag(self):
        return TransferTag.parse(self.transfer)


@dataclass
class BankEntry(FundEntry):
    book: ClassVar[Book] = Book.BANK
    default_method: ClassVar[Method] = Method.BANK


@dataclass
class CashEntry(FundEntry):
    book: ClassVar[Book] = Book.CASH


@dataclass
class IncomeEntry(LedgerEntry):
    """A fee received from a student."""
    book: ClassVar[Book] = Book.INCOME

    amount: float = 0.0
    gender: str = ''
    name: str = ''
    customer_id: str = ''
    fee_type: str = ''
    auto_fee: Optional[float] = None
    invoice_no: str = ''

    @property
    def money_in(self):
        return self.amount


@dataclass
class ExpenseEntry(LedgerEntry):
    """Office, Salary and Kitchen books only ever spend."""
    amount: float = 0.0

    @property
    def money_out(self):
        return self.amount


@dataclass
class OfficeEntry(ExpenseEntry):
    book: ClassVar[Book] = Book.OFFICE


@dataclass
class SalaryEntry(ExpenseEntry):
    book: ClassVar[Book] = Book.SALARY


@dataclass
class KitchenEntry(ExpenseEntry):
    book: ClassVar[Book] = Book.KITCHEN


@dataclass
class CustomerRecord:
    """A student on the customer register. custom_id restarts each FY."""
    date: str = ''
    custom_id: str = ''
    account_head: str = ''
    account_class: str = ''
    gender: str = ''
    name: str = ''
    remark: str = ''
    entry_date: str = ''
    id: Optional[int] = None

    @property
    def financial_year(self):
        return fiscal_year_of(self.date)

    @property
    def is_persisted(self):
        return self.id is not None

    @property
    def gender_initial(self):
        g = self.gender.strip().lower()
        if g.startswith('m'):
            return 'M'
        if g.startswith('f'):
            return 'F'
        return ''

    @property
    def display_name(self):
        """G_10-M-ID-0001-Ma Ma"""
        if not self.account_class or not self.gender_initial or not self.name:
            return self.name
        parts = [self.account_class, self.gender_initial]
        if self.custom_id:
            parts.append(self.custom_id)
        parts.append(self.name)
        return '-'.join(parts)

    def to_record(self):
        return asdict(self)


@dataclass
class RuleEntry:
    """One row of the fee schedule for (account head, account class)."""
    date: str = ''
    account_head: str = ''
    account_class: str = ''
    registration_fee: float = 0.0
    services_fee: float = 0.0
    promotion_fee: float = 0.0
    remark: str = ''
    id: Optional[int] = None

    @property
    def financial_year(self):
        return fiscal_year_of(self.date)

    @property
    def is_persisted(self):
        return self.id is not None

    def fee_for(self, fee_type):
        ft = FeeType.parse(fee_type)
        if ft is FeeType.REGISTRATION:
            return self.registration_fee
        if ft is FeeType.SERVICES:
            return self.services_fee
        if ft is FeeType.PROMOTION:
            return self.promotion_fee
        return None

    def to_record(self):
        return asdict(self)


def sanitize_remark(s):
    t = _clean(s)
    return '' if t in ('""', "''") else t


RULE_ALIASES = {'acHead': 'account_head', 'acClass': 'account_class', 'acName': 'account_class',
                'account_name': 'account_class', 'registration': 'registration_fee',
                'services': 'services_fee', 'promotion': 'promotion_fee'}

CUSTOMER_ALIASES = {'acHead': 'account_head', 'acName': 'account_class', 'acClass': 'account_class',
                    'account_name': 'account_class', 'customId': 'custom_id', 'entryDate': 'entry_date'}


def _build(cls, mapping, aliases, numeric, optional_numeric=()):
    """Instantiate a record dataclass from a loose mapping. Unknown keys are
    dropped, missing strings become '', unreadable numbers become 0."""
    names = {f.name for f in fields(cls)}
    values = {}
    for key, value in dict(mapping).items():
        key = aliases.get(key, key)
        if key not in names or key in values:
            continue
        values[key] = value
    for name in names:
        if name not in values:
            continue
        v = values[name]
        if name == 'id':
            if v in (None, ''):
                values[name] = None
            else:
                values[name] = int(v) if str(v).isdigit() else str(v)
        elif name in optional_numeric:
            values[name] = None if v in (None, '') else to_number(v)
        elif name in numeric:
            values[name] = to_number(v)
        elif name in ('date', 'entry_date'):
            values[name] = normalize_date(v) or _clean(v)
        else:
            values[name] = _clean(v)
    return cls(**values)


ENTRY_CLASSES = {
    Book.BANK: BankEntry,
    Book.CASH: CashEntry,
    Book.INCOME: IncomeEntry,
    Book.OFFICE: OfficeEntry,
    Book.SALARY: SalaryEntry,
    Book.KITCHEN: KitchenEntry,
}


def entry_from_record(book, mapping):
    """Build the right entry variant for a book from a plain mapping."""
    book = Book.parse(book)
    if isinstance(mapping, LedgerEntry):
        return mapping
    data = dict(mapping)
    # The old income screen kept the received amount under 'debit'
    if book is Book.INCOME and 'amount' not in data and 'debit' in data:
        data['amount'] = data.pop('debit')
    # Expense books kept their spend under 'credit'
    if book.is_expense and 'amount' not in data and 'credit' in data:
        data['amount'] = data.pop('credit')
    return _build(ENTRY_CLASSES[book], data, FIELD_ALIASES, NUMERIC_FIELDS,
                  optional_numeric=('auto_fee',))


def customer_from_record(mapping):
    if isinstance(mapping, CustomerRecord):
        return mapping
    return _build(CustomerRecord, mapping, CUSTOMER_ALIASES, ())


def rule_from_record(mapping):
    if isinstance(mapping, RuleEntry):
        return mapping
    rule = _build(RuleEntry, mapping, RULE_ALIASES,
                  ('registration_fee', 'services_fee', 'promotion_fee'))
    rule.remark = sanitize_remark(rule.remark)
    return rule


# ─── Book registry ────────────────────────────────────────────────

ACADEMIC_HEADS = ['Boarder', 'Semi Boarder', 'Day']
ACADEMIC_CLASSES = ['Pre-', 'K G-', 'G _1', 'G _2', 'G _3', 'G _4', 'G _5', 'G _6',
                    'G _7', 'G _8', 'G _9', 'G_10', 'G_11', 'G_12']


@dataclass(frozen=True)
class BookSpec:
    book: Book
    entry_cls: type
    voucher_prefix: str
    required: tuple
    exact_filters: tuple = ()
    heads: dict = field(default_factory=dict)


BOOKS = {
    Book.BANK: BookSpec(
        Book.BANK, BankEntry, 'BK', ('date', 'description'),
        exact_filters=('financial_year',),
        heads={'Bank': ['Opening', 'Deposite', 'Withdrawl', 'Interest']}),
    Book.CASH: BookSpec(
        Book.CASH, CashEntry, 'CS', ('date', 'description'),
        exact_filters=('financial_year',),
        heads={'Cash': ['Opening', 'Receipt', 'Payment']}),
    Book.INCOME: BookSpec(
        Book.INCOME, IncomeEntry, '',
        ('date', 'account_head', 'account_name', 'name', 'fee_type', 'method'),
        exact_filters=('financial_year', 'account_head', 'account_name', 'gender'),
        heads={h: list(ACADEMIC_CLASSES) for h in ACADEMIC_HEADS}),
    Book.OFFICE: BookSpec(
        Book.OFFICE, OfficeEntry, 'Exp', ('date', 'account_head'),
        exact_filters=('financial_year',),
        heads={
            'Advance / Refund': ['Advance / Refund'],
            'Admin Expenses': ['Stationary Cost', 'Gov Honourable & Social Cost',
                               'School Honourable Ceremony', 'Bank Interest Charges',
                               'Donation Cost', 'Social Expense', 'Student Refund Allowed',
                               'Building maintenances & Others', 'Libray Expense',
                               'Other Expense', 'HOME: 1 Exp', 'HOME: 2 Exp'],
            'Vehicle related expenses': ['Car Fuel Cost', 'Car repari & Service',
                                         'Cycle Fuel Cost', 'Cycle repari & Service',
                                         'Vehicle Others Cost', 'Engine Power Fuel & services',
                                         'Others Fuel & services', 'HOME: 1 Exp', 'HOME: 2 Exp'],
            'Building construction': ['Materials', 'Labour', 'Others'],
            'Assets Materials': ['Tv, CCTV, Equipments,…', 'Sports Materials',
                                 'Lab & Teachig Aids'],
            'HR_Staff salaries & benefits': ['Staff Salary', 'Staff benefits'],
            'Drawing Account:': ['Withdrawals by owner: 1', 'Withdrawals by owner: 2'],
            'Adjustement Account': ['Adjustment'],
        }),
    Book.SALARY: BookSpec(
        Book.SALARY, SalaryEntry, 'Staff', ('date', 'account_head'),
        exact_filters=('financial_year',),
        heads={'Staff salaries & benefits': ['Salary', 'staff Benefits']}),
    Book.KITCHEN: BookSpec(
        Book.KITCHEN, KitchenEntry, 'Kit', ('date', 'account_head'),
        exact_filters=('financial_year',),
        heads={'Kitchen': ['Rice', 'Oil', 'Chicken/Pork/Mutton', 'Fish, Dried fish, prawn',
                           'Chicken/Duck Eggs', 'Beans', 'Vegetables', 'Others',
                           'HOME: 1 Exp']}),
}


def book_spec(book):
    return BOOKS[Book.parse(book)]
