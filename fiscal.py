"""
SchoolBooks — fiscal calendar.
The school's financial year runs 1 April to 31 March and is labelled
"FY 24-25". Every function here is pure: dates in, labels out, and
"today" is always handed in by the caller.
"""
import re
from datetime import date, datetime

FY_START_MONTH = 4

MONTHS = {'jan': 1, 'feb': 2, 'mar': 3, 'apr': 4, 'may': 5, 'jun': 6,
          'jul': 7, 'aug': 8, 'sep': 9, 'oct': 10, 'nov': 11, 'dec': 12,
          'january': 1, 'february': 2, 'march': 3, 'april': 4, 'june': 6,
          'july': 7, 'august': 8, 'september': 9, 'october': 10,
          'november': 11, 'december': 12}

MONTH_ABBR = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun',
              'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec']

_FY_LABEL = re.compile(r'^FY\s*(\d{2}|\d{4})\s*-\s*(\d{2}|\d{4})$', re.I)


def _fix_year(y):
    if y < 100:
        return y + 2000 if y < 50 else y + 1900
    return y


def _valid(y, m, d):
    if m < 1 or m > 12 or d < 1 or d > 31:
        return None
    try:
        return date(y, m, d).isoformat()
    except ValueError:
        return None


def normalize_date(value):
    """Normalize a date to YYYY-MM-DD. Returns None if it can't be read.
    Handles date objects, ISO (with or without time), yyyymmdd, dd-mm-yyyy,
    dd/mm/yyyy, dd.mm.yyyy and month names. Numeric dates are day-first."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    s = str(value).strip().strip('"').strip("'")
    if not s or s.lower() in ('none', 'nat', 'null', 'nan'):
        return None

    # ISO timestamp: keep the date part
    m = re.match(r'^(\d{4}-\d{2}-\d{2})[T ]\d{1,2}:\d{2}', s)
    if m:
        s = m.group(1)

    # yyyy-mm-dd, yyyy/mm/dd, yyyy.mm.dd
    m = re.match(r'^(\d{4})[\-/.](\d{1,2})[\-/.](\d{1,2})$', s)
    if m:
        return _valid(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    # yyyymmdd
    m = re.match(r'^(\d{4})(\d{2})(\d{2})$', s)
    if m:
        return _valid(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    # dd Mon yyyy, dd-Mon-yyyy
    m = re.match(r'^(\d{1,2})[\s\-/.](\w+)[\s\-/.,]+(\d{2,4})$', s, re.I)
    if m and m.group(2).lower() in MONTHS:
        return _valid(_fix_year(int(m.group(3))), MONTHS[m.group(2).lower()], int(m.group(1)))

    # Mon dd, yyyy
    m = re.match(r'^(\w+)[\s\-/.](\d{1,2})[,\s]+(\d{2,4})$', s, re.I)
    if m and m.group(1).lower() in MONTHS:
        return _valid(_fix_year(int(m.group(3))), MONTHS[m.group(1).lower()], int(m.group(2)))

    # dd-mm-yyyy, dd/mm/yyyy, dd.mm.yyyy (2- or 4-digit year)
    m = re.match(r'^(\d{1,2})[\-/.](\d{1,2})[\-/.](\d{2}|\d{4})$', s)
    if m:
        return _valid(_fix_year(int(m.group(3))), int(m.group(2)), int(m.group(1)))

    return None


def parse_date(value):
    """Like normalize_date but returns a datetime.date (or None)."""
    iso = normalize_date(value)
    return date.fromisoformat(iso) if iso else None


def fiscal_year_start(value):
    """Calendar year in which the date's financial year began, or None."""
    d = parse_date(value)
    if d is None:
        return None
    return d.year if d.month >= FY_START_MONTH else d.year - 1


def fy_label(start_year):
    return f"FY {str(start_year)[-2:]}-{str(start_year + 1)[-2:]}"


def fiscal_year_of(value):
    """'FY 24-25' for any date in Apr 2024 – Mar 2025. Empty string if the
    date can't be read; never raises."""
    start = fiscal_year_start(value)
    return fy_label(start) if start is not None else ''


def fy_label_start(label):
    """Start year of a label like 'FY 24-25' (also accepts 'FY 2024-25')."""
    m = _FY_LABEL.match((label or '').strip())
    if not m:
        return None
    return _fix_year(int(m.group(1)))


def normalize_fy_label(label):
    """Canonical 'FY YY-YY' form of a label, or '' if it isn't one."""
    start = fy_label_start(label)
    return fy_label(start) if start is not None else ''


def fiscal_year_bounds(label):
    """(first_day, last_day) ISO strings for an FY label."""
    start = fy_label_start(label)
    if start is None:
        raise ValueError(f"Not a financial year label: {label!r}")
    return (date(start, FY_START_MONTH, 1).isoformat(),
            date(start + 1, FY_START_MONTH - 1, 31).isoformat())


def fiscal_period(value):
    """Month number inside the financial year: April = 1 … March = 12."""
    d = parse_date(value)
    if d is None:
        return None
    return (d.month - FY_START_MONTH) % 12 + 1


def month_bucket(value):
    """'May 25' — the month/year bucket shown on kitchen and monthly summaries."""
    d = parse_date(value)
    if d is None:
        return ''
    return f"{MONTH_ABBR[d.month - 1]} {d.year % 100:02d}"


def fiscal_year_options(today, back=3, ahead=2):
    """FY labels around today's FY, newest first."""
    start = fiscal_year_start(today)
    if start is None:
        return []
    return [fy_label(start + k) for k in range(ahead, -back - 1, -1)]


def format_display_date(value):
    """DD-MM-YYYY for screens and exports. Unreadable input is returned as-is."""
    d = parse_date(value)
    if d is None:
        return '' if value is None else str(value)
    return d.strftime('%d-%m-%Y')
