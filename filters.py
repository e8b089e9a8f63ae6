"""
SchoolBooks — list filtering shared by every book screen and the reports.
"""
from fiscal import fiscal_year_of, normalize_date

ALIASES = {'fy': 'financial_year', 'account_class': 'account_name',
           'vr_no': 'voucher_no', 'fees_name': 'fee_type'}


def field_text(entry, name):
    """A field as display text. Missing fields and None read as ''.
    Whole numbers lose their trailing .0 so '1000' finds 1000.0."""
    name = ALIASES.get(name, name)
    if isinstance(entry, dict):
        value = entry.get(name, '')
        if name == 'financial_year' and not value:
            value = fiscal_year_of(entry.get('date'))
    else:
        value = getattr(entry, name, '')
    if value is None:
        return ''
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def filter_entries(entries, filters, exact=()):
    """Entries passing every non-empty filter. Substring match, ignoring
    case, except fields listed in `exact` which must match the whole value."""
    active = {ALIASES.get(k, k): str(v).strip() for k, v in (filters or {}).items()
              if v is not None and str(v).strip() != ''}
    if not active:
        return list(entries)
    exact = {ALIASES.get(f, f) for f in exact}
    out = []
    for e in entries:
        ok = True
        for name, want in active.items():
            have = field_text(e, name)
            if name in exact:
                if have != want:
                    ok = False
                    break
            elif want.lower() not in have.lower():
                ok = False
                break
        if ok:
            out.append(e)
    return out


def filter_date_range(entries, start=None, end=None):
    """Entries dated within [start, end]. Undated entries drop out once a
    bound is given."""
    lo = normalize_date(start) if start else None
    hi = normalize_date(end) if end else None
    if not lo and not hi:
        return list(entries)
    out = []
    for e in entries:
        d = normalize_date(field_text(e, 'date'))
        if not d:
            continue
        if lo and d < lo:
            continue
        if hi and d > hi:
            continue
        out.append(e)
    return out


def unique_values(entries, name):
    """Distinct non-empty values of a field, in first-seen order."""
    seen = []
    for e in entries:
        v = field_text(e, name)
        if v and v not in seen:
            seen.append(v)
    return seen


def sort_newest_first(entries):
    """Newest date first; entries without a readable date go last."""
    return sorted(entries, key=lambda e: normalize_date(field_text(e, 'date')) or '',
                  reverse=True)
