"""
SchoolBooks — fee schedule lookups.
Only registration and services fees are priced from the Rules table;
everything else (ferry, hostel, …) is typed in by hand.
"""
from books import FeeType, rule_from_record
from fiscal import normalize_fy_label

AUTO_PRICED = (FeeType.REGISTRATION, FeeType.SERVICES)


def resolve_fee(rules, account_head, account_class, fee_type):
    """Fee for (head, class, fee type) from the rules snapshot.
    Returns None when the fee type isn't auto-priced or no rule matches.
    First matching rule wins."""
    ft = FeeType.parse(fee_type)
    if ft not in AUTO_PRICED:
        return None
    for raw in rules or ():
        rule = rule_from_record(raw)
        if rule.account_head == account_head and rule.account_class == account_class:
            fee = rule.fee_for(ft)
            return max(fee, 0.0) if fee is not None else None
    return None


def rules_for_fy(rules, fy):
    """Rules dated inside one financial year."""
    target = normalize_fy_label(fy)
    return [r for r in map(rule_from_record, rules or ()) if r.financial_year == target]


def latest_rule(rules, account_head, account_class):
    """Newest rule for a head/class pair, or None."""
    matches = [r for r in map(rule_from_record, rules or ())
               if r.account_head == account_head and r.account_class == account_class]
    if not matches:
        return None
    return max(matches, key=lambda r: r.date or '')
