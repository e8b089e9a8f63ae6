"""
SchoolBooks - Tests for list filtering
"""
from books import IncomeEntry
from filters import filter_date_range, filter_entries, sort_newest_first, unique_values

ENTRIES = [
    IncomeEntry(date="2025-05-10", account_head="Boarder", account_name="G _1", name="Ma Ma",
                gender="Female", amount=1000.0, id=1),
    IncomeEntry(date="2025-03-15", account_head="Day", account_name="G_10", name="Mg Mg",
                gender="Male", amount=2500.0, id=2),
    IncomeEntry(date="2025-06-01", account_head="Semi Boarder", account_name="G _1",
                name="Aye Aye", gender="Female", amount=1000.0, id=3),
]


class TestFilterEntries:

    def test_no_filters_returns_everything(self):
        assert filter_entries(ENTRIES, {}) == ENTRIES
        assert filter_entries(ENTRIES, None) == ENTRIES
        assert filter_entries(ENTRIES, {"name": "", "account_head": None}) == ENTRIES

    def test_substring_ignores_case(self):
        assert [e.id for e in filter_entries(ENTRIES, {"name": "ma"})] == [1]
        assert [e.id for e in filter_entries(ENTRIES, {"account_head": "boarder"})] == [1, 3]

    def test_exact_fields(self):
        got = filter_entries(ENTRIES, {"account_head": "Boarder"}, exact=("account_head",))
        assert [e.id for e in got] == [1]

    def test_class_alias(self):
        got = filter_entries(ENTRIES, {"account_class": "G_1"}, exact=("account_class",))
        assert got == []
        got = filter_entries(ENTRIES, {"account_class": "G _1"}, exact=("account_class",))
        assert [e.id for e in got] == [1, 3]

    def test_financial_year(self):
        got = filter_entries(ENTRIES, {"fy": "FY 25-26"}, exact=("fy",))
        assert [e.id for e in got] == [1, 3]

    def test_fy_on_plain_records(self):
        rows = [{"date": "2025-05-10"}, {"date": "2024-05-10"}]
        assert filter_entries(rows, {"financial_year": "FY 24-25"}) == [rows[1]]

    def test_whole_number_amounts(self):
        got = filter_entries(ENTRIES, {"amount": "2500"}, exact=("amount",))
        assert [e.id for e in got] == [2]

    def test_filters_combine(self):
        got = filter_entries(ENTRIES, {"gender": "Female", "account_head": "Semi"})
        assert [e.id for e in got] == [3]


class TestHelpers:

    def test_date_range(self):
        got = filter_date_range(ENTRIES, "2025-04-01", "2025-05-31")
        assert [e.id for e in got] == [1]
        assert filter_date_range(ENTRIES) == ENTRIES

    def test_unique_values(self):
        assert unique_values(ENTRIES, "account_name") == ["G _1", "G_10"]

    def test_newest_first(self):
        assert [e.id for e in sort_newest_first(ENTRIES)] == [3, 1, 2]
