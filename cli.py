#!/usr/bin/env python3
"""
SchoolBooks CLI — command line interface for the school's books.
For humans and scripts. Calls the engine modules directly.

Usage:
    python cli.py                                  # interactive mode
    python cli.py /path/to/books.db                # open specific books
    python cli.py /path/to/books.db dashboard      # one-shot: run command and exit
"""
import cmd
import sys
import os
import shlex
from datetime import date

# Add script directory to path so the engine modules import
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
import models
import config
from balances import GRADES, aggregate, balance_summary, daily_balances
from books import Book, CHANNELS, EXPENSE_BOOKS, fmt_amount
from enrich import enrich, enrich_customer, enrich_rule
from errors import ImportFormatError, LedgerError, PersistenceFailure, ValidationError
from exchange import (collection_name, import_rows, read_rows, write_csv, write_report_xlsx,
                      write_xlsx)
from fees import resolve_fee
from filters import filter_entries, sort_newest_first
from fiscal import fiscal_year_of, format_display_date
from vouchers import next_voucher_no

def _check_workspace(path):
    """Enforce SCHOOLBOOKS_WORKSPACE boundary if set. Returns True if allowed."""
    if config.check_workspace(path):
        return True
    print(f"  Access denied: '{path}' is outside the workspace "
          f"({os.environ.get('SCHOOLBOOKS_WORKSPACE')}).")
    return False

# ─── Formatting helpers ──────────────────────────────────────────

def table(headers, rows, alignments=None):
    """Print a formatted text table. alignments: 'l' left, 'r' right per column."""
    if not rows:
        print("  (no data)")
        return

    ncols = len(headers)
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            if i < ncols:
                widths[i] = max(widths[i], len(str(cell)))

    if not alignments:
        alignments = 'l' * ncols

    def line(cells):
        out = []
        for i in range(ncols):
            cell = str(cells[i]) if i < len(cells) else ''
            out.append(cell.rjust(widths[i]) if alignments[i] == 'r' else cell.ljust(widths[i]))
        return '  '.join(out)

    hdr = line(headers)
    print(f"  {hdr}")
    print(f"  {'─' * len(hdr)}")
    for row in rows:
        print(f"  {line(row)}")

# Columns shown by 'list' for each collection: (header, field, align)
LIST_COLUMNS = {
    'fund': [('ID', 'id', 'r'), ('Date', 'date', 'l'), ('VR No', 'voucher_no', 'l'),
             ('A/C Head', 'account_head', 'l'), ('A/C Name', 'account_name', 'l'),
             ('Description', 'description', 'l'), ('Method', 'method', 'l'),
             ('Debit', 'debit', 'r'), ('Credit', 'credit', 'r'), ('Transfer', 'transfer', 'l')],
    'income': [('ID', 'id', 'r'), ('Date', 'date', 'l'), ('VR No', 'voucher_no', 'l'),
               ('Invoice', 'invoice_no', 'l'), ('A/C Head', 'account_head', 'l'),
               ('Class', 'account_name', 'l'), ('Name', 'name', 'l'),
               ('Fee', 'fee_type', 'l'), ('Method', 'method', 'l'), ('Amount', 'amount', 'r')],
    'expense': [('ID', 'id', 'r'), ('Date', 'date', 'l'), ('VR No', 'voucher_no', 'l'),
                ('A/C Head', 'account_head', 'l'), ('A/C Class', 'account_name', 'l'),
                ('Description', 'description', 'l'), ('Method', 'method', 'l'),
                ('Amount', 'amount', 'r')],
    'customers': [('ID', 'id', 'r'), ('Date', 'date', 'l'), ('Customer', 'custom_id', 'l'),
                  ('A/C Head', 'account_head', 'l'), ('Name', 'display_name', 'l')],
    'rules': [('ID', 'id', 'r'), ('Date', 'date', 'l'), ('A/C Head', 'account_head', 'l'),
              ('A/C Class', 'account_class', 'l'), ('Registration', 'registration_fee', 'r'),
              ('Services', 'services_fee', 'r'), ('Promotion', 'promotion_fee', 'r')],
}

MONEY = {'debit', 'credit', 'amount', 'registration_fee', 'services_fee', 'promotion_fee'}

def _list_key(c):
    if c in ('customers', 'rules', 'income'):
        return c
    return 'fund' if Book(c).is_fund else 'expense'

def _cell(entry, name):
    v = getattr(entry, name, '')
    if name in MONEY:
        return fmt_amount(v)
    if name == 'date':
        return format_display_date(v)
    return '' if v is None else str(v)

def _show(c, entries):
    cols = LIST_COLUMNS[_list_key(c)]
    table([h for h, _, _ in cols],
          [[_cell(e, f) for _, f, _ in cols] for e in entries],
          ''.join(a for _, _, a in cols))

# ─── CLI Shell ───────────────────────────────────────────────────

class SchoolBooksCLI(cmd.Cmd):
    intro = None  # We print our own banner
    prompt = 'Books> '

    def __init__(self):
        super().__init__()
        self.db_path = None

    def set_books(self, path, create=False):
        """Open a books.db file."""
        if not _check_workspace(path):
            return False
        if not create and not os.path.exists(path):
            print(f"  File not found: {path}")
            return False
        try:
            models.init_db(path)
        except PersistenceFailure as e:
            print(f"  Error: {e}")
            return False
        self.db_path = path
        name = models.get_meta('school_name', os.path.basename(path))
        self.prompt = f'Books/{name}> '
        print(f"  Opened: {name} ({path})")
        return True

    def _require_books(self):
        """Check that a books.db is open."""
        if not self.db_path:
            print("  No books open. Use: open <path/to/books.db>")
            print("  Or create new books: new <path/to/books.db> [\"School Name\"]")
            return False
        return True

    def _collection(self, word):
        try:
            return collection_name(word)
        except ValueError:
            print(f"  Unknown book: '{word}'")
            print("  Books: bank, cash, income, office, salary, kitchen, customers, rules")
            return None

    # ─── help ────────────────────────────────────────────────────

    def do_help(self, arg):
        """Show available commands."""
        if arg:
            super().do_help(arg)
            return
        print("""
  SchoolBooks CLI — Commands
  ══════════════════════════
  Books: bank, cash, income, office, salary, kitchen (plus customers, rules).
  Fields are given as name=value, e.g. account_head=Boarder "name=Ma Ma".

  open <path>                      Open books
  new <path> ["School Name"]       Create new books
  close                            Close the books
  info                             School name and record counts
  list <book> [field=value ...]    List entries, newest first (fy="FY 25-26")
  add <book> field=value ...       Add an entry (voucher number is assigned)
  edit <book> <id> field=value ... Change an entry
  delete <book> <id>               Delete an entry
  voucher <book> [date]            Next voucher number
  fee <head> <class> <fee type>    Fee from the rules table
  dashboard [FY]                   Balances, transfers, income and students
  daily [since]                    Daily balances
  export <book> <file.csv|.xlsx> [FY]
  import <book> <file.csv|.xlsx>
  report <file.xlsx> [fy=FY] [book=bank] [from=date] [to=date]
  rules [FY]                       Fee schedule
  customers [FY]                   Customer register
  quit
""")

    # ─── open / new / close / info ───────────────────────────────

    def do_open(self, arg):
        """Open a books.db file. Usage: open <path/to/books.db>"""
        arg = arg.strip().strip('"').strip("'")
        if not arg:
            print("  Usage: open <path/to/books.db>")
            return
        path = os.path.expanduser(arg)
        if os.path.isdir(path):
            path = os.path.join(path, 'books.db')
        self.set_books(path)

    def do_new(self, arg):
        """Create new books. Usage: new <path/to/books.db> ["School Name"]"""
        parts = _split_args(arg)
        if not parts:
            print('  Usage: new <path/to/books.db> ["School Name"]')
            return
        path = os.path.expanduser(parts[0])
        if os.path.isdir(path):
            path = os.path.join(path, 'books.db')
        if not _check_workspace(path):
            return
        if os.path.exists(path):
            print(f"  Books already exist: {path}")
            print(f"  Use: open {path}")
            return
        name = parts[1] if len(parts) > 1 else 'My School'
        models.create_books(path, name)
        self.set_books(path)

    def do_close(self, arg):
        """Close the current books."""
        models.set_db_path(None)
        self.db_path = None
        self.prompt = 'Books> '
        print("  Books closed.")

    def do_info(self, arg):
        """Show school name and record counts."""
        if not self._require_books():
            return
        print(f"  School:   {models.get_meta('school_name', '(unnamed)')}")
        print(f"  File:     {self.db_path}")
        print(f"  Size:     {os.path.getsize(self.db_path):,} bytes")
        print(f"  Today:    {format_display_date(date.today())} ({fiscal_year_of(date.today())})")
        for c in models.COLLECTIONS:
            print(f"  {c.capitalize():<10}{models.count_records(c):,}")

    # ─── list / add / edit / delete ──────────────────────────────

    def do_list(self, arg):
        """List entries. Usage: list <book> [field=value ...]
        Example: list income fy="FY 25-26" account_head=Boarder"""
        if not self._require_books():
            return
        parts = _split_args(arg)
        if not parts:
            print("  Usage: list <book> [field=value ...]")
            return
        c = self._collection(parts[0])
        if not c:
            return
        filters = _pairs(parts[1:])
        if filters is None:
            return
        entries = filter_entries(models.list_records(c), filters)
        _show(c, sort_newest_first(entries))
        print(f"  {len(entries)} entries")

    def _save(self, c, form, original=None):
        if c == 'customers':
            return enrich_customer(form, models.list_records('customers'), original=original)
        if c == 'rules':
            return enrich_rule(form, original=original)
        rules = models.list_records('rules') if c == 'income' else None
        return enrich(c, form, existing=models.list_records(c), rules=rules, original=original)

    def do_add(self, arg):
        """Add an entry. Usage: add <book> field=value ...
        Example: add income date=2025-05-10 account_head=Boarder account_name="G _3"
                 "name=Ma Ma" gender=Female fee_type=Registration method=Cash"""
        if not self._require_books():
            return
        parts = _split_args(arg)
        if len(parts) < 2:
            print("  Usage: add <book> field=value ...")
            return
        c = self._collection(parts[0])
        form = _pairs(parts[1:]) if c else None
        if form is None:
            return
        try:
            record = self._save(c, form)
            record.id = models.insert(c, record)
        except ValidationError as e:
            print("  Not saved:")
            for name, why in e.fields.items():
                print(f"    {name}: {why}")
            return
        except PersistenceFailure as e:
            print(f"  Error: {e}")
            return
        ref = getattr(record, 'voucher_no', '') or getattr(record, 'custom_id', '')
        print(f"  ✓ Saved #{record.id} {ref} ({record.financial_year})")
        if getattr(record, 'invoice_no', ''):
            print(f"    Invoice: {record.invoice_no}  Amount: {fmt_amount(record.amount)}")

    def do_edit(self, arg):
        """Change an entry. Usage: edit <book> <id> field=value ..."""
        if not self._require_books():
            return
        parts = _split_args(arg)
        if len(parts) < 3 or not parts[1].isdigit():
            print("  Usage: edit <book> <id> field=value ...")
            return
        c = self._collection(parts[0])
        if not c:
            return
        changes = _pairs(parts[2:])
        if changes is None:
            return
        original = models.get_record(c, int(parts[1]))
        if original is None:
            print(f"  No {c} entry #{parts[1]}")
            return
        form = original.to_record()
        form.update(changes)
        try:
            record = self._save(c, form, original=original)
            models.update(c, record.id, record)
        except ValidationError as e:
            print("  Not saved:")
            for name, why in e.fields.items():
                print(f"    {name}: {why}")
            return
        except PersistenceFailure as e:
            print(f"  Error: {e}")
            return
        print(f"  ✓ Updated #{record.id}")

    def do_delete(self, arg):
        """Delete an entry. Usage: delete <book> <id>"""
        if not self._require_books():
            return
        parts = _split_args(arg)
        if len(parts) != 2 or not parts[1].isdigit():
            print("  Usage: delete <book> <id>")
            return
        c = self._collection(parts[0])
        if not c:
            return
        try:
            models.delete(c, int(parts[1]))
        except PersistenceFailure as e:
            print(f"  Error: {e}")
            return
        print(f"  ✓ Deleted {c} #{parts[1]}")

    # ─── derived values ──────────────────────────────────────────

    def do_voucher(self, arg):
        """Next voucher number. Usage: voucher <book> [date]"""
        if not self._require_books():
            return
        parts = _split_args(arg)
        if not parts:
            print("  Usage: voucher <book> [date]")
            return
        try:
            book = Book.parse(parts[0])
            when = parts[1] if len(parts) > 1 else date.today()
            print(f"  {next_voucher_no(book, when, models.list_records(book))}")
        except (ValueError, LedgerError) as e:
            print(f"  Error: {e}")

    def do_fee(self, arg):
        """Fee from the rules table. Usage: fee <head> <class> <fee type>
        Example: fee Boarder "G _3" Registration"""
        if not self._require_books():
            return
        parts = _split_args(arg)
        if len(parts) != 3:
            print('  Usage: fee <head> <class> <fee type>')
            return
        fee = resolve_fee(models.list_records('rules'), *parts)
        if fee is None:
            print("  No rule (enter the amount by hand).")
        else:
            print(f"  {fmt_amount(fee)}")

    def do_dashboard(self, arg):
        """Balances, transfers, income and students. Usage: dashboard [FY]"""
        if not self._require_books():
            return
        fy = arg.strip().strip('"') or fiscal_year_of(date.today())
        r = aggregate(models.snapshot(), fy=fy)
        if not r.fy:
            print(f"  Not a financial year: '{arg.strip()}'. Example: dashboard \"FY 25-26\"")
            return
        print(f"\n  {models.get_meta('school_name', 'SchoolBooks')} — {r.fy}\n")
        methods = list(r.method_totals)
        table(['Book'] + methods + ['Total'],
              [[b.label] + [fmt_amount(r.books[b.value].get(m, 0)) for m in methods]
               + [fmt_amount(sum(r.books[b.value].values()))] for b in Book],
              'l' + 'r' * (len(methods) + 1))
        print(f"  Grand total: {fmt_amount(r.grand_total)}\n")
        table(['Transfers left'] + [m.value for m in CHANNELS],
              [[b.label] + [fmt_amount(r.transfers[b.value][m.value]) for m in CHANNELS]
               for b in EXPENSE_BOOKS], 'lrrr')
        print()
        print(f"  Income:   {fmt_amount(r.income_total)}")
        print(f"  Expenses: {fmt_amount(r.expense_total)}")
        print(f"  Net:      {fmt_amount(r.net_income)}\n")
        table(['Class', 'Male', 'Female'],
              [[g, r.student_counts[g]['male'], r.student_counts[g]['female']] for g in GRADES
               if r.student_counts[g]['male'] or r.student_counts[g]['female']], 'lrr')
        t = r.student_totals
        print(f"  Students: {t['total']} ({t['male']} male, {t['female']} female)")
        if r.skipped:
            print(f"  ({r.skipped} unreadable entries skipped)")

    def do_daily(self, arg):
        """Daily balances. Usage: daily [since]"""
        if not self._require_books():
            return
        days = daily_balances(models.snapshot(), since=arg.strip() or None)
        table(['Date'] + [b.label for b in Book] + ['Total'],
              [[format_display_date(d['date'])] + [fmt_amount(d[b.value]['balance']) for b in Book]
               + [fmt_amount(d['total_balance'])] for d in days],
              'l' + 'r' * (len(Book) + 1))
        s = balance_summary(days)
        print(f"  {s['total_days']} days, average {fmt_amount(s['avg_daily_balance'])}, "
              f"high {fmt_amount(s['highest_balance'])}, low {fmt_amount(s['lowest_balance'])}")

    # ─── import / export ─────────────────────────────────────────

    def do_export(self, arg):
        """Export a book. Usage: export <book> <file.csv|file.xlsx> [FY]"""
        if not self._require_books():
            return
        parts = _split_args(arg)
        if len(parts) < 2:
            print("  Usage: export <book> <file.csv|file.xlsx> [FY]")
            return
        c = self._collection(parts[0])
        path = os.path.expanduser(parts[1])
        if not c or not _check_workspace(path):
            return
        entries = models.list_records(c)
        if len(parts) > 2:
            entries = filter_entries(entries, {'fy': parts[2]}, exact=('financial_year',))
        if path.lower().endswith('.xlsx'):
            write_xlsx(c, entries, path)
        else:
            with open(path, 'w', newline='', encoding='utf-8') as f:
                f.write(write_csv(c, entries))
        print(f"  ✓ Exported {len(entries)} entries to {path}")

    def do_report(self, arg):
        """Report workbook. Usage: report <file.xlsx> [fy=FY] [book=bank] [from=date] [to=date]"""
        if not self._require_books():
            return
        parts = _split_args(arg)
        if not parts or not parts[0].lower().endswith('.xlsx'):
            print('  Usage: report <file.xlsx> [fy="FY 25-26"] [book=bank] [from=date] [to=date]')
            return
        opts = _pairs(parts[1:])
        if opts is None:
            return
        path = os.path.expanduser(parts[0])
        if not _check_workspace(path):
            return
        book = opts.get('book', 'all')
        if book in ('', 'all'):
            book = None
        else:
            try:
                book = Book.parse(book)
            except ValueError as e:
                print(f"  {e}")
                return
        fy = opts.get('fy', '')
        snapshot = models.snapshot()
        r = aggregate(snapshot, fy=fy or None, date_from=opts.get('from') or None,
                      date_to=opts.get('to') or None)
        if fy and not r.fy:
            print(f"  Not a financial year: '{fy}'. Example: fy=\"FY 25-26\"")
            return
        write_report_xlsx(r, snapshot, book=book, school=models.get_meta('school_name', ''),
                          target=path)
        print(f"  ✓ Report for {r.fy or 'all years'} saved to {path}")

    def do_import(self, arg):
        """Import a book. Usage: import <book> <file.csv|file.xlsx>"""
        if not self._require_books():
            return
        parts = _split_args(arg)
        if len(parts) != 2:
            print("  Usage: import <book> <file.csv|file.xlsx>")
            return
        c = self._collection(parts[0])
        path = os.path.expanduser(parts[1])
        if not c or not _check_workspace(path):
            return
        if not os.path.exists(path):
            print(f"  File not found: {path}")
            return
        try:
            result = import_rows(c, read_rows(path))
            models.bulk_insert(c, result.entries)
        except ImportFormatError as e:
            print("  File format doesn't match:")
            for p in e.problems:
                print(f"    {p}")
            print(f"  Expected columns: {', '.join(e.expected)}")
            return
        except LedgerError as e:
            print(f"  Error: {e}")
            return
        print(f"  ✓ {result.message}")
        for err in result.errors[:20]:
            print(f"    {err}")
        if len(result.errors) > 20:
            print(f"    ... and {len(result.errors) - 20} more")

    # ─── rules / customers ───────────────────────────────────────

    def do_rules(self, arg):
        """Fee schedule. Usage: rules [FY]"""
        self._list_fy('rules', arg)

    def do_customers(self, arg):
        """Customer register. Usage: customers [FY]"""
        self._list_fy('customers', arg)

    def _list_fy(self, c, arg):
        if not self._require_books():
            return
        entries = models.list_records(c)
        fy = arg.strip().strip('"')
        if fy:
            entries = filter_entries(entries, {'fy': fy}, exact=('financial_year',))
        if not entries:
            print(f"  No {c} found." + (f" ({fy})" if fy else ''))
            print(f"  Add one: add {c} field=value ...")
            return
        _show(c, entries)

    # ─── quit ────────────────────────────────────────────────────

    def do_quit(self, arg):
        """Exit SchoolBooks CLI."""
        print("  Bye.")
        return True

    do_exit = do_quit
    do_EOF = do_quit  # Ctrl+D

    def default(self, line):
        """Handle unknown commands."""
        cmd_word = line.split()[0] if line.split() else line
        print(f"  Unknown command: '{cmd_word}'")
        print("  Type 'help' for available commands.")

    def emptyline(self):
        """Do nothing on empty input."""
        pass


# ─── Argument parsing helpers ────────────────────────────────────

def _split_args(s):
    """Split command arguments, respecting quoted strings."""
    try:
        return shlex.split(s)
    except ValueError:
        return s.split()

def _pairs(parts):
    """name=value words to a dict. Prints usage and returns None on a bad word."""
    out = {}
    for p in parts:
        if '=' not in p:
            print(f"  Expected field=value, got '{p}'")
            return None
        k, v = p.split('=', 1)
        out[k.strip()] = v.strip()
    return out


# ─── Main ────────────────────────────────────────────────────────

def main():
    cli = SchoolBooksCLI()

    args = sys.argv[1:]

    if not args:
        env_db = os.environ.get('SCHOOLBOOKS_DB', '')
        print("\n  SchoolBooks CLI")
        print("  Type 'help' for commands, 'open <path>' to load books.\n")
        if env_db and os.path.exists(env_db):
            cli.set_books(env_db)
        cli.cmdloop()
        return

    db_path = os.path.expanduser(args[0])
    if os.path.isdir(db_path):
        db_path = os.path.join(db_path, 'books.db')

    if not cli.set_books(db_path):
        sys.exit(1)

    if len(args) > 1:
        # One-shot mode: run command and exit
        command = ' '.join(shlex.quote(a) for a in args[1:])
        cli.onecmd(command)
    else:
        print("  Type 'help' for commands.\n")
        cli.cmdloop()


if __name__ == '__main__':
    main()
