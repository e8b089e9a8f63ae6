"""
SchoolBooks — local web API for the school's books.
Bank, Cash, Income, Office, Salary and Kitchen books, the customer
register and the fee rules, served as JSON for the browser screens.
"""
import os
from datetime import date
from flask import Flask, Response, jsonify, request
import models
import config
from balances import aggregate, balance_summary, daily_balances
from books import (ACADEMIC_HEADS, BOOKS, Book, FeeType, Method, TransferTag, book_spec)
from enrich import enrich, enrich_customer, enrich_rule
from errors import ImportFormatError, LedgerError, PersistenceFailure, ValidationError
from exchange import (collection_name, import_rows, read_rows, sample_csv, write_csv,
                      write_report_xlsx, write_xlsx)
from fees import resolve_fee
from filters import filter_date_range, filter_entries, sort_newest_first
from fiscal import fiscal_year_bounds, fiscal_year_of, fiscal_year_options
from vouchers import next_voucher_no

app = Flask(__name__)
app.secret_key = 'schoolbooks-local-use-only'

XLSX_MIME = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

# ─── Helpers ──────────────────────────────────────────────────────

def _no_books():
    if not models.get_db_path():
        return jsonify({'ok': False, 'error': 'No books open'}), 409
    return None

def _collection_or_404(name):
    try:
        return collection_name(name)
    except ValueError:
        return None

def as_dict(model):
    """Record for the screens: stored fields plus the derived FY."""
    d = model.to_record()
    d['financial_year'] = model.financial_year
    if hasattr(model, 'display_name'):
        d['display_name'] = model.display_name
    return d

def _error(e, status=400):
    body = {'ok': False, 'error': str(e)}
    if isinstance(e, ValidationError):
        body['fields'] = e.fields
    if isinstance(e, ImportFormatError):
        body['problems'] = e.problems
        body['expected'] = e.expected
    return jsonify(body), status

def _enrich_for(collection, form, original=None):
    if collection == 'customers':
        return enrich_customer(form, models.list_records('customers'), original=original)
    if collection == 'rules':
        return enrich_rule(form, original=original)
    rules = models.list_records('rules') if collection == Book.INCOME.value else None
    return enrich(collection, form, existing=models.list_records(collection),
                  rules=rules, original=original)

def _query_entries(collection):
    """Records of a collection narrowed by the query string."""
    args = request.args.to_dict()
    date_from = args.pop('from', '')
    date_to = args.pop('to', '')
    entries = models.list_records(collection)
    if collection in ('customers', 'rules'):
        exact = ('financial_year',)
    else:
        exact = book_spec(collection).exact_filters
    entries = filter_entries(entries, args, exact=exact)
    entries = filter_date_range(entries, date_from, date_to)
    return sort_newest_first(entries)

# ─── Books ────────────────────────────────────────────────────────

@app.route('/api/info')
def api_info():
    if not models.get_db_path():
        return jsonify({'ok': True, 'open': False})
    counts = {c: models.count_records(c) for c in models.COLLECTIONS}
    return jsonify({'ok': True, 'open': True, 'path': models.get_db_path(),
                    'school_name': models.get_meta('school_name', 'My School'),
                    'counts': counts})

@app.route('/api/open', methods=['POST'])
def api_open():
    data = request.get_json(silent=True) or {}
    path = (data.get('path') or '').strip()
    if not path:
        return jsonify({'ok': False, 'error': 'path is required'}), 400
    try:
        models.init_db(path)
    except PersistenceFailure as e:
        return _error(e, 500)
    cfg = config.load_config()
    cfg['last_opened'] = os.path.abspath(path)
    config.save_config(cfg)
    return jsonify({'ok': True, 'path': path})

@app.route('/api/options')
def api_options():
    """Dropdown contents for every form."""
    return jsonify({
        'ok': True,
        'books': {b.value: {'label': b.label, 'heads': BOOKS[b].heads} for b in Book},
        'academic_heads': ACADEMIC_HEADS,
        'methods': [m.value for m in Method],
        'transfers': [t.value for t in TransferTag if t is not TransferTag.UNRECOGNIZED],
        'fee_types': [f.value for f in FeeType],
        'financial_years': fiscal_year_options(date.today()),
    })

@app.route('/api/<collection>', methods=['GET'])
def api_list(collection):
    c = _collection_or_404(collection)
    if c is None:
        return jsonify({'ok': False, 'error': f'Unknown collection: {collection}'}), 404
    blocked = _no_books()
    if blocked:
        return blocked
    entries = _query_entries(c)
    return jsonify({'ok': True, 'count': len(entries), 'entries': [as_dict(e) for e in entries]})

@app.route('/api/<collection>', methods=['POST'])
def api_create(collection):
    c = _collection_or_404(collection)
    if c is None:
        return jsonify({'ok': False, 'error': f'Unknown collection: {collection}'}), 404
    blocked = _no_books()
    if blocked:
        return blocked
    form = request.get_json(silent=True) or request.form.to_dict()
    try:
        record = _enrich_for(c, form)
        record.id = models.insert(c, record)
    except ValidationError as e:
        return _error(e)
    except PersistenceFailure as e:
        return _error(e, 500)
    return jsonify({'ok': True, 'entry': as_dict(record)}), 201

@app.route('/api/<collection>/<int:record_id>', methods=['PUT'])
def api_update(collection, record_id):
    c = _collection_or_404(collection)
    if c is None:
        return jsonify({'ok': False, 'error': f'Unknown collection: {collection}'}), 404
    blocked = _no_books()
    if blocked:
        return blocked
    original = models.get_record(c, record_id)
    if original is None:
        return jsonify({'ok': False, 'error': f'No {c} record with id {record_id}'}), 404
    form = request.get_json(silent=True) or request.form.to_dict()
    try:
        record = _enrich_for(c, form, original=original)
        models.update(c, record.id, record)
    except ValidationError as e:
        return _error(e)
    except PersistenceFailure as e:
        return _error(e, 500)
    return jsonify({'ok': True, 'entry': as_dict(record)})

@app.route('/api/<collection>/<int:record_id>', methods=['DELETE'])
def api_delete(collection, record_id):
    c = _collection_or_404(collection)
    if c is None:
        return jsonify({'ok': False, 'error': f'Unknown collection: {collection}'}), 404
    blocked = _no_books()
    if blocked:
        return blocked
    try:
        models.delete(c, record_id)
    except PersistenceFailure as e:
        return _error(e, 404)
    return jsonify({'ok': True})

# ─── Derived values ───────────────────────────────────────────────

@app.route('/api/dashboard')
def api_dashboard():
    blocked = _no_books()
    if blocked:
        return blocked
    fy = request.args.get('fy', '')
    try:
        if fy:
            fiscal_year_bounds(fy)
    except ValueError as e:
        return _error(e)
    report = aggregate(models.snapshot(), fy=fy or None,
                       date_from=request.args.get('from') or None,
                       date_to=request.args.get('to') or None)
    return jsonify({'ok': True, 'report': report.as_dict()})

@app.route('/api/daily-balances')
def api_daily_balances():
    blocked = _no_books()
    if blocked:
        return blocked
    days = daily_balances(models.snapshot(), since=request.args.get('since') or None)
    return jsonify({'ok': True, 'days': days, 'summary': balance_summary(days)})

@app.route('/api/next-voucher/<book>')
def api_next_voucher(book):
    blocked = _no_books()
    if blocked:
        return blocked
    try:
        b = Book.parse(book)
    except ValueError as e:
        return _error(e, 404)
    when = request.args.get('date') or date.today().isoformat()
    try:
        vr = next_voucher_no(b, when, models.list_records(b))
    except ValidationError as e:
        return _error(e)
    return jsonify({'ok': True, 'voucher_no': vr, 'financial_year': fiscal_year_of(when)})

@app.route('/api/fee')
def api_fee():
    blocked = _no_books()
    if blocked:
        return blocked
    fee = resolve_fee(models.list_records('rules'), request.args.get('head', ''),
                      request.args.get('class', ''), request.args.get('fee', ''))
    return jsonify({'ok': True, 'fee': fee})

# ─── Import / Export ──────────────────────────────────────────────

@app.route('/export/report.xlsx')
def export_report():
    blocked = _no_books()
    if blocked:
        return blocked
    fy = request.args.get('fy', '')
    book = request.args.get('book', 'all')
    try:
        if fy:
            fiscal_year_bounds(fy)
        book = None if book in ('', 'all') else Book.parse(book)
    except ValueError as e:
        return _error(e)
    snapshot = models.snapshot()
    report = aggregate(snapshot, fy=fy or None,
                       date_from=request.args.get('from') or None,
                       date_to=request.args.get('to') or None)
    data = write_report_xlsx(report, snapshot, book=book,
                             school=models.get_meta('school_name', ''))
    return Response(data, mimetype=XLSX_MIME,
                    headers={'Content-Disposition': 'attachment; filename=report.xlsx'})

@app.route('/export/<collection>.<fmt>')
def export_collection(collection, fmt):
    c = _collection_or_404(collection)
    if c is None or fmt not in ('csv', 'xlsx'):
        return jsonify({'ok': False, 'error': 'Unknown export'}), 404
    blocked = _no_books()
    if blocked:
        return blocked
    entries = _query_entries(c)
    if fmt == 'csv':
        return Response(write_csv(c, entries), mimetype='text/csv',
                        headers={'Content-Disposition': f'attachment; filename={c}.csv'})
    return Response(write_xlsx(c, entries), mimetype=XLSX_MIME,
                    headers={'Content-Disposition': f'attachment; filename={c}.xlsx'})

@app.route('/import/<collection>', methods=['POST'])
def import_collection(collection):
    c = _collection_or_404(collection)
    if c is None:
        return jsonify({'ok': False, 'error': f'Unknown collection: {collection}'}), 404
    blocked = _no_books()
    if blocked:
        return blocked
    f = request.files.get('file')
    if not f:
        return jsonify({'ok': False, 'error': 'No file selected'}), 400
    try:
        rows = read_rows(f, f.filename)
        result = import_rows(c, rows)
        models.bulk_insert(c, result.entries)
    except ImportFormatError as e:
        return _error(e)
    except PersistenceFailure as e:
        return _error(e, 500)
    except LedgerError as e:
        return _error(e)
    return jsonify({'ok': True, 'message': result.message, 'total_rows': result.total_rows,
                    'imported': result.imported, 'skipped': result.skipped,
                    'errors': result.errors})

@app.route('/sample/<collection>.csv')
def sample(collection):
    c = _collection_or_404(collection)
    if c is None:
        return jsonify({'ok': False, 'error': f'Unknown collection: {collection}'}), 404
    return Response(sample_csv(c), mimetype='text/csv',
                    headers={'Content-Disposition': f'attachment; filename={c}_sample.csv'})

# ─── Entry Point ────────────────────────────────────────────────────

def main():
    import webbrowser

    path = config.resolve_db_path()
    models.init_db(path)
    school = models.get_meta('school_name', config.load_config().get('school_name', 'My School'))
    print(f"\n  SchoolBooks — {school}")
    print(f"  File: {path}")
    print(f"  Open http://localhost:5000 in your browser\n")

    webbrowser.open('http://localhost:5000')

    app.run(debug=False, port=5000)

if __name__ == '__main__':
    main()
