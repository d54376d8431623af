import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from umzug import create_app, db, sequences
from umzug.exceptions import AllocationConflict, MalformedSeriesState
from umzug.models import Customer, Document
from umzug.numbering import Series


def setup_app():
    app = create_app('testing')
    return app


def add_document(doc_type, number):
    db.session.add(Document(document_type=doc_type, document_number=number))
    db.session.commit()


def test_current_max_orders_numerically():
    app = setup_app()
    with app.app_context():
        assert sequences.current_max(Series.QUOTE) is None
        for number in ('99998', '100000', '99999'):
            add_document('quote', number)
        add_document('invoice', 'R-100500')
        assert sequences.current_max(Series.QUOTE) == '100000'
        assert sequences.current_max(Series.INVOICE) == 'R-100500'
        assert sequences.current_max(Series.RECEIPT) is None


def test_insert_uses_next_number():
    app = setup_app()
    with app.app_context():
        add_document('receipt', 'Q-10041')

        def build(number):
            doc = Document(document_type='receipt', document_number=number)
            db.session.add(doc)
            return doc

        doc = sequences.insert_with_next_number(Series.RECEIPT, build)
        assert doc.document_number == 'Q-10042'


def test_conflict_is_retried_from_fresh_maximum(monkeypatch):
    app = setup_app()
    with app.app_context():
        add_document('quote', '10001')
        real_current_max = sequences.current_max
        reads = []

        def stale_then_real(series):
            reads.append(series)
            # first read misses the row another writer just inserted
            return None if len(reads) == 1 else real_current_max(series)

        monkeypatch.setattr(sequences, 'current_max', stale_then_real)

        def build(number):
            doc = Document(document_type='quote', document_number=number)
            db.session.add(doc)
            return doc

        doc = sequences.insert_with_next_number(Series.QUOTE, build)
        assert doc.document_number == '10002'
        assert len(reads) == 2
        assert Document.query.count() == 2


def test_gives_up_after_bounded_retries(monkeypatch):
    app = setup_app()
    with app.app_context():
        db.session.add(Customer(customer_number='K-10001'))
        db.session.commit()
        monkeypatch.setattr(sequences, 'current_max', lambda series: None)
        calls = []

        def build(number):
            calls.append(number)
            c = Customer(customer_number=number)
            db.session.add(c)
            return c

        with pytest.raises(AllocationConflict):
            sequences.insert_with_next_number(Series.CUSTOMER, build, retries=3)
        assert calls == ['K-10001'] * 3
        assert Customer.query.count() == 1


def test_malformed_stored_number_stops_allocation():
    app = setup_app()
    with app.app_context():
        add_document('invoice', 'R-ABCDE')
        with pytest.raises(MalformedSeriesState):
            sequences.insert_with_next_number(Series.INVOICE, lambda n: None)


def test_malformed_series_surfaces_as_server_error():
    app = setup_app()
    with app.app_context():
        add_document('quote', 'X1')
        client = app.test_client()
        resp = client.post('/documents/', json={
            'manual_base_override': '100',
            'categories': [],
            'line_items': [{'description': 'Transport', 'unit_price': '100'}],
            'customer': {'last_name': 'Muster'},
        })
        assert resp.status_code == 500
        assert resp.get_json()['error'] == 'malformed_series_state'
        assert Document.query.count() == 1
