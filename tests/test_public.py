import os
import sys
from decimal import Decimal

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from umzug import create_app, db
from umzug.models import AdditionalService, Customer, Document, ServiceCategory

SIGNATURE = 'data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk'


def setup_app():
    app = create_app('testing')
    with app.app_context():
        db.session.add_all([
            ServiceCategory(code='umzug', name='Umzug', pricing_model='fixed',
                            base_price=Decimal('1200')),
            ServiceCategory(code='lager', name='Lagerung', pricing_model='fixed',
                            base_price=Decimal('90'), active=False),
            AdditionalService(name='Entsorgung', price=Decimal('150')),
        ])
        db.session.commit()
    return app


def request_quote(client, **extra):
    payload = {
        'customer': {'salutation': 'Herr', 'first_name': 'Marco', 'last_name': 'Bernasconi',
                     'email': 'marco@example.ch', 'phone': '079 000 00 00'},
        'categories': ['umzug'],
        'workers': 3,
        'moving_date': '2026-11-15',
        'to_city': 'Biel',
    }
    payload.update(extra)
    return client.post('/public/quote-request', json=payload)


def test_catalog_lists_only_active_entries():
    app = setup_app()
    client = app.test_client()
    data = client.get('/public/catalog').get_json()
    assert [c['code'] for c in data['categories']] == ['umzug']
    assert [s['name'] for s in data['additional_services']] == ['Entsorgung']


def test_quote_request_creates_customer_and_draft():
    app = setup_app()
    with app.app_context():
        client = app.test_client()
        resp = request_quote(client)
        assert resp.status_code == 201
        data = resp.get_json()
        assert data['offer_number'] == '10001'
        assert Decimal(data['total']) == Decimal('1292.40')

        doc = Document.query.filter_by(public_token=data['token']).one()
        assert doc.status == 'draft'
        assert doc.to_city == 'Biel'
        assert doc.moving_date.isoformat() == '2026-11-15'
        assert Customer.query.one().email == 'marco@example.ch'


def test_quote_request_ignores_price_fields():
    app = setup_app()
    with app.app_context():
        client = app.test_client()
        resp = request_quote(client, manual_base_override='1', tax_enabled=False)
        assert Decimal(resp.get_json()['total']) == Decimal('1292.40')


def test_quote_request_requires_email():
    app = setup_app()
    client = app.test_client()
    resp = request_quote(client, customer={'last_name': 'Anonym'})
    assert resp.status_code == 400


def test_offer_page_hides_internal_ids():
    app = setup_app()
    client = app.test_client()
    token = request_quote(client).get_json()['token']
    offer = client.get(f'/public/offers/{token}').get_json()['offer']
    assert offer['document_number'] == '10001'
    assert 'id' not in offer and 'customer_id' not in offer
    assert client.get('/public/offers/doesnotexist').status_code == 404


def test_accept_with_signature_only_once():
    app = setup_app()
    with app.app_context():
        client = app.test_client()
        token = request_quote(client).get_json()['token']
        resp = client.post(f'/public/offers/{token}/respond', json={
            'response': 'accepted',
            'signature': SIGNATURE,
            'location': 'Lyss',
            'date': '19.10.2026',
        })
        assert resp.status_code == 200
        doc = Document.query.filter_by(public_token=token).one()
        assert doc.status == 'accepted'
        assert doc.signature == SIGNATURE
        assert doc.signed_location == 'Lyss'
        assert doc.responded_at is not None

        resp = client.post(f'/public/offers/{token}/respond', json={'response': 'rejected'})
        assert resp.status_code == 409
        db.session.refresh(doc)
        assert doc.status == 'accepted'


def test_reject_does_not_store_signature():
    app = setup_app()
    with app.app_context():
        client = app.test_client()
        token = request_quote(client).get_json()['token']
        resp = client.post(f'/public/offers/{token}/respond', json={
            'response': 'rejected', 'signature': SIGNATURE, 'location': 'Lyss'})
        assert resp.status_code == 200
        doc = Document.query.filter_by(public_token=token).one()
        assert doc.status == 'rejected'
        assert doc.signature is None
        assert doc.signed_location is None


def test_bad_response_and_signature_are_rejected():
    app = setup_app()
    client = app.test_client()
    token = request_quote(client).get_json()['token']
    assert client.post(f'/public/offers/{token}/respond',
                       json={'response': 'maybe'}).status_code == 400
    assert client.post(f'/public/offers/{token}/respond',
                       json={'response': 'accepted',
                             'signature': 'javascript:alert(1)'}).status_code == 400


def test_completed_offer_cannot_be_answered():
    app = setup_app()
    with app.app_context():
        client = app.test_client()
        token = request_quote(client).get_json()['token']
        doc = Document.query.filter_by(public_token=token).one()
        doc.status = 'completed'
        db.session.commit()
        resp = client.post(f'/public/offers/{token}/respond', json={'response': 'accepted'})
        assert resp.status_code == 409


def test_public_print_by_token():
    app = setup_app()
    client = app.test_client()
    token = request_quote(client).get_json()['token']
    resp = client.get(f'/public/documents/{token}/print')
    assert resp.status_code == 200
    assert b'1292.40' in resp.data


def test_malformed_public_payloads_are_rejected():
    app = setup_app()
    client = app.test_client()
    assert request_quote(client, customer='marco@example.ch').status_code == 400
    token = request_quote(client).get_json()['token']
    resp = client.post(f'/public/offers/{token}/respond', json={
        'response': 'accepted', 'signature': {'png': SIGNATURE}})
    assert resp.status_code == 400
    resp = client.post(f'/public/offers/{token}/respond', json={
        'response': 'accepted', 'signature': SIGNATURE, 'location': 3250})
    assert resp.status_code == 200
