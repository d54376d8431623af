import os
import sys
from decimal import Decimal

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from umzug import create_app, db
from umzug.models import CompanySettings, ServiceCategory


def setup_app():
    app = create_app('testing')
    with app.app_context():
        db.session.add(ServiceCategory(code='umzug', name='Umzug', pricing_model='fixed',
                                       base_price=Decimal('1200')))
        db.session.commit()
    return app


def test_settings_defaults_and_update():
    app = setup_app()
    with app.app_context():
        client = app.test_client()
        settings = client.get('/admin/settings').get_json()['settings']
        assert settings['company_name'] == 'Umzug UNIT GmbH'
        assert Decimal(settings['vat_rate']) == Decimal('7.7')

        resp = client.post('/admin/settings', json={'vat_rate': '8.1', 'phone': ' 032 000 00 00 '})
        assert resp.status_code == 200
        stored = CompanySettings.current()
        assert stored.vat_rate == Decimal('8.1')
        assert stored.phone == '032 000 00 00'

        doc = client.post('/documents/', json={
            'customer': {'last_name': 'Muster'}, 'categories': ['umzug']}).get_json()['document']
        assert Decimal(doc['tax_amount']) == Decimal('97.20')


def test_settings_validation():
    app = setup_app()
    client = app.test_client()
    assert client.post('/admin/settings', json={'vat_rate': '120'}).status_code == 400
    assert client.post('/admin/settings', json={'vat_rate': 'viel'}).status_code == 400
    assert client.post('/admin/settings', json={'estimated_hours': '0'}).status_code == 400


def test_admin_secret_guard():
    app = setup_app()
    app.config['ADMIN_SECRET'] = 's3cret'
    client = app.test_client()
    assert client.get('/admin/settings').status_code == 403
    assert client.get('/documents/').status_code == 403
    assert client.get('/catalog/categories').status_code == 403
    assert client.get('/customers/').status_code == 403
    assert client.get('/documents/', headers={'X-Admin-Secret': 's3cret'}).status_code == 200
    # the customer-facing side stays open
    assert client.get('/public/catalog').status_code == 200


def test_stats():
    app = setup_app()
    with app.app_context():
        client = app.test_client()
        for name in ('Muster', 'Keller'):
            client.post('/documents/', json={
                'customer': {'last_name': name}, 'categories': ['umzug']})
        doc_id = client.get('/documents/').get_json()['documents'][0]['id']
        client.post(f'/documents/{doc_id}/status', json={'status': 'accepted'})

        stats = client.get('/admin/stats').get_json()
        assert stats['total_offers'] == 2
        assert stats['accepted_offers'] == 1
        assert stats['total_customers'] == 2
        assert Decimal(stats['monthly_revenue']) == Decimal('1292.40')
