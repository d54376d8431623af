# umzug/admin.py
"""Company settings, dashboard figures and the shared admin guard."""

from datetime import date
from decimal import Decimal

from flask import Blueprint, abort, current_app, jsonify, request
from sqlalchemy import func

from umzug import db
from umzug.models import CompanySettings, Customer, Document
from umzug.pricing import round_money, to_cents

bp = Blueprint('admin', __name__)

SETTINGS_TEXT_FIELDS = ('company_name', 'street', 'zip_city', 'phone', 'email')


def check_admin_secret():
    """Reject admin requests without the configured X-Admin-Secret header."""
    secret = current_app.config.get('ADMIN_SECRET')
    if secret and request.headers.get('X-Admin-Secret') != secret:
        abort(403)


@bp.before_request
def before():
    check_admin_secret()


@bp.route('/settings', methods=['GET', 'POST'])
def company_settings():
    settings = CompanySettings.current()
    if request.method == 'POST':
        data = request.get_json(silent=True) or request.form
        for name in SETTINGS_TEXT_FIELDS:
            if name in data:
                setattr(settings, name, (data.get(name) or '').strip())
        if 'vat_rate' in data:
            rate = to_cents(data.get('vat_rate'), 'VAT rate')
            if rate is None or rate < 0 or rate > 100:
                abort(400, description='VAT rate must be between 0 and 100')
            settings.vat_rate = rate
        if 'vat_enabled' in data:
            settings.vat_enabled = str(data.get('vat_enabled')).lower() in ('1', 'true', 'yes', 'on')
        if 'estimated_hours' in data:
            hours = to_cents(data.get('estimated_hours'), 'estimated hours')
            if hours is None or hours <= 0:
                abort(400, description='estimated hours must be positive')
            settings.estimated_hours = hours
        db.session.commit()
    return jsonify(settings=settings.to_dict())


@bp.route('/stats')
def dashboard_stats():
    """Counts for the dashboard and revenue of quotes accepted this month."""
    today = date.today()
    month_start = today.replace(day=1)
    quotes = Document.query.filter_by(document_type='quote')
    revenue = (
        db.session.query(func.coalesce(func.sum(Document.total), 0))
        .filter(
            Document.document_type == 'quote',
            Document.status == 'accepted',
            Document.document_date >= month_start,
        )
        .scalar()
    )
    return jsonify(
        total_offers=quotes.count(),
        accepted_offers=quotes.filter_by(status='accepted').count(),
        total_customers=Customer.query.count(),
        monthly_revenue=round_money(Decimal(str(revenue))),
    )
