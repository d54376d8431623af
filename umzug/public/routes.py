# umzug/public/routes.py

"""Customer facing endpoints: the quote request form and the offer page."""

import logging

from flask import Blueprint, abort, jsonify, render_template, request

from umzug import db
from umzug.mailer import SUBJECTS
from umzug.models import AdditionalService, CompanySettings, Document, ServiceCategory, utcnow
from umzug.documents.utils import create_document

bp = Blueprint('public', __name__)

PUBLIC_FIELDS = (
    'customer', 'categories', 'additional_services', 'workers', 'rooms',
    'trucks', 'to_street', 'to_zip', 'to_city', 'moving_date', 'object_type',
    'notes',
)
SIGNATURE_PREFIX = 'data:image/png;base64,'
MAX_SIGNATURE_LENGTH = 500_000


def _offer_or_404(token):
    doc = Document.query.filter_by(public_token=token, document_type='quote').first()
    if doc is None:
        abort(404)
    return doc


def _public_view(doc):
    data = doc.to_dict()
    # internal references stay internal
    for key in ('id', 'customer_id', 'source_document_id', 'public_token'):
        data.pop(key, None)
    return data


@bp.route('/catalog')
def catalog():
    """Active categories and services for the request form."""
    cats = ServiceCategory.query.filter_by(active=True).order_by(ServiceCategory.display_order).all()
    services = AdditionalService.query.filter_by(active=True).order_by(AdditionalService.display_order).all()
    return jsonify(
        categories=[c.to_dict() for c in cats],
        additional_services=[s.to_dict() for s in services],
    )


@bp.route('/quote-request', methods=['POST'])
def quote_request():
    """
    Self-service form. Creates a customer and a draft quote priced from the
    active catalog. Prices, tax switches and overrides are not accepted from
    the public.
    """
    data = request.get_json(silent=True) or {}
    payload = {k: data[k] for k in PUBLIC_FIELDS if k in data}
    customer = payload.get('customer') or {}
    if not isinstance(customer, dict) or not customer.get('email'):
        abort(400, description='email address required')
    doc = create_document('quote', payload, status='draft')
    logging.info("quote request %s from %s", doc.document_number, customer.get('email'))
    return jsonify(
        offer_number=doc.document_number,
        token=doc.public_token,
        total=doc.total,
    ), 201


@bp.route('/offers/<token>')
def view_offer(token):
    doc = _offer_or_404(token)
    return jsonify(offer=_public_view(doc))


@bp.route('/offers/<token>/respond', methods=['POST'])
def respond(token):
    """Accept (optionally signed) or reject a quote. Only once."""
    doc = _offer_or_404(token)
    if doc.responded:
        return jsonify(success=False, error='already_responded', status=doc.status), 409
    if doc.status not in ('draft', 'sent'):
        return jsonify(success=False, error='not_open', status=doc.status), 409

    data = request.get_json(silent=True) or {}
    response = data.get('response')
    if response not in ('accepted', 'rejected'):
        abort(400, description="response must be 'accepted' or 'rejected'")

    if response == 'accepted':
        signature = data.get('signature')
        if signature:
            if (not isinstance(signature, str)
                    or not signature.startswith(SIGNATURE_PREFIX)
                    or len(signature) > MAX_SIGNATURE_LENGTH):
                abort(400, description='signature must be a PNG data URL')
            doc.signature = signature
        doc.signed_location = str(data.get('location') or '').strip() or None
        doc.signed_date = str(data.get('date') or '').strip() or None

    doc.status = response
    doc.responded_at = utcnow()
    db.session.commit()
    logging.info("offer %s %s by customer", doc.document_number, response)
    return jsonify(success=True, status=doc.status)


@bp.route('/documents/<token>/print')
def print_document(token):
    """Print view linked from customer emails."""
    doc = Document.query.filter_by(public_token=token).first()
    if doc is None:
        abort(404)
    return render_template(
        'documents/print.html',
        document=doc,
        company=CompanySettings.current(),
        label=SUBJECTS.get(doc.document_type, 'Dokument'),
    )
