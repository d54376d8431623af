# umzug/documents/routes.py

from flask import Blueprint, abort, jsonify, render_template, request
from sqlalchemy import or_

from umzug import db
from umzug.admin import check_admin_secret
from umzug.mailer import SUBJECTS, send_document_email
from umzug.models import DOCUMENT_STATUSES, DOCUMENT_TYPES, CompanySettings, Document, utcnow
from umzug.pricing import price
from umzug.documents.utils import (
    apply_details,
    apply_pricing,
    build_selection,
    convert_document,
    create_document,
)

bp = Blueprint('documents', __name__)


@bp.before_request
def before():
    check_admin_secret()


@bp.route('/')
def list_documents():
    query = Document.query
    doc_type = request.args.get('type')
    if doc_type:
        query = query.filter_by(document_type=doc_type)
    status = request.args.get('status')
    if status:
        query = query.filter_by(status=status)
    q = request.args.get('q', '').strip()
    if q:
        term = f"%{q}%"
        query = query.filter(or_(
            Document.document_number.ilike(term),
            Document.last_name.ilike(term),
            Document.first_name.ilike(term),
        ))
    docs = query.order_by(Document.id.desc()).all()
    return jsonify(documents=[d.to_dict(with_items=False) for d in docs])


@bp.route('/<int:document_id>')
def view_document(document_id):
    doc = Document.query.get_or_404(document_id)
    return jsonify(document=doc.to_dict())


@bp.route('/price', methods=['POST'])
def price_preview():
    """
    Live total while the form is being filled in; nothing is stored.
    Same payload as create/edit.
    """
    data = request.get_json(silent=True) or {}
    doc = None
    if data.get('document_id'):
        doc = Document.query.get_or_404(int(data['document_id']))
    selection = build_selection(data, CompanySettings.current(), doc)
    result = price(selection.pricing_request())
    return jsonify(pricing=result.as_dict())


@bp.route('/', methods=['POST'])
def create():
    data = request.get_json(silent=True) or {}
    doc_type = data.get('document_type', 'quote')
    if doc_type not in DOCUMENT_TYPES:
        abort(400, description=f"unknown document type {doc_type!r}")
    default_status = 'draft' if doc_type == 'quote' else 'sent'
    status = data.get('status', default_status)
    if status not in DOCUMENT_STATUSES:
        abort(400, description=f"unknown status {status!r}")
    doc = create_document(doc_type, data, status=status)
    return jsonify(document=doc.to_dict()), 201


@bp.route('/<int:document_id>/edit', methods=['POST'])
def edit_document(document_id):
    """Update details and re-price from the current catalog.

    Quotes the customer has accepted or rejected keep the prices they
    answered to.
    """
    doc = Document.query.get_or_404(document_id)
    if doc.responded:
        return jsonify(
            success=False,
            error='already_responded',
            message=f"{doc.document_number} was {doc.status} by the customer and can no longer be changed",
        ), 409
    data = request.get_json(silent=True) or {}
    selection = build_selection(data, CompanySettings.current(), doc)
    apply_pricing(doc, selection)
    apply_details(doc, data)
    db.session.commit()
    return jsonify(document=doc.to_dict())


@bp.route('/<int:document_id>/status', methods=['POST'])
def update_status(document_id):
    doc = Document.query.get_or_404(document_id)
    status = (request.get_json(silent=True) or request.form).get('status')
    if status not in DOCUMENT_STATUSES:
        abort(400, description=f"unknown status {status!r}")
    doc.status = status
    db.session.commit()
    return jsonify(success=True, status=doc.status)


@bp.route('/<int:document_id>/convert', methods=['POST'])
def convert(document_id):
    """Issue a receipt or invoice from a quote, keeping its frozen prices."""
    source = Document.query.get_or_404(document_id)
    target = (request.get_json(silent=True) or {}).get('document_type', 'invoice')
    if source.document_type != 'quote' or target not in ('receipt', 'invoice'):
        abort(400, description='only quotes can be turned into receipts or invoices')
    doc = convert_document(source, target)
    return jsonify(document=doc.to_dict()), 201


@bp.route('/<int:document_id>/send', methods=['POST'])
def send(document_id):
    doc = Document.query.get_or_404(document_id)
    recipient = ((request.get_json(silent=True) or {}).get('to') or doc.email or '').strip()
    if not recipient:
        abort(400, description='no recipient email address')
    result = send_document_email(doc, recipient)
    if not result.success:
        return jsonify(success=False, error=result.error), 502
    doc.sent_at = utcnow()
    if doc.status == 'draft':
        doc.status = 'sent'
    db.session.commit()
    return jsonify(success=True, message_id=result.message_id, status=doc.status)


@bp.route('/<int:document_id>/print')
def print_document(document_id):
    """Print-styled page built from the stored values only."""
    doc = Document.query.get_or_404(document_id)
    return render_template(
        'documents/print.html',
        document=doc,
        company=CompanySettings.current(),
        label=SUBJECTS.get(doc.document_type, 'Dokument'),
    )


@bp.route('/<int:document_id>/delete', methods=['POST'])
def delete_document(document_id):
    doc = Document.query.get_or_404(document_id)
    if doc.derived:
        return jsonify(
            success=False,
            error='referenced',
            message=f"{doc.document_number} is referenced by "
                    + ", ".join(d.document_number for d in doc.derived),
        ), 409
    db.session.delete(doc)
    db.session.commit()
    return jsonify(success=True)
