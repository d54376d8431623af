# umzug/customers/routes.py

from flask import Blueprint, abort, jsonify, request
from sqlalchemy import or_

from umzug import db
from umzug.admin import check_admin_secret
from umzug.documents.utils import CUSTOMER_FIELDS, create_customer
from umzug.models import Customer

bp = Blueprint('customers', __name__)


@bp.before_request
def before():
    check_admin_secret()


@bp.route('/')
def list_customers():
    customers = Customer.query.order_by(Customer.id.desc()).all()
    return jsonify(customers=[c.to_dict() for c in customers])


@bp.route('/search')
def search_customers():
    """Name, email or customer number; at most ten hits for the picker."""
    q = request.args.get('q', '').strip()
    if not q:
        return jsonify(customers=[])
    term = f"%{q}%"
    rows = (
        Customer.query.filter(or_(
            Customer.first_name.ilike(term),
            Customer.last_name.ilike(term),
            Customer.email.ilike(term),
            Customer.customer_number.ilike(term),
        ))
        .order_by(Customer.id.desc())
        .limit(10)
        .all()
    )
    return jsonify(customers=[c.to_dict() for c in rows])


@bp.route('/<int:customer_id>')
def view_customer(customer_id):
    customer = Customer.query.get_or_404(customer_id)
    data = customer.to_dict()
    data['documents'] = [d.to_dict(with_items=False) for d in customer.documents]
    return jsonify(customer=data)


@bp.route('/', methods=['POST'])
def create():
    data = request.get_json(silent=True) or {}
    if not (data.get('last_name') or data.get('first_name')):
        abort(400, description='customer name required')
    customer = create_customer(data)
    return jsonify(customer=customer.to_dict()), 201


@bp.route('/<int:customer_id>', methods=['POST'])
def update(customer_id):
    """Existing documents keep the contact details they were issued with."""
    customer = Customer.query.get_or_404(customer_id)
    data = request.get_json(silent=True) or {}
    for name in CUSTOMER_FIELDS:
        if name in data:
            setattr(customer, name, (data.get(name) or '').strip())
    db.session.commit()
    return jsonify(customer=customer.to_dict())


@bp.route('/<int:customer_id>/delete', methods=['POST'])
def delete(customer_id):
    customer = Customer.query.get_or_404(customer_id)
    if customer.documents:
        return jsonify(
            success=False,
            error='referenced',
            message=f"customer {customer.customer_number} has {len(customer.documents)} documents",
        ), 409
    db.session.delete(customer)
    db.session.commit()
    return jsonify(success=True)
