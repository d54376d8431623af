# umzug/catalog/routes.py

from flask import Blueprint, abort, jsonify, request
from sqlalchemy.exc import IntegrityError

from umzug import db
from umzug.admin import check_admin_secret
from umzug.exceptions import InvalidPriceConfig
from umzug.models import AdditionalService, ServiceCategory
from umzug.pricing import PricingModel, to_cents

bp = Blueprint('catalog', __name__)


@bp.before_request
def before():
    check_admin_secret()


def _wants_active_only():
    return request.args.get('active', '').lower() in ('1', 'true', 'yes')


def _money(data, key):
    value = to_cents(data.get(key), key)
    if value is not None and value < 0:
        raise InvalidPriceConfig(f"{key} must not be negative")
    return value


def _apply_category(cat, data):
    if 'name' in data:
        name = (data.get('name') or '').strip()
        if not name:
            abort(400, description='category name required')
        cat.name = name
    if 'description' in data:
        cat.description = (data.get('description') or '').strip()
    if 'pricing_model' in data:
        try:
            cat.pricing_model = PricingModel(data.get('pricing_model')).value
        except ValueError:
            raise InvalidPriceConfig(f"unknown pricing model {data.get('pricing_model')!r}")
    if 'base_price' in data:
        cat.base_price = _money(data, 'base_price')
    if 'hourly_rate' in data:
        cat.hourly_rate = _money(data, 'hourly_rate')
    if 'active' in data:
        cat.active = bool(data.get('active'))
    if 'display_order' in data:
        cat.display_order = int(data.get('display_order') or 0)
    # Same preconditions the pricing engine enforces, caught at entry time
    if cat.pricing_model == 'fixed' and cat.base_price is None:
        raise InvalidPriceConfig(f"fixed category {cat.name} needs a base price")
    if cat.pricing_model == 'hourly' and cat.hourly_rate is None:
        raise InvalidPriceConfig(f"hourly category {cat.name} needs an hourly rate")


@bp.route('/categories')
def list_categories():
    query = ServiceCategory.query
    if _wants_active_only():
        query = query.filter_by(active=True)
    cats = query.order_by(ServiceCategory.display_order, ServiceCategory.name).all()
    return jsonify(categories=[c.to_dict() for c in cats])


@bp.route('/categories', methods=['POST'])
def create_category():
    data = request.get_json(silent=True) or {}
    code = (data.get('code') or '').strip().lower()
    if not code:
        abort(400, description='category code required')
    cat = ServiceCategory(code=code, name='', pricing_model='fixed', active=True)
    _apply_category(cat, {'name': data.get('name'), **data})
    db.session.add(cat)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify(error='duplicate', message=f"category code {code!r} already exists"), 409
    return jsonify(category=cat.to_dict()), 201


@bp.route('/categories/<int:category_id>', methods=['POST'])
def update_category(category_id):
    """Catalog edits never touch documents that were already saved."""
    cat = ServiceCategory.query.get_or_404(category_id)
    _apply_category(cat, request.get_json(silent=True) or {})
    db.session.commit()
    return jsonify(category=cat.to_dict())


@bp.route('/categories/<int:category_id>/toggle', methods=['POST'])
def toggle_category(category_id):
    cat = ServiceCategory.query.get_or_404(category_id)
    cat.active = not cat.active
    db.session.commit()
    return jsonify(success=True, active=cat.active)


@bp.route('/services')
def list_services():
    query = AdditionalService.query
    if _wants_active_only():
        query = query.filter_by(active=True)
    services = query.order_by(AdditionalService.display_order, AdditionalService.name).all()
    return jsonify(services=[s.to_dict() for s in services])


@bp.route('/services', methods=['POST'])
def create_service():
    data = request.get_json(silent=True) or {}
    name = (data.get('name') or '').strip()
    if not name:
        abort(400, description='service name required')
    svc_price = _money(data, 'price')
    if svc_price is None:
        raise InvalidPriceConfig(f"additional service {name} needs a price")
    svc = AdditionalService(
        name=name,
        description=(data.get('description') or '').strip(),
        price=svc_price,
        applies_worker_surcharge=data.get('applies_worker_surcharge'),
        active=bool(data.get('active', True)),
        display_order=int(data.get('display_order') or 0),
    )
    db.session.add(svc)
    db.session.commit()
    return jsonify(service=svc.to_dict()), 201


@bp.route('/services/<int:service_id>', methods=['POST'])
def update_service(service_id):
    svc = AdditionalService.query.get_or_404(service_id)
    data = request.get_json(silent=True) or {}
    if 'name' in data:
        name = (data.get('name') or '').strip()
        if not name:
            abort(400, description='service name required')
        svc.name = name
    if 'description' in data:
        svc.description = (data.get('description') or '').strip()
    if 'price' in data:
        svc_price = _money(data, 'price')
        if svc_price is None:
            raise InvalidPriceConfig(f"additional service {svc.name} needs a price")
        svc.price = svc_price
    if 'applies_worker_surcharge' in data:
        svc.applies_worker_surcharge = bool(data.get('applies_worker_surcharge'))
    if 'active' in data:
        svc.active = bool(data.get('active'))
    if 'display_order' in data:
        svc.display_order = int(data.get('display_order') or 0)
    db.session.commit()
    return jsonify(service=svc.to_dict())


@bp.route('/services/<int:service_id>/toggle', methods=['POST'])
def toggle_service(service_id):
    svc = AdditionalService.query.get_or_404(service_id)
    svc.active = not svc.active
    db.session.commit()
    return jsonify(success=True, active=svc.active)
