# umzug/documents/utils.py

"""Helpers that turn request payloads into priced, frozen documents.

The blueprint routes stay thin: everything that reads the catalog, runs the
pricing engine, copies prices onto ``DocumentItem`` rows or allocates
numbers lives here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from flask import abort, current_app

from umzug import db
from umzug.exceptions import InvalidPriceConfig
from umzug.models import (
    AdditionalService,
    CompanySettings,
    Customer,
    Document,
    DocumentItem,
    ServiceCategory,
)
from umzug.numbering import Series
from umzug.pricing import (
    AddOn,
    BaseComponent,
    PricingRequest,
    PricingResult,
    TaxConfig,
    component_contribution,
    price,
    round_money,
    to_cents,
)
from umzug.sequences import insert_with_next_number

CUSTOMER_FIELDS = ('salutation', 'first_name', 'last_name', 'email', 'phone',
                   'street', 'zip', 'city')
DETAIL_FIELDS = ('to_street', 'to_zip', 'to_city', 'object_type', 'notes',
                 'payment_terms')
# carried over when a quote becomes a receipt or invoice
COPIED_FIELDS = ('customer_id', 'customer_number') + CUSTOMER_FIELDS + (
    'to_street', 'to_zip', 'to_city', 'object_type', 'moving_date', 'notes',
    'workers', 'rooms', 'trucks', 'estimated_hours', 'manual_base_override',
    'subtotal', 'tax_enabled', 'tax_rate', 'tax_amount', 'total',
)


@dataclass
class Selection:
    """Everything the pricing engine needs, resolved against the catalog."""
    categories: List[ServiceCategory] = field(default_factory=list)
    services: List[AdditionalService] = field(default_factory=list)
    line_items: List[dict] = field(default_factory=list)
    custom_amounts: Dict[str, Decimal] = field(default_factory=dict)
    workers: int = 2
    rooms: int = 0
    trucks: int = 1
    estimated_hours: Decimal = Decimal('4')
    manual_base_override: Optional[Decimal] = None
    tax: TaxConfig = TaxConfig(enabled=False)

    def pricing_request(self) -> PricingRequest:
        components = [_category_component(c, self.custom_amounts.get(c.code))
                      for c in self.categories]
        components += [
            BaseComponent(
                pricing_model='fixed',
                base_price=li['unit_price'],
                quantity=li['quantity'],
                name=li['description'],
            )
            for li in self.line_items
        ]
        add_ons = [
            AddOn(
                name=s.name,
                base_price=s.price,
                selected=True,
                applies_worker_surcharge=s.applies_worker_surcharge,
            )
            for s in self.services
        ]
        return PricingRequest(
            base_components=components,
            add_ons=add_ons,
            workers=self.workers,
            tax=self.tax,
            manual_base_override=self.manual_base_override,
            estimated_hours=self.estimated_hours,
        )


def _category_component(cat: ServiceCategory, custom_amount=None) -> BaseComponent:
    return BaseComponent(
        pricing_model=cat.pricing_model,
        base_price=cat.base_price,
        hourly_rate=cat.hourly_rate,
        custom_amount=custom_amount,
        name=cat.name,
    )


def _count(data, key, default) -> int:
    raw = data.get(key)
    if raw is None or raw == '':
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError, OverflowError):
        raise InvalidPriceConfig(f"{key} must be a whole number, got {raw!r}")
    if value < 0:
        raise InvalidPriceConfig(f"{key} must be zero or more")
    return value


def _date(data, key) -> Optional[date]:
    raw = data.get(key)
    if not raw:
        return None
    try:
        return date.fromisoformat(str(raw))
    except ValueError:
        abort(400, description=f"{key} must be an ISO date (YYYY-MM-DD)")


def _bool(value) -> bool:
    if isinstance(value, str):
        return value.lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


def resolve_categories(codes, keep=()) -> List[ServiceCategory]:
    """Look up categories by code.

    Inactive categories may not be picked for new selections, but codes in
    ``keep`` (already on the document being edited) stay valid.
    """
    if codes is not None and not isinstance(codes, list):
        raise InvalidPriceConfig("categories must be a list of codes")
    cats = []
    for code in codes or []:
        cat = ServiceCategory.query.filter_by(code=str(code)).first()
        if cat is None:
            raise InvalidPriceConfig(f"unknown service category {code!r}")
        if not cat.active and cat.code not in keep:
            raise InvalidPriceConfig(f"service category {cat.name} is not active")
        cats.append(cat)
    return cats


def resolve_services(ids, keep=()) -> List[AdditionalService]:
    if ids is not None and not isinstance(ids, list):
        raise InvalidPriceConfig("additional_services must be a list of ids")
    services = []
    for sid in ids or []:
        svc = db.session.get(AdditionalService, int(sid)) if str(sid).isdigit() else None
        if svc is None:
            raise InvalidPriceConfig(f"unknown additional service {sid!r}")
        if not svc.active and str(svc.id) not in keep:
            raise InvalidPriceConfig(f"additional service {svc.name} is not active")
        services.append(svc)
    return services


def parse_line_items(rows) -> List[dict]:
    if rows is not None and not isinstance(rows, list):
        raise InvalidPriceConfig("line_items must be a list")
    items = []
    for row in rows or []:
        if not isinstance(row, dict):
            raise InvalidPriceConfig("every line item must be an object")
        description = str(row.get('description') or '').strip()
        if not description:
            raise InvalidPriceConfig("every line item needs a description")
        unit_price = to_cents(row.get('unit_price'), f"unit price of {description}")
        if unit_price is None:
            raise InvalidPriceConfig(f"line item {description} has no unit price")
        quantity = to_cents(row.get('quantity', 1), f"quantity of {description}")
        items.append({
            'description': description,
            'unit_price' : unit_price,
            'quantity'   : quantity if quantity is not None else Decimal('1'),
        })
    return items


def build_selection(data, settings: CompanySettings, document: Document | None = None) -> Selection:
    """Resolve a create/edit/preview payload into a :class:`Selection`.

    Missing counts fall back to the document being edited, then to the
    defaults of a new quote.  Tax follows the company settings unless the
    payload switches it off (VAT exempt receipts) or on.
    """
    keep_codes = {i.reference for i in document.items_of('category')} if document else set()
    keep_ids = {i.reference for i in document.items_of('addon')} if document else set()

    if document is not None:
        default_codes = [i.reference for i in document.items_of('category')]
        default_ids = [i.reference for i in document.items_of('addon')]
    else:
        default_codes, default_ids = [], []

    raw_custom = data.get('custom_amounts') or {}
    if not isinstance(raw_custom, dict):
        raise InvalidPriceConfig("custom_amounts must map category codes to amounts")
    custom = {
        str(code): to_cents(amount, f"amount for {code}")
        for code, amount in raw_custom.items()
    }

    tax_enabled = data.get('tax_enabled')
    if tax_enabled is None:
        tax_enabled = document.tax_enabled if document is not None else settings.vat_enabled
    tax_enabled = _bool(tax_enabled)

    hours = to_cents(data.get('estimated_hours'), 'estimated hours')
    if hours is None:
        hours = document.estimated_hours if document is not None else settings.estimated_hours

    if 'manual_base_override' in data:
        override = to_cents(data.get('manual_base_override'), 'manual price')
    else:
        override = document.manual_base_override if document is not None else None

    if 'line_items' in data:
        line_items = parse_line_items(data.get('line_items'))
    elif document is not None:
        line_items = [
            {'description': i.name, 'unit_price': i.base_price, 'quantity': i.quantity}
            for i in document.items_of('line')
        ]
    else:
        line_items = []

    return Selection(
        categories=resolve_categories(data.get('categories', default_codes), keep_codes),
        services=resolve_services(data.get('additional_services', default_ids), keep_ids),
        line_items=line_items,
        custom_amounts=custom,
        workers=_count(data, 'workers', document.workers if document is not None else 2),
        rooms=_count(data, 'rooms', document.rooms if document is not None else 0),
        trucks=_count(data, 'trucks', document.trucks if document is not None else 1),
        estimated_hours=hours,
        manual_base_override=override,
        tax=TaxConfig(enabled=tax_enabled, rate_percent=settings.vat_rate),
    )


def freeze_items(selection: Selection, result: PricingResult) -> List[DocumentItem]:
    """Copy catalog entries and computed prices into new ``DocumentItem`` rows."""
    items = []
    position = 0
    for cat in selection.categories:
        custom_amount = selection.custom_amounts.get(cat.code)
        if selection.manual_base_override is None:
            contribution = component_contribution(
                _category_component(cat, custom_amount),
                selection.workers,
                selection.estimated_hours,
            )
        else:
            contribution = Decimal('0')
        items.append(DocumentItem(
            kind='category',
            reference=cat.code,
            name=cat.name,
            pricing_model=cat.pricing_model,
            base_price=cat.base_price,
            hourly_rate=cat.hourly_rate,
            custom_amount=custom_amount,
            quantity=Decimal('1'),
            price=round_money(contribution),
            position=position,
        ))
        position += 1
    for li in selection.line_items:
        if selection.manual_base_override is None:
            line_price = round_money(li['unit_price'] * li['quantity'])
        else:
            line_price = Decimal('0')
        items.append(DocumentItem(
            kind='line',
            name=li['description'],
            pricing_model='fixed',
            base_price=li['unit_price'],
            quantity=li['quantity'],
            price=line_price,
            position=position,
        ))
        position += 1
    for svc, priced in zip(selection.services, result.add_on_prices):
        items.append(DocumentItem(
            kind='addon',
            reference=str(svc.id),
            name=svc.name,
            base_price=priced.base_price,
            applies_worker_surcharge=bool(svc.applies_worker_surcharge),
            surcharge=priced.surcharge,
            price=priced.price,
            position=position,
        ))
        position += 1
    return items


def apply_pricing(document: Document, selection: Selection) -> PricingResult:
    """Price ``selection`` and write the frozen result onto ``document``.

    The engine runs first; if it rejects the input nothing on the document
    has been touched.
    """
    result = price(selection.pricing_request())
    items = freeze_items(selection, result)

    document.workers = selection.workers
    document.rooms = selection.rooms
    document.trucks = selection.trucks
    document.estimated_hours = selection.estimated_hours
    document.manual_base_override = selection.manual_base_override
    document.tax_enabled = selection.tax.enabled
    document.tax_rate = selection.tax.rate_percent if selection.tax.enabled else Decimal('0')
    document.subtotal = round_money(result.subtotal)
    document.tax_amount = result.tax_amount
    document.total = round_money(result.total)
    document.items = items
    return result


def pricing_request_from_items(document: Document) -> PricingRequest:
    """Rebuild the pricing request from a stored document only."""
    components = [
        BaseComponent(
            pricing_model=i.pricing_model or 'fixed',
            base_price=i.base_price,
            hourly_rate=i.hourly_rate,
            custom_amount=i.custom_amount,
            quantity=i.quantity,
            name=i.name,
        )
        for i in document.items if i.kind in ('category', 'line')
    ]
    add_ons = [
        AddOn(
            name=i.name,
            base_price=i.base_price,
            applies_worker_surcharge=i.applies_worker_surcharge,
        )
        for i in document.items if i.kind == 'addon'
    ]
    return PricingRequest(
        base_components=components,
        add_ons=add_ons,
        workers=document.workers,
        tax=TaxConfig(enabled=document.tax_enabled, rate_percent=document.tax_rate),
        manual_base_override=document.manual_base_override,
        estimated_hours=document.estimated_hours,
    )


def verify_document(document: Document) -> List[str]:
    """Return the names of stored totals that do not match a recomputation."""
    result = price(pricing_request_from_items(document))
    mismatches = []
    for name in ('subtotal', 'tax_amount', 'total'):
        if round_money(getattr(result, name)) != round_money(Decimal(getattr(document, name))):
            mismatches.append(name)
    return mismatches


def fill_customer_snapshot(document: Document, customer: Customer) -> None:
    document.customer = customer
    document.customer_number = customer.customer_number
    for name in CUSTOMER_FIELDS:
        setattr(document, name, getattr(customer, name) or '')


def create_customer(data) -> Customer:
    """Create a customer with the next K- number."""
    def build(number):
        customer = Customer(customer_number=number)
        for name in CUSTOMER_FIELDS:
            setattr(customer, name, str(data.get(name) or '').strip())
        db.session.add(customer)
        return customer

    return insert_with_next_number(Series.CUSTOMER, build)


def resolve_customer(data) -> Customer:
    """Existing customer by ``customer_id`` or a new one from ``customer``."""
    customer_id = data.get('customer_id')
    if customer_id:
        if not str(customer_id).isdigit():
            abort(400, description=f"customer_id must be a number, got {customer_id!r}")
        customer = db.session.get(Customer, int(customer_id))
        if customer is None:
            abort(400, description=f"unknown customer {customer_id}")
        return customer
    details = data.get('customer') or {}
    if not isinstance(details, dict):
        abort(400, description='customer must be an object')
    if not (details.get('last_name') or details.get('first_name')):
        abort(400, description='customer name required')
    return create_customer(details)


def apply_details(document: Document, data) -> None:
    for name in DETAIL_FIELDS:
        if name in data:
            setattr(document, name, data.get(name) or '')
    for name in ('moving_date', 'document_date', 'due_date'):
        if name in data:
            setattr(document, name, _date(data, name))


def create_document(document_type: str, data, status: str = 'draft') -> Document:
    """Price, number and store a new document.

    Order matters: the price is computed before anything is written, the
    customer is created next, and the document number is allocated last.
    """
    settings = CompanySettings.current()
    selection = build_selection(data, settings)
    if document_type == 'quote' and not (selection.categories or selection.line_items):
        raise InvalidPriceConfig("select at least one service category")
    # fail before the customer row is written
    price(selection.pricing_request())
    for name in ('moving_date', 'document_date', 'due_date'):
        _date(data, name)

    customer = resolve_customer(data)

    def build(number):
        doc = Document(document_type=document_type, document_number=number, status=status)
        db.session.add(doc)
        # a duplicate number has to surface at commit, not in a lazy load
        with db.session.no_autoflush:
            doc.document_date = date.today()
            if document_type == 'invoice':
                days = current_app.config.get('INVOICE_PAYMENT_DAYS', 30)
                doc.due_date = doc.document_date + timedelta(days=days)
                doc.payment_terms = f"{days} Tage netto"
            fill_customer_snapshot(doc, customer)
            apply_details(doc, data)
            apply_pricing(doc, selection)
        return doc

    return insert_with_next_number(Series(document_type), build)


def convert_document(source: Document, document_type: str) -> Document:
    """Issue a receipt or invoice from an existing quote.

    Items and totals are copied as they are; nothing is re-priced.
    """
    def build(number):
        doc = Document(
            document_type=document_type,
            document_number=number,
            status='sent',
            document_date=date.today(),
        )
        db.session.add(doc)
        with db.session.no_autoflush:
            doc.source_document = source
            if document_type == 'invoice':
                days = current_app.config.get('INVOICE_PAYMENT_DAYS', 30)
                doc.due_date = doc.document_date + timedelta(days=days)
                doc.payment_terms = f"{days} Tage netto"
            for name in COPIED_FIELDS:
                setattr(doc, name, getattr(source, name))
            doc.items = [
                DocumentItem(**{c.name: getattr(i, c.name)
                                for c in DocumentItem.__table__.columns
                                if c.name not in ('id', 'document_id')})
                for i in source.items
            ]
        return doc

    return insert_with_next_number(Series(document_type), build)
