import uuid
from datetime import datetime, timezone
from decimal import Decimal

from umzug import db
from umzug.pricing import DEFAULT_ESTIMATED_HOURS, is_hourly_rate_service

DOCUMENT_TYPES = ('quote', 'receipt', 'invoice')
DOCUMENT_STATUSES = ('draft', 'sent', 'accepted', 'rejected', 'completed')


def utcnow():
    return datetime.now(timezone.utc)


class CompanySettings(db.Model):
    __tablename__ = 'company_settings'
    id              = db.Column(db.Integer, primary_key=True)
    company_name    = db.Column(db.String(200), nullable=False, default='Umzug UNIT GmbH')
    street          = db.Column(db.String(200), default='Tulpenweg 22')
    zip_city        = db.Column(db.String(200), default='3250 Lyss')
    phone           = db.Column(db.String(100), default='032 310 70 60')
    email           = db.Column(db.String(200), default='info@umzug-unit.ch')
    vat_rate        = db.Column(db.Numeric(5, 2), nullable=False, default=Decimal('7.7'))
    vat_enabled     = db.Column(db.Boolean, nullable=False, default=True)
    estimated_hours = db.Column(db.Numeric(5, 2), nullable=False, default=DEFAULT_ESTIMATED_HOURS)

    @classmethod
    def current(cls):
        """The single settings row, created with defaults on first use."""
        row = cls.query.order_by(cls.id).first()
        if row is None:
            row = cls()
            db.session.add(row)
            db.session.commit()
        return row

    def to_dict(self):
        return {
            'company_name'   : self.company_name,
            'street'         : self.street,
            'zip_city'       : self.zip_city,
            'phone'          : self.phone,
            'email'          : self.email,
            'vat_rate'       : self.vat_rate,
            'vat_enabled'    : self.vat_enabled,
            'estimated_hours': self.estimated_hours,
        }


class ServiceCategory(db.Model):
    __tablename__ = 'service_category'
    id            = db.Column(db.Integer, primary_key=True)
    code          = db.Column(db.String(64), unique=True, nullable=False)
    name          = db.Column(db.String(128), nullable=False)
    description   = db.Column(db.Text, default='')
    pricing_model = db.Column(db.String(16), nullable=False, default='fixed')
    base_price    = db.Column(db.Numeric(10, 2))
    hourly_rate   = db.Column(db.Numeric(10, 2))
    active        = db.Column(db.Boolean, nullable=False, default=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self):
        return {
            'id'           : self.id,
            'code'         : self.code,
            'name'         : self.name,
            'description'  : self.description or '',
            'pricing_model': self.pricing_model,
            'base_price'   : self.base_price,
            'hourly_rate'  : self.hourly_rate,
            'active'       : self.active,
            'display_order': self.display_order,
        }


class AdditionalService(db.Model):
    __tablename__ = 'additional_service'
    id                       = db.Column(db.Integer, primary_key=True)
    name                     = db.Column(db.String(128), nullable=False)
    description              = db.Column(db.Text, default='')
    price                    = db.Column(db.Numeric(10, 2), nullable=False)
    applies_worker_surcharge = db.Column(db.Boolean, nullable=False, default=False)
    active                   = db.Column(db.Boolean, nullable=False, default=True)
    display_order            = db.Column(db.Integer, nullable=False, default=0)

    def __init__(self, **kwargs):
        # The surcharge role is fixed when the service is created, never
        # re-derived from a later rename.
        if kwargs.get('applies_worker_surcharge') is None:
            kwargs['applies_worker_surcharge'] = is_hourly_rate_service(kwargs.get('name', ''))
        super().__init__(**kwargs)

    def to_dict(self):
        return {
            'id'                      : self.id,
            'name'                    : self.name,
            'description'             : self.description or '',
            'price'                   : self.price,
            'applies_worker_surcharge': self.applies_worker_surcharge,
            'active'                  : self.active,
            'display_order'           : self.display_order,
        }


class Customer(db.Model):
    __tablename__ = 'customer'
    id              = db.Column(db.Integer, primary_key=True)
    customer_number = db.Column(db.String(32), unique=True, nullable=False)
    salutation      = db.Column(db.String(32), default='')
    first_name      = db.Column(db.String(128), default='')
    last_name       = db.Column(db.String(128), default='')
    email           = db.Column(db.String(200), default='')
    phone           = db.Column(db.String(64), default='')
    street          = db.Column(db.String(200), default='')
    zip             = db.Column(db.String(16), default='')
    city            = db.Column(db.String(128), default='')
    created_at      = db.Column(db.DateTime(timezone=True), default=utcnow)

    documents = db.relationship('Document', back_populates='customer', lazy=True)

    @property
    def full_name(self):
        return " ".join(filter(None, [self.first_name, self.last_name]))

    def to_dict(self):
        return {
            'id'             : self.id,
            'customer_number': self.customer_number,
            'salutation'     : self.salutation or '',
            'first_name'     : self.first_name or '',
            'last_name'      : self.last_name or '',
            'name'           : self.full_name,
            'email'          : self.email or '',
            'phone'          : self.phone or '',
            'street'         : self.street or '',
            'zip'            : self.zip or '',
            'city'           : self.city or '',
        }


class Document(db.Model):
    """A priced quote, receipt or invoice.

    Customer details and every price are copied onto the document when it is
    saved.  Totals are never recomputed on read; renderers and mails show the
    stored values so the printed document matches what the customer saw.
    """
    __tablename__ = 'document'
    __table_args__ = (
        db.UniqueConstraint('document_type', 'document_number', name='uq_document_number'),
    )
    id                 = db.Column(db.Integer, primary_key=True)
    document_type      = db.Column(db.String(16), nullable=False)
    document_number    = db.Column(db.String(32), nullable=False)
    public_token       = db.Column(db.String(32), unique=True, nullable=False,
                                   default=lambda: uuid.uuid4().hex)
    status             = db.Column(db.String(16), nullable=False, default='draft')
    document_date      = db.Column(db.Date)

    customer_id        = db.Column(db.Integer, db.ForeignKey('customer.id'))
    customer_number    = db.Column(db.String(32), default='')
    salutation         = db.Column(db.String(32), default='')
    first_name         = db.Column(db.String(128), default='')
    last_name          = db.Column(db.String(128), default='')
    email              = db.Column(db.String(200), default='')
    phone              = db.Column(db.String(64), default='')
    street             = db.Column(db.String(200), default='')
    zip                = db.Column(db.String(16), default='')
    city               = db.Column(db.String(128), default='')

    to_street          = db.Column(db.String(200), default='')
    to_zip             = db.Column(db.String(16), default='')
    to_city            = db.Column(db.String(128), default='')
    moving_date        = db.Column(db.Date)
    object_type        = db.Column(db.String(64), default='')

    workers            = db.Column(db.Integer, nullable=False, default=2)
    rooms              = db.Column(db.Integer, nullable=False, default=0)
    trucks             = db.Column(db.Integer, nullable=False, default=1)
    estimated_hours    = db.Column(db.Numeric(5, 2), nullable=False, default=DEFAULT_ESTIMATED_HOURS)
    manual_base_override = db.Column(db.Numeric(10, 2))

    subtotal           = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    tax_enabled        = db.Column(db.Boolean, nullable=False, default=True)
    tax_rate           = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    tax_amount         = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total              = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    notes              = db.Column(db.Text, default='')
    payment_terms      = db.Column(db.String(200), default='')
    due_date           = db.Column(db.Date)
    source_document_id = db.Column(db.Integer, db.ForeignKey('document.id'))

    signature          = db.Column(db.Text)
    signed_location    = db.Column(db.String(128))
    signed_date        = db.Column(db.String(32))
    responded_at       = db.Column(db.DateTime(timezone=True))
    sent_at            = db.Column(db.DateTime(timezone=True))
    created_at         = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at         = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    customer = db.relationship('Customer', back_populates='documents')
    items = db.relationship(
        'DocumentItem',
        back_populates='document',
        order_by='DocumentItem.position',
        cascade='all, delete-orphan',
    )
    derived = db.relationship(
        'Document',
        backref=db.backref('source_document', remote_side=[id]),
        lazy=True,
    )

    @property
    def customer_name(self):
        return " ".join(filter(None, [self.first_name, self.last_name]))

    @property
    def responded(self):
        return self.status in ('accepted', 'rejected')

    def items_of(self, kind):
        return [i for i in self.items if i.kind == kind]

    def to_dict(self, with_items=True):
        data = {
            'id'                  : self.id,
            'document_type'       : self.document_type,
            'document_number'     : self.document_number,
            'public_token'        : self.public_token,
            'status'              : self.status,
            'document_date'       : self.document_date.isoformat() if self.document_date else None,
            'customer_id'         : self.customer_id,
            'customer'            : {
                'customer_number': self.customer_number or '',
                'salutation'     : self.salutation or '',
                'first_name'     : self.first_name or '',
                'last_name'      : self.last_name or '',
                'email'          : self.email or '',
                'phone'          : self.phone or '',
                'street'         : self.street or '',
                'zip'            : self.zip or '',
                'city'           : self.city or '',
            },
            'to_street'           : self.to_street or '',
            'to_zip'              : self.to_zip or '',
            'to_city'             : self.to_city or '',
            'moving_date'         : self.moving_date.isoformat() if self.moving_date else None,
            'object_type'         : self.object_type or '',
            'workers'             : self.workers,
            'rooms'               : self.rooms,
            'trucks'              : self.trucks,
            'estimated_hours'     : self.estimated_hours,
            'manual_base_override': self.manual_base_override,
            'subtotal'            : self.subtotal,
            'tax_enabled'         : self.tax_enabled,
            'tax_rate'            : self.tax_rate,
            'tax_amount'          : self.tax_amount,
            'total'               : self.total,
            'notes'               : self.notes or '',
            'payment_terms'       : self.payment_terms or '',
            'due_date'            : self.due_date.isoformat() if self.due_date else None,
            'source_document_id'  : self.source_document_id,
            'signed'              : bool(self.signature),
            'signed_location'     : self.signed_location,
            'signed_date'         : self.signed_date,
        }
        if with_items:
            data['items'] = [i.to_dict() for i in self.items]
        return data


class DocumentItem(db.Model):
    """Frozen copy of a category, additional service or free line."""
    __tablename__ = 'document_item'
    id             = db.Column(db.Integer, primary_key=True)
    document_id    = db.Column(
        db.Integer,
        db.ForeignKey('document.id', ondelete='CASCADE'),
        nullable=False
    )
    # 'category', 'addon' or 'line'
    kind           = db.Column(db.String(16), nullable=False)
    # category code or additional service id at the time of saving
    reference      = db.Column(db.String(64), default='')
    name           = db.Column(db.String(200), nullable=False)
    pricing_model  = db.Column(db.String(16))
    base_price     = db.Column(db.Numeric(10, 2))
    hourly_rate    = db.Column(db.Numeric(10, 2))
    custom_amount  = db.Column(db.Numeric(10, 2))
    quantity       = db.Column(db.Numeric(10, 2), nullable=False, default=1)
    applies_worker_surcharge = db.Column(db.Boolean, nullable=False, default=False)
    surcharge      = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    price          = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    position       = db.Column(db.Integer, nullable=False, default=0)

    document = db.relationship('Document', back_populates='items')

    def to_dict(self):
        return {
            'id'           : self.id,
            'kind'         : self.kind,
            'reference'    : self.reference or '',
            'name'         : self.name,
            'pricing_model': self.pricing_model,
            'base_price'   : self.base_price,
            'hourly_rate'  : self.hourly_rate,
            'custom_amount': self.custom_amount,
            'quantity'     : self.quantity,
            'surcharge'    : self.surcharge,
            'price'        : self.price,
        }
