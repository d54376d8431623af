"""Flask CLI commands: catalog seeding, number preview and total checks."""

import logging
from decimal import Decimal

import click
from flask.cli import with_appcontext

from umzug import db
from umzug.documents.utils import verify_document
from umzug.exceptions import InvalidPriceConfig
from umzug.models import AdditionalService, Document, ServiceCategory
from umzug.numbering import Series, allocate_next
from umzug.sequences import current_max

DEFAULT_CATEGORIES = [
    # code, name, pricing model, base price, hourly rate
    ('umzug', 'Umzug', 'fixed', Decimal('1200'), None),
    ('reinigung', 'Reinigung', 'fixed', Decimal('600'), None),
    ('raeumung', 'Räumung', 'hourly', None, Decimal('65')),
    ('spezial', 'Spezialtransport', 'custom', None, None),
]
DEFAULT_SERVICES = [
    ('Reinigung', Decimal('300')),
    ('Entsorgung', Decimal('150')),
    ('Verpackungsservice', Decimal('200')),
    ('Stundensatz', Decimal('120')),
]


@click.group("catalog")
def catalog_cli() -> None:
    """Service catalog commands."""


@catalog_cli.command("seed")
@with_appcontext
def seed_command() -> None:
    """Insert the default categories and services that are missing."""
    added = 0
    for order, (code, name, model, base, hourly) in enumerate(DEFAULT_CATEGORIES):
        if ServiceCategory.query.filter_by(code=code).first():
            continue
        db.session.add(ServiceCategory(
            code=code, name=name, pricing_model=model, base_price=base,
            hourly_rate=hourly, display_order=order,
        ))
        added += 1
    for order, (name, price) in enumerate(DEFAULT_SERVICES):
        if AdditionalService.query.filter_by(name=name).first():
            continue
        db.session.add(AdditionalService(name=name, price=price, display_order=order))
        added += 1
    db.session.commit()
    click.echo(f"added {added} catalog entries")


@click.group("series")
def series_cli() -> None:
    """Document number commands."""


@series_cli.command("next")
@with_appcontext
@click.argument("series", type=click.Choice([s.value for s in Series]))
def next_command(series: str) -> None:
    """Show the number the next document of SERIES would get."""
    click.echo(allocate_next(Series(series), current_max(Series(series))))


@click.group("documents")
def documents_cli() -> None:
    """Document maintenance commands."""


@documents_cli.command("verify")
@with_appcontext
def verify_command() -> None:
    """Recompute every document from its stored items and report mismatches."""
    bad = 0
    docs = Document.query.order_by(Document.id).all()
    for doc in docs:
        try:
            mismatches = verify_document(doc)
        except InvalidPriceConfig as e:
            mismatches = [str(e)]
        if mismatches:
            bad += 1
            logging.warning(
                "%s %s: stored %s differ from recomputation",
                doc.document_type, doc.document_number, ", ".join(mismatches),
            )
            click.echo(f"{doc.document_type} {doc.document_number}: {', '.join(mismatches)}")
    click.echo(f"checked {len(docs)} documents, {bad} mismatched")
    if bad:
        raise SystemExit(1)
