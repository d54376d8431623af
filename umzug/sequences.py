# umzug/sequences.py
"""Number allocation against the database.

``allocate_next`` is pure and trusts the maximum it is given.  Uniqueness
is enforced by the unique constraints on the number columns: when two
writers allocate the same number the second insert fails, is rolled back,
and allocation is retried from a fresh read.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from umzug import db
from umzug.exceptions import AllocationConflict
from umzug.models import Customer, Document
from umzug.numbering import Series, allocate_next


def _number_column(series: Series):
    if series is Series.CUSTOMER:
        return Customer.customer_number, None
    return Document.document_number, Document.document_type == series.value


def current_max(series: Series) -> Optional[str]:
    """Highest identifier stored for ``series``, or ``None`` if there is none.

    Numbers only grow in width, so ordering by length first and then by
    text gives numeric order without parsing every row (``100000`` sorts
    after ``99999``).
    """
    series = Series(series)
    column, criterion = _number_column(series)
    query = db.session.query(column)
    if criterion is not None:
        query = query.filter(criterion)
    row = query.order_by(func.length(column).desc(), column.desc()).first()
    return row[0] if row else None


def insert_with_next_number(
    series: Series,
    build: Callable[[str], db.Model],
    retries: Optional[int] = None,
):
    """Allocate the next number of ``series`` and commit the row ``build`` returns.

    ``build`` receives the allocated number and must add everything it
    creates to the session.  It is called again on every retry because a
    rollback discards the previous attempt.
    """
    series = Series(series)
    if retries is None:
        retries = current_app.config.get('NUMBER_ALLOCATION_RETRIES', 3)
    attempts = max(retries, 1)
    for attempt in range(1, attempts + 1):
        number = allocate_next(series, current_max(series))
        obj = build(number)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            logging.warning(
                "%s number %s already taken (attempt %s/%s)",
                series.value, number, attempt, attempts,
            )
            continue
        logging.info("allocated %s number %s", series.value, number)
        return obj
    raise AllocationConflict(series, attempts)
