# umzug/pricing.py
"""Pricing engine for quotes, receipts and invoices.

Everything here is pure: a :class:`PricingRequest` goes in, a
:class:`PricingResult` comes out.  Tax settings, the hour estimate for hourly
categories and the worker count are all part of the request so the engine
never reads shared settings itself.

Every line amount (a base component, an add-on, the manual override) is
rounded half up to the cent before it is summed, so the subtotal equals the
sum of the amounts a document prints and stores.  Tax is computed from that
subtotal and rounded once; the total is subtotal plus tax exactly.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, List, Optional

from umzug.exceptions import InvalidPriceConfig

CENT = Decimal("0.01")
ZERO = Decimal("0")

WORKER_SURCHARGE = Decimal("30")
SURCHARGE_BASELINE_WORKERS = 2
DEFAULT_ESTIMATED_HOURS = Decimal("4")
HOURLY_RATE_MARKER = "stundensatz"
# stored as Numeric(10, 2)
MAX_AMOUNT = Decimal("100000000")


class PricingModel(str, enum.Enum):
    FIXED = "fixed"
    HOURLY = "hourly"
    CUSTOM = "custom"


@dataclass(frozen=True)
class BaseComponent:
    pricing_model: PricingModel | str
    base_price: Optional[Decimal] = None
    hourly_rate: Optional[Decimal] = None
    custom_amount: Optional[Decimal] = None
    quantity: Decimal = Decimal("1")
    name: str = ""


@dataclass(frozen=True)
class AddOn:
    name: str
    base_price: Decimal
    selected: bool = True
    # None means "decide from the name"
    applies_worker_surcharge: Optional[bool] = None


@dataclass(frozen=True)
class TaxConfig:
    enabled: bool
    rate_percent: Decimal = ZERO


@dataclass(frozen=True)
class PricingRequest:
    base_components: List[BaseComponent] = field(default_factory=list)
    add_ons: List[AddOn] = field(default_factory=list)
    workers: int = 0
    tax: TaxConfig = TaxConfig(enabled=False)
    manual_base_override: Optional[Decimal] = None
    estimated_hours: Decimal = DEFAULT_ESTIMATED_HOURS


@dataclass(frozen=True)
class AddOnPrice:
    name: str
    base_price: Decimal
    surcharge: Decimal
    price: Decimal


@dataclass(frozen=True)
class PricingResult:
    base_total: Decimal
    add_on_total: Decimal
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal
    add_on_prices: List[AddOnPrice]

    def as_dict(self) -> dict:
        return {
            "base_total": self.base_total,
            "add_on_total": self.add_on_total,
            "subtotal": self.subtotal,
            "tax_amount": self.tax_amount,
            "total": self.total,
            "add_ons": [
                {
                    "name": p.name,
                    "base_price": p.base_price,
                    "surcharge": p.surcharge,
                    "price": p.price,
                }
                for p in self.add_on_prices
            ],
        }


def to_decimal(value: Any, field_name: str = "amount") -> Optional[Decimal]:
    """Coerce form/JSON input to ``Decimal``; ``None`` and ``''`` stay ``None``."""
    if value is None or value == "":
        return None
    if isinstance(value, bool) or isinstance(value, (list, dict)):
        raise InvalidPriceConfig(f"{field_name} must be a number")
    if not isinstance(value, Decimal):
        try:
            # str() first so floats like 7.7 do not carry binary noise
            value = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise InvalidPriceConfig(f"{field_name} must be a number, got {value!r}")
    if not value.is_finite():
        raise InvalidPriceConfig(f"{field_name} must be a finite number, got {value}")
    if abs(value) >= MAX_AMOUNT:
        raise InvalidPriceConfig(f"{field_name} is too large")
    return value


def to_cents(value: Any, field_name: str = "amount") -> Optional[Decimal]:
    """Like :func:`to_decimal` but refuses more than two decimal places.

    Amounts, quantities and hours are stored with two decimals; anything
    finer would be silently changed by the database.
    """
    value = to_decimal(value, field_name)
    if value is not None and value != value.quantize(CENT, rounding=ROUND_HALF_UP):
        raise InvalidPriceConfig(f"{field_name} must have at most two decimal places, got {value}")
    return value


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def is_hourly_rate_service(name: str) -> bool:
    return HOURLY_RATE_MARKER in (name or "").lower()


def worker_surcharge(workers: int) -> Decimal:
    return WORKER_SURCHARGE * max(0, workers - SURCHARGE_BASELINE_WORKERS)


def _non_negative(value: Optional[Decimal], what: str) -> Optional[Decimal]:
    if value is not None and not value.is_finite():
        raise InvalidPriceConfig(f"{what} must be a finite number")
    if value is not None and value < ZERO:
        raise InvalidPriceConfig(f"{what} must not be negative")
    return value


def component_contribution(
    component: BaseComponent, workers: int, estimated_hours: Decimal
) -> Decimal:
    """Amount a single base component adds to the base total."""
    try:
        model = PricingModel(component.pricing_model)
    except ValueError:
        raise InvalidPriceConfig(
            f"unknown pricing model {component.pricing_model!r} for {component.name or 'category'}"
        )
    label = component.name or model.value

    if model is PricingModel.FIXED:
        if component.base_price is None:
            raise InvalidPriceConfig(f"fixed category {label} has no base price")
        _non_negative(component.base_price, f"base price of {label}")
        _non_negative(component.quantity, f"quantity of {label}")
        return round_money(component.base_price * component.quantity)

    if model is PricingModel.HOURLY:
        if component.hourly_rate is None:
            raise InvalidPriceConfig(f"hourly category {label} has no hourly rate")
        _non_negative(component.hourly_rate, f"hourly rate of {label}")
        return round_money(component.hourly_rate * estimated_hours * max(workers, 1))

    if component.custom_amount is None:
        raise InvalidPriceConfig(f"custom category {label} needs an explicit amount")
    _non_negative(component.custom_amount, f"amount of {label}")
    return round_money(component.custom_amount)


def adjusted_price(add_on: AddOn, workers: int) -> AddOnPrice:
    """Price of an add-on after the per-worker surcharge.

    Services flagged for the surcharge (the "Stundensatz" service) cost
    CHF 30 more for every worker beyond two.  All others keep their price.
    """
    if add_on.base_price is None:
        raise InvalidPriceConfig(f"additional service {add_on.name} has no price")
    _non_negative(add_on.base_price, f"price of {add_on.name}")
    applies = add_on.applies_worker_surcharge
    if applies is None:
        applies = is_hourly_rate_service(add_on.name)
    surcharge = worker_surcharge(workers) if applies else ZERO
    return AddOnPrice(
        name=add_on.name,
        base_price=add_on.base_price,
        surcharge=surcharge,
        price=round_money(add_on.base_price + surcharge),
    )


def _validate(request: PricingRequest) -> None:
    if request.workers is None or request.workers < 0:
        raise InvalidPriceConfig("workers must be zero or more")
    _non_negative(request.estimated_hours, "estimated hours")
    if request.estimated_hours is None or request.estimated_hours <= ZERO:
        raise InvalidPriceConfig("estimated hours must be positive")
    if request.tax.enabled and request.tax.rate_percent is None:
        raise InvalidPriceConfig("tax is enabled but no rate is configured")
    _non_negative(request.tax.rate_percent, "tax rate")
    _non_negative(request.manual_base_override, "manual price")


def price(request: PricingRequest) -> PricingResult:
    """Compute subtotal, tax and total for ``request``.

    Raises :class:`InvalidPriceConfig` when an input violates a
    precondition; nothing is partially computed in that case.
    """
    _validate(request)
    workers = request.workers

    if request.manual_base_override is not None:
        base_total = round_money(request.manual_base_override)
    else:
        base_total = sum(
            (
                component_contribution(c, workers, request.estimated_hours)
                for c in request.base_components
            ),
            ZERO,
        )

    add_on_prices = [adjusted_price(a, workers) for a in request.add_ons if a.selected]
    add_on_total = sum((p.price for p in add_on_prices), ZERO)

    subtotal = base_total + add_on_total
    if request.tax.enabled:
        tax_amount = round_money(subtotal * request.tax.rate_percent / 100)
    else:
        tax_amount = ZERO
    total = subtotal + tax_amount

    return PricingResult(
        base_total=base_total,
        add_on_total=add_on_total,
        subtotal=subtotal,
        tax_amount=tax_amount,
        total=total,
        add_on_prices=add_on_prices,
    )
