"""
Pricing rules for imported stock.

Pure functions over Decimal money; no database access. Product rows call
these from their flush listeners and the service calls them after every
price mutation, so the stored derived fields never drift from the inputs.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from erp.error_handlers import ValidationFailureError

CENT = Decimal("0.01")
HUNDRED = Decimal("100")

Number = Union[Decimal, int, float, str]


def to_money(value: Optional[Number]) -> Decimal:
    """Quantize to cents, half-up. None counts as zero."""
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        # str() first so floats don't drag binary noise into the amount
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PricingBreakdown:
    total_cost_price: Decimal
    margin: Decimal
    margin_percentage: Decimal


def total_cost(
    purchase_price: Optional[Number],
    transport_cost: Optional[Number],
    other_costs: Optional[Number] = None,
) -> Decimal:
    return to_money(to_money(purchase_price) + to_money(transport_cost) + to_money(other_costs))


def margin_percentage(margin: Number, total_cost_price: Number) -> Decimal:
    """Margin as a percentage of cost; 0 when there is no cost to relate to."""
    cost = to_money(total_cost_price)
    if cost == 0:
        return Decimal("0.00")
    return (to_money(margin) / cost * HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_pricing(
    purchase_price: Optional[Number],
    transport_cost: Optional[Number],
    other_costs: Optional[Number],
    selling_price: Optional[Number],
) -> PricingBreakdown:
    """
    Derive cost, margin and margin percentage from the price inputs.

    >>> compute_pricing(100, 20, 0, 180)
    PricingBreakdown(total_cost_price=Decimal('120.00'), margin=Decimal('60.00'), margin_percentage=Decimal('50.00'))
    """
    cost = total_cost(purchase_price, transport_cost, other_costs)
    margin = to_money(to_money(selling_price) - cost)
    return PricingBreakdown(
        total_cost_price=cost,
        margin=margin,
        margin_percentage=margin_percentage(margin, cost),
    )


def price_for_margin(total_cost_price: Number, target_percentage: Number) -> Decimal:
    """
    Selling price that yields ``target_percentage`` margin over cost.

    Raises:
        ValidationFailureError: cost is not positive, target is -100% or lower,
            or the price rounds down to zero
    """
    cost = to_money(total_cost_price)
    target = Decimal(str(target_percentage))
    if cost <= 0:
        raise ValidationFailureError(
            "Cannot derive a selling price from a margin when total cost is zero",
            total_cost_price=str(cost),
        )
    if target <= -HUNDRED:
        raise ValidationFailureError(
            "Margin percentage must be greater than -100",
            margin_percentage=str(target),
        )
    price = to_money(cost * (1 + target / HUNDRED))
    if price <= 0:
        raise ValidationFailureError(
            "Margin percentage leaves no positive selling price",
            margin_percentage=str(target),
            total_cost_price=str(cost),
        )
    return price


def adjust_by_percentage(price: Number, percentage: Number) -> Decimal:
    """Raise (or cut, when negative) a price by a percentage."""
    return to_money(to_money(price) * (1 + Decimal(str(percentage)) / HUNDRED))


def stock_value(stock: int, selling_price: Optional[Number]) -> Decimal:
    return to_money(to_money(selling_price) * stock)
