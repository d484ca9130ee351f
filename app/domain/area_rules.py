"""Area accounting rules shared by the ledger and the inventory reports."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from math import floor
from typing import Any, Iterable, Optional

from .enums import PlotStatus


ZERO = Decimal('0')
CENT = Decimal('0.01')

REASON_NON_POSITIVE = 'non-positive area'
REASON_EXCEEDS_AVAILABLE = 'exceeds available area'
REASON_NOT_FOUND = 'physical plot not found'


@dataclass(frozen=True)
class ClaimValidation:
    is_valid: bool
    available_area: Decimal
    reason: Optional[str] = None
    not_found: bool = False


@dataclass(frozen=True)
class AreaChangeCheck:
    is_valid: bool
    new_area: Decimal
    claimed_area: Decimal


@dataclass(frozen=True)
class AreaSizeCheck:
    is_valid: bool
    message: Optional[str] = None


@dataclass
class ClaimSnapshot:
    id: str
    claimed_area: Decimal


@dataclass
class PlotSnapshot:
    """Read model handed to the aggregator: one parcel with its active claims."""

    id: str
    plot_number: str
    period: str
    total_area: Decimal
    status: str
    active_claims: list[ClaimSnapshot] = field(default_factory=list)

    @property
    def claimed_area(self) -> Decimal:
        return sum_claims(self.active_claims)


def to_decimal(value: Any) -> Decimal:
    """Coerce a numeric input to Decimal without binary float noise."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return ZERO


def sum_claims(claims: Iterable[ClaimSnapshot]) -> Decimal:
    return sum((to_decimal(c.claimed_area) for c in claims), ZERO)


def available_area(total_area: Decimal, claimed_area: Decimal) -> Decimal:
    return max(ZERO, to_decimal(total_area) - to_decimal(claimed_area))


def status_for(total_area: Decimal, available: Decimal) -> str:
    if available == to_decimal(total_area):
        return PlotStatus.AVAILABLE
    if available > ZERO:
        return PlotStatus.PARTIALLY_SOLD
    return PlotStatus.SOLD_OUT


def quantize_area(value: Any) -> Decimal:
    """Round an area to the stored 2 decimal places, half up (0.005 -> 0.01).

    Non-finite values and values too large to quantize come back unchanged;
    the checks below reject them.
    """
    area = to_decimal(value)
    if not area.is_finite():
        return area
    try:
        return area.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return area


def check_claim(requested_area: Any, available: Decimal) -> ClaimValidation:
    requested = quantize_area(requested_area)
    if not requested.is_finite() or requested <= ZERO:
        return ClaimValidation(False, available, REASON_NON_POSITIVE)
    if requested > available:
        return ClaimValidation(False, available, REASON_EXCEEDS_AVAILABLE)
    return ClaimValidation(True, available)


def check_area_size(area_sqm: Any, minimum: float, maximum: float) -> AreaSizeCheck:
    area = quantize_area(area_sqm)
    if not area.is_finite():
        return AreaSizeCheck(False, 'area must be a number')
    if area <= ZERO:
        return AreaSizeCheck(False, 'area must be greater than 0')
    if area < to_decimal(minimum):
        return AreaSizeCheck(False, f'area must be at least {minimum} sqm')
    if area > to_decimal(maximum):
        return AreaSizeCheck(False, f'area must be at most {maximum} sqm')
    return AreaSizeCheck(True)


def used_portion(status: str, total_area: float, claimed_area: float) -> float:
    """Capacity-weighted count a parcel contributes to "used".

    1.0 when sold out, the claimed fraction when partially sold, else 0.
    """
    if status == PlotStatus.SOLD_OUT:
        return 1.0
    if status == PlotStatus.PARTIALLY_SOLD and claimed_area > 0 and total_area > 0:
        return claimed_area / total_area
    return 0.0


def used_area(status: str, total_area: float, claimed_area: float) -> float:
    if status == PlotStatus.SOLD_OUT:
        return total_area
    if status == PlotStatus.PARTIALLY_SOLD and claimed_area > 0:
        return claimed_area
    return 0.0


def round_half_up(value: float, digits: int = 0):
    """Round halves away from zero for positives (1.5 -> 2, 2.5 -> 3).

    Python's round() rounds halves to even, which would change report
    values at every .5 boundary.
    """
    factor = 10 ** digits
    rounded = floor(value * factor + 0.5)
    if digits == 0:
        return int(rounded)
    return rounded / factor
