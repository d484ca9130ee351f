from __future__ import annotations


class PlotStatus:
    """Occupancy state of a physical plot.

    Derived from the active claims; stored on the plot for fast reads.
    """

    AVAILABLE = 'available'
    PARTIALLY_SOLD = 'partially_sold'
    SOLD_OUT = 'sold_out'

    ALL = (AVAILABLE, PARTIALLY_SOLD, SOLD_OUT)


class ClaimState:
    """Lifecycle state for contract plots (claims)."""

    ACTIVE = 'active'
    RELEASED = 'released'

    ALL = (ACTIVE, RELEASED)


# Sales phases, in display order.
PERIODS: tuple[str, ...] = ('1期', '2期', '3期', '4期')

SECTION_SORT_KEYS: tuple[str, ...] = (
    'period',
    'section',
    'totalCount',
    'usedCount',
    'remainingCount',
    'usageRate',
)

AREA_SORT_KEYS: tuple[str, ...] = (
    'period',
    'areaSqm',
    'totalCount',
    'usedCount',
    'remainingCount',
    'remainingAreaSqm',
    'plotType',
)

SORT_ORDERS: tuple[str, ...] = ('asc', 'desc')
