"""Inventory reports for the plot dashboards.

Every report uses the same accounting: a parcel contributes 1.0 to the used
count when sold out, ``claimed / total`` when partially sold and 0 otherwise.
Fractions are accumulated per group first and each output metric is rounded
once, independently. ``remainingCount`` is therefore not always
``totalCount - usedCount`` after rounding; dashboards depend on the current
values, so keep it that way.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Optional

from app.domain import area_rules
from app.domain.enums import AREA_SORT_KEYS, PERIODS, SECTION_SORT_KEYS
from app.domain.plot_identifier import categorize_section, determine_plot_type, extract_section
from app.domain.report_pager import Page, ReportPager
from app.services.repository import PlotFilter


logger = logging.getLogger(__name__)

DEFAULT_PLOT_AREA_SQM = 3.6


@dataclass(frozen=True)
class InventoryFilters:
    period: Optional[str] = None
    status: Optional[str] = None
    search: str = ''
    sort_by: str = 'period'
    sort_order: str = 'asc'
    page: int = 1
    limit: int = 20


@dataclass
class _Tally:
    """Running fractional totals for one report group."""

    total_count: int = 0
    used_count: float = 0.0
    total_area: float = 0.0
    used_area: float = 0.0
    extra: dict[str, Any] = field(default_factory=dict)

    def add(self, status: str, plot_area: float, claimed_area: float) -> None:
        self.total_count += 1
        self.used_count += area_rules.used_portion(status, plot_area, claimed_area)
        self.total_area += plot_area
        self.used_area += area_rules.used_area(status, plot_area, claimed_area)

    @property
    def remaining_count(self) -> float:
        return self.total_count - self.used_count

    @property
    def remaining_area(self) -> float:
        return self.total_area - self.used_area

    @property
    def usage_rate(self) -> float:
        if self.total_count <= 0:
            return 0.0
        return self.used_count / self.total_count * 100


def _round(value: float, digits: int = 0):
    return area_rules.round_half_up(value, digits)


def _section_matches(search: str) -> Optional[Callable[[dict], bool]]:
    if not search:
        return None
    needle = search.lower()
    return lambda item: (
        needle in item['period'].lower()
        or needle in item['section'].lower()
        or bool(item['category'] and needle in item['category'].lower())
    )


def _area_matches(search: str) -> Optional[Callable[[dict], bool]]:
    if not search:
        return None
    needle = search.lower()
    return lambda item: (
        needle in item['period'].lower()
        or needle in item['plotType'].lower()
        or needle in _format_area(item['areaSqm'])
    )


def _sort_key(sort_by: str, allowed: tuple[str, ...]) -> Callable[[dict], Any]:
    field_name = sort_by if sort_by in allowed else 'period'
    return lambda item: item[field_name]


class InventoryAggregator:
    def __init__(self, repository, default_plot_area: float = DEFAULT_PLOT_AREA_SQM):
        self.repository = repository
        self.default_plot_area = default_plot_area

    def _plot_area(self, snapshot) -> float:
        area = float(snapshot.total_area or 0)
        return area if area > 0 else self.default_plot_area

    def _scan(self, plot_filter: PlotFilter):
        for snapshot in self.repository.fetch_all_physical_plots(plot_filter):
            yield snapshot, self._plot_area(snapshot), float(snapshot.claimed_area)

    # -- summaries --------------------------------------------------------

    def get_overall_summary(self) -> dict[str, Any]:
        tally = _Tally()
        for snapshot, plot_area, claimed in self._scan(PlotFilter()):
            tally.add(snapshot.status, plot_area, claimed)

        return {
            'totalCount': _round(tally.total_count),
            'usedCount': _round(tally.used_count),
            'remainingCount': _round(tally.remaining_count),
            'usageRate': _round(tally.usage_rate, 1),
            'totalAreaSqm': _round(tally.total_area, 2),
            'remainingAreaSqm': _round(tally.remaining_area, 2),
            'lastUpdated': datetime.now(timezone.utc).isoformat(),
        }

    def get_period_summaries(self, period: Optional[str] = None) -> list[dict[str, Any]]:
        periods = (period,) if period else PERIODS
        results = []
        for p in periods:
            tally = _Tally()
            for snapshot, plot_area, claimed in self._scan(PlotFilter(period=p)):
                tally.add(snapshot.status, plot_area, claimed)
            results.append({
                'period': p,
                'totalCount': _round(tally.total_count),
                'usedCount': _round(tally.used_count),
                'remainingCount': _round(tally.remaining_count),
                'usageRate': _round(tally.usage_rate, 1),
            })
        return results

    # -- breakdowns -------------------------------------------------------

    def get_section_inventory(self, filters: InventoryFilters) -> Page[dict[str, Any]]:
        groups: dict[tuple[str, str], _Tally] = {}
        for snapshot, plot_area, claimed in self._scan(PlotFilter(filters.period, filters.status)):
            section = extract_section(snapshot.plot_number)
            key = (snapshot.period, section)
            tally = groups.get(key)
            if tally is None:
                tally = groups[key] = _Tally(extra={'category': categorize_section(section)})
            tally.add(snapshot.status, plot_area, claimed)

        items = [
            {
                'period': period,
                'section': section,
                'totalCount': _round(tally.total_count),
                'usedCount': _round(tally.used_count),
                'remainingCount': _round(tally.remaining_count),
                'usageRate': _round(tally.usage_rate, 1),
                'category': tally.extra['category'],
            }
            for (period, section), tally in groups.items()
        ]

        return (
            ReportPager(items)
            .filter(_section_matches(filters.search))
            .sort(_sort_key(filters.sort_by, SECTION_SORT_KEYS), filters.sort_order)
            .paginate(filters.page, filters.limit)
        )

    def get_area_inventory(self, filters: InventoryFilters) -> Page[dict[str, Any]]:
        groups: dict[tuple[str, float, str], _Tally] = {}
        for snapshot, plot_area, claimed in self._scan(PlotFilter(period=filters.period)):
            section = extract_section(snapshot.plot_number)
            plot_type = determine_plot_type(section, plot_area)
            key = (snapshot.period, plot_area, plot_type)
            tally = groups.get(key)
            if tally is None:
                tally = groups[key] = _Tally()
            tally.add(snapshot.status, plot_area, claimed)

        items = [
            {
                'period': period,
                'areaSqm': area_sqm,
                'totalCount': _round(tally.total_count),
                'usedCount': _round(tally.used_count),
                'remainingCount': _round(tally.remaining_count),
                'totalAreaSqm': _round(tally.total_area, 2),
                'usedAreaSqm': _round(tally.used_area, 2),
                'remainingAreaSqm': _round(tally.remaining_area, 2),
                'plotType': plot_type,
            }
            for (period, area_sqm, plot_type), tally in groups.items()
        ]

        return (
            ReportPager(items)
            .filter(_area_matches(filters.search))
            .sort(_sort_key(filters.sort_by, AREA_SORT_KEYS), filters.sort_order)
            .paginate(filters.page, filters.limit)
        )


def _format_area(area: float) -> str:
    # 3.6 -> "3.6", 4.0 -> "4", 1234567.0 -> "1234567" (never exponent form)
    return format(Decimal(str(area)).normalize(), 'f')
