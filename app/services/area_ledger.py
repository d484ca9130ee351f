"""Capacity accounting for a single physical plot.

The ledger computes, validates and derives; it never opens or commits a
transaction. Callers that create, resize or release a claim must run
``lock -> validate_claim -> persist claim -> derive_status`` inside one
transaction (see ``plot_service``), otherwise two requests can pass validation
against the same snapshot.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Optional

from app.domain import area_rules
from app.domain.area_rules import AreaChangeCheck, ClaimValidation, ZERO, to_decimal
from app.domain.errors import PlotNotFound


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlotInventory:
    physical_plot_id: str
    total_area: Decimal
    allocated_area: Decimal
    available_area: Decimal
    utilization_rate: float
    status: str
    claims: list[area_rules.ClaimSnapshot]

    def to_dict(self) -> dict[str, Any]:
        return {
            'totalArea': float(self.total_area),
            'allocatedArea': float(self.allocated_area),
            'availableArea': float(self.available_area),
            'utilizationRate': self.utilization_rate,
            'status': self.status,
        }


class AreaLedger:
    def __init__(self, repository):
        self.repository = repository

    def _load(self, physical_plot_id: str):
        plot = self.repository.fetch_physical_plot(physical_plot_id)
        if plot is None:
            raise PlotNotFound(physical_plot_id)
        return plot

    def compute_available_area(self, physical_plot_id: str) -> Decimal:
        plot = self._load(physical_plot_id)
        claimed = area_rules.sum_claims(self.repository.fetch_active_claims(physical_plot_id))
        return area_rules.available_area(to_decimal(plot.area_sqm), claimed)

    def validate_claim(
        self,
        physical_plot_id: str,
        requested_area: Any,
        exclude_contract_plot_id: Optional[str] = None,
    ) -> ClaimValidation:
        """Check a proposed claim without mutating anything.

        ``exclude_contract_plot_id`` drops the claim being resized from the
        claimed sum. A missing plot is reported as ``not_found``.
        """
        plot = self.repository.fetch_physical_plot(physical_plot_id)
        if plot is None:
            return ClaimValidation(False, ZERO, area_rules.REASON_NOT_FOUND, not_found=True)

        claims = self.repository.fetch_active_claims(
            physical_plot_id,
            exclude_contract_plot_id=exclude_contract_plot_id,
        )
        available = area_rules.available_area(to_decimal(plot.area_sqm), area_rules.sum_claims(claims))
        return area_rules.check_claim(requested_area, available)

    def derive_status(self, physical_plot_id: str) -> str:
        """Recompute the tri-state status and persist it if it changed."""
        plot = self._load(physical_plot_id)
        available = self.compute_available_area(physical_plot_id)
        status = area_rules.status_for(to_decimal(plot.area_sqm), available)
        if plot.status != status:
            logger.info('Plot %s status %s -> %s', plot.plot_number, plot.status, status)
            self.repository.persist_status(physical_plot_id, status)
        return status

    def check_area_change(self, physical_plot_id: str, new_total_area: Any) -> AreaChangeCheck:
        """Whether the parcel's total area may be set to ``new_total_area``.

        Only exposes the check; the caller decides whether to apply the edit.
        """
        self._load(physical_plot_id)
        claimed = area_rules.sum_claims(self.repository.fetch_active_claims(physical_plot_id))
        new_area = area_rules.quantize_area(new_total_area)
        is_valid = new_area.is_finite() and new_area >= claimed
        return AreaChangeCheck(is_valid=is_valid, new_area=new_area, claimed_area=claimed)

    def is_fully_available(self, physical_plot_id: str) -> bool:
        if self.repository.fetch_physical_plot(physical_plot_id) is None:
            return False
        return not self.repository.fetch_active_claims(physical_plot_id)

    def is_fully_sold(self, physical_plot_id: str) -> bool:
        return self.compute_available_area(physical_plot_id) == ZERO

    def available_area_options(self, physical_plot_id: str, standard_sizes: Iterable[Any]) -> list[Decimal]:
        available = self.compute_available_area(physical_plot_id)
        return [size for size in (to_decimal(s) for s in standard_sizes) if size <= available]

    def describe(self, physical_plot_id: str) -> PlotInventory:
        plot = self._load(physical_plot_id)
        claims = self.repository.fetch_active_claims(physical_plot_id)
        total = to_decimal(plot.area_sqm)
        allocated = area_rules.sum_claims(claims)
        available = area_rules.available_area(total, allocated)
        rate = float(allocated / total * 100) if total > ZERO else 0.0
        return PlotInventory(
            physical_plot_id=physical_plot_id,
            total_area=total,
            allocated_area=allocated,
            available_area=available,
            utilization_rate=area_rules.round_half_up(rate, 2),
            status=area_rules.status_for(total, available),
            claims=claims,
        )
