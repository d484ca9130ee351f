"""Plot and claim workflows.

Every write that touches a parcel's area runs inside one transaction that
holds the parcel's row lock:

    lock plot -> validate -> persist -> derive status -> commit

The ledger supplies the checks; this module supplies the boundary.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

from app.domain import area_rules
from app.domain.enums import PlotStatus
from app.domain.errors import (
    AreaShrinkRejected,
    BulkImportError,
    ClaimNotFound,
    ClaimRejected,
    DuplicatePlotNumber,
    InventoryError,
    PlotHasActiveClaims,
    PlotNotFound,
)
from app.models import ContractPlot, PhysicalPlot
from app.services.area_ledger import AreaLedger


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlotSettings:
    default_area_sqm: float = 3.6
    min_area_sqm: float = 1.8
    max_area_sqm: float = 10
    bulk_max_items: int = 500
    standard_claim_sizes: tuple = (1.8, 3.6)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> 'PlotSettings':
        return cls(
            default_area_sqm=config.get('DEFAULT_PLOT_AREA_SQM', cls.default_area_sqm),
            min_area_sqm=config.get('PLOT_AREA_MIN_SQM', cls.min_area_sqm),
            max_area_sqm=config.get('PLOT_AREA_MAX_SQM', cls.max_area_sqm),
            bulk_max_items=config.get('BULK_IMPORT_MAX_ITEMS', cls.bulk_max_items),
            standard_claim_sizes=tuple(config.get('STANDARD_CLAIM_SIZES_SQM', cls.standard_claim_sizes)),
        )


class PlotService:
    def __init__(self, repository, settings: Optional[PlotSettings] = None):
        self.repository = repository
        self.ledger = AreaLedger(repository)
        self.settings = settings or PlotSettings()

    def _check_area_size(self, area_sqm) -> None:
        check = area_rules.check_area_size(area_sqm, self.settings.min_area_sqm, self.settings.max_area_sqm)
        if not check.is_valid:
            raise InventoryError(check.message, [{'field': 'areaSqm', 'message': check.message}])

    def _locked_plot(self, physical_plot_id: str) -> PhysicalPlot:
        plot = self.repository.lock_physical_plot(physical_plot_id)
        if plot is None:
            raise PlotNotFound(physical_plot_id)
        return plot

    # -- physical plots -------------------------------------------------

    def create_plot(self, plot_number: str, period: str, area_sqm, notes: Optional[str] = None) -> PhysicalPlot:
        self._check_area_size(area_sqm)
        with self.repository.transaction():
            if self.repository.existing_plot_numbers([plot_number]):
                raise DuplicatePlotNumber(
                    'plot number already in use',
                    [{'field': 'plotNumber', 'message': f'{plot_number} already exists'}],
                )
            plot = PhysicalPlot(
                plot_number=plot_number,
                period=period,
                area_sqm=area_rules.quantize_area(area_sqm),
                status=PlotStatus.AVAILABLE,
                notes=notes or None,
            )
            self.repository.add(plot)
            logger.info('Created physical plot %s (%s, %s sqm)', plot.plot_number, plot.period, plot.area_sqm)
        return plot

    def bulk_create_plots(self, items: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Create many plots all-or-nothing.

        ``items`` are already field-validated rows (``plot_number``, ``period``,
        ``area_sqm``, ``notes``). Duplicates inside the batch or against live
        plots fail the whole import with row numbers in the details.
        """
        if not items:
            raise BulkImportError('no rows to import', [{'field': 'items', 'message': 'at least one row is required'}])
        if len(items) > self.settings.bulk_max_items:
            raise BulkImportError(
                f'bulk import accepts at most {self.settings.bulk_max_items} rows',
                [{'field': 'items', 'message': f'{len(items)} rows given'}],
            )

        rows_by_number: dict[str, list[int]] = {}
        for index, item in enumerate(items):
            rows_by_number.setdefault(item['plot_number'], []).append(index)

        batch_duplicates = [
            {
                'row': rows[1],
                'field': 'plotNumber',
                'message': f'plot number "{number}" is duplicated in the batch (rows {", ".join(map(str, rows))})',
            }
            for number, rows in rows_by_number.items()
            if len(rows) > 1
        ]
        if batch_duplicates:
            raise BulkImportError('bulk import failed', batch_duplicates)

        areas, bad_areas = [], []
        for index, item in enumerate(items):
            raw = item.get('area_sqm')
            area = area_rules.quantize_area(raw if raw is not None else self.settings.default_area_sqm)
            if not area.is_finite() or area <= area_rules.ZERO:
                bad_areas.append({'row': index, 'field': 'areaSqm', 'message': 'area must be greater than 0'})
            areas.append(area)
        if bad_areas:
            raise BulkImportError('bulk import failed', bad_areas)

        with self.repository.transaction():
            existing = self.repository.existing_plot_numbers(rows_by_number.keys())
            if existing:
                raise BulkImportError('bulk import failed', [
                    {
                        'row': rows_by_number[number][0],
                        'field': 'plotNumber',
                        'message': f'plot number "{number}" already exists',
                    }
                    for number in sorted(existing, key=lambda n: rows_by_number[n][0])
                ])

            results = []
            for index, item in enumerate(items):
                area = areas[index]
                plot = PhysicalPlot(
                    plot_number=item['plot_number'],
                    period=item['period'],
                    area_sqm=area,
                    status=PlotStatus.AVAILABLE,
                    notes=item.get('notes') or None,
                )
                self.repository.add(plot)
                results.append({
                    'row': index,
                    'id': plot.id,
                    'plotNumber': plot.plot_number,
                    'period': plot.period,
                })

        logger.info('Bulk import created %d physical plots', len(results))
        return results

    def update_plot(self, physical_plot_id: str, changes: Mapping[str, Any]) -> PhysicalPlot:
        """Apply field edits. A new area must not undercut the active claims."""
        with self.repository.transaction():
            plot = self._locked_plot(physical_plot_id)

            plot_number = changes.get('plot_number')
            if plot_number and plot_number != plot.plot_number:
                if self.repository.existing_plot_numbers([plot_number], exclude_id=plot.id):
                    raise DuplicatePlotNumber(
                        'plot number already in use',
                        [{'field': 'plotNumber', 'message': f'{plot_number} already exists'}],
                    )
                plot.plot_number = plot_number

            if changes.get('period'):
                plot.period = changes['period']

            if 'notes' in changes:
                plot.notes = changes['notes'] or None

            if changes.get('area_sqm') is not None:
                self._check_area_size(changes['area_sqm'])
                check = self.ledger.check_area_change(plot.id, changes['area_sqm'])
                if not check.is_valid:
                    logger.warning(
                        'Rejected area change for plot %s: %s < claimed %s',
                        plot.plot_number, check.new_area, check.claimed_area,
                    )
                    raise AreaShrinkRejected(check)
                plot.area_sqm = check.new_area

            self.repository.session.flush()
            self.ledger.derive_status(plot.id)
        return plot

    def delete_plot(self, physical_plot_id: str) -> None:
        with self.repository.transaction():
            plot = self._locked_plot(physical_plot_id)
            if self.repository.fetch_active_claims(plot.id):
                raise PlotHasActiveClaims('plot has active contracts and cannot be deleted')
            plot.deleted_at = datetime.utcnow()
            logger.info('Deleted physical plot %s', plot.plot_number)

    # -- claims -----------------------------------------------------------

    def create_claim(
        self,
        physical_plot_id: str,
        area_sqm,
        sale_status: str = 'contracted',
        location_description: Optional[str] = None,
    ) -> ContractPlot:
        area = area_rules.quantize_area(area_sqm)
        with self.repository.transaction():
            plot = self._locked_plot(physical_plot_id)
            validation = self.ledger.validate_claim(plot.id, area)
            if not validation.is_valid:
                logger.warning(
                    'Rejected claim of %s sqm on plot %s: %s (available %s)',
                    area_sqm, plot.plot_number, validation.reason, validation.available_area,
                )
                raise ClaimRejected(validation)

            claim = ContractPlot(
                physical_plot_id=plot.id,
                contract_area_sqm=area,
                sale_status=sale_status or 'contracted',
                location_description=location_description or None,
            )
            self.repository.add(claim)
            self.ledger.derive_status(plot.id)
            logger.info('Created claim %s of %s sqm on plot %s', claim.id, claim.contract_area_sqm, plot.plot_number)
        return claim

    def _locked_claim(self, contract_plot_id: str) -> tuple[ContractPlot, PhysicalPlot]:
        """Lock the claim's parcel, then re-read the claim under that lock.

        A release committed before the lock was granted makes the claim
        disappear here instead of being written to.
        """
        physical_plot_id = self.repository.fetch_claim_plot_id(contract_plot_id)
        if physical_plot_id is None:
            raise ClaimNotFound(contract_plot_id)
        plot = self._locked_plot(physical_plot_id)
        claim = self.repository.lock_claim(contract_plot_id)
        if claim is None:
            raise ClaimNotFound(contract_plot_id)
        return claim, plot

    def resize_claim(self, contract_plot_id: str, area_sqm) -> ContractPlot:
        area = area_rules.quantize_area(area_sqm)
        with self.repository.transaction():
            claim, plot = self._locked_claim(contract_plot_id)
            validation = self.ledger.validate_claim(plot.id, area, exclude_contract_plot_id=claim.id)
            if not validation.is_valid:
                logger.warning(
                    'Rejected resize of claim %s to %s sqm: %s (available %s)',
                    claim.id, area_sqm, validation.reason, validation.available_area,
                )
                raise ClaimRejected(validation)

            claim.contract_area_sqm = area
            self.repository.session.flush()
            self.ledger.derive_status(plot.id)
            logger.info('Resized claim %s to %s sqm', claim.id, claim.contract_area_sqm)
        return claim

    def release_claim(self, contract_plot_id: str) -> ContractPlot:
        with self.repository.transaction():
            claim, plot = self._locked_claim(contract_plot_id)
            claim.release()
            self.repository.session.flush()
            self.ledger.derive_status(plot.id)
            logger.info('Released claim %s on plot %s', claim.id, plot.plot_number)
        return claim

    def recalculate_statuses(self, physical_plot_ids: Optional[Iterable[str]] = None) -> dict[str, int]:
        """Re-derive stored statuses; returns counts per resulting status."""
        if physical_plot_ids is None:
            physical_plot_ids = [s.id for s in self.repository.fetch_all_physical_plots()]
        counts = {status: 0 for status in PlotStatus.ALL}
        for physical_plot_id in physical_plot_ids:
            with self.repository.transaction():
                self._locked_plot(physical_plot_id)
                counts[self.ledger.derive_status(physical_plot_id)] += 1
        return counts
