"""Persistence collaborator for the area ledger and the inventory reports.

A ``PlotRepository`` wraps one SQLAlchemy session. Routes build it from
``db.session`` per request; nothing here holds module-level state. Every read
of claims filters to active claims only.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

from sqlalchemy import select

from app.domain.area_rules import ClaimSnapshot, PlotSnapshot, to_decimal
from app.domain.enums import ClaimState
from app.models import ContractPlot, PhysicalPlot


@dataclass(frozen=True)
class PlotFilter:
    period: Optional[str] = None
    status: Optional[str] = None


class PlotRepository:
    def __init__(self, session):
        self.session = session

    # -- transaction boundary -------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator['PlotRepository']:
        """Commit on success, roll back on any error and re-raise."""
        try:
            yield self
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    def lock_physical_plot(self, physical_plot_id: str) -> Optional[PhysicalPlot]:
        """Load a live parcel holding its row lock until the transaction ends.

        PostgreSQL takes ``FOR UPDATE``; SQLite transactions are already
        ``BEGIN IMMEDIATE`` (see ``enable_sqlite_immediate_transactions``).
        """
        stmt = (
            select(PhysicalPlot)
            .where(PhysicalPlot.id == physical_plot_id)
            .where(PhysicalPlot.deleted_at.is_(None))
            .with_for_update()
        )
        return self.session.execute(stmt).scalar_one_or_none()

    # -- single parcel ----------------------------------------------------

    def fetch_physical_plot(self, physical_plot_id: str) -> Optional[PhysicalPlot]:
        stmt = (
            select(PhysicalPlot)
            .where(PhysicalPlot.id == physical_plot_id)
            .where(PhysicalPlot.deleted_at.is_(None))
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def fetch_active_claims(
        self,
        physical_plot_id: str,
        exclude_contract_plot_id: Optional[str] = None,
    ) -> list[ClaimSnapshot]:
        stmt = (
            select(ContractPlot.id, ContractPlot.contract_area_sqm)
            .where(ContractPlot.physical_plot_id == physical_plot_id)
            .where(ContractPlot.lifecycle_state == ClaimState.ACTIVE)
            .order_by(ContractPlot.created_at)
        )
        if exclude_contract_plot_id:
            stmt = stmt.where(ContractPlot.id != exclude_contract_plot_id)
        return [
            ClaimSnapshot(id=row.id, claimed_area=to_decimal(row.contract_area_sqm))
            for row in self.session.execute(stmt)
        ]

    def fetch_active_claim_models(self, physical_plot_id: str) -> list[ContractPlot]:
        stmt = (
            select(ContractPlot)
            .where(ContractPlot.physical_plot_id == physical_plot_id)
            .where(ContractPlot.lifecycle_state == ClaimState.ACTIVE)
            .order_by(ContractPlot.created_at)
        )
        return list(self.session.execute(stmt).scalars())

    def fetch_claim_plot_id(self, contract_plot_id: str) -> Optional[str]:
        stmt = (
            select(ContractPlot.physical_plot_id)
            .where(ContractPlot.id == contract_plot_id)
            .where(ContractPlot.lifecycle_state == ClaimState.ACTIVE)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def lock_claim(self, contract_plot_id: str) -> Optional[ContractPlot]:
        """Re-read an active claim with its row lock, refreshing any cached state."""
        stmt = (
            select(ContractPlot)
            .where(ContractPlot.id == contract_plot_id)
            .where(ContractPlot.lifecycle_state == ClaimState.ACTIVE)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def persist_status(self, physical_plot_id: str, status: str) -> None:
        plot = self.session.get(PhysicalPlot, physical_plot_id)
        if plot is not None and plot.status != status:
            plot.status = status
            self.session.flush()

    def add(self, instance) -> None:
        self.session.add(instance)
        self.session.flush()

    # -- plot numbers -----------------------------------------------------

    def existing_plot_numbers(self, plot_numbers, exclude_id: Optional[str] = None) -> set[str]:
        if not plot_numbers:
            return set()
        stmt = (
            select(PhysicalPlot.plot_number)
            .where(PhysicalPlot.plot_number.in_(list(plot_numbers)))
            .where(PhysicalPlot.deleted_at.is_(None))
        )
        if exclude_id:
            stmt = stmt.where(PhysicalPlot.id != exclude_id)
        return set(self.session.execute(stmt).scalars())

    # -- bulk read for reports -------------------------------------------

    def fetch_all_physical_plots(self, plot_filter: Optional[PlotFilter] = None) -> list[PlotSnapshot]:
        """Load every live parcel matching the filter with its active claims."""
        plot_filter = plot_filter or PlotFilter()

        plot_stmt = select(
            PhysicalPlot.id,
            PhysicalPlot.plot_number,
            PhysicalPlot.period,
            PhysicalPlot.area_sqm,
            PhysicalPlot.status,
        ).where(PhysicalPlot.deleted_at.is_(None))
        claim_stmt = (
            select(ContractPlot.id, ContractPlot.physical_plot_id, ContractPlot.contract_area_sqm)
            .join(PhysicalPlot, PhysicalPlot.id == ContractPlot.physical_plot_id)
            .where(PhysicalPlot.deleted_at.is_(None))
            .where(ContractPlot.lifecycle_state == ClaimState.ACTIVE)
        )

        if plot_filter.period:
            plot_stmt = plot_stmt.where(PhysicalPlot.period == plot_filter.period)
            claim_stmt = claim_stmt.where(PhysicalPlot.period == plot_filter.period)
        if plot_filter.status:
            plot_stmt = plot_stmt.where(PhysicalPlot.status == plot_filter.status)
            claim_stmt = claim_stmt.where(PhysicalPlot.status == plot_filter.status)

        plot_stmt = plot_stmt.order_by(PhysicalPlot.created_at, PhysicalPlot.id)

        claims_by_plot: dict[str, list[ClaimSnapshot]] = {}
        for row in self.session.execute(claim_stmt):
            claims_by_plot.setdefault(row.physical_plot_id, []).append(
                ClaimSnapshot(id=row.id, claimed_area=to_decimal(row.contract_area_sqm))
            )

        return [
            PlotSnapshot(
                id=row.id,
                plot_number=row.plot_number,
                period=row.period,
                total_area=to_decimal(row.area_sqm),
                status=row.status,
                active_claims=claims_by_plot.get(row.id, []),
            )
            for row in self.session.execute(plot_stmt)
        ]
