"""
Database Models for the Plot Inventory backend

This module defines the database models using SQLAlchemy ORM:
PhysicalPlot (a land parcel with a fixed area) and ContractPlot (a sale
claim against part or all of that area).
"""

from datetime import datetime
from uuid import uuid4

from app.extensions import db
from app.domain.enums import ClaimState, PlotStatus


def _uuid() -> str:
    return str(uuid4())


class PhysicalPlot(db.Model):
    """A fixed-capacity parcel that can be subdivided among sale claims."""

    __tablename__ = 'physical_plots'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    plot_number = db.Column(db.String(50), nullable=False, index=True)
    period = db.Column(db.String(100), nullable=False, index=True)
    area_sqm = db.Column(db.Numeric(10, 2), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=PlotStatus.AVAILABLE, index=True)
    notes = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    deleted_at = db.Column(db.DateTime, index=True)

    contract_plots = db.relationship(
        'ContractPlot',
        back_populates='physical_plot',
        lazy='select',
        order_by='ContractPlot.created_at',
    )

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    def active_contract_plots(self):
        return [cp for cp in self.contract_plots if cp.lifecycle_state == ClaimState.ACTIVE]

    def to_dict(self):
        return {
            'id': self.id,
            'plotNumber': self.plot_number,
            'period': self.period,
            'areaSqm': float(self.area_sqm) if self.area_sqm is not None else None,
            'status': self.status,
            'notes': self.notes,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f'<PhysicalPlot {self.plot_number} ({self.status})>'


class ContractPlot(db.Model):
    """A sale claim on a slice of a physical plot's area.

    Claims are never physically deleted: cancelling a sale flips
    ``lifecycle_state`` to released, which returns the area to the parcel.
    """

    __tablename__ = 'contract_plots'

    SALE_STATUS_CHOICES = ('available', 'reserved', 'contracted', 'cancelled')

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    physical_plot_id = db.Column(
        db.String(36),
        db.ForeignKey('physical_plots.id', ondelete='RESTRICT'),
        nullable=False,
        index=True,
    )
    contract_area_sqm = db.Column(db.Numeric(10, 2), nullable=False)
    sale_status = db.Column(db.String(20), nullable=False, default='contracted')
    location_description = db.Column(db.String(500))
    lifecycle_state = db.Column(db.String(20), nullable=False, default=ClaimState.ACTIVE, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    released_at = db.Column(db.DateTime)

    physical_plot = db.relationship('PhysicalPlot', back_populates='contract_plots')

    __table_args__ = (
        db.Index('ix_contract_plots_plot_state', 'physical_plot_id', 'lifecycle_state'),
    )

    @property
    def is_active(self):
        return self.lifecycle_state == ClaimState.ACTIVE

    def release(self):
        """Soft-delete the claim. Caller re-derives the parcel status."""
        self.lifecycle_state = ClaimState.RELEASED
        self.released_at = datetime.utcnow()

    def to_dict(self):
        return {
            'id': self.id,
            'physicalPlotId': self.physical_plot_id,
            'contractAreaSqm': float(self.contract_area_sqm) if self.contract_area_sqm is not None else None,
            'saleStatus': self.sale_status,
            'locationDescription': self.location_description,
            'lifecycleState': self.lifecycle_state,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'releasedAt': self.released_at.isoformat() if self.released_at else None,
        }

    def __repr__(self):
        return f'<ContractPlot {self.id} {self.contract_area_sqm}sqm {self.lifecycle_state}>'
