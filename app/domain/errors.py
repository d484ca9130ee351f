"""Typed failures raised by the inventory services.

Routes map each class to an HTTP status via ``status_code`` and ``code``.
"""

from __future__ import annotations

from typing import Any


class InventoryError(Exception):
    status_code = 400
    code = 'VALIDATION_ERROR'

    def __init__(self, message: str, details: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or []

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {'code': self.code, 'message': self.message}
        if self.details:
            payload['details'] = self.details
        return payload


class PlotNotFound(InventoryError):
    status_code = 404
    code = 'NOT_FOUND'

    def __init__(self, physical_plot_id: str):
        super().__init__(f'Physical plot not found: {physical_plot_id}')
        self.physical_plot_id = physical_plot_id


class ClaimNotFound(InventoryError):
    status_code = 404
    code = 'NOT_FOUND'

    def __init__(self, contract_plot_id: str):
        super().__init__(f'Contract plot not found: {contract_plot_id}')
        self.contract_plot_id = contract_plot_id


class ClaimRejected(InventoryError):
    """A claim failed area validation; carries the validation result."""

    def __init__(self, validation):
        super().__init__(
            validation.reason or 'claim rejected',
            [{'field': 'contractAreaSqm', 'message': validation.reason or '',
              'availableArea': float(validation.available_area)}],
        )
        self.validation = validation


class AreaShrinkRejected(InventoryError):
    def __init__(self, check):
        super().__init__(
            'plot area would be smaller than the active claimed area',
            [{'field': 'areaSqm', 'message': f'claimed area: {check.claimed_area}'}],
        )
        self.check = check


class PlotHasActiveClaims(InventoryError):
    status_code = 409
    code = 'CONFLICT'


class DuplicatePlotNumber(InventoryError):
    status_code = 409
    code = 'CONFLICT'


class BulkImportError(InventoryError):
    """Row-level failures of a bulk import; nothing was written."""
