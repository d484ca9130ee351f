"""
Plot inventory API.

Reports:
    GET  /inventory/summary | /inventory/periods | /inventory/sections | /inventory/areas
Plots and claims:
    POST /, POST /bulk, PATCH /<id>, DELETE /<id>
    GET  /<id>, GET /<id>/inventory, GET /<id>/area-options
    POST /<id>/contracts, PATCH /contracts/<cid>, DELETE /contracts/<cid>
"""

from flask import Blueprint, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from app.domain.enums import AREA_SORT_KEYS, PERIODS, SECTION_SORT_KEYS, SORT_ORDERS, PlotStatus
from app.domain.errors import InventoryError, PlotNotFound
from app.extensions import db, limiter
from app.forms import (
    BulkPlotItemForm,
    ContractPlotForm,
    PhysicalPlotForm,
    PhysicalPlotUpdateForm,
    form_errors,
    json_formdata,
)
from app.services.inventory import InventoryAggregator, InventoryFilters
from app.services.plot_service import PlotService, PlotSettings
from app.services.repository import PlotRepository
from app.utils.db_resilience import with_db_resilience


plots_bp = Blueprint('plots', __name__)


def _repository():
    return PlotRepository(db.session)


def _service():
    return PlotService(_repository(), PlotSettings.from_config(current_app.config))


def _aggregator():
    return InventoryAggregator(_repository(), current_app.config.get('DEFAULT_PLOT_AREA_SQM', 3.6))


def _ok(data, status_code=200):
    return jsonify({'success': True, 'data': data}), status_code


def _fail(code, message, status_code, details=None):
    error = {'code': code, 'message': message}
    if details:
        error['details'] = details
    return jsonify({'success': False, 'error': error}), status_code


@plots_bp.errorhandler(InventoryError)
def _inventory_error(error):
    db.session.rollback()
    current_app.logger.info('Plot request rejected (%s): %s', error.code, error.message)
    return jsonify({'success': False, 'error': error.to_dict()}), error.status_code


@plots_bp.errorhandler(Exception)
def _unexpected_error(error):
    if isinstance(error, HTTPException):
        return _fail(error.name.upper().replace(' ', '_'), error.description, error.code)
    db.session.rollback()
    current_app.logger.exception('Plot request failed: %s', error)
    return _fail('INTERNAL_SERVER_ERROR', 'An internal error occurred', 500)


# ---------------------------------------------------------------------------
# Query parsing
# ---------------------------------------------------------------------------

def _int_arg(args, name, default, errors):
    raw = (args.get(name) or '').strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        errors.append({'field': name, 'message': 'must be an integer'})
        return default
    if value < 1:
        errors.append({'field': name, 'message': 'must be a positive integer'})
        return default
    return value


def _choice_arg(args, name, choices, errors, default=None):
    raw = (args.get(name) or '').strip()
    if not raw:
        return default
    if raw not in choices:
        errors.append({'field': name, 'message': f'must be one of: {", ".join(choices)}'})
        return default
    return raw


def parse_inventory_filters(args, sort_keys, allow_status=False):
    """Build InventoryFilters from query args; returns (filters, errors)."""
    errors = []
    default_limit = current_app.config.get('INVENTORY_DEFAULT_PAGE_SIZE', 20)
    max_limit = current_app.config.get('INVENTORY_MAX_PAGE_SIZE', 100)

    status = _choice_arg(args, 'status', PlotStatus.ALL, errors) if allow_status else None
    filters = InventoryFilters(
        period=_choice_arg(args, 'period', PERIODS, errors),
        status=status,
        search=(args.get('search') or '').strip(),
        sort_by=_choice_arg(args, 'sortBy', sort_keys, errors, default='period'),
        sort_order=_choice_arg(args, 'sortOrder', SORT_ORDERS, errors, default='asc'),
        page=_int_arg(args, 'page', 1, errors),
        limit=min(_int_arg(args, 'limit', default_limit, errors), max_limit),
    )
    return filters, errors


# ---------------------------------------------------------------------------
# Inventory reports
# ---------------------------------------------------------------------------

@with_db_resilience()
def _summary():
    return _aggregator().get_overall_summary()


@with_db_resilience()
def _periods(period):
    return _aggregator().get_period_summaries(period)


@with_db_resilience()
def _sections(filters):
    return _aggregator().get_section_inventory(filters)


@with_db_resilience()
def _areas(filters):
    return _aggregator().get_area_inventory(filters)


@plots_bp.route('/inventory/summary')
def inventory_summary():
    return _ok(_summary())


@plots_bp.route('/inventory/periods')
def inventory_periods():
    errors = []
    period = _choice_arg(request.args, 'period', PERIODS, errors)
    if errors:
        return _fail('VALIDATION_ERROR', 'Invalid query parameters', 400, errors)
    return _ok({'periods': _periods(period)})


@plots_bp.route('/inventory/sections')
def inventory_sections():
    filters, errors = parse_inventory_filters(request.args, SECTION_SORT_KEYS, allow_status=True)
    if errors:
        return _fail('VALIDATION_ERROR', 'Invalid query parameters', 400, errors)
    page = _sections(filters)
    return _ok({'items': page.items, 'pagination': page.pagination()})


@plots_bp.route('/inventory/areas')
def inventory_areas():
    filters, errors = parse_inventory_filters(request.args, AREA_SORT_KEYS)
    if errors:
        return _fail('VALIDATION_ERROR', 'Invalid query parameters', 400, errors)
    page = _areas(filters)
    return _ok({'items': page.items, 'pagination': page.pagination()})


# ---------------------------------------------------------------------------
# Physical plots
# ---------------------------------------------------------------------------

@plots_bp.route('', methods=['POST'])
def create_plot():
    payload = request.get_json(silent=True) or {}
    form = PhysicalPlotForm(formdata=json_formdata(payload, PhysicalPlotForm.JSON_FIELDS))
    if not form.validate():
        return _fail('VALIDATION_ERROR', 'Invalid plot data', 400, form_errors(form))

    plot = _service().create_plot(
        plot_number=form.plot_number.data.strip(),
        period=form.period.data,
        area_sqm=form.area_sqm.data,
        notes=form.notes.data,
    )
    return _ok(plot.to_dict(), 201)


@plots_bp.route('/bulk', methods=['POST'])
@limiter.limit(lambda: current_app.config.get('BULK_IMPORT_RATE_LIMIT', '30 per minute'))
def bulk_create_plots():
    payload = request.get_json(silent=True) or {}
    raw_items = payload.get('items')
    if not isinstance(raw_items, list) or not raw_items:
        return _fail('VALIDATION_ERROR', 'Bulk import failed', 400, [
            {'field': 'items', 'message': 'at least one row is required'},
        ])

    items, errors = [], []
    for row, raw in enumerate(raw_items):
        form = BulkPlotItemForm(formdata=json_formdata(raw, BulkPlotItemForm.JSON_FIELDS))
        if not form.validate():
            errors.extend(form_errors(form, row=row))
            continue
        items.append({
            'plot_number': form.plot_number.data.strip(),
            'period': form.period.data,
            'area_sqm': form.area_sqm.data,
            'notes': form.notes.data,
        })
    if errors:
        return _fail('VALIDATION_ERROR', 'Bulk import failed', 400, errors)

    results = _service().bulk_create_plots(items)
    return _ok({
        'totalRequested': len(raw_items),
        'created': len(results),
        'results': results,
    }, 201)


@plots_bp.route('/<plot_id>', methods=['GET'])
def get_plot(plot_id):
    repository = _repository()
    plot = repository.fetch_physical_plot(plot_id)
    if plot is None:
        raise PlotNotFound(plot_id)
    data = plot.to_dict()
    data['contracts'] = [cp.to_dict() for cp in repository.fetch_active_claim_models(plot_id)]
    return _ok(data)


@plots_bp.route('/<plot_id>', methods=['PATCH'])
def update_plot(plot_id):
    payload = request.get_json(silent=True) or {}
    form = PhysicalPlotUpdateForm(formdata=json_formdata(payload, PhysicalPlotUpdateForm.JSON_FIELDS))
    if not form.validate():
        return _fail('VALIDATION_ERROR', 'Invalid plot data', 400, form_errors(form))

    changes = {}
    if form.plot_number.data:
        changes['plot_number'] = form.plot_number.data.strip()
    if form.period.data:
        changes['period'] = form.period.data
    if form.area_sqm.data is not None:
        changes['area_sqm'] = form.area_sqm.data
    if 'notes' in payload:
        changes['notes'] = payload.get('notes')

    plot = _service().update_plot(plot_id, changes)
    return _ok(plot.to_dict())


@plots_bp.route('/<plot_id>', methods=['DELETE'])
def delete_plot(plot_id):
    _service().delete_plot(plot_id)
    return _ok({'id': plot_id, 'message': 'Physical plot deleted'})


@plots_bp.route('/<plot_id>/inventory', methods=['GET'])
def plot_inventory(plot_id):
    repository = _repository()
    plot = repository.fetch_physical_plot(plot_id)
    if plot is None:
        raise PlotNotFound(plot_id)
    inventory = _service().ledger.describe(plot_id)
    return _ok({
        'physicalPlot': {
            'id': plot.id,
            'plotNumber': plot.plot_number,
            'period': plot.period,
            'status': plot.status,
        },
        'inventory': inventory.to_dict(),
        'contracts': [
            {'id': claim.id, 'contractAreaSqm': float(claim.claimed_area)}
            for claim in inventory.claims
        ],
    })


@plots_bp.route('/<plot_id>/area-options', methods=['GET'])
def plot_area_options(plot_id):
    service = _service()
    options = service.ledger.available_area_options(plot_id, service.settings.standard_claim_sizes)
    return _ok({
        'availableArea': float(service.ledger.compute_available_area(plot_id)),
        'options': [float(size) for size in options],
    })


# ---------------------------------------------------------------------------
# Claims (contract plots)
# ---------------------------------------------------------------------------

@plots_bp.route('/<plot_id>/contracts', methods=['POST'])
def create_contract(plot_id):
    payload = request.get_json(silent=True) or {}
    form = ContractPlotForm(formdata=json_formdata(payload, ContractPlotForm.JSON_FIELDS))
    if not form.validate():
        return _fail('VALIDATION_ERROR', 'Invalid contract data', 400, form_errors(form))

    claim = _service().create_claim(
        plot_id,
        form.contract_area_sqm.data,
        sale_status=form.sale_status.data or 'contracted',
        location_description=form.location_description.data,
    )
    return _ok(claim.to_dict(), 201)


@plots_bp.route('/contracts/<contract_id>', methods=['PATCH'])
def resize_contract(contract_id):
    payload = request.get_json(silent=True) or {}
    form = ContractPlotForm(formdata=json_formdata(payload, ContractPlotForm.JSON_FIELDS))
    if not form.validate():
        return _fail('VALIDATION_ERROR', 'Invalid contract data', 400, form_errors(form))

    claim = _service().resize_claim(contract_id, form.contract_area_sqm.data)
    return _ok(claim.to_dict())


@plots_bp.route('/contracts/<contract_id>', methods=['DELETE'])
def release_contract(contract_id):
    claim = _service().release_claim(contract_id)
    return _ok({'id': claim.id, 'message': 'Contract released'})
