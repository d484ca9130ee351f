"""Plot and claim workflows."""

import threading
from decimal import Decimal

import pytest
from sqlalchemy import update

from app.domain.area_rules import REASON_EXCEEDS_AVAILABLE, REASON_NON_POSITIVE
from app.domain.enums import ClaimState, PlotStatus
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
from app.services.plot_service import PlotService, PlotSettings
from app.services.repository import PlotRepository


def test_create_plot(service):
    plot = service.create_plot('A-1', '1期', '3.6', notes='corner')

    assert plot.status == PlotStatus.AVAILABLE
    assert plot.area_sqm == Decimal('3.6')
    assert plot.notes == 'corner'


def test_create_plot_rejects_duplicate_number(service, make_plot):
    make_plot('A-1')

    with pytest.raises(DuplicatePlotNumber):
        service.create_plot('A-1', '2期', '3.6')


@pytest.mark.parametrize('area', ['1.7', '10.5', '0'])
def test_create_plot_checks_area_bounds(service, area):
    with pytest.raises(InventoryError) as excinfo:
        service.create_plot('A-1', '1期', area)
    assert excinfo.value.details[0]['field'] == 'areaSqm'


def test_bulk_create_plots(db, service):
    results = service.bulk_create_plots([
        {'plot_number': 'A-1', 'period': '1期', 'area_sqm': Decimal('3.6')},
        {'plot_number': 'A-2', 'period': '1期', 'area_sqm': None},
        {'plot_number': 'B-1', 'period': '2期', 'area_sqm': Decimal('1.8'), 'notes': 'path side'},
    ])

    assert [r['row'] for r in results] == [0, 1, 2]
    assert [r['plotNumber'] for r in results] == ['A-1', 'A-2', 'B-1']
    assert db.session.query(PhysicalPlot).count() == 3

    defaulted = db.session.get(PhysicalPlot, results[1]['id'])
    assert defaulted.area_sqm == Decimal('3.6')


def test_bulk_create_rejects_duplicates_in_batch(db, service):
    with pytest.raises(BulkImportError) as excinfo:
        service.bulk_create_plots([
            {'plot_number': 'A-1', 'period': '1期', 'area_sqm': None},
            {'plot_number': 'A-2', 'period': '1期', 'area_sqm': None},
            {'plot_number': 'A-1', 'period': '1期', 'area_sqm': None},
        ])

    assert excinfo.value.details[0]['row'] == 2
    assert db.session.query(PhysicalPlot).count() == 0


def test_bulk_create_is_all_or_nothing(db, service, make_plot):
    make_plot('A-2')

    with pytest.raises(BulkImportError) as excinfo:
        service.bulk_create_plots([
            {'plot_number': 'A-1', 'period': '1期', 'area_sqm': None},
            {'plot_number': 'A-2', 'period': '1期', 'area_sqm': None},
        ])

    assert excinfo.value.details == [
        {'row': 1, 'field': 'plotNumber', 'message': 'plot number "A-2" already exists'},
    ]
    assert db.session.query(PhysicalPlot).count() == 1


def test_bulk_create_enforces_batch_size(repository):
    service = PlotService(repository, PlotSettings(bulk_max_items=2))

    with pytest.raises(BulkImportError):
        service.bulk_create_plots([
            {'plot_number': f'A-{i}', 'period': '1期', 'area_sqm': None} for i in range(3)
        ])


def test_update_plot_fields(service, make_plot):
    plot = make_plot('A-1')

    updated = service.update_plot(plot.id, {'plot_number': 'A-9', 'period': '2期', 'notes': 'moved'})
    assert (updated.plot_number, updated.period, updated.notes) == ('A-9', '2期', 'moved')


def test_update_plot_rejects_shrinking_below_claims(db, service, make_plot):
    plot = make_plot('A-1', claims=['3.0'])

    with pytest.raises(AreaShrinkRejected):
        service.update_plot(plot.id, {'area_sqm': '2.0'})

    db.session.expire_all()
    assert db.session.get(PhysicalPlot, plot.id).area_sqm == Decimal('3.6')


def test_update_plot_growing_area_rederives_status(service, make_plot):
    plot = make_plot('A-1', claims=['3.6'])
    assert plot.status == PlotStatus.SOLD_OUT

    updated = service.update_plot(plot.id, {'area_sqm': '4.5'})
    assert updated.status == PlotStatus.PARTIALLY_SOLD


def test_delete_plot(db, service, make_plot):
    plot = make_plot('A-1')
    service.delete_plot(plot.id)

    assert db.session.get(PhysicalPlot, plot.id).deleted_at is not None
    with pytest.raises(PlotNotFound):
        service.ledger.compute_available_area(plot.id)

    # the number is free again
    service.create_plot('A-1', '1期', '3.6')


def test_delete_plot_with_active_claims_is_refused(service, make_plot):
    plot = make_plot('A-1', claims=['1.8'])

    with pytest.raises(PlotHasActiveClaims):
        service.delete_plot(plot.id)


def test_create_claim_updates_status(db, service, make_plot):
    plot = make_plot('A-1')

    service.create_claim(plot.id, '1.8', location_description='north half')
    assert db.session.get(PhysicalPlot, plot.id).status == PlotStatus.PARTIALLY_SOLD

    service.create_claim(plot.id, '1.8')
    assert db.session.get(PhysicalPlot, plot.id).status == PlotStatus.SOLD_OUT


def test_create_claim_rejections(db, service, make_plot):
    plot = make_plot('A-1', claims=['3.0'])

    with pytest.raises(ClaimRejected) as excinfo:
        service.create_claim(plot.id, '0.7')
    assert excinfo.value.validation.reason == REASON_EXCEEDS_AVAILABLE
    assert excinfo.value.details[0]['availableArea'] == 0.6

    with pytest.raises(ClaimRejected) as excinfo:
        service.create_claim(plot.id, '0')
    assert excinfo.value.validation.reason == REASON_NON_POSITIVE

    with pytest.raises(PlotNotFound):
        service.create_claim('missing-id', '1.0')

    assert db.session.query(ContractPlot).count() == 1


def test_resize_claim(service, make_plot):
    plot = make_plot('A-1')
    claim = service.create_claim(plot.id, '1.8')

    resized = service.resize_claim(claim.id, '3.6')
    assert resized.contract_area_sqm == Decimal('3.6')
    assert service.ledger.derive_status(plot.id) == PlotStatus.SOLD_OUT

    with pytest.raises(ClaimRejected):
        service.resize_claim(claim.id, '3.7')


def test_release_claim_returns_area(db, service, make_plot):
    plot = make_plot('A-1')
    claim = service.create_claim(plot.id, '3.6')

    released = service.release_claim(claim.id)
    assert released.lifecycle_state == ClaimState.RELEASED
    assert released.released_at is not None
    assert db.session.get(PhysicalPlot, plot.id).status == PlotStatus.AVAILABLE

    # the row is kept, only its lifecycle changes
    assert db.session.query(ContractPlot).count() == 1

    with pytest.raises(ClaimNotFound):
        service.release_claim(claim.id)


def test_recalculate_statuses(db, service, make_plot):
    sold = make_plot('A-1', claims=['3.6'])
    make_plot('A-2')
    db.session.get(PhysicalPlot, sold.id).status = PlotStatus.AVAILABLE
    db.session.commit()

    counts = service.recalculate_statuses()
    assert counts == {PlotStatus.AVAILABLE: 1, PlotStatus.PARTIALLY_SOLD: 0, PlotStatus.SOLD_OUT: 1}
    assert db.session.get(PhysicalPlot, sold.id).status == PlotStatus.SOLD_OUT


def test_concurrent_claims_never_oversell(app, db, make_plot):
    plot_id = make_plot('A-1').id
    db.session.remove()

    workers = 4
    barrier = threading.Barrier(workers)
    outcomes = []
    lock = threading.Lock()

    def claim():
        with app.app_context():
            service = PlotService(PlotRepository(db.session), PlotSettings.from_config(app.config))
            barrier.wait()
            try:
                service.create_claim(plot_id, '1.0')
                outcome = 'ok'
            except ClaimRejected as exc:
                outcome = exc.validation.reason
            with lock:
                outcomes.append(outcome)

    threads = [threading.Thread(target=claim) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    assert outcomes.count('ok') == 3
    assert outcomes.count(REASON_EXCEEDS_AVAILABLE) == 1

    repository = PlotRepository(db.session)
    claimed = sum(claim.claimed_area for claim in repository.fetch_active_claims(plot_id))
    assert claimed == Decimal('3.0')
    assert claimed <= repository.fetch_physical_plot(plot_id).area_sqm
    assert repository.fetch_physical_plot(plot_id).status == PlotStatus.PARTIALLY_SOLD


def test_plot_areas_are_rounded_to_cents(db, service, make_plot):
    assert service.create_plot('A-1', '1期', '3.604').area_sqm == Decimal('3.60')
    assert service.create_plot('A-2', '1期', '3.605').area_sqm == Decimal('3.61')

    plot = make_plot('A-3')
    assert service.update_plot(plot.id, {'area_sqm': '4.005'}).area_sqm == Decimal('4.01')


def test_bulk_plot_areas_are_rounded_to_cents(db, service):
    results = service.bulk_create_plots([
        {'plot_number': 'A-1', 'period': '1期', 'area_sqm': Decimal('2.345')},
    ])
    assert db.session.get(PhysicalPlot, results[0]['id']).area_sqm == Decimal('2.35')


def test_bulk_rejects_areas_that_round_to_zero(db, service):
    with pytest.raises(BulkImportError) as excinfo:
        service.bulk_create_plots([
            {'plot_number': 'A-1', 'period': '1期', 'area_sqm': None},
            {'plot_number': 'A-2', 'period': '1期', 'area_sqm': Decimal('0.004')},
        ])

    assert excinfo.value.details == [{'row': 1, 'field': 'areaSqm', 'message': 'area must be greater than 0'}]
    assert db.session.query(PhysicalPlot).count() == 0


def test_sub_cent_claims_are_rounded_before_validation(db, service, make_plot):
    plot = make_plot('A-1')

    with pytest.raises(ClaimRejected) as excinfo:
        service.create_claim(plot.id, Decimal('0.004'))
    assert excinfo.value.validation.reason == REASON_NON_POSITIVE
    assert db.session.query(ContractPlot).count() == 0

    claim = service.create_claim(plot.id, '1.805')
    assert claim.contract_area_sqm == Decimal('1.81')
    assert service.ledger.compute_available_area(plot.id) == Decimal('1.79')

    with pytest.raises(ClaimRejected):
        service.resize_claim(claim.id, '0.001')
    assert service.resize_claim(claim.id, '3.604').contract_area_sqm == Decimal('3.60')
    assert db.session.get(PhysicalPlot, plot.id).status == PlotStatus.SOLD_OUT


class _ReleasedWhileWaitingForLock(PlotRepository):
    """Releases a claim as the parcel lock is granted, like a competing
    transaction that committed just before it."""

    def __init__(self, session, contract_plot_id):
        super().__init__(session)
        self.contract_plot_id = contract_plot_id

    def lock_physical_plot(self, physical_plot_id):
        plot = super().lock_physical_plot(physical_plot_id)
        self.session.execute(
            update(ContractPlot)
            .where(ContractPlot.id == self.contract_plot_id)
            .values(lifecycle_state=ClaimState.RELEASED)
        )
        return plot


def test_claim_is_rechecked_under_the_plot_lock(db, service, make_plot):
    plot = make_plot('A-1')
    claim_id = service.create_claim(plot.id, '1.8').id
    racing = PlotService(_ReleasedWhileWaitingForLock(db.session, claim_id), service.settings)

    with pytest.raises(ClaimNotFound):
        racing.resize_claim(claim_id, '3.0')
    with pytest.raises(ClaimNotFound):
        racing.release_claim(claim_id)

    db.session.expire_all()
    claim = db.session.get(ContractPlot, claim_id)
    assert claim.contract_area_sqm == Decimal('1.8')
    assert claim.lifecycle_state == ClaimState.ACTIVE
