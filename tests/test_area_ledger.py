"""Area ledger checks against a real database session."""

from decimal import Decimal

import pytest

from app.domain.area_rules import REASON_EXCEEDS_AVAILABLE, REASON_NON_POSITIVE, REASON_NOT_FOUND
from app.domain.enums import PlotStatus
from app.domain.errors import PlotNotFound
from app.models import PhysicalPlot


def test_unclaimed_plot_is_fully_available(service, make_plot):
    plot = make_plot('A-1')
    ledger = service.ledger

    assert ledger.compute_available_area(plot.id) == Decimal('3.6')
    assert ledger.derive_status(plot.id) == PlotStatus.AVAILABLE
    assert ledger.is_fully_available(plot.id)
    assert not ledger.is_fully_sold(plot.id)


def test_full_claim_sells_out(service, make_plot):
    plot = make_plot('A-2', claims=['3.6'])

    assert service.ledger.compute_available_area(plot.id) == Decimal('0')
    assert service.ledger.derive_status(plot.id) == PlotStatus.SOLD_OUT
    assert service.ledger.is_fully_sold(plot.id)


def test_half_claim_is_partially_sold(db, service, make_plot):
    plot = make_plot('A-3', claims=['1.8'])

    assert service.ledger.compute_available_area(plot.id) == Decimal('1.8')
    assert db.session.get(PhysicalPlot, plot.id).status == PlotStatus.PARTIALLY_SOLD


def test_validate_claim_boundary_is_inclusive(service, make_plot):
    plot = make_plot('A-4', claims=['1.8'])

    ok = service.ledger.validate_claim(plot.id, '1.8')
    assert ok.is_valid
    assert ok.available_area == Decimal('1.8')

    too_big = service.ledger.validate_claim(plot.id, '1.81')
    assert not too_big.is_valid
    assert too_big.reason == REASON_EXCEEDS_AVAILABLE


@pytest.mark.parametrize('area', ['0', '-1.0'])
def test_validate_claim_rejects_non_positive(service, make_plot, area):
    plot = make_plot('A-5')

    result = service.ledger.validate_claim(plot.id, area)
    assert not result.is_valid
    assert result.reason == REASON_NON_POSITIVE


def test_validate_claim_excludes_the_claim_being_resized(service, make_plot):
    plot = make_plot('A-6')
    claim = service.create_claim(plot.id, '3.6')

    assert not service.ledger.validate_claim(plot.id, '2.0').is_valid
    resized = service.ledger.validate_claim(plot.id, '2.0', exclude_contract_plot_id=claim.id)
    assert resized.is_valid
    assert resized.available_area == Decimal('3.6')


def test_validate_claim_reports_missing_plot(service):
    result = service.ledger.validate_claim('missing-id', '1.0')

    assert not result.is_valid
    assert result.not_found
    assert result.reason == REASON_NOT_FOUND


def test_compute_available_area_raises_for_missing_plot(service):
    with pytest.raises(PlotNotFound):
        service.ledger.compute_available_area('missing-id')


def test_validate_claim_does_not_write(db, service, make_plot):
    plot = make_plot('A-7', claims=['1.0'])
    before = db.session.get(PhysicalPlot, plot.id).status

    service.ledger.validate_claim(plot.id, '2.6')
    db.session.expire_all()

    assert db.session.get(PhysicalPlot, plot.id).status == before
    assert service.ledger.compute_available_area(plot.id) == Decimal('2.6')


def test_derive_status_is_idempotent(service, make_plot):
    plot = make_plot('A-8', claims=['1.8'])

    first = service.ledger.derive_status(plot.id)
    second = service.ledger.derive_status(plot.id)
    assert first == second == PlotStatus.PARTIALLY_SOLD


def test_derive_status_repairs_a_stale_status(db, service, make_plot):
    plot = make_plot('A-9', claims=['3.6'])
    db.session.get(PhysicalPlot, plot.id).status = PlotStatus.AVAILABLE
    db.session.commit()

    assert service.ledger.derive_status(plot.id) == PlotStatus.SOLD_OUT
    db.session.commit()
    assert db.session.get(PhysicalPlot, plot.id).status == PlotStatus.SOLD_OUT


def test_released_claims_do_not_count(service, make_plot):
    plot = make_plot('A-10')
    claim = service.create_claim(plot.id, '3.6')
    service.release_claim(claim.id)

    assert service.ledger.compute_available_area(plot.id) == Decimal('3.6')
    assert service.ledger.derive_status(plot.id) == PlotStatus.AVAILABLE


def test_check_area_change(service, make_plot):
    plot = make_plot('A-11', claims=['1.8', '1.0'])

    shrink = service.ledger.check_area_change(plot.id, '2.5')
    assert not shrink.is_valid
    assert shrink.claimed_area == Decimal('2.8')

    assert service.ledger.check_area_change(plot.id, '2.8').is_valid
    assert service.ledger.check_area_change(plot.id, '4.5').is_valid


def test_area_options_fit_the_remaining_area(service, make_plot):
    plot = make_plot('A-12', claims=['1.8'])

    options = service.ledger.available_area_options(plot.id, (1.8, 3.6))
    assert options == [Decimal('1.8')]


def test_describe(service, make_plot):
    plot = make_plot('A-13', claims=['0.9'])

    inventory = service.ledger.describe(plot.id)
    assert inventory.to_dict() == {
        'totalArea': 3.6,
        'allocatedArea': 0.9,
        'availableArea': 2.7,
        'utilizationRate': 25.0,
        'status': PlotStatus.PARTIALLY_SOLD,
    }
    assert len(inventory.claims) == 1


@pytest.mark.parametrize('area', ['NaN', 'Infinity', '-Infinity', 'sNaN'])
def test_validate_claim_rejects_non_finite_area(service, make_plot, area):
    plot = make_plot('A-14')

    result = service.ledger.validate_claim(plot.id, area)
    assert not result.is_valid
    assert result.reason == REASON_NON_POSITIVE


def test_validate_claim_rounds_to_stored_precision(service, make_plot):
    plot = make_plot('A-15', claims=['1.8'])

    # 0.004 would be stored as 0.00
    assert service.ledger.validate_claim(plot.id, '0.004').reason == REASON_NON_POSITIVE
    # 1.804 rounds to 1.80, which still fits
    assert service.ledger.validate_claim(plot.id, '1.804').is_valid
    assert not service.ledger.validate_claim(plot.id, '1.805').is_valid


def test_check_area_change_rejects_nan(service, make_plot):
    plot = make_plot('A-16')

    assert not service.ledger.check_area_change(plot.id, 'NaN').is_valid
