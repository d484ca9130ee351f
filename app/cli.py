import click
from flask import current_app
from flask.cli import with_appcontext

from app.domain.errors import InventoryError
from app.extensions import db
from app.services.plot_service import PlotService, PlotSettings
from app.services.repository import PlotRepository


SAMPLE_PLOTS = (
    # (plot_number, period, area_sqm, claimed areas)
    ('A-1', '1期', '3.6', ()),
    ('A-2', '1期', '3.6', ('3.6',)),
    ('A-3', '1期', '3.6', ('1.8',)),
    ('吉相-1', '1期', '4.5', ()),
    ('樹林-1', '2期', '1.8', ('1.8',)),
    ('天空K-1', '2期', '1.8', ()),
    ('るり庵テラス-1', '3期', '3.6', ('1.8', '1.8')),
    ('憩-1', '4期', '6.0', ('2.0',)),
)


def _service():
    return PlotService(PlotRepository(db.session), PlotSettings.from_config(current_app.config))


@click.command('recalc-plot-status')
@click.option('--plot-id', 'plot_ids', multiple=True, help='Limit to these physical plot ids (repeatable)')
@with_appcontext
def recalc_plot_status_command(plot_ids) -> None:
    """Re-derive stored plot statuses from the active claims."""
    try:
        counts = _service().recalculate_statuses(list(plot_ids) or None)
    except InventoryError as exc:
        raise click.ClickException(exc.message)

    total = sum(counts.values())
    click.echo(f'Recalculated {total} plot(s): ' + ', '.join(f'{k}={v}' for k, v in counts.items()))


@click.command('seed-sample-plots')
@with_appcontext
def seed_sample_plots_command() -> None:
    """Insert a few sample plots and claims (skips plot numbers that exist)."""
    service = _service()
    existing = service.repository.existing_plot_numbers([row[0] for row in SAMPLE_PLOTS])

    created = 0
    for plot_number, period, area_sqm, claims in SAMPLE_PLOTS:
        if plot_number in existing:
            continue
        plot = service.create_plot(plot_number, period, area_sqm)
        for claimed in claims:
            service.create_claim(plot.id, claimed)
        created += 1

    click.echo(f'Seeded {created} sample plot(s).')
