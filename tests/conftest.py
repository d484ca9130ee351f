"""Test configuration and fixtures."""

import os
import tempfile
from pathlib import Path

import pytest

from app import create_app
from app.extensions import db as _db
from app.services.plot_service import PlotService, PlotSettings
from app.services.repository import PlotRepository


@pytest.fixture
def app():
    """Create application for testing (file-backed SQLite so threads share it)."""
    db_fd, db_path = tempfile.mkstemp(suffix='.db')

    app = create_app('testing', {
        'SQLALCHEMY_DATABASE_URI': f'sqlite:///{db_path}',
        'SQLALCHEMY_ENGINE_OPTIONS': {'connect_args': {'check_same_thread': False, 'timeout': 30}},
    })

    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()

    os.close(db_fd)
    Path(db_path).unlink(missing_ok=True)


@pytest.fixture
def client(app):
    """Test client for making requests."""
    return app.test_client()


@pytest.fixture
def runner(app):
    """CLI test runner."""
    return app.test_cli_runner()


@pytest.fixture
def db(app):
    """Database fixture."""
    return _db


@pytest.fixture
def repository(db):
    return PlotRepository(db.session)


@pytest.fixture
def service(app, repository):
    return PlotService(repository, PlotSettings.from_config(app.config))


@pytest.fixture
def make_plot(service):
    """Create a plot with optional claims through the real workflow."""

    def _make(plot_number, period='1期', area='3.6', claims=()):
        plot = service.create_plot(plot_number, period, area)
        for claimed in claims:
            service.create_claim(plot.id, claimed)
        return plot

    return _make
