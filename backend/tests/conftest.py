"""
Pytest fixtures for stockline backend tests.

Provides an in-memory database, a test client and a small catalog:
one variant/color with sized units, two stores.
"""

import pytest

from stockline import create_app
from stockline.extensions import db
from stockline.models import Size
from stockline.services import catalog_service, inventory_service, store_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'RETRY_BACKOFF_SECONDS': 0,
        'LOG_LEVEL': 'WARNING',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def sizes(db_session):
    """Default XS..XXL sizes keyed by code."""
    catalog_service.ensure_default_sizes()
    return {s.code: s.id for s in db_session.query(Size).all()}


@pytest.fixture(scope='function')
def catalog(db_session, sizes):
    """Shirts > Oxford Shirt > Blue, with ids for building units."""
    category = catalog_service.create_category("Shirts")
    variant = catalog_service.create_variant(category.id, "Oxford Shirt")
    color = catalog_service.create_color(variant.id, "Blue", "#1E3A8A")
    return {
        "category_id": category.id,
        "variant_id": variant.id,
        "color_id": color.id,
        "sizes": sizes,
    }


@pytest.fixture(scope='function')
def make_unit(catalog):
    """Factory for size-stock units of the catalog variant/color."""
    def _make(size_code="M", barcode="8900000000017", price_cents=2000, warehouse_stock=100):
        unit = catalog_service.create_size_stock_unit(
            variant_id=catalog["variant_id"],
            color_id=catalog["color_id"],
            size_id=catalog["sizes"][size_code],
            barcode=barcode,
            price_cents=price_cents,
            warehouse_stock=warehouse_stock,
        )
        return unit.id
    return _make


@pytest.fixture(scope='function')
def unit_id(make_unit):
    """Unit U: warehouse 100, price 20.00."""
    return make_unit()


@pytest.fixture(scope='function')
def store_a(db_session):
    return store_service.create_store("Store A", "MG Road").id


@pytest.fixture(scope='function')
def store_b(db_session):
    return store_service.create_store("Store B", "Indiranagar").id


@pytest.fixture(scope='function')
def stocked(store_a, unit_id):
    """30 units of U distributed to Store A."""
    inventory_service.distribute(store_a, unit_id, 30)
    return {"store_id": store_a, "size_stock_id": unit_id, "barcode": "8900000000017"}
