"""
Pytest fixtures for Hoor backend tests.

Provides an in-memory application, a clean database per test, a small
catalog (brand -> model -> variants) and parties.
"""

import pytest

from hoor import create_app
from hoor.extensions import db
from hoor.models import Brand, Customer, ProductModel, Supplier, Variant
from hoor.services.settings_service import set_setting
from hoor.services.stock_service import post_opening_stock


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    db.session.remove()
    # Clear all data but keep schema
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    # Cleanup after test
    db.session.rollback()
    db.session.remove()


@pytest.fixture(scope='function')
def no_tax(db_session):
    """Disable VAT so totals equal the line arithmetic."""
    set_setting("taxEnabled", False)


@pytest.fixture(scope='function')
def brand(db_session):
    brand = Brand(name="Hoor Classics", name_ar="حور كلاسيك")
    db_session.add(brand)
    db_session.commit()
    return brand


@pytest.fixture(scope='function')
def abaya_model(db_session, brand):
    model = ProductModel(brand_id=brand.id, name="Silk Abaya", name_ar="عباية حرير", category="abaya")
    db_session.add(model)
    db_session.commit()
    return model


@pytest.fixture(scope='function')
def variant(db_session, abaya_model):
    """Black / M at 100.00, cost 60.00."""
    variant = Variant(
        model_id=abaya_model.id,
        color="Black",
        size="M",
        sku="ABY-BLK-M",
        barcode="6281000000011",
        sale_price_cents=10000,
        cost_price_cents=6000,
    )
    db_session.add(variant)
    db_session.commit()
    return variant


@pytest.fixture(scope='function')
def second_variant(db_session, abaya_model):
    """Navy / L at 130.00, cost 80.00."""
    variant = Variant(
        model_id=abaya_model.id,
        color="Navy",
        size="L",
        sku="ABY-NVY-L",
        barcode="6281000000028",
        sale_price_cents=13000,
        cost_price_cents=8000,
    )
    db_session.add(variant)
    db_session.commit()
    return variant


@pytest.fixture(scope='function')
def stocked(variant, second_variant):
    """Ten units of each variant on hand at their catalog cost."""
    post_opening_stock(variant.id, 10, unit_cost_cents=6000)
    post_opening_stock(second_variant.id, 10, unit_cost_cents=8000)
    return variant, second_variant


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(name="Noura", phone="0500000001")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(name="Riyadh Textiles", phone="0110000001")
    db_session.add(supplier)
    db_session.commit()
    return supplier
