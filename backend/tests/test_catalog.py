import pytest

from hoor.errors import ConflictError, NotFoundError, ValidationError
from hoor.models import Brand, ProductModel, Variant
from hoor.services import catalog_service, entity_store
from hoor.services.sales_service import checkout
from hoor.services.stock_service import post_opening_stock


def test_create_catalog_tree(db_session):
    brand = catalog_service.create_brand({"name": "Layali", "name_ar": "ليالي"})
    model = catalog_service.create_model({"brand_id": brand.id, "name": "Kaftan", "category": "kaftan"})
    variant = catalog_service.create_variant({
        "model_id": model.id,
        "color": "Red",
        "size": "S",
        "sku": "KFT-RED-S",
        "barcode": "",
        "sale_price_cents": 25000,
    })

    assert variant.barcode is None
    assert variant.min_stock == 5
    assert catalog_service.get_variant_with_stock(variant.id)["stock"] == 0


@pytest.mark.parametrize("payload", [
    {"color": "Red", "size": "S", "sku": "X"},
    {"model_id": 1, "color": "Red", "size": "S", "sku": "X", "stock": 4},
    {"model_id": 1, "color": "Red", "size": "S", "sku": "X", "sale_price_cents": -1},
    {"model_id": 1, "color": "Red", "size": "S", "sku": "X", "sale_price_cents": "12.50"},
    {"model_id": 1, "color": "", "size": "S", "sku": "X"},
    {"model_id": 1, "color": "Red", "size": "S", "sku": "X", "is_active": "yes"},
    {"model_id": 1, "color": 7, "size": "S", "sku": "X"},
])
def test_invalid_variant_payloads(db_session, payload):
    with pytest.raises(ValidationError):
        catalog_service.create_variant(payload)


def test_missing_parent(db_session):
    with pytest.raises(NotFoundError):
        catalog_service.create_model({"brand_id": 404, "name": "Ghost"})


def test_cost_is_not_editable_after_creation(db_session, variant):
    with pytest.raises(ValidationError):
        catalog_service.update_variant(variant.id, {"cost_price_cents": 1})
    updated = catalog_service.update_variant(variant.id, {"sale_price_cents": 11000, "min_stock": 2})
    assert updated.sale_price_cents == 11000
    assert updated.min_stock == 2


def test_referenced_entries_are_deactivated_not_deleted(db_session, variant):
    post_opening_stock(variant.id, 1)
    with pytest.raises(ConflictError):
        catalog_service.delete_variant(variant.id)
    with pytest.raises(ConflictError):
        catalog_service.delete_model(variant.model_id)

    catalog_service.set_active(Variant, variant.id, False)
    assert [v.id for v in catalog_service.list_variants(active_only=True)] == []
    with pytest.raises(ValidationError):
        catalog_service.set_active(object, 1, False)


def test_unreferenced_brand_can_be_deleted(db_session):
    brand = catalog_service.create_brand({"name": "Temporary"})
    catalog_service.delete_brand(brand.id)
    assert entity_store.get("brands", brand.id) is None


def test_customer_with_history_cannot_be_deleted(no_tax, stocked, customer):
    variant, _ = stocked
    checkout([{"variant_id": variant.id, "qty": 1}], customer_id=customer.id, method="credit")
    with pytest.raises(ConflictError):
        catalog_service.delete_customer(customer.id)


def test_balance_is_not_writable_through_master_data(db_session, customer):
    with pytest.raises(ValidationError):
        catalog_service.update_customer(customer.id, {"current_balance_cents": 0})


def test_entity_store_queries(db_session, brand, abaya_model, variant):
    assert entity_store.add("brands", name="Second") > brand.id
    assert [b.name for b in entity_store.query("brands", "name", "Second")] == ["Second"]
    assert [v.id for v in entity_store.query("variants", "barcode", "6281000000011")] == [variant.id]
    assert entity_store.query("variants", "sale_price_cents", between=(9000, 10000))[0].id == variant.id
    assert entity_store.query("variants", "sale_price_cents", between=(10001, None)) == []

    with pytest.raises(ValidationError):
        entity_store.query("variants", "nope", 1)
    with pytest.raises(ValidationError):
        entity_store.add("unicorns", name="x")
    with pytest.raises(NotFoundError):
        entity_store.update("brands", 9999, name="x")
    assert isinstance(entity_store.model_for("product_models")(), ProductModel)
    assert entity_store.model_for("brands") is Brand


def test_blank_barcode_is_stored_as_none(db_session, abaya_model):
    created = catalog_service.create_variant({
        "model_id": abaya_model.id, "color": "Sand", "size": "S", "sku": " ABY-SND-S ", "barcode": "",
    })
    assert created.sku == "ABY-SND-S"
    assert created.barcode is None
