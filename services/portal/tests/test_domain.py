from app.domain.models import Role, StockStatus, derive_stock_status, effective_reorder_level
from app.application.schemas import InventoryItem, Product, PurchaseRequest

def test_stock_status_thresholds():
    assert derive_stock_status(0, 5) == StockStatus.OUT_OF_STOCK
    assert derive_stock_status(3, 5) == StockStatus.LOW_STOCK
    assert derive_stock_status(5, 5) == StockStatus.LOW_STOCK
    assert derive_stock_status(10, 5) == StockStatus.IN_STOCK

def test_negative_and_missing_stock_is_out_of_stock():
    assert derive_stock_status(-2, 5) == StockStatus.OUT_OF_STOCK
    assert derive_stock_status(None, 5) == StockStatus.OUT_OF_STOCK

def test_zero_reorder_level_falls_back_to_default():
    assert effective_reorder_level(0) == 5
    assert effective_reorder_level(None) == 5
    assert derive_stock_status(4, 0) == StockStatus.LOW_STOCK

def test_superadmin_role_alias():
    assert Role("superadmin") is Role.SUPER_ADMIN
    assert Role("super_admin") is Role.SUPER_ADMIN

def test_item_from_plain_product():
    product = Product.model_validate({
        "_id": "p1", "name": "Drill", "sku": "DR-1", "stock": 10, "reorderLevel": 5,
        "reservedStock": 2, "updatedAt": "2024-03-01T10:00:00Z",
    })
    item = InventoryItem.from_product(product)
    assert item.id == "p1"
    assert item.product_name == "Drill"
    assert item.category == "Uncategorized"
    assert item.location == "Main Warehouse"
    assert item.quantity == 10
    assert item.reserved_quantity == 2
    assert item.status == StockStatus.IN_STOCK
    assert not item.is_client_product

def test_item_prefers_client_inventory_stock():
    product = Product.model_validate({
        "_id": "p2", "name": "Saw", "stock": 100, "reorderLevel": 5,
        "clientInventory": {"currentStock": 3, "reorderLevel": 4},
    })
    item = InventoryItem.from_product(product)
    assert item.quantity == 3
    assert item.reorder_level == 4
    assert item.status == StockStatus.LOW_STOCK
    assert item.is_client_product

def test_client_uploaded_product_without_inventory_has_no_stock():
    product = Product.model_validate({"_id": "p3", "name": "Glue", "stock": 50, "isClientUploaded": True})
    item = InventoryItem.from_product(product)
    assert item.quantity == 0
    assert item.status == StockStatus.OUT_OF_STOCK

def test_status_follows_quantity_on_every_read():
    item = InventoryItem(id="p1", product_name="Drill", quantity=10, reorder_level=5)
    assert item.status == StockStatus.IN_STOCK
    item.quantity = 0
    assert item.status == StockStatus.OUT_OF_STOCK
    assert item.model_dump(by_alias=True)["status"] == StockStatus.OUT_OF_STOCK

def test_purchase_request_defaults():
    request = PurchaseRequest.model_validate({"_id": "r1", "quantity": 2, "price": 12.5, "status": None})
    assert request.status == "pending"
    assert request.product.name == "Unknown Product"
    assert request.product.sku == "N/A"
    assert request.product.price == 12.5
    assert request.client.name == "Unknown Client"
    assert request.client.email == "N/A"

def test_purchase_request_reads_populated_client_reference():
    request = PurchaseRequest.model_validate({"id": "r2", "clientId": {"_id": "c9", "name": "Zed"}})
    assert request.id == "r2"
    assert request.client_ref == "c9"
