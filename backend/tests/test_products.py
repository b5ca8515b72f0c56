"""
Product catalog tests (service and API).

Verifies:
- Create validates fields and logs opening stock
- A stock edit becomes an audited absolute adjustment
- Products with sales history cannot be deleted
- Search over name and category
"""

import pytest
from sqlalchemy.exc import OperationalError

from pos_app.models import InventoryLogEntry
from pos_app.services import products_service
from pos_app.services.checkout_service import CartLine, checkout
from pos_app.services.inventory_service import AdjustPersistenceFailure, NegativeStock
from pos_app.validation import ConflictError


def _log(db_session, product_id):
    return (
        db_session.query(InventoryLogEntry)
        .filter_by(product_id=product_id)
        .order_by(InventoryLogEntry.id)
        .all()
    )


class TestProductService:

    def test_zero_opening_stock_is_not_logged(self, db_session):
        product = products_service.create_product(patch={"name": "Water", "price_cents": 100})
        assert product.stock == 0
        assert _log(db_session, product.id) == []

    def test_search_name_and_category(self, db_session, products):
        assert [p.name for p in products_service.list_products("croi")] == ["Croissant"]
        assert [p.name for p in products_service.list_products("drinks")] == ["Espresso"]
        assert len(products_service.list_products()) == 2

    def test_stock_edit_is_an_adjustment(self, db_session, products, stock_of):
        espresso = products["espresso"]

        products_service.update_product(espresso.id, {"stock": 8, "price_cents": 275})

        assert stock_of(espresso.id) == 8
        assert db_session.get(type(espresso), espresso.id).price_cents == 275
        entry = _log(db_session, espresso.id)[-1]
        assert entry.change_type == "adjustment"
        assert entry.quantity_change == 3
        assert entry.reason == "Manual stock edit"

    def test_failed_field_edit_keeps_stock(self, db_session, products, stock_of, monkeypatch):
        espresso = products["espresso"]
        before = len(_log(db_session, espresso.id))

        def broken_patch(product, patch):
            raise OperationalError("UPDATE products", {}, Exception("disk I/O error"))

        monkeypatch.setattr(products_service, "apply_product_patch", broken_patch)

        with pytest.raises(AdjustPersistenceFailure):
            products_service.update_product(espresso.id, {"stock": 8, "name": "Ristretto"})

        assert stock_of(espresso.id) == 5
        assert len(_log(db_session, espresso.id)) == before
        db_session.expire_all()
        assert products_service.get_product(espresso.id).name == "Espresso"

    def test_rejected_stock_edit_keeps_fields(self, db_session, products, stock_of):
        espresso = products["espresso"]

        with pytest.raises(NegativeStock):
            products_service.update_product(espresso.id, {"stock": -1, "name": "Ristretto"})

        db_session.expire_all()
        assert products_service.get_product(espresso.id).name == "Espresso"
        assert stock_of(espresso.id) == 5

    def test_unchanged_stock_writes_no_entry(self, db_session, products):
        espresso = products["espresso"]
        products_service.update_product(espresso.id, {"stock": 5, "name": "Double Espresso"})
        assert len(_log(db_session, espresso.id)) == 1

    def test_update_missing_product(self, db_session):
        assert products_service.update_product(9999, {"name": "x"}) is None

    def test_delete_unsold_product(self, db_session, products):
        assert products_service.delete_product(products["croissant"].id) is True
        assert products_service.get_product(products["croissant"].id) is None
        assert products_service.delete_product(products["croissant"].id) is False

    def test_delete_sold_product_conflicts(self, db_session, products):
        espresso = products["espresso"]
        checkout([CartLine(product_id=espresso.id, quantity=1, unit_price_cents=250)], "Ana")

        with pytest.raises(ConflictError):
            products_service.delete_product(espresso.id)
        assert products_service.get_product(espresso.id) is not None

    def test_rename_keeps_sale_history_names(self, db_session, products):
        espresso = products["espresso"]
        sale = checkout(
            [CartLine(product_id=espresso.id, quantity=1, unit_price_cents=250, product_name="Espresso")],
            "Ana",
        )
        products_service.update_product(espresso.id, {"name": "Ristretto"})

        db_session.expire_all()
        assert sale.lines[0].product_name == "Espresso"


class TestProductRoutes:

    def test_list(self, client, cashier_headers, products):
        resp = client.get("/api/products?search=esp", headers=cashier_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["count"] == 1
        assert body["items"][0]["price_cents"] == 250
        assert body["items"][0]["stock"] == 5

    def test_get(self, client, cashier_headers, products):
        resp = client.get(f"/api/products/{products['croissant'].id}", headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.get_json()["name"] == "Croissant"

    def test_get_missing(self, client, cashier_headers):
        resp = client.get("/api/products/9999", headers=cashier_headers)
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "NOT_FOUND"

    def test_create(self, client, manager_headers, db_session):
        resp = client.post(
            "/api/products",
            json={"name": "  Muffin ", "price_cents": "320", "category": "Bakery", "stock": 12},
            headers=manager_headers,
        )
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["name"] == "Muffin"
        assert body["price_cents"] == 320
        assert body["stock"] == 12
        assert _log(db_session, body["id"])[0].reason == "Initial stock"

    @pytest.mark.parametrize(
        "payload",
        [
            {"price_cents": 100},
            {"name": "Muffin"},
            {"name": "Muffin", "price_cents": -1},
            {"name": "Muffin", "price_cents": 1_000_000_000},
            {"name": "Muffin", "price_cents": 1.5},
            {"name": "Muffin", "price_cents": 100, "stock": -2},
            {"name": "Muffin", "price_cents": 100, "version_id": 7},
            {"name": "", "price_cents": 100},
        ],
    )
    def test_create_rejects(self, client, manager_headers, payload):
        resp = client.post("/api/products", json=payload, headers=manager_headers)
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["error"]

    def test_update(self, client, manager_headers, products, stock_of):
        pid = products["espresso"].id
        resp = client.put(f"/api/products/{pid}", json={"stock": 2, "category": "Coffee"}, headers=manager_headers)
        assert resp.status_code == 200
        assert resp.get_json()["stock"] == 2
        assert resp.get_json()["category"] == "Coffee"
        assert stock_of(pid) == 2

    def test_update_missing(self, client, manager_headers, db_session):
        resp = client.put("/api/products/9999", json={"name": "x"}, headers=manager_headers)
        assert resp.status_code == 404

    def test_delete_sold_product(self, client, manager_headers, cashier_headers, products):
        pid = products["espresso"].id
        client.post(
            "/api/sales/checkout",
            json={"lines": [{"product_id": pid, "quantity": 1, "unit_price_cents": 250}]},
            headers=cashier_headers,
        )

        resp = client.delete(f"/api/products/{pid}", headers=manager_headers)
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "CONFLICT"

    def test_delete(self, client, manager_headers, products):
        resp = client.delete(f"/api/products/{products['croissant'].id}", headers=manager_headers)
        assert resp.status_code == 200
        resp = client.delete(f"/api/products/{products['croissant'].id}", headers=manager_headers)
        assert resp.status_code == 404
