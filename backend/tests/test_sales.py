"""
Sales API tests: checkout over HTTP and sales history.

Verifies:
- Checkout returns 201 with the sale and its lines
- Each checkout failure maps to its status code and error code
- History filters by day and searches operator, id and total
"""

from datetime import date, datetime

import pytest
from sqlalchemy.exc import OperationalError

from pos_app.models import Sale, SaleLine
from pos_app.services import checkout_service
from pos_app.services.ledger_service import insert_sale, list_sales


def _cart(*lines):
    return {"lines": [
        {"product_id": pid, "quantity": qty, "unit_price_cents": price}
        for pid, qty, price in lines
    ]}


class TestCheckoutRoute:

    def test_checkout(self, client, cashier_headers, products, stock_of):
        pid = products["espresso"].id
        resp = client.post("/api/sales/checkout", json=_cart((pid, 2, 250)), headers=cashier_headers)

        assert resp.status_code == 201
        sale = resp.get_json()["sale"]
        assert sale["total_cents"] == 500
        assert sale["sold_by"] == "Cashier"
        assert sale["created_at"].endswith("Z")
        assert [(l["product_name"], l["quantity"]) for l in sale["lines"]] == [("Espresso", 2)]
        assert stock_of(pid) == 3

    def test_insufficient_stock(self, client, cashier_headers, products, stock_of):
        pid = products["espresso"].id
        resp = client.post("/api/sales/checkout", json=_cart((pid, 10, 250)), headers=cashier_headers)

        assert resp.status_code == 409
        body = resp.get_json()
        assert body["code"] == "INSUFFICIENT_STOCK"
        assert body["retryable"] is False
        assert body["details"]["available"] == 5
        assert body["details"]["requested"] == 10
        assert stock_of(pid) == 5

    def test_empty_cart(self, client, cashier_headers):
        resp = client.post("/api/sales/checkout", json={"lines": []}, headers=cashier_headers)
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "EMPTY_CART"

    def test_zero_quantity(self, client, cashier_headers, products):
        resp = client.post(
            "/api/sales/checkout", json=_cart((products["espresso"].id, 0, 250)), headers=cashier_headers
        )
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INVALID_CART"

    @pytest.mark.parametrize(
        "body",
        [
            None,
            {},
            {"lines": "espresso"},
            {"lines": [{"product_id": 1, "quantity": 1}]},
            {"lines": [{"product_id": 1, "quantity": 1.5, "unit_price_cents": 250}]},
            {"lines": ["espresso"]},
        ],
    )
    def test_malformed_body(self, client, cashier_headers, products, body):
        resp = client.post("/api/sales/checkout", json=body, headers=cashier_headers)
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "VALIDATION_ERROR"

    @pytest.mark.parametrize("price", [5_000_000_000, 10**20])
    def test_price_above_ceiling_is_400(self, client, cashier_headers, products, stock_of, price):
        pid = products["espresso"].id
        resp = client.post("/api/sales/checkout", json=_cart((pid, 1, price)), headers=cashier_headers)

        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INVALID_CART"
        assert stock_of(pid) == 5

        resp = client.post("/api/sales/checkout", json=_cart((pid, 1, 250)), headers=cashier_headers)
        assert resp.status_code == 201

    def test_store_failure_is_503(self, client, cashier_headers, products, monkeypatch):
        def broken_insert(sale, lines):
            raise OperationalError("INSERT INTO sales", {}, Exception("database is locked"))

        monkeypatch.setattr(checkout_service, "insert_sale", broken_insert)

        resp = client.post(
            "/api/sales/checkout", json=_cart((products["espresso"].id, 1, 250)), headers=cashier_headers
        )
        assert resp.status_code == 503
        body = resp.get_json()
        assert body["code"] == "PERSISTENCE_FAILURE"
        assert body["retryable"] is False

    def test_lost_race_is_409_conflict(self, client, cashier_headers, products, monkeypatch):
        def always_lost(cart, readings, operator=None):
            raise checkout_service.Conflict(products["espresso"].id, 1, available=0)

        monkeypatch.setattr(checkout_service, "commit_checkout", always_lost)

        resp = client.post(
            "/api/sales/checkout", json=_cart((products["espresso"].id, 1, 250)), headers=cashier_headers
        )
        assert resp.status_code == 409
        body = resp.get_json()
        assert body["code"] == "CONFLICT"
        assert body["retryable"] is True


class TestSalesHistory:

    @pytest.fixture
    def history(self, db_session, products):
        def add(when, sold_by, total):
            sale = insert_sale(
                Sale(total_cents=total, subtotal_cents=total, tax_cents=0, sold_by=sold_by, created_at=when),
                [SaleLine(product_id=products["espresso"].id, product_name="Espresso",
                          quantity=1, unit_price_cents=total, line_total_cents=total)],
            )
            return sale

        sales = [
            add(datetime(2026, 3, 1, 9, 15), "Ana", 250),
            add(datetime(2026, 3, 1, 17, 40), "Ben", 1234),
            add(datetime(2026, 3, 2, 8, 0), "Ana", 500),
        ]
        db_session.commit()
        return sales

    def test_newest_first(self, db_session, history):
        assert [s.total_cents for s in list_sales()] == [500, 1234, 250]

    def test_day_filter(self, db_session, history):
        assert [s.sold_by for s in list_sales(day=date(2026, 3, 1))] == ["Ben", "Ana"]

    def test_search_operator(self, db_session, history):
        assert len(list_sales(search="ana")) == 2

    def test_search_total(self, db_session, history):
        assert [s.sold_by for s in list_sales(search="1234")] == ["Ben"]

    def test_route(self, client, cashier_headers, history):
        resp = client.get("/api/sales?day=2026-03-02", headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.get_json()["count"] == 1

    def test_route_bad_day(self, client, cashier_headers, history):
        resp = client.get("/api/sales?day=yesterday", headers=cashier_headers)
        assert resp.status_code == 400

    def test_sale_detail(self, client, cashier_headers, history):
        resp = client.get(f"/api/sales/{history[0].id}", headers=cashier_headers)
        assert resp.status_code == 200
        sale = resp.get_json()["sale"]
        assert sale["created_at"] == "2026-03-01T09:15:00Z"
        assert len(sale["lines"]) == 1
        assert sale["returns"] == []

    def test_sale_detail_missing(self, client, cashier_headers):
        resp = client.get("/api/sales/9999", headers=cashier_headers)
        assert resp.status_code == 404
