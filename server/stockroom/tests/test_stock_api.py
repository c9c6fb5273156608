import pytest

from stockroom.auth import ROLE_STOREKEEPER, ROLE_VIEWER
from stockroom.ledger.errors import InvariantViolationError, StoreTimeoutError


def _create_product(client, sku="SKU-API", name="Bolt", reorder_level=5):
    response = client.post("/api/products", json={"sku": sku, "name": name, "reorder_level": reorder_level})
    assert response.status_code == 201, response.text
    return response.json()["id"]


def test_stock_in_returns_transaction_and_new_balance(client):
    product_id = _create_product(client)

    response = client.post(
        "/api/stock/in",
        json={"product_id": product_id, "quantity": 20, "reference_number": "PO-1"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Added 20 units"
    assert body["transaction"]["transaction_type"] == "Stock In"
    assert body["transaction"]["direction"] == "IN"
    assert body["transaction"]["reference_number"] == "PO-1"
    assert body["stock"]["quantity_on_hand"] == 20
    assert body["stock"]["quantity_available"] == 20


def test_stock_out_beyond_available_reports_both_quantities(client):
    product_id = _create_product(client)
    client.post("/api/stock/in", json={"product_id": product_id, "quantity": 3})

    response = client.post("/api/stock/out", json={"product_id": product_id, "quantity": 4})

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["code"] == "INSUFFICIENT_STOCK"
    assert detail["available"] == 3
    assert detail["requested"] == 4
    assert client.get(f"/api/stock/product/{product_id}").json()["quantity_on_hand"] == 3


def test_return_and_history_round_trip(client):
    product_id = _create_product(client)
    client.post("/api/stock/in", json={"product_id": product_id, "quantity": 10})
    response = client.post("/api/stock/return", json={"product_id": product_id, "quantity": 2, "notes": "damaged"})
    assert response.status_code == 201
    assert response.json()["message"] == "Returned 2 units to supplier"

    history = client.get(f"/api/stock/product/{product_id}/history").json()

    assert [(row["transaction_type"], row["signed_quantity"]) for row in history] == [("Return", -2), ("Stock In", 10)]
    assert history[0]["notes"] == "damaged"
    assert history[0]["created_by_name"] == "admin"


def test_unknown_product_is_404(client):
    assert client.get("/api/stock/product/999").status_code == 404
    response = client.post("/api/stock/in", json={"product_id": 999, "quantity": 1})
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "PRODUCT_NOT_FOUND"


def test_malformed_quantity_is_rejected_before_the_ledger(client):
    product_id = _create_product(client)

    response = client.post("/api/stock/in", json={"product_id": product_id, "quantity": 0})

    assert response.status_code == 422
    assert client.get(f"/api/stock/product/{product_id}/history").json() == []


def test_adjust_sets_absolute_quantity(client):
    product_id = _create_product(client)
    client.post("/api/stock/in", json={"product_id": product_id, "quantity": 12})

    response = client.post("/api/stock/adjust", json={"product_id": product_id, "new_quantity": 9, "notes": "count"})

    assert response.status_code == 200
    assert response.json()["stock"]["quantity_on_hand"] == 9
    reconciliation = client.get(f"/api/stock/product/{product_id}/reconcile").json()
    assert reconciliation["is_balanced"] is True
    assert reconciliation["ledger_total"] == 9
    assert reconciliation["transaction_count"] == 2


def test_storekeeper_can_move_stock_but_not_adjust(client, login_as):
    product_id = _create_product(client)
    login_as(ROLE_STOREKEEPER)

    assert client.post("/api/stock/in", json={"product_id": product_id, "quantity": 1}).status_code == 201
    assert client.post("/api/stock/adjust", json={"product_id": product_id, "new_quantity": 0}).status_code == 403


def test_viewer_is_read_only(client, login_as):
    product_id = _create_product(client)
    login_as(ROLE_VIEWER)

    assert client.post("/api/stock/in", json={"product_id": product_id, "quantity": 1}).status_code == 403
    assert client.post("/api/stock/out", json={"product_id": product_id, "quantity": 1}).status_code == 403
    assert client.get(f"/api/stock/product/{product_id}").status_code == 200
    assert client.get("/api/stock/summary").status_code == 200


def test_summary_and_low_stock(client):
    low = _create_product(client, sku="LOW", name="Anchor", reorder_level=5)
    ok = _create_product(client, sku="OK", name="Bracket", reorder_level=5)
    client.post("/api/stock/in", json={"product_id": low, "quantity": 5})
    client.post("/api/stock/in", json={"product_id": ok, "quantity": 6})

    summary = client.get("/api/stock/summary").json()
    low_stock = client.get("/api/stock/low-stock").json()

    assert [(row["name"], row["status"]) for row in summary] == [("Anchor", "Low"), ("Bracket", "OK")]
    assert [row["product_id"] for row in low_stock] == [low]


def test_all_transactions_accepts_date_filters_and_paging(client):
    product_id = _create_product(client)
    for quantity in (1, 2, 3):
        client.post("/api/stock/in", json={"product_id": product_id, "quantity": quantity})

    first_page = client.get("/api/stock/transactions/all", params={"limit": 2}).json()
    second_page = client.get("/api/stock/transactions/all", params={"limit": 2, "offset": 2}).json()
    far_future = client.get("/api/stock/transactions/all", params={"start_date": "2999-01-01"}).json()

    assert [row["quantity"] for row in first_page + second_page] == [3, 2, 1]
    assert far_future == []
    open_ended = client.get("/api/stock/transactions/all", params={"end_date": "9999-12-31"})
    assert open_ended.status_code == 200
    assert len(open_ended.json()) == 3
    assert client.get("/api/stock/transactions/all", params={"offset": -1}).status_code == 422


def test_store_timeout_maps_to_retryable_503(client, monkeypatch):
    product_id = _create_product(client)

    def busy(*args, **kwargs):
        raise StoreTimeoutError("stock lock busy")

    monkeypatch.setattr(client.app.state.ledger, "record_movement", busy)
    response = client.post("/api/stock/in", json={"product_id": product_id, "quantity": 1})

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "1"
    assert response.json()["detail"]["code"] == "STORE_TIMEOUT"


def test_invariant_violation_is_an_internal_error(client, monkeypatch):
    product_id = _create_product(client)

    def broken(*args, **kwargs):
        raise InvariantViolationError("on_hand would go negative")

    monkeypatch.setattr(client.app.state.ledger, "record_movement", broken)
    response = client.post("/api/stock/out", json={"product_id": product_id, "quantity": 1})

    assert response.status_code == 500
    assert response.json()["detail"]["code"] == "INTERNAL_INVARIANT_VIOLATION"


@pytest.mark.real_auth
def test_stock_routes_require_a_token(client):
    assert client.get("/api/stock/summary").status_code == 401


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
