"""Integration tests for API endpoints"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import SQLAlchemyError


def _create_pledge(client: TestClient, amount="1000.00", currency="USD", **extra) -> dict:
    response = client.post("/v1/pledges", json={"original_amount": amount, "currency": currency, **extra})
    assert response.status_code == 201
    return response.json()


def _payment(**overrides) -> dict:
    body = {
        "amount": "1000.00",
        "currency": "USD",
        "exchange_rate": "1",
        "payment_date": "2024-02-01",
        "payment_method": "check",
    }
    body.update(overrides)
    return body


@pytest.fixture
def two_pledges(client: TestClient):
    return _create_pledge(client, "2000.00"), _create_pledge(client, "500.00")


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "pledge_payment_mutations_total" in response.text


def test_request_id_echoed(client: TestClient):
    """Test caller-supplied request ids are returned"""
    response = client.get("/health", headers={"X-Request-ID": "abc-123"})
    assert response.headers["X-Request-ID"] == "abc-123"


def test_create_pledge_looks_up_rate(client: TestClient):
    """Test POST /v1/pledges takes the rate from the rate table"""
    data = _create_pledge(client, "3650.00", "ILS")

    assert data["exchange_rate"] == "3.6500"
    assert data["original_amount"] == "3650.00"
    assert data["balance"] == "3650.00"
    assert data["total_paid"] == "0.00"


def test_create_pledge_unsupported_currency(client: TestClient):
    """Test POST /v1/pledges with an unsupported currency"""
    response = client.post("/v1/pledges", json={"original_amount": "10", "currency": "BTC"})

    assert response.status_code == 422
    assert response.json()["detail"]["errors"][0]["type"] == "UNSUPPORTED_CURRENCY"


def test_get_pledge_bad_id(client: TestClient):
    """Test GET /v1/pledges/{id} with a malformed id"""
    assert client.get("/v1/pledges/abc").status_code == 400
    assert client.get("/v1/pledges/999").status_code == 404


def test_plan_preview(client: TestClient):
    """Test POST /v1/payment-plans/preview"""
    response = client.post(
        "/v1/payment-plans/preview",
        json={
            "frequency": "monthly",
            "total_planned_amount": "100.00",
            "number_of_installments": 3,
            "start_date": "2024-01-31",
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert [i["installment_amount"] for i in data["installments"]] == ["33.33", "33.33", "33.34"]
    assert [i["installment_date"] for i in data["installments"]] == ["2024-01-31", "2024-02-29", "2024-03-31"]
    assert data["plan_id"] is None


def test_plan_create_and_edit_installment(client: TestClient):
    """Test 6 x $500 plan becomes custom with total 3100 after editing installment #3"""
    pledge = _create_pledge(client, "5000.00")
    response = client.post(
        "/v1/payment-plans",
        json={
            "pledge_id": pledge["pledge_id"],
            "frequency": "monthly",
            "total_planned_amount": "3000.00",
            "number_of_installments": 6,
            "start_date": "2024-01-01",
        },
    )
    assert response.status_code == 201
    plan = response.json()
    assert plan["distribution_type"] == "fixed"
    assert {i["installment_amount"] for i in plan["installments"]} == {"500.00"}

    edited = [
        {"date": i["installment_date"], "amount": i["installment_amount"]} for i in plan["installments"]
    ]
    edited[2]["amount"] = "600.00"
    response = client.patch(
        f"/v1/payment-plans/{plan['plan_id']}",
        json={"custom_installments": edited, "installments_modified": True},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["distribution_type"] == "custom"
    assert data["total_planned_amount"] == "3100.00"
    assert data["number_of_installments"] == 6
    assert data["installments"][2]["installment_amount"] == "600.00"

    # Persisted, not only echoed
    stored = client.get(f"/v1/payment-plans/{plan['plan_id']}").json()
    assert stored["total_planned_amount"] == "3100.00"


def test_plan_create_unknown_pledge(client: TestClient):
    """Test POST /v1/payment-plans for a pledge that does not exist"""
    response = client.post(
        "/v1/payment-plans",
        json={
            "pledge_id": 999,
            "frequency": "monthly",
            "total_planned_amount": "100",
            "number_of_installments": 1,
            "start_date": "2024-01-01",
        },
    )

    assert response.status_code == 404
    assert response.json()["detail"]["errors"][0]["field"] == "pledge_id"


def test_plan_status_transitions(client: TestClient):
    """Test POST /v1/payment-plans/{id}/status"""
    pledge = _create_pledge(client)
    plan = client.post(
        "/v1/payment-plans",
        json={
            "pledge_id": pledge["pledge_id"],
            "frequency": "quarterly",
            "total_planned_amount": "1000",
            "number_of_installments": 4,
            "start_date": "2024-01-01",
        },
    ).json()

    paused = client.post(f"/v1/payment-plans/{plan['plan_id']}/status", json={"action": "pause"})
    assert paused.status_code == 200
    assert paused.json()["status"] == "paused"

    rejected = client.post(f"/v1/payment-plans/{plan['plan_id']}/status", json={"action": "pause"})
    assert rejected.status_code == 422


def test_plan_status_commit_failure_rolls_back(client: TestClient, db, monkeypatch):
    """Test a failed status commit returns 500 and leaves the plan unchanged"""
    pledge = _create_pledge(client)
    plan = client.post(
        "/v1/payment-plans",
        json={
            "pledge_id": pledge["pledge_id"],
            "frequency": "monthly",
            "total_planned_amount": "600",
            "number_of_installments": 6,
            "start_date": "2024-01-01",
        },
    ).json()

    def failing_commit():
        raise SQLAlchemyError("database unavailable")

    monkeypatch.setattr(db, "commit", failing_commit)
    response = client.post(f"/v1/payment-plans/{plan['plan_id']}/status", json={"action": "pause"})
    monkeypatch.undo()

    assert response.status_code == 500
    assert client.get(f"/v1/payment-plans/{plan['plan_id']}").json()["status"] == "active"


def test_plan_create_too_many_installments(client: TestClient):
    """Test POST /v1/payment-plans rejects installments below one cent"""
    pledge = _create_pledge(client)
    response = client.post(
        "/v1/payment-plans",
        json={
            "pledge_id": pledge["pledge_id"],
            "frequency": "weekly",
            "total_planned_amount": "0.02",
            "number_of_installments": 3,
            "start_date": "2024-01-01",
        },
    )

    assert response.status_code == 422
    assert response.json()["detail"]["errors"][0]["field"] == "number_of_installments"


def test_direct_payment_updates_pledge_totals(client: TestClient):
    """Test POST /v1/payments against one pledge"""
    pledge = _create_pledge(client, "1000.00")

    response = client.post("/v1/payments", json=_payment(amount="250.00", pledge_id=pledge["pledge_id"]))

    assert response.status_code == 201
    assert response.json()["is_split"] is False
    refreshed = client.get(f"/v1/pledges/{pledge['pledge_id']}").json()
    assert refreshed["total_paid"] == "250.00"
    assert refreshed["balance"] == "750.00"


def test_split_payment_and_mismatch(client: TestClient, two_pledges):
    """Test split payment [600, 400] then changing the second to 399"""
    first, second = two_pledges
    response = client.post(
        "/v1/payments",
        json=_payment(
            allocations=[
                {"pledge_id": first["pledge_id"], "allocated_amount": "600.00"},
                {"pledge_id": second["pledge_id"], "allocated_amount": "400.00"},
            ]
        ),
    )
    assert response.status_code == 201
    payment = response.json()
    assert payment["is_split"] is True
    assert payment["pledge_id"] is None
    assert client.get(f"/v1/pledges/{second['pledge_id']}").json()["balance"] == "100.00"

    allocations = [
        {"id": a["allocation_id"], "pledge_id": a["pledge_id"], "allocated_amount": a["allocated_amount"]}
        for a in payment["allocations"]
    ]
    allocations[1]["allocated_amount"] = "399.00"
    response = client.patch(f"/v1/payments/{payment['payment_id']}/allocations", json={"allocations": allocations})

    assert response.status_code == 422
    error = response.json()["detail"]["errors"][0]
    assert error["type"] == "ALLOCATION_MISMATCH"
    assert error["total_allocated"] == "999.00"
    assert error["payment_amount"] == "1000.00"
    assert error["difference"] == "1.00"


def test_split_allocation_update_refreshes_totals(client: TestClient, two_pledges):
    """Test moving money between allocations updates both pledges"""
    first, second = two_pledges
    payment = client.post(
        "/v1/payments",
        json=_payment(
            amount="300.00",
            allocations=[
                {"pledge_id": first["pledge_id"], "allocated_amount": "200.00"},
                {"pledge_id": second["pledge_id"], "allocated_amount": "100.00"},
            ],
        ),
    ).json()
    allocations = [
        {"id": a["allocation_id"], "pledge_id": a["pledge_id"], "allocated_amount": "150.00"}
        for a in payment["allocations"]
    ]

    response = client.patch(f"/v1/payments/{payment['payment_id']}/allocations", json={"allocations": allocations})

    assert response.status_code == 200
    assert client.get(f"/v1/pledges/{first['pledge_id']}").json()["total_paid"] == "150.00"
    assert client.get(f"/v1/pledges/{second['pledge_id']}").json()["total_paid"] == "150.00"


def test_payment_shape_conflicts(client: TestClient, two_pledges):
    """Test direct-mode edits of split payments and vice versa"""
    first, second = two_pledges
    split = client.post(
        "/v1/payments",
        json=_payment(
            amount="100",
            allocations=[
                {"pledge_id": first["pledge_id"], "allocated_amount": "50"},
                {"pledge_id": second["pledge_id"], "allocated_amount": "50"},
            ],
        ),
    ).json()
    direct = client.post("/v1/payments", json=_payment(amount="100", pledge_id=first["pledge_id"])).json()

    response = client.patch(f"/v1/payments/{split['payment_id']}", json={"amount": "120"})
    assert response.status_code == 409
    assert response.json()["detail"]["errors"][0]["type"] == "WRONG_PAYMENT_SHAPE"

    response = client.patch(f"/v1/payments/{direct['payment_id']}/allocations", json={"allocations": []})
    assert response.status_code == 409
    assert response.json()["detail"]["errors"][0]["type"] == "NOT_A_SPLIT_PAYMENT"


def test_payment_with_pledge_and_allocations(client: TestClient, two_pledges):
    """Test POST /v1/payments with both shapes at once"""
    first, second = two_pledges
    response = client.post(
        "/v1/payments",
        json=_payment(
            pledge_id=first["pledge_id"],
            allocations=[{"pledge_id": second["pledge_id"], "allocated_amount": "1000"}],
        ),
    )

    assert response.status_code == 409


def test_sub_cent_allocation_rejected(client: TestClient, two_pledges):
    """Test [50, 49.995] against 100 is rejected"""
    first, second = two_pledges
    response = client.post(
        "/v1/payments",
        json=_payment(
            amount=100,
            allocations=[
                {"pledge_id": first["pledge_id"], "allocated_amount": 50},
                {"pledge_id": second["pledge_id"], "allocated_amount": 49.995},
            ],
        ),
    )

    assert response.status_code == 422
    assert response.json()["detail"]["errors"][0]["field"] == "allocations[1].allocated_amount"


def test_convert_endpoint(client: TestClient):
    """Test GET /v1/exchange-rates/convert"""
    response = client.get("/v1/exchange-rates/convert", params={"amount": "100", "from_currency": "USD", "to_currency": "ILS"})

    assert response.status_code == 200
    data = response.json()
    assert data["converted_amount"] == "27.40"
    assert data["degraded"] is False


def test_get_payment_not_found(client: TestClient):
    """Test GET /v1/payments/{id} with an unknown id"""
    assert client.get("/v1/payments/12345").status_code == 404
