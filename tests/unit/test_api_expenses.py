from __future__ import annotations

import uuid
from datetime import timedelta

from spendtrack import models

API = "/api/v1"


def _payload(category_id, **extra):
    body = {"category_id": str(category_id), "amount": "45.10", "date": "2024-03-02T08:15:00"}
    body.update(extra)
    return body


def test_create_and_retrieve_expense(client, auth_headers, food_category):
    created = client.post(f"{API}/expenses", json=_payload(food_category.id, description="Train"), headers=auth_headers)
    assert created.status_code == 201
    expense = created.json()["data"]
    assert expense["amount"] == "45.10"
    assert expense["category_id"] == str(food_category.id)
    assert expense["is_recurring"] is False

    fetched = client.get(f"{API}/expenses/{expense['id']}", headers=auth_headers)
    assert fetched.status_code == 200
    assert fetched.json()["data"]["description"] == "Train"
    other = {"X-User-ID": str(uuid.uuid4())}
    assert client.get(f"{API}/expenses/{expense['id']}", headers=other).status_code == 404


def test_timezone_aware_dates_are_stored_as_utc(client, auth_headers, food_category):
    created = client.post(
        f"{API}/expenses", json=_payload(food_category.id, date="2024-03-02T10:00:00+02:00"), headers=auth_headers
    )
    assert created.status_code == 201
    assert created.json()["data"]["date"] == "2024-03-02T08:00:00"


def test_expense_validation(client, auth_headers, food_category):
    for amount in ("0", "-1.00", "1.001"):
        response = client.post(f"{API}/expenses", json=_payload(food_category.id, amount=amount), headers=auth_headers)
        assert response.status_code == 400
    future = (models.utcnow() + timedelta(days=2)).isoformat()
    response = client.post(f"{API}/expenses", json=_payload(food_category.id, date=future), headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Date cannot be in the future"
    response = client.post(f"{API}/expenses", json=_payload(uuid.uuid4()), headers=auth_headers)
    assert response.json()["message"] == "Invalid category ID"
    assert client.get(f"{API}/expenses", headers=auth_headers).json()["meta"]["total_count"] == 0


def test_list_expenses_paginates(client, auth_headers, food_category):
    for day in range(1, 6):
        client.post(
            f"{API}/expenses",
            json=_payload(food_category.id, amount=f"{day}.00", date=f"2024-03-0{day}T09:00:00"),
            headers=auth_headers,
        )

    response = client.get(
        f"{API}/expenses",
        params={"sort": "amount", "order": "desc", "page": 2, "limit": 2},
        headers=auth_headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert [e["amount"] for e in body["data"]] == ["3.00", "2.00"]
    assert body["meta"] == {"total_count": 5, "page": 2, "per_page": 2, "total_pages": 3}

    filtered = client.get(
        f"{API}/expenses",
        params={"start_date": "2024-03-02", "end_date": "2024-03-03"},
        headers=auth_headers,
    ).json()
    assert [e["amount"] for e in filtered["data"]] == ["2.00", "3.00"]
    assert client.get(f"{API}/expenses", params={"sort": "nope"}, headers=auth_headers).status_code == 400


def test_update_and_delete_expense_with_receipt(client, auth_headers, food_category):
    receipt = client.post(f"{API}/receipts", json={"image_url": "file:///r.jpg"}, headers=auth_headers).json()["data"]
    expense = client.post(
        f"{API}/expenses", json=_payload(food_category.id, receipt_id=receipt["id"]), headers=auth_headers
    ).json()["data"]

    empty = client.put(f"{API}/expenses/{expense['id']}", json={}, headers=auth_headers)
    assert empty.status_code == 400
    updated = client.put(
        f"{API}/expenses/{expense['id']}",
        json={"amount": "50.00", "recurrence_interval": "weekly"},
        headers=auth_headers,
    )
    assert updated.status_code == 200
    data = updated.json()["data"]
    assert data["amount"] == "50.00"
    assert data["is_recurring"] is True
    assert data["recurrence_interval"] == "weekly"

    deleted = client.delete(f"{API}/expenses/{expense['id']}", headers=auth_headers)
    assert deleted.status_code == 200
    assert client.get(f"{API}/expenses/{expense['id']}", headers=auth_headers).status_code == 404
    assert client.get(f"{API}/receipts/{receipt['id']}", headers=auth_headers).status_code == 404


def test_expense_analysis_endpoint(client, auth_headers, food_category):
    client.post(f"{API}/expenses", json=_payload(food_category.id, amount="10.00"), headers=auth_headers)
    client.post(
        f"{API}/expenses",
        json=_payload(food_category.id, amount="30.00", date="2024-03-09T10:00:00"),
        headers=auth_headers,
    )

    response = client.get(f"{API}/expenses/analysis", params={"period": "week"}, headers=auth_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total_spent"] == "40.00"
    assert data["expense_count"] == 2
    assert data["active_days"] == 2
    assert data["failed_sections"] == []
    assert data["by_category"][0]["percentage"] == "100.00"
    assert [p["period"] for p in data["by_period"]] == ["2024-W09", "2024-W10"]

    bad = client.get(f"{API}/expenses/analysis", params={"period": "decade"}, headers=auth_headers)
    assert bad.status_code == 400
