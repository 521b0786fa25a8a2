from __future__ import annotations

import uuid

API = "/api/v1"


def _create_budget(client, headers, category_id, start="2024-01-01", end="2024-01-31", amount="500.00"):
    return client.post(
        f"{API}/budgets",
        json={"category_id": str(category_id), "amount": amount, "start_date": start, "end_date": end},
        headers=headers,
    )


def _create_expense(client, headers, category_id, amount, when):
    response = client.post(
        f"{API}/expenses",
        json={"category_id": str(category_id), "amount": amount, "date": when},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_budget_lifecycle(client, auth_headers, food_category):
    created = _create_budget(client, auth_headers, food_category.id)
    assert created.status_code == 201
    budget = created.json()["data"]
    assert budget["amount"] == "500.00"
    assert budget["start_date"] == "2024-01-01"
    assert budget["deleted_at"] is None

    fetched = client.get(f"{API}/budgets/{budget['id']}", headers=auth_headers)
    assert fetched.status_code == 200

    updated = client.put(f"{API}/budgets/{budget['id']}", json={"amount": "650"}, headers=auth_headers)
    assert updated.status_code == 200
    assert updated.json()["data"]["amount"] == "650.00"

    deleted = client.delete(f"{API}/budgets/{budget['id']}", headers=auth_headers)
    assert deleted.status_code == 200
    assert client.get(f"{API}/budgets/{budget['id']}", headers=auth_headers).status_code == 404

    listing = client.get(f"{API}/budgets", params={"status": "deleted"}, headers=auth_headers)
    assert [b["id"] for b in listing.json()["data"]] == [budget["id"]]
    assert listing.json()["data"][0]["deleted_at"] is not None


def test_budget_validation_errors(client, auth_headers, food_category):
    assert _create_budget(client, auth_headers, food_category.id, amount="0").status_code == 400
    assert _create_budget(client, auth_headers, food_category.id, amount="-5").status_code == 400
    assert _create_budget(client, auth_headers, food_category.id, start="2024-13-01").status_code == 400
    reversed_period = _create_budget(client, auth_headers, food_category.id, start="2024-02-01", end="2024-01-01")
    assert reversed_period.status_code == 400
    assert _create_budget(client, auth_headers, uuid.uuid4()).status_code == 400
    listing = client.get(f"{API}/budgets", params={"period": "someday"}, headers=auth_headers)
    assert listing.status_code == 400
    assert client.get(f"{API}/budgets", headers=auth_headers).json()["data"] == []


def test_overlapping_budget_returns_conflict(client, auth_headers, food_category):
    assert _create_budget(client, auth_headers, food_category.id).status_code == 201
    response = _create_budget(client, auth_headers, food_category.id, start="2024-01-15", end="2024-02-15")
    assert response.status_code == 409
    assert response.json()["message"] == "Budget period overlaps with an existing budget for the same category"


def test_budget_of_another_user_is_not_found(client, auth_headers, food_category):
    budget_id = _create_budget(client, auth_headers, food_category.id).json()["data"]["id"]
    other = {"X-User-ID": str(uuid.uuid4())}
    assert client.get(f"{API}/budgets/{budget_id}", headers=other).status_code == 404
    assert client.delete(f"{API}/budgets/{budget_id}", headers=other).status_code == 404


def test_budget_analysis_overrun(client, auth_headers, food_category):
    _create_budget(client, auth_headers, food_category.id)
    _create_expense(client, auth_headers, food_category.id, "400.00", "2024-01-10T12:00:00")
    _create_expense(client, auth_headers, food_category.id, "200.00", "2024-01-28T18:45:00")

    response = client.get(
        f"{API}/budgets/analysis",
        params={"start_date": "2024-01-01", "end_date": "2024-01-31"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    [item] = response.json()["data"]
    assert item["category"] == "Food & Dining"
    assert item["budgeted_amount"] == "500.00"
    assert item["total_spent"] == "600.00"
    assert item["remaining_budget"] == "-100.00"
    assert item["percentage_spent"] == "120.00"
    assert item["exceeds_budget"] is True


def test_budget_analysis_without_budgets(client, auth_headers):
    response = client.get(f"{API}/budgets/analysis", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["data"] == []
    assert response.json()["message"] == "No budgets found for the specified period"
