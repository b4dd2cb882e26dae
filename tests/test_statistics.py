from datetime import datetime, timedelta, timezone

import pytest

from shopki_api.app.services.statistics_service import StatisticsService


def test_finance_requires_admin(client):
    assert client.get("/api/statistics/finance").status_code == 401


def test_finance_summary(client, make_order, product, admin_headers):
    make_order(quantity=2)
    big = make_order(quantity=4)
    client.patch(f"/api/orders/{big['id']}/status", json={"status": "completed"}, headers=admin_headers)

    response = client.get("/api/statistics/finance", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()

    assert data["period"] == "all"
    assert data["totalRevenue"] == pytest.approx(9300)
    assert data["completedRevenue"] == pytest.approx(6000)
    assert data["commissionRate"] == 0.04
    assert data["totalCommission"] == pytest.approx(372)
    assert data["sellerPayouts"] == pytest.approx(8928)
    assert data["totalProfit"] == pytest.approx(372)
    assert data["orderStats"] == {
        "total": 2,
        "completed": 1,
        "pending": 1,
        "processing": 0,
        "cancelled": 0,
        "returned": 0,
    }
    month = datetime.now(timezone.utc).strftime("%Y-%m")
    assert data["monthlyRevenue"] == [{"month": month, "amount": pytest.approx(9300)}]
    assert data["topProducts"] == [
        {"productId": product["id"], "name": "Kiondo basket", "quantity": 6, "revenue": pytest.approx(9000)}
    ]


def test_finance_for_week(client, order, admin_headers):
    data = client.get("/api/statistics/finance", params={"period": "week"}, headers=admin_headers).json()
    assert data["period"] == "week"
    assert data["orderStats"]["total"] == 1


def test_finance_rejects_unknown_period(client, admin_headers):
    response = client.get("/api/statistics/finance", params={"period": "year"}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid fields: period"


def test_period_start():
    now = datetime(2026, 10, 19, tzinfo=timezone.utc)
    assert StatisticsService.period_start("all", now) is None
    assert StatisticsService.period_start("week", now) == now - timedelta(days=7)
    assert StatisticsService.period_start("month", now) == now - timedelta(days=30)
    with pytest.raises(ValueError):
        StatisticsService.period_start("decade", now)
