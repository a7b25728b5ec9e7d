import pytest
from fastapi.testclient import TestClient

from conftest import FakeGateway, FakeNotifications, FakeOrderRepository, FakeUnitOfWork, make_order, utc
from order_automation.application.get_order_schedule import GetOrderScheduleUseCase
from order_automation.application.run_automation import RunOrderAutomationUseCase
from order_automation.config import settings
from order_automation.main import app
from order_automation.presentation.api import get_order_schedule_use_case, get_run_automation_use_case

NOW = utc(2024, 6, 15, 8, 5)


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", "")
    uow = FakeUnitOfWork(FakeOrderRepository([make_order()]))
    app.dependency_overrides[get_run_automation_use_case] = lambda: RunOrderAutomationUseCase(
        uow, FakeGateway(), FakeNotifications(), clock=lambda: NOW
    )
    app.dependency_overrides[get_order_schedule_use_case] = lambda: GetOrderScheduleUseCase(uow, clock=lambda: NOW)
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_cron_run(client):
    response = client.get("/api/orders/automation")

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["updated"] == 1
    assert data["orders"] == [{"order_number": 1001, "old_status": "confirmed", "new_status": "processing"}]
    assert "timestamp" in data


def test_manual_run(client):
    response = client.post("/api/orders/automation")

    assert response.status_code == 200
    assert response.json()["message"] == "Automation manually triggered"


def test_cron_secret_is_required_when_configured(client, monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")

    assert client.get("/api/orders/automation").status_code == 401
    assert client.get("/api/orders/automation", headers={"Authorization": "Bearer wrong"}).status_code == 401
    assert client.post("/api/orders/automation").status_code == 401
    assert client.get("/api/orders/automation", headers={"Authorization": "Bearer s3cret"}).status_code == 200


def test_order_schedule(client):
    response = client.get("/api/orders/ord-1/automation")

    assert response.status_code == 200
    data = response.json()
    assert data["time_group"] == "noon"
    assert data["delivery_date"] == "2024-06-15"
    assert data["estimated_delivery_text"] == "15 Haziran 2024 18:00"
    assert [t["target_status"] for t in data["transitions"]] == ["processing", "shipped", "delivered"]


def test_order_schedule_not_found(client):
    response = client.get("/api/orders/missing/automation")

    assert response.status_code == 404
    assert response.json()["detail"] == "Заказ не найден"


def test_missing_gateway_credentials(monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", "")
    monkeypatch.setattr(settings, "IYZICO_API_KEY", "")

    response = TestClient(app).get("/api/orders/automation")

    assert response.status_code == 503


def test_health():
    assert TestClient(app).get("/health").json() == {"status": "healthy"}


def test_cron_secret_comparison_is_exact(client, monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")

    for header in ("Bearer s3cre", "Bearer s3cret2", "bearer s3cret", "s3cret", "Bearer şifre"):
        assert client.get("/api/orders/automation", headers={"Authorization": header}).status_code == 401
