from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

import pytest

from order_automation.domain.exceptions import OrderStoreError, PaymentGatewayError
from order_automation.domain.models import (
    GatewayResult, Order, OrderFilter, OrderPatch, OrderStatus, OrderTimeGroup
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def make_order(**overrides) -> Order:
    """Оплаченный заказ на 2024-06-15, оформлен в 12:00 по Стамбулу (noon)"""
    data = {
        "id": "ord-1",
        "order_number": 1001,
        "status": OrderStatus.CONFIRMED,
        "customer_email": "ayse@example.com",
        "customer_name": "Ayşe Yılmaz",
        "customer_phone": "+905551112233",
        "delivery": {
            "deliveryDate": "2024-06-15",
            "deliveryTimeSlot": "11:00-17:00",
            "fullAddress": "Bağdat Cd. 10",
            "district": "Kadıköy",
            "recipientName": "Fatma",
            "recipientPhone": "+905554445566",
        },
        "payment": {"status": "paid", "method": "credit_card"},
        "products": [{"name": "Kırmızı Güller", "quantity": 1, "price": 750, "image": "/img/roses.jpg"}],
        "subtotal": 750,
        "total": 750,
        "timeline": [],
        "created_at": utc(2024, 6, 14, 9, 0),
        "updated_at": utc(2024, 6, 14, 9, 0),
    }
    data.update(overrides)
    return Order.model_validate(data)


class FakeOrderRepository:
    def __init__(self, orders: Optional[List[Order]] = None):
        self.orders = {order.id: order for order in orders or []}
        self.updates: List[tuple] = []
        self.find_calls: List[OrderFilter] = []
        self.find_errors: List[Exception] = []
        self.fail_updates = False

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        return self.orders.get(order_id)

    async def find(self, order_filter: OrderFilter) -> List[Order]:
        self.find_calls.append(order_filter)
        if self.find_errors:
            raise self.find_errors.pop(0)

        result = []
        for order in self.orders.values():
            if order_filter.statuses and order.status not in order_filter.statuses:
                continue
            if order_filter.created_after and order.created_at < order_filter.created_after:
                continue
            if order_filter.created_before and order.created_at >= order_filter.created_before:
                continue
            if order_filter.payment_status and order.payment.status != order_filter.payment_status.value:
                continue
            if order_filter.delivery_date_prefix and not (
                order.delivery.delivery_date or ""
            ).startswith(order_filter.delivery_date_prefix):
                continue
            result.append(order)

        result.sort(key=lambda o: o.created_at, reverse=order_filter.newest_first)
        return result[:order_filter.limit]

    async def update_if_status(self, order_id: str, expected_status: OrderStatus, patch: OrderPatch) -> bool:
        if self.fail_updates:
            raise OrderStoreError("database is down")
        changes = patch.changes()
        order = self.orders.get(order_id)
        if not changes or order is None or order.status != expected_status:
            return False
        if isinstance(changes.get("order_time_group"), OrderTimeGroup):
            changes["order_time_group"] = changes["order_time_group"].value
        self.orders[order_id] = order.model_copy(update=changes)
        self.updates.append((order_id, expected_status, changes))
        return True


class FakeUnitOfWork:
    def __init__(self, repository: FakeOrderRepository):
        self.orders = repository
        self.commits = 0

    @asynccontextmanager
    async def __call__(self):
        yield self

    async def commit(self):
        self.commits += 1

    async def rollback(self):
        pass


class FakeGateway:
    def __init__(self, results: Optional[dict] = None):
        self.results = results or {}
        self.calls: List[str] = []

    async def initialize_checkout_form(self, request: dict) -> GatewayResult:
        raise NotImplementedError

    async def retrieve_checkout_form(self, token: str, conversation_id: str) -> GatewayResult:
        self.calls.append(token)
        result = self.results.get(token)
        if isinstance(result, Exception):
            raise result
        if result is None:
            raise PaymentGatewayError("unknown token")
        return result

    async def retrieve_payment(self, payment_id: str, conversation_id: Optional[str] = None) -> GatewayResult:
        raise NotImplementedError


class FakeNotifications:
    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.status_updates = []
        self.confirmations = []

    async def send_order_status_update(self, notification) -> bool:
        self.status_updates.append(notification)
        return self.succeed

    async def send_order_confirmation(self, notification) -> bool:
        self.confirmations.append(notification)
        return self.succeed


@pytest.fixture
def repository():
    return FakeOrderRepository()


@pytest.fixture
def uow(repository):
    return FakeUnitOfWork(repository)


@pytest.fixture
def notifications():
    return FakeNotifications()
