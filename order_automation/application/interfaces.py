from abc import ABC, abstractmethod
from typing import Optional, List

from order_automation.domain.models import (
    GatewayResult,
    Order,
    OrderConfirmationNotification,
    OrderFilter,
    OrderPatch,
    OrderStatus,
    OrderStatusNotification,
)


class OrderRepository(ABC):
    @abstractmethod
    async def get_by_id(self, order_id: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def find(self, order_filter: OrderFilter) -> List[Order]:
        pass

    @abstractmethod
    async def update_if_status(self, order_id: str, expected_status: OrderStatus, patch: OrderPatch) -> bool:
        """Compare-and-swap: обновляет заказ, только если его статус всё ещё expected_status"""
        pass


class UnitOfWork(ABC):
    @property
    @abstractmethod
    def orders(self) -> OrderRepository:
        pass

    @abstractmethod
    async def __call__(self):
        pass

    @abstractmethod
    async def commit(self):
        pass

    @abstractmethod
    async def rollback(self):
        pass


class PaymentGateway(ABC):
    @abstractmethod
    async def initialize_checkout_form(self, request: dict) -> GatewayResult:
        pass

    @abstractmethod
    async def retrieve_checkout_form(self, token: str, conversation_id: str) -> GatewayResult:
        pass

    @abstractmethod
    async def retrieve_payment(self, payment_id: str, conversation_id: Optional[str] = None) -> GatewayResult:
        pass


class NotificationsService(ABC):
    @abstractmethod
    async def send_order_status_update(self, notification: OrderStatusNotification) -> bool:
        pass

    @abstractmethod
    async def send_order_confirmation(self, notification: OrderConfirmationNotification) -> bool:
        pass
