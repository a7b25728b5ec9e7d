import httpx
import logging
from typing import Optional
import asyncio

from order_automation.application.interfaces import NotificationsService
from order_automation.domain.models import OrderConfirmationNotification, OrderStatusNotification

logger = logging.getLogger(__name__)


class HTTPNotificationsClient(NotificationsService):
    """Клиент сервиса уведомлений: сам рендерит и отправляет письма, нам отвечает успехом или нет"""

    def __init__(
        self,
        base_url: str,
        api_token: str,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_token = api_token
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._transport = transport

    async def send_order_status_update(self, notification: OrderStatusNotification) -> bool:
        return await self._send("/api/notifications/order-status", notification.model_dump(mode="json"))

    async def send_order_confirmation(self, notification: OrderConfirmationNotification) -> bool:
        return await self._send("/api/notifications/order-confirmation", notification.model_dump(mode="json"))

    async def _send(self, path: str, payload: dict) -> bool:
        """Отправка уведомления с повторными попытками"""
        for attempt in range(self._max_retries):
            try:
                async with httpx.AsyncClient(transport=self._transport) as client:
                    response = await client.post(
                        f"{self._base_url}{path}",
                        json=payload,
                        headers={"X-API-Key": self._api_token},
                        timeout=10.0
                    )

                    if response.status_code in (200, 201, 202):
                        logger.info(f"Уведомление {path} отправлено (попытка {attempt + 1})")
                        return True
                    elif 400 <= response.status_code < 500:
                        # Ошибка в самих данных, повтор не поможет
                        logger.error(f"Уведомление {path} отклонено: HTTP {response.status_code}")
                        return False
                    else:
                        logger.warning(f"Уведомление вернуло статус {response.status_code}")

            except httpx.RequestError as e:
                logger.warning(f"Ошибка отправки уведомления (попытка {attempt + 1}/{self._max_retries}): {e}")

            # Ждем перед следующей попыткой (кроме последней)
            if attempt < self._max_retries - 1:
                await asyncio.sleep(self._retry_delay)

        logger.error(f"Не удалось отправить уведомление {path} после {self._max_retries} попыток")
        return False
