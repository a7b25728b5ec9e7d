import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from order_automation.application.guarded_update import apply_guarded_update
from order_automation.application.interfaces import NotificationsService, PaymentGateway
from order_automation.application.notify_status import build_order_confirmation
from order_automation.domain.exceptions import OrderStoreError, PaymentGatewayError
from order_automation.domain.models import (
    GatewayResult, Order, OrderFilter, OrderPatch, OrderStatus, PaymentStatus, StatusChange
)
from order_automation.domain.payment_errors import (
    TOKEN_EXPIRED_CODE, TOKEN_EXPIRED_MESSAGE, map_gateway_error
)
from order_automation.domain.time_utils import parse_instant
from order_automation.domain.timeline import StatusEntry, append_entry

logger = logging.getLogger(__name__)

# Окно выборки: моложе 10 минут ещё может прийти callback, старше суток не трогаем
MIN_AGE = timedelta(minutes=10)
MAX_AGE = timedelta(hours=24)
BATCH_LIMIT = 100


def is_token_expired(token_created_at: Optional[str], now: datetime, ttl: timedelta) -> bool:
    """Без tokenCreatedAt (старые заказы) токен считаем живым"""
    created_at = parse_instant(token_created_at)
    if created_at is None:
        return False
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return now - created_at > ttl


class VerifyStuckPaymentsUseCase:
    """
    Заказы, зависшие в ожидании оплаты: токен iyzico есть, а payment.status не paid.
    Сверяем результат с iyzico и переводим заказ в confirmed или payment_failed.
    """

    def __init__(
        self,
        unit_of_work,
        gateway: PaymentGateway,
        notifications: NotificationsService,
        token_ttl: timedelta = timedelta(minutes=25),
    ):
        self._uow = unit_of_work
        self._gateway = gateway
        self._notifications = notifications
        self._token_ttl = token_ttl

    async def __call__(self, now: datetime) -> List[StatusChange]:
        order_filter = OrderFilter(
            statuses=[OrderStatus.PENDING, OrderStatus.PENDING_PAYMENT],
            created_after=now - MAX_AGE,
            created_before=now - MIN_AGE,
            limit=BATCH_LIMIT,
        )
        try:
            async with self._uow() as uow:
                candidates = await uow.orders.find(order_filter)
        except OrderStoreError as e:
            logger.error(f"Ошибка выборки зависших платежей: {e}")
            return []

        to_verify = [o for o in candidates if o.payment.token and not o.is_paid()]
        if not to_verify:
            return []

        logger.info(f"Проверка {len(to_verify)} зависших платежей в iyzico")

        changes = []
        for order in to_verify:
            try:
                change = await self._process(order, now)
                if change:
                    changes.append(change)
            except Exception as e:
                logger.error(f"Ошибка проверки платежа заказа {order.order_number}: {e}", exc_info=True)
        return changes

    async def _process(self, order: Order, now: datetime) -> Optional[StatusChange]:
        if is_token_expired(order.payment.token_created_at, now, self._token_ttl):
            logger.info(f"Токен заказа {order.order_number} истёк, отмечаем payment_failed")
            return await self._mark_failed(order, now, TOKEN_EXPIRED_CODE, TOKEN_EXPIRED_MESSAGE)

        try:
            result = await self._gateway.retrieve_checkout_form(order.payment.token, conversation_id=order.id)
        except PaymentGatewayError as e:
            logger.error(f"iyzico не ответил по заказу {order.order_number}: {e}")
            return None

        if result.is_success():
            return await self._confirm(order, result, now)

        if result.is_failure():
            message = map_gateway_error(result.error_code, result.error_message)
            return await self._mark_failed(order, now, result.error_code, message)

        # Платёж ещё в процессе, ждём следующего запуска
        logger.info(f"Платёж заказа {order.order_number} ещё не завершён ({result.payment_status})")
        return None

    async def _confirm(self, order: Order, result: GatewayResult, now: datetime) -> Optional[StatusChange]:
        payment = order.payment.model_copy(update={
            "method": "credit_card",
            "status": PaymentStatus.PAID.value,
            "transaction_id": result.payment_id,
            "card_last4": result.last_four_digits,
            "paid_at": now.isoformat(),
            "card_type": result.card_type,
            "card_association": result.card_association,
            "installment": result.installment,
            "paid_price": result.paid_price,
        })
        timeline = append_entry(order.timeline, StatusEntry(
            status=OrderStatus.CONFIRMED.value,
            timestamp=now,
            note="Ödeme onaylandı (otomatik iyzico doğrulama)",
            automated=True,
        ))
        patch = OrderPatch(status=OrderStatus.CONFIRMED, payment=payment, timeline=timeline, updated_at=now)

        if not await apply_guarded_update(self._uow, order, patch):
            return None
        logger.info(f"Заказ {order.order_number} подтверждён по данным iyzico")

        await self._send_confirmation(order.model_copy(update={
            "status": OrderStatus.CONFIRMED, "payment": payment, "timeline": timeline,
        }))
        return StatusChange(order_number=order.order_number, old_status=order.status, new_status=OrderStatus.CONFIRMED)

    async def _mark_failed(
        self, order: Order, now: datetime, error_code: Optional[str], message: str
    ) -> Optional[StatusChange]:
        payment = order.payment.model_copy(update={
            "status": PaymentStatus.FAILED.value,
            "error_code": error_code,
            "error_message": message,
        })
        timeline = append_entry(order.timeline, StatusEntry(
            status=OrderStatus.PAYMENT_FAILED.value, timestamp=now, note=message, automated=True,
        ))
        patch = OrderPatch(status=OrderStatus.PAYMENT_FAILED, payment=payment, timeline=timeline, updated_at=now)

        if not await apply_guarded_update(self._uow, order, patch):
            return None
        logger.info(f"Заказ {order.order_number} отмечен payment_failed: {message}")
        return StatusChange(
            order_number=order.order_number, old_status=order.status, new_status=OrderStatus.PAYMENT_FAILED
        )

    async def _send_confirmation(self, order: Order) -> None:
        """Письмо-подтверждение: best effort, статус уже записан"""
        if not (order.customer_email or "").strip():
            return
        try:
            if await self._notifications.send_order_confirmation(build_order_confirmation(order)):
                logger.info(f"Письмо-подтверждение отправлено для заказа {order.order_number}")
            else:
                logger.warning(f"Письмо-подтверждение для заказа {order.order_number} не отправлено")
        except Exception as e:
            logger.error(f"Не удалось отправить подтверждение заказа {order.order_number}: {e}")
