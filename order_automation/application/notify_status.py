import logging
from datetime import datetime

from order_automation.application.guarded_update import apply_guarded_update
from order_automation.application.interfaces import NotificationsService
from order_automation.domain.models import (
    Order,
    OrderConfirmationNotification,
    OrderItem,
    OrderPatch,
    OrderStatusNotification,
)
from order_automation.domain.timeline import NotificationEntry, append_entry, has_status_notification

logger = logging.getLogger(__name__)

DEFAULT_CUSTOMER_NAME = "Değerli Müşterimiz"


def _delivery_fields(order: Order) -> dict:
    delivery = order.delivery
    return {
        "delivery_date": delivery.delivery_date or None,
        "delivery_time": delivery.delivery_time_slot or None,
        "delivery_address": delivery.full_address or None,
        "district": delivery.district or None,
        "recipient_name": delivery.recipient_name or None,
        "recipient_phone": delivery.recipient_phone or None,
    }


def _customer_email(order: Order) -> str:
    return (order.customer_email or "").strip()


def build_status_notification(order: Order) -> OrderStatusNotification:
    return OrderStatusNotification(
        customer_email=_customer_email(order),
        customer_name=(order.customer_name or "").strip() or DEFAULT_CUSTOMER_NAME,
        order_number=str(order.order_number),
        status=order.status,
        **_delivery_fields(order),
    )


def _first_str(product: dict, *keys: str):
    for key in keys:
        value = product.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def build_order_confirmation(order: Order) -> OrderConfirmationNotification:
    items = [
        OrderItem(
            name=str(product.get("name") or ""),
            quantity=float(product.get("quantity") or 0),
            price=float(product.get("price") or 0),
            image_url=_first_str(product, "image", "imageUrl", "hoverImage"),
        )
        for product in order.products
        if isinstance(product, dict)
    ]
    return OrderConfirmationNotification(
        order_number=str(order.order_number),
        customer_name=order.customer_name or "",
        customer_email=_customer_email(order),
        customer_phone=order.customer_phone or "",
        items=items,
        subtotal=order.subtotal,
        discount=order.discount,
        delivery_fee=order.delivery_fee,
        total=order.total,
        payment_method=order.payment.method or "credit_card",
        **_delivery_fields(order),
    )


class OrderStatusNotifier:
    """
    Письмо о смене статуса, не больше одного на статус.

    Идемпотентность держится на timeline: если там уже есть успешное
    email-уведомление о статусе, повторно не отправляем. После отправки
    дописываем запись в timeline с guard на только что записанный статус.
    """

    def __init__(self, unit_of_work, notifications: NotificationsService):
        self._uow = unit_of_work
        self._notifications = notifications

    async def __call__(self, order: Order, now: datetime) -> bool:
        """order: заказ в том виде, в каком он только что записан. True если письмо ушло"""
        status = order.status
        try:
            if not _customer_email(order):
                logger.info(f"Заказ {order.order_number}: нет email, уведомление {status.value} пропущено")
                return False

            if has_status_notification(order.timeline, status.value):
                logger.info(f"Заказ {order.order_number}: уведомление {status.value} уже отправлено")
                return False

            sent = await self._notifications.send_order_status_update(build_status_notification(order))
            if not sent:
                logger.warning(f"Заказ {order.order_number}: уведомление {status.value} не отправлено")
                return False

            timeline = append_entry(
                order.timeline,
                NotificationEntry(
                    channel="email", event="order_status", status=status.value,
                    timestamp=now, success=True, automated=True,
                ),
            )
            await apply_guarded_update(self._uow, order, OrderPatch(timeline=timeline))
            return True

        except Exception as e:
            logger.error(
                f"Ошибка уведомления для заказа {order.id} ({order.order_number}), статус {status.value}: {e}",
                exc_info=True,
            )
            return False
