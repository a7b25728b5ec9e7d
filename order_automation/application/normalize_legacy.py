import logging
from datetime import datetime, timedelta
from typing import List, Optional

from order_automation.application.guarded_update import apply_guarded_update
from order_automation.application.notify_status import OrderStatusNotifier
from order_automation.domain.exceptions import OrderStoreError
from order_automation.domain.models import (
    Order, OrderFilter, OrderPatch, OrderStatus, PaymentStatus, StatusChange
)
from order_automation.domain.schedule import resolve_time_group
from order_automation.domain.time_utils import normalize_delivery_date
from order_automation.domain.timeline import StatusEntry, append_entry, has_status_entry

logger = logging.getLogger(__name__)

LOOKBACK = timedelta(days=60)
BATCH_LIMIT = 2000


class NormalizeLegacyOrdersUseCase:
    """
    Страховка для старых заказов: оплата прошла (payment.status == paid),
    а заказ так и остался в pending/pending_payment. Переводим в confirmed,
    чтобы дальше он шёл по расписанию дня доставки.
    """

    def __init__(self, unit_of_work, notifier: OrderStatusNotifier):
        self._uow = unit_of_work
        self._notifier = notifier

    async def __call__(self, now: datetime) -> List[StatusChange]:
        order_filter = OrderFilter(
            statuses=[OrderStatus.PENDING, OrderStatus.PENDING_PAYMENT],
            payment_status=PaymentStatus.PAID,
            created_after=now - LOOKBACK,
            newest_first=True,
            limit=BATCH_LIMIT,
        )
        try:
            async with self._uow() as uow:
                candidates = await uow.orders.find(order_filter)
        except OrderStoreError as e:
            logger.error(f"Ошибка выборки оплаченных заказов в pending: {e}")
            return []

        changes = []
        for order in candidates:
            if not order.is_paid():
                continue
            try:
                change = await self._confirm(order, now)
                if change:
                    changes.append(change)
            except Exception as e:
                logger.error(f"Ошибка нормализации заказа {order.id} ({order.order_number}): {e}", exc_info=True)
        return changes

    async def _confirm(self, order: Order, now: datetime) -> Optional[StatusChange]:
        timeline = list(order.timeline)
        if not has_status_entry(timeline, OrderStatus.CONFIRMED.value):
            timeline = append_entry(timeline, StatusEntry(
                status=OrderStatus.CONFIRMED.value,
                timestamp=now,
                note="Ödeme onaylandı (otomatik)",
                automated=True,
            ))

        updates = {
            "status": OrderStatus.CONFIRMED,
            "timeline": timeline,
            "order_time_group": resolve_time_group(order),
            "updated_at": now,
        }

        delivery = order.delivery
        raw_date = delivery.delivery_date
        normalized = normalize_delivery_date(raw_date)
        if normalized and raw_date and raw_date != normalized:
            delivery = delivery.model_copy(update={"delivery_date": normalized})
            updates["delivery"] = delivery
        patch = OrderPatch(**updates)

        if not await apply_guarded_update(self._uow, order, patch):
            return None
        logger.info(f"Заказ {order.order_number}: {order.status.value} -> confirmed (оплачен ранее)")

        await self._notifier(
            order.model_copy(update={
                "status": OrderStatus.CONFIRMED, "timeline": timeline, "delivery": delivery,
            }),
            now,
        )
        return StatusChange(order_number=order.order_number, old_status=order.status, new_status=OrderStatus.CONFIRMED)
