import logging
from datetime import datetime, timedelta
from typing import List, Optional

from order_automation.application.guarded_update import apply_guarded_update
from order_automation.application.notify_status import OrderStatusNotifier
from order_automation.domain.exceptions import OrderStoreError
from order_automation.domain.models import (
    Order, OrderFilter, OrderPatch, OrderStatus, StatusChange, fulfillment_rank
)
from order_automation.domain.schedule import calculate_schedule, resolve_time_group
from order_automation.domain.time_utils import civil_date_key, normalize_delivery_date
from order_automation.domain.timeline import StatusEntry, append_entry

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = [OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.SHIPPED]
PRIMARY_LIMIT = 2000
FALLBACK_LOOKBACK = timedelta(days=14)
FALLBACK_LIMIT = 5000

STATUS_NOTES = {
    OrderStatus.PROCESSING: "Sipariş Hazırlanıyor",
    OrderStatus.SHIPPED: "Kargoya Verildi",
    OrderStatus.DELIVERED: "Teslim Edildi",
}


class AdvanceScheduledOrdersUseCase:
    """
    Двигает оплаченные заказы по расписанию дня доставки.
    За один запуск заказ получает не больше одного перехода.
    """

    def __init__(self, unit_of_work, notifier: OrderStatusNotifier):
        self._uow = unit_of_work
        self._notifier = notifier

    async def __call__(self, now: datetime) -> List[StatusChange]:
        today_key = civil_date_key(now)
        candidates = await self._load_candidates(now, today_key)

        changes = []
        for order in candidates:
            if not order.is_paid():
                continue
            if normalize_delivery_date(order.delivery.delivery_date) != today_key:
                continue
            try:
                change = await self._advance(order, now)
                if change:
                    changes.append(change)
            except Exception as e:
                logger.error(f"Ошибка автоматизации заказа {order.id} ({order.order_number}): {e}", exc_info=True)
        return changes

    async def _load_candidates(self, now: datetime, today_key: str) -> List[Order]:
        candidates: List[Order] = []
        try:
            async with self._uow() as uow:
                candidates = await uow.orders.find(OrderFilter(
                    statuses=ACTIVE_STATUSES,
                    delivery_date_prefix=today_key,
                    newest_first=True,
                    limit=PRIMARY_LIMIT,
                ))
        except OrderStoreError as e:
            logger.error(f"Ошибка выборки заказов на сегодня ({today_key}): {e}")

        if candidates:
            return candidates

        # Дата доставки может храниться в другом формате, поэтому берём последние 14 дней и фильтруем здесь
        try:
            async with self._uow() as uow:
                return await uow.orders.find(OrderFilter(
                    statuses=ACTIVE_STATUSES,
                    created_after=now - FALLBACK_LOOKBACK,
                    newest_first=True,
                    limit=FALLBACK_LIMIT,
                ))
        except OrderStoreError as e:
            logger.error(f"Ошибка резервной выборки заказов: {e}")
            return []

    def _due_transition(self, order: Order, now: datetime) -> Optional[OrderStatus]:
        current_rank = fulfillment_rank(order.status)
        for item in calculate_schedule(order):
            if now < item.target_time:
                continue
            if fulfillment_rank(item.target_status) <= current_rank:
                return None
            return item.target_status
        return None

    async def _advance(self, order: Order, now: datetime) -> Optional[StatusChange]:
        new_status = self._due_transition(order, now)
        if new_status is None:
            return None

        timeline = append_entry(order.timeline, StatusEntry(
            status=new_status.value, timestamp=now, note=STATUS_NOTES.get(new_status, ""), automated=True,
        ))
        updates = {
            "status": new_status,
            "timeline": timeline,
            "order_time_group": resolve_time_group(order),
            "updated_at": now,
        }
        if new_status == OrderStatus.DELIVERED:
            updates["delivered_at"] = now

        if not await apply_guarded_update(self._uow, order, OrderPatch(**updates)):
            return None
        logger.info(f"Заказ {order.order_number}: {order.status.value} -> {new_status.value}")

        await self._notifier(
            order.model_copy(update={
                "status": new_status,
                "timeline": timeline,
                "delivered_at": updates.get("delivered_at", order.delivered_at),
            }),
            now,
        )
        return StatusChange(order_number=order.order_number, old_status=order.status, new_status=new_status)
