"""
Расписание автоматической смены статусов.

Все переходы происходят только в ДЕНЬ ДОСТАВКИ по стамбульскому времени:

    noon (заказ 11:00–17:00):    11:00 processing, 12:00 shipped, 18:00 delivered
    evening (заказ 17:00–22:00): 18:00 processing, 19:00 shipped, 22:30 delivered

Ночные заказы (overnight) идут по дневному расписанию.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel

from order_automation.domain.models import (
    Order, OrderStatus, OrderTimeGroup, fulfillment_rank
)
from order_automation.domain.time_utils import (
    civil_datetime, normalize_delivery_date, order_time_group_for, to_business_tz
)

_TRACKS = {
    OrderTimeGroup.NOON: (
        (OrderStatus.PROCESSING, 11, 0),
        (OrderStatus.SHIPPED, 12, 0),
        (OrderStatus.DELIVERED, 18, 0),
    ),
    OrderTimeGroup.EVENING: (
        (OrderStatus.PROCESSING, 18, 0),
        (OrderStatus.SHIPPED, 19, 0),
        (OrderStatus.DELIVERED, 22, 30),
    ),
}

_SCHEDULABLE = (OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.SHIPPED)

_TURKISH_MONTHS = (
    "Ocak", "Şubat", "Mart", "Nisan", "Mayıs", "Haziran",
    "Temmuz", "Ağustos", "Eylül", "Ekim", "Kasım", "Aralık",
)


class ScheduledTransition(BaseModel):
    target_status: OrderStatus
    target_time: datetime
    automated: bool = True


def resolve_time_group(order: Order) -> OrderTimeGroup:
    """Группа из БД, если она валидна, иначе по часу created_at"""
    return OrderTimeGroup.parse(order.order_time_group) or order_time_group_for(order.created_at)


def _track(order: Order):
    group = resolve_time_group(order)
    if group == OrderTimeGroup.OVERNIGHT:
        group = OrderTimeGroup.NOON
    return _TRACKS[group]


def calculate_schedule(order: Order) -> List[ScheduledTransition]:
    delivery_key = normalize_delivery_date(order.delivery.delivery_date)
    if not delivery_key or order.status not in _SCHEDULABLE:
        return []

    current_rank = fulfillment_rank(order.status)
    return [
        ScheduledTransition(target_status=status, target_time=civil_datetime(delivery_key, hour, minute))
        for status, hour, minute in _track(order)
        if fulfillment_rank(status) > current_rank
    ]


def estimated_delivery_time(order: Order) -> Optional[datetime]:
    delivery_key = normalize_delivery_date(order.delivery.delivery_date)
    if not delivery_key:
        return None
    _, hour, minute = _track(order)[-1]
    return civil_datetime(delivery_key, hour, minute)


def format_estimated_delivery(order: Order) -> str:
    estimated = estimated_delivery_time(order)
    if estimated is None:
        return "Teslimat tarihi belirtilmedi"
    local = to_business_tz(estimated)
    return f"{local.day} {_TURKISH_MONTHS[local.month - 1]} {local.year} {local:%H:%M}"


def next_automation_time(order: Order, now: datetime) -> Optional[datetime]:
    if order.status in (OrderStatus.DELIVERED, OrderStatus.CANCELLED):
        return None
    for item in calculate_schedule(order):
        if item.target_time > now:
            return item.target_time
    return None


def time_group_for_new_order(now: datetime) -> OrderTimeGroup:
    return order_time_group_for(now)
