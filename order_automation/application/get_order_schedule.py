from datetime import datetime
from typing import Callable, List, Optional
from pydantic import BaseModel

from order_automation.domain.exceptions import OrderNotFoundError
from order_automation.domain.models import Order, OrderTimeGroup
from order_automation.domain.schedule import (
    ScheduledTransition,
    calculate_schedule,
    estimated_delivery_time,
    format_estimated_delivery,
    next_automation_time,
    resolve_time_group,
)
from order_automation.domain.time_utils import normalize_delivery_date, utc_now


class OrderSchedule(BaseModel):
    order: Order
    time_group: OrderTimeGroup
    delivery_date: Optional[str]
    estimated_delivery: Optional[datetime]
    estimated_delivery_text: str
    next_automation_at: Optional[datetime]
    transitions: List[ScheduledTransition]


class GetOrderScheduleUseCase:
    def __init__(self, unit_of_work, clock: Callable[[], datetime] = utc_now):
        self._uow = unit_of_work
        self._clock = clock

    async def __call__(self, order_id: str) -> OrderSchedule:
        async with self._uow() as uow:
            order = await uow.orders.get_by_id(order_id)
            if not order:
                raise OrderNotFoundError(f"Заказ {order_id} не найден")

        return OrderSchedule(
            order=order,
            time_group=resolve_time_group(order),
            delivery_date=normalize_delivery_date(order.delivery.delivery_date),
            estimated_delivery=estimated_delivery_time(order),
            estimated_delivery_text=format_estimated_delivery(order),
            next_automation_at=next_automation_time(order, self._clock()),
            transitions=calculate_schedule(order),
        )
