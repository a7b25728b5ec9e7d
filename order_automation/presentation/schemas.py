from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional

from order_automation.domain.models import OrderStatus, OrderTimeGroup


class StatusChangeResponse(BaseModel):
    order_number: int
    old_status: OrderStatus
    new_status: OrderStatus


class AutomationRunResponse(BaseModel):
    success: bool = True
    timestamp: datetime
    message: Optional[str] = None
    updated: int
    orders: List[StatusChangeResponse]

    @classmethod
    def from_result(cls, result, timestamp: datetime, message: Optional[str] = None):
        return cls(
            timestamp=timestamp,
            message=message,
            updated=result.updated,
            orders=[StatusChangeResponse(**change.model_dump()) for change in result.orders],
        )


class ScheduledTransitionResponse(BaseModel):
    target_status: OrderStatus
    target_time: datetime


class OrderScheduleResponse(BaseModel):
    id: str
    order_number: int
    status: OrderStatus
    time_group: OrderTimeGroup
    delivery_date: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    estimated_delivery_text: str
    next_automation_at: Optional[datetime] = None
    transitions: List[ScheduledTransitionResponse]

    @classmethod
    def from_schedule(cls, schedule):
        return cls(
            id=schedule.order.id,
            order_number=schedule.order.order_number,
            status=schedule.order.status,
            time_group=schedule.time_group,
            delivery_date=schedule.delivery_date,
            estimated_delivery=schedule.estimated_delivery,
            estimated_delivery_text=schedule.estimated_delivery_text,
            next_automation_at=schedule.next_automation_at,
            transitions=[
                ScheduledTransitionResponse(target_status=t.target_status, target_time=t.target_time)
                for t in schedule.transitions
            ],
        )


class ErrorResponse(BaseModel):
    detail: str
