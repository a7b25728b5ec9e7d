import logging
from typing import Optional, List
from pydantic import BaseModel, ValidationError
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from order_automation.application.interfaces import OrderRepository
from order_automation.domain.exceptions import OrderStoreError
from order_automation.domain.models import Order, OrderFilter, OrderPatch, OrderStatus, OrderTimeGroup
from order_automation.infrastructure.db_schema import orders_tbl

logger = logging.getLogger(__name__)


class SQLAlchemyOrderRepository(OrderRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        try:
            result = await self._session.execute(
                select(orders_tbl).where(orders_tbl.c.id == order_id)
            )
        except SQLAlchemyError as e:
            raise OrderStoreError(f"Ошибка чтения заказа {order_id}: {e}") from e
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def find(self, order_filter: OrderFilter) -> List[Order]:
        stmt = select(orders_tbl)
        if order_filter.statuses:
            stmt = stmt.where(orders_tbl.c.status.in_(order_filter.statuses))
        if order_filter.created_after is not None:
            stmt = stmt.where(orders_tbl.c.created_at >= order_filter.created_after)
        if order_filter.created_before is not None:
            stmt = stmt.where(orders_tbl.c.created_at < order_filter.created_before)
        if order_filter.payment_status is not None:
            stmt = stmt.where(orders_tbl.c.payment["status"].as_string() == order_filter.payment_status.value)
        if order_filter.delivery_date_prefix:
            stmt = stmt.where(
                orders_tbl.c.delivery["deliveryDate"].as_string().like(f"{order_filter.delivery_date_prefix}%")
            )

        order_by = orders_tbl.c.created_at.desc() if order_filter.newest_first else orders_tbl.c.created_at.asc()
        stmt = stmt.order_by(order_by).limit(order_filter.limit)

        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise OrderStoreError(f"Ошибка выборки заказов: {e}") from e

        orders = []
        for row in result.fetchall():
            try:
                orders.append(self._to_domain(row))
            except ValidationError as e:
                logger.warning(f"Заказ {row.id} пропущен: не удалось разобрать запись ({e.error_count()} ошибок)")
        return orders

    async def update_if_status(self, order_id: str, expected_status: OrderStatus, patch: OrderPatch) -> bool:
        values = {name: self._to_column(value) for name, value in patch.changes().items()}
        if not values:
            return False

        stmt = (
            update(orders_tbl)
            .where(orders_tbl.c.id == order_id, orders_tbl.c.status == expected_status)
            .values(**values)
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise OrderStoreError(f"Ошибка обновления заказа {order_id}: {e}") from e
        return result.rowcount == 1

    @staticmethod
    def _to_column(value):
        if isinstance(value, BaseModel):
            return value.to_storage()
        if isinstance(value, OrderTimeGroup):
            return value.value
        return value

    def _to_domain(self, row) -> Order:
        """Трансформация DB → Domain"""
        return Order(
            id=row.id,
            order_number=row.order_number,
            status=OrderStatus(row.status),
            customer_email=row.customer_email,
            customer_name=row.customer_name,
            customer_phone=row.customer_phone,
            delivery=row.delivery,
            payment=row.payment,
            products=row.products,
            subtotal=row.subtotal,
            discount=row.discount,
            delivery_fee=row.delivery_fee,
            total=row.total,
            order_time_group=row.order_time_group,
            timeline=row.timeline,
            created_at=row.created_at,
            updated_at=row.updated_at,
            delivered_at=row.delivered_at,
        )
