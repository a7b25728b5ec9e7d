from sqlalchemy import Table, Column, String, Integer, Numeric, DateTime, JSON, MetaData, Enum
from sqlalchemy.sql import func

from order_automation.domain.models import OrderStatus

metadata = MetaData()


orders_tbl = Table(
    "orders",
    metadata,
    Column("id", String, primary_key=True),
    Column("order_number", Integer, unique=True, nullable=False),
    Column(
        "status",
        Enum(OrderStatus, name="order_status", values_callable=lambda e: [s.value for s in e]),
        nullable=False,
        default=OrderStatus.PENDING,
        index=True,
    ),
    Column("customer_email", String, nullable=True),
    Column("customer_name", String, nullable=True),
    Column("customer_phone", String, nullable=True),
    Column("delivery", JSON, nullable=True),
    Column("payment", JSON, nullable=True),
    Column("products", JSON, nullable=True),
    Column("subtotal", Numeric(12, 2), default=0),
    Column("discount", Numeric(12, 2), default=0),
    Column("delivery_fee", Numeric(12, 2), default=0),
    Column("total", Numeric(12, 2), default=0),
    Column("order_time_group", String, nullable=True),
    Column("timeline", JSON, nullable=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now(), index=True),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now()),
    Column("delivered_at", DateTime(timezone=True), nullable=True),
)
