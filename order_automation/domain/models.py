from datetime import datetime
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class OrderStatus(str, Enum):
    PENDING = "pending"
    PENDING_PAYMENT = "pending_payment"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    PAYMENT_FAILED = "payment_failed"
    REFUNDED = "refunded"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class OrderTimeGroup(str, Enum):
    NOON = "noon"
    EVENING = "evening"
    OVERNIGHT = "overnight"

    @classmethod
    def parse(cls, value: Any) -> Optional["OrderTimeGroup"]:
        """Значение из БД -> группа, None для пустых и невалидных"""
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


# Порядок, в котором автоматика двигает заказ
FULFILLMENT_SEQUENCE = (
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
)


def fulfillment_rank(status: OrderStatus) -> int:
    """Позиция статуса в FULFILLMENT_SEQUENCE, -1 если статус вне цепочки"""
    try:
        return FULFILLMENT_SEQUENCE.index(status)
    except ValueError:
        return -1


def _coerce_str(value: Any) -> Any:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    return value


def _coerce_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class Payment(BaseModel):
    """Value Object: платёжная часть заказа (JSON с camelCase ключами)"""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    status: str = PaymentStatus.PENDING.value
    method: str | None = None
    token: str | None = None
    token_created_at: str | None = Field(None, alias="tokenCreatedAt")
    transaction_id: str | None = Field(None, alias="transactionId")
    card_last4: str | None = Field(None, alias="cardLast4")
    paid_at: str | None = Field(None, alias="paidAt")
    card_type: str | None = Field(None, alias="cardType")
    card_association: str | None = Field(None, alias="cardAssociation")
    installment: int | None = None
    paid_price: str | None = Field(None, alias="paidPrice")
    error_code: str | None = Field(None, alias="errorCode")
    error_message: str | None = Field(None, alias="errorMessage")

    @field_validator(
        "token", "token_created_at", "transaction_id", "card_last4", "paid_price", "error_code",
        mode="before",
    )
    @classmethod
    def _stringify(cls, value):
        return _coerce_str(value)

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, value):
        return str(value or PaymentStatus.PENDING.value).lower()

    @field_validator("installment", mode="before")
    @classmethod
    def _installment(cls, value):
        return _coerce_int(value)

    def is_paid(self) -> bool:
        return self.status == PaymentStatus.PAID.value

    def to_storage(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class Delivery(BaseModel):
    """Value Object: данные доставки"""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    delivery_date: str | None = Field(None, alias="deliveryDate")
    delivery_time_slot: str | None = Field(None, alias="deliveryTimeSlot")
    full_address: str | None = Field(None, alias="fullAddress")
    district: str | None = None
    recipient_name: str | None = Field(None, alias="recipientName")
    recipient_phone: str | None = Field(None, alias="recipientPhone")

    @field_validator("*", mode="before")
    @classmethod
    def _stringify(cls, value):
        return _coerce_str(value)

    def to_storage(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class Order(BaseModel):
    """Domain Entity: заказ"""
    id: str
    order_number: int
    status: OrderStatus
    customer_email: str | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    delivery: Delivery = Field(default_factory=Delivery)
    payment: Payment = Field(default_factory=Payment)
    products: list[Any] = Field(default_factory=list)
    subtotal: float = 0
    discount: float = 0
    delivery_fee: float = 0
    total: float = 0
    order_time_group: str | None = None
    timeline: list[Any] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    delivered_at: datetime | None = None

    @field_validator("delivery", "payment", mode="before")
    @classmethod
    def _records_only(cls, value):
        # В старых заказах вместо объекта бывает null или строка
        return value if isinstance(value, (dict, BaseModel)) else {}

    @field_validator("products", "timeline", mode="before")
    @classmethod
    def _lists_only(cls, value):
        return value if isinstance(value, list) else []

    @field_validator("subtotal", "discount", "delivery_fee", "total", mode="before")
    @classmethod
    def _amounts(cls, value):
        return value or 0

    def is_paid(self) -> bool:
        """Бизнес-правило: автоматика работает только с оплаченными заказами"""
        return self.payment.is_paid()


class OrderFilter(BaseModel):
    """Критерии выборки заказов для OrderRepository.find"""
    statuses: list[OrderStatus] = Field(default_factory=list)
    created_after: datetime | None = None
    created_before: datetime | None = None
    payment_status: PaymentStatus | None = None
    delivery_date_prefix: str | None = None
    newest_first: bool = False
    limit: int = 100


class OrderPatch(BaseModel):
    """Частичное обновление заказа: записываются только заданные поля"""
    status: OrderStatus | None = None
    payment: Payment | None = None
    delivery: Delivery | None = None
    timeline: list[Any] | None = None
    order_time_group: OrderTimeGroup | None = None
    delivered_at: datetime | None = None
    updated_at: datetime | None = None

    def changes(self) -> dict:
        return {name: getattr(self, name) for name in self.model_fields_set}


class StatusChange(BaseModel):
    order_number: int
    old_status: OrderStatus
    new_status: OrderStatus


class GatewayResult(BaseModel):
    """Нормализованный ответ платёжного шлюза"""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    status: str = "failure"
    payment_status: str | None = Field(None, alias="paymentStatus")
    payment_id: str | None = Field(None, alias="paymentId")
    last_four_digits: str | None = Field(None, alias="lastFourDigits")
    card_type: str | None = Field(None, alias="cardType")
    card_association: str | None = Field(None, alias="cardAssociation")
    installment: int | None = None
    paid_price: str | None = Field(None, alias="paidPrice")
    error_code: str | None = Field(None, alias="errorCode")
    error_message: str | None = Field(None, alias="errorMessage")
    token: str | None = None
    checkout_form_content: str | None = Field(None, alias="checkoutFormContent")
    payment_page_url: str | None = Field(None, alias="paymentPageUrl")

    @field_validator("payment_id", "last_four_digits", "paid_price", "error_code", mode="before")
    @classmethod
    def _stringify(cls, value):
        return _coerce_str(value)

    @field_validator("installment", mode="before")
    @classmethod
    def _installment(cls, value):
        return _coerce_int(value)

    def is_success(self) -> bool:
        return self.status == "success" and str(self.payment_status).upper() == "SUCCESS"

    def is_failure(self) -> bool:
        return self.status == "failure" or str(self.payment_status).upper() == "FAILURE"


class OrderStatusNotification(BaseModel):
    customer_email: str
    customer_name: str
    order_number: str
    status: OrderStatus
    delivery_date: str | None = None
    delivery_time: str | None = None
    delivery_address: str | None = None
    district: str | None = None
    recipient_name: str | None = None
    recipient_phone: str | None = None


class OrderItem(BaseModel):
    name: str = ""
    quantity: float = 0
    price: float = 0
    image_url: str | None = None


class OrderConfirmationNotification(BaseModel):
    order_number: str
    customer_name: str
    customer_email: str
    customer_phone: str = ""
    items: list[OrderItem] = Field(default_factory=list)
    subtotal: float = 0
    discount: float = 0
    delivery_fee: float = 0
    total: float = 0
    delivery_date: str | None = None
    delivery_time: str | None = None
    delivery_address: str | None = None
    district: str | None = None
    recipient_name: str | None = None
    recipient_phone: str | None = None
    payment_method: str = "credit_card"
