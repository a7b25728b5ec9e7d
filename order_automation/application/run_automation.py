import logging
from datetime import datetime, timedelta
from typing import Callable, List
from pydantic import BaseModel, Field

from order_automation.application.advance_orders import AdvanceScheduledOrdersUseCase
from order_automation.application.interfaces import NotificationsService, PaymentGateway
from order_automation.application.normalize_legacy import NormalizeLegacyOrdersUseCase
from order_automation.application.notify_status import OrderStatusNotifier
from order_automation.application.verify_payments import VerifyStuckPaymentsUseCase
from order_automation.domain.models import StatusChange
from order_automation.domain.time_utils import utc_now

logger = logging.getLogger(__name__)


class AutomationResult(BaseModel):
    updated: int = 0
    orders: List[StatusChange] = Field(default_factory=list)


class RunOrderAutomationUseCase:
    """
    Один запуск автоматики заказов (вызывается cron-ом или worker-ом).

    1. Сверка зависших платежей с iyzico
    2. Перевод оплаченных, но застрявших в pending заказов в confirmed
    3. Смена статусов по расписанию дня доставки (+ письма клиенту)

    Состояния между запусками нет, всё хранится в заказе.
    Метод никогда не бросает исключений.
    """

    def __init__(
        self,
        unit_of_work,
        gateway: PaymentGateway,
        notifications: NotificationsService,
        token_ttl: timedelta = timedelta(minutes=25),
        clock: Callable[[], datetime] = utc_now,
    ):
        notifier = OrderStatusNotifier(unit_of_work, notifications)
        self._clock = clock
        self._passes = (
            VerifyStuckPaymentsUseCase(unit_of_work, gateway, notifications, token_ttl),
            NormalizeLegacyOrdersUseCase(unit_of_work, notifier),
            AdvanceScheduledOrdersUseCase(unit_of_work, notifier),
        )

    async def __call__(self) -> AutomationResult:
        try:
            now = self._clock()
            changes: List[StatusChange] = []
            for automation_pass in self._passes:
                changes.extend(await automation_pass(now))

            if changes:
                logger.info(f"Автоматизация: обновлено {len(changes)} заказов")
            return AutomationResult(updated=len(changes), orders=changes)

        except Exception as e:
            logger.error(f"Ошибка автоматизации заказов: {e}", exc_info=True)
            return AutomationResult()
