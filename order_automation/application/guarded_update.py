import logging

from order_automation.domain.exceptions import OrderStoreError
from order_automation.domain.models import Order, OrderPatch

logger = logging.getLogger(__name__)


async def apply_guarded_update(unit_of_work, order: Order, patch: OrderPatch) -> bool:
    """
    Записывает patch, только если статус заказа в БД всё ещё order.status.

    False: заказ успели изменить (другой запуск или админ) либо запись
    упала. Повторов нет: следующий запуск увидит актуальное состояние.
    """
    new_status = patch.status.value if patch.status else order.status.value
    try:
        async with unit_of_work() as uow:
            saved = await uow.orders.update_if_status(order.id, order.status, patch)
            await uow.commit()
    except OrderStoreError as e:
        logger.error(
            f"Ошибка обновления заказа {order.id} ({order.order_number}) "
            f"{order.status.value} -> {new_status}: {e}"
        )
        return False

    if not saved:
        logger.info(
            f"Заказ {order.order_number} уже не в статусе {order.status.value}, "
            f"переход в {new_status} пропущен"
        )
    return saved
