import asyncio
import logging

from order_automation.config import settings
from order_automation.database import AsyncSessionLocal
from order_automation.infrastructure.unit_of_work import UnitOfWork
from order_automation.presentation.api import build_run_automation_use_case

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


async def automation_worker(iterations: int | None = None):
    """Периодический запуск автоматики заказов (вместо внешнего cron)"""
    logger.info("Automation worker запущен")

    completed = 0
    while iterations is None or completed < iterations:
        try:
            # use_case создается на каждую итерацию
            use_case = build_run_automation_use_case(UnitOfWork(AsyncSessionLocal))
            result = await use_case()
            if result.updated:
                for change in result.orders:
                    logger.info(
                        f"Заказ {change.order_number}: {change.old_status.value} -> {change.new_status.value}"
                    )
        except Exception as e:
            logger.error(f"Ошибка в automation worker: {e}", exc_info=True)

        completed += 1
        if iterations is None or completed < iterations:
            await asyncio.sleep(settings.AUTOMATION_INTERVAL_SECONDS)


async def main():
    await automation_worker()


if __name__ == "__main__":
    asyncio.run(main())
