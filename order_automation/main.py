import uvicorn
from fastapi import FastAPI
from contextlib import asynccontextmanager
from order_automation.presentation.api import router
from order_automation.database import engine
from order_automation.infrastructure.db_schema import metadata
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Управление жизненным циклом приложения"""
    try:
        async with engine.begin() as conn:
            await conn.run_sync(metadata.create_all)
        logger.info("Таблицы созданы")
    except Exception as e:
        logger.warning(f"Не удалось создать таблицы: {e}")

    yield

    logger.info("Приложение останавливается...")
    await engine.dispose()

app = FastAPI(
    title="Order Automation",
    description="Автоматика жизненного цикла заказов цветочного магазина",
    version="1.0.0",
    lifespan=lifespan
)

app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    return {"message": "Order Automation работает"}


@app.get("/health")
async def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
