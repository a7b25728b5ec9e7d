from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from order_automation.domain.exceptions import OrderStoreError
from order_automation.infrastructure.repositories import SQLAlchemyOrderRepository


class UnitOfWork:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def __call__(self):
        async with self._session_factory() as session:
            try:
                yield _UnitOfWorkImpl(session)
                # Если commit не вызван, делаем rollback
                await session.rollback()
            except Exception:
                await session.rollback()
                raise


class _UnitOfWorkImpl:
    def __init__(self, session: AsyncSession):
        self._session = session
        self.orders = SQLAlchemyOrderRepository(session)

    async def commit(self):
        try:
            await self._session.commit()
        except SQLAlchemyError as e:
            raise OrderStoreError(f"Ошибка commit: {e}") from e

    async def rollback(self):
        await self._session.rollback()
