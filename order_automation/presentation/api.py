import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status

from order_automation.application.get_order_schedule import GetOrderScheduleUseCase
from order_automation.application.run_automation import RunOrderAutomationUseCase
from order_automation.config import settings
from order_automation.database import AsyncSessionLocal
from order_automation.domain.exceptions import OrderNotFoundError, PaymentGatewayError
from order_automation.infrastructure.http_clients import HTTPNotificationsClient
from order_automation.infrastructure.iyzico_client import IyzicoClient
from order_automation.infrastructure.unit_of_work import UnitOfWork
from order_automation.presentation.schemas import (
    AutomationRunResponse, ErrorResponse, OrderScheduleResponse
)

router = APIRouter()


def build_run_automation_use_case(unit_of_work) -> RunOrderAutomationUseCase:
    gateway = IyzicoClient(
        settings.IYZICO_BASE_URL,
        settings.IYZICO_API_KEY,
        settings.IYZICO_SECRET_KEY,
        timeout=settings.GATEWAY_TIMEOUT_SECONDS,
    )
    notifications = HTTPNotificationsClient(settings.NOTIFICATIONS_BASE_URL, settings.API_TOKEN)
    return RunOrderAutomationUseCase(
        unit_of_work,
        gateway,
        notifications,
        token_ttl=timedelta(minutes=settings.TOKEN_EXPIRATION_MINUTES),
    )


# Фабрики для создания use cases
def get_unit_of_work():
    return UnitOfWork(AsyncSessionLocal)


def get_run_automation_use_case(uow: UnitOfWork = Depends(get_unit_of_work)):
    try:
        return build_run_automation_use_case(uow)
    except PaymentGatewayError as e:
        raise HTTPException(status_code=503, detail=f"Service unavailable: {str(e)}")


def get_order_schedule_use_case(uow: UnitOfWork = Depends(get_unit_of_work)):
    return GetOrderScheduleUseCase(uow)


def verify_cron_secret(authorization: Optional[str] = Header(None)):
    """Если CRON_SECRET задан, требуем Authorization: Bearer <CRON_SECRET>"""
    if not settings.CRON_SECRET:
        return
    expected = f"Bearer {settings.CRON_SECRET}"
    if not secrets.compare_digest((authorization or "").encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


@router.get(
    "/orders/automation",
    response_model=AutomationRunResponse,
    responses={401: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    dependencies=[Depends(verify_cron_secret)],
)
async def run_automation(
    use_case: RunOrderAutomationUseCase = Depends(get_run_automation_use_case)
):
    """Запуск автоматики по расписанию (cron, каждую минуту)"""
    result = await use_case()
    return AutomationRunResponse.from_result(result, datetime.now(timezone.utc))


@router.post(
    "/orders/automation",
    response_model=AutomationRunResponse,
    responses={401: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    dependencies=[Depends(verify_cron_secret)],
)
async def trigger_automation(
    use_case: RunOrderAutomationUseCase = Depends(get_run_automation_use_case)
):
    """Ручной запуск автоматики (админка, проверка)"""
    result = await use_case()
    return AutomationRunResponse.from_result(
        result, datetime.now(timezone.utc), message="Automation manually triggered"
    )


@router.get(
    "/orders/{order_id}/automation",
    response_model=OrderScheduleResponse,
    responses={404: {"model": ErrorResponse}}
)
async def get_order_schedule(
    order_id: str,
    use_case: GetOrderScheduleUseCase = Depends(get_order_schedule_use_case)
):
    """Расписание автоматических переходов для заказа"""
    try:
        schedule = await use_case(order_id)
        return OrderScheduleResponse.from_schedule(schedule)
    except OrderNotFoundError:
        raise HTTPException(status_code=404, detail="Заказ не найден")
