import base64
import hashlib
import hmac
import json
import logging
import secrets
import time
from typing import Optional

import httpx
from pydantic import ValidationError

from order_automation.application.interfaces import PaymentGateway
from order_automation.domain.exceptions import PaymentGatewayError
from order_automation.domain.models import GatewayResult

logger = logging.getLogger(__name__)

CHECKOUT_INITIALIZE_PATH = "/payment/iyzipos/checkoutform/initialize/auth/ecom"
CHECKOUT_RETRIEVE_PATH = "/payment/iyzipos/checkoutform/auth/ecom/detail"
PAYMENT_DETAIL_PATH = "/payment/detail"
CLIENT_VERSION = "iyzipay-node-2.0.64"


class IyzicoClient(PaymentGateway):
    """
    REST-клиент iyzico (hosted checkout form).

    Подпись IYZWSv2: HMAC-SHA256(secretKey, randomKey + uriPath + body),
    заголовок Authorization: IYZWSv2 base64("apiKey:..&randomKey:..&signature:<hex>").
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        secret_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key or not secret_key or not base_url:
            raise PaymentGatewayError(
                "Не заданы IYZICO_API_KEY, IYZICO_SECRET_KEY или IYZICO_BASE_URL"
            )
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._secret_key = secret_key
        self._timeout = timeout
        self._transport = transport

    @staticmethod
    def _random_key() -> str:
        return f"{int(time.time() * 1000)}{secrets.randbelow(1_000_000_000)}"

    def _authorization(self, uri_path: str, body: str, random_key: str) -> str:
        signature = hmac.new(
            self._secret_key.encode("utf-8"),
            f"{random_key}{uri_path}{body}".encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()
        credentials = f"apiKey:{self._api_key}&randomKey:{random_key}&signature:{signature}"
        return "IYZWSv2 " + base64.b64encode(credentials.encode("utf-8")).decode("ascii")

    async def _request(self, uri_path: str, data: dict) -> GatewayResult:
        body = json.dumps(data, ensure_ascii=False, separators=(",", ":"))
        random_key = self._random_key()
        headers = {
            "Content-Type": "application/json",
            "Authorization": self._authorization(uri_path, body, random_key),
            "x-iyzi-rnd": random_key,
            "x-iyzi-client-version": CLIENT_VERSION,
        }

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(
                    f"{self._base_url}{uri_path}",
                    content=body.encode("utf-8"),
                    headers=headers,
                    timeout=self._timeout,
                )
        except httpx.TimeoutException as e:
            logger.error(f"iyzico timeout ({uri_path}): {e}")
            raise PaymentGatewayError(f"iyzico не ответил за {self._timeout} c")
        except httpx.RequestError as e:
            logger.error(f"iyzico ошибка подключения ({uri_path}): {e}")
            raise PaymentGatewayError(f"iyzico не доступен: {str(e)}")

        try:
            payload = response.json()
        except ValueError:
            raise PaymentGatewayError(f"iyzico вернул не JSON, HTTP {response.status_code}")

        if not isinstance(payload, dict) or "status" not in payload:
            raise PaymentGatewayError(f"iyzico вернул неожиданный ответ, HTTP {response.status_code}")

        try:
            result = GatewayResult.model_validate(payload)
        except ValidationError as e:
            raise PaymentGatewayError(f"Не удалось разобрать ответ iyzico: {e}")

        if result.status != "success":
            logger.warning(f"iyzico {uri_path}: {result.error_message} (code: {result.error_code})")
        return result

    async def initialize_checkout_form(self, request: dict) -> GatewayResult:
        return await self._request(CHECKOUT_INITIALIZE_PATH, request)

    async def retrieve_checkout_form(self, token: str, conversation_id: str) -> GatewayResult:
        return await self._request(CHECKOUT_RETRIEVE_PATH, {
            "locale": "tr",
            "conversationId": conversation_id,
            "token": token,
        })

    async def retrieve_payment(self, payment_id: str, conversation_id: Optional[str] = None) -> GatewayResult:
        return await self._request(PAYMENT_DETAIL_PATH, {
            "locale": "tr",
            "conversationId": conversation_id or self._random_key(),
            "paymentId": payment_id,
        })
