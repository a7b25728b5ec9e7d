import base64
import hashlib
import hmac
import json

import httpx
import pytest

from order_automation.domain.exceptions import PaymentGatewayError
from order_automation.infrastructure.iyzico_client import (
    CHECKOUT_INITIALIZE_PATH, CHECKOUT_RETRIEVE_PATH, PAYMENT_DETAIL_PATH, IyzicoClient
)

BASE_URL = "https://sandbox-api.iyzipay.com"


def make_client(handler):
    return IyzicoClient(BASE_URL, "api-key", "secret-key", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_retrieve_checkout_form_signs_request():
    captured = []

    def handler(request):
        captured.append(request)
        return httpx.Response(200, json={
            "status": "success", "paymentStatus": "SUCCESS", "paymentId": "20011",
            "lastFourDigits": "0008", "installment": 1, "paidPrice": "750.0", "token": "tok-1",
        })

    result = await make_client(handler).retrieve_checkout_form("tok-1", conversation_id="ord-1")

    assert result.is_success()
    assert result.payment_id == "20011"
    assert result.last_four_digits == "0008"

    request = captured[0]
    assert request.url.path == CHECKOUT_RETRIEVE_PATH
    body = request.content.decode("utf-8")
    assert json.loads(body) == {"locale": "tr", "conversationId": "ord-1", "token": "tok-1"}

    random_key = request.headers["x-iyzi-rnd"]
    scheme, encoded = request.headers["Authorization"].split(" ", 1)
    assert scheme == "IYZWSv2"
    expected_signature = hmac.new(
        b"secret-key", f"{random_key}{CHECKOUT_RETRIEVE_PATH}{body}".encode("utf-8"), hashlib.sha256
    ).hexdigest()
    assert base64.b64decode(encoded).decode("utf-8") == (
        f"apiKey:api-key&randomKey:{random_key}&signature:{expected_signature}"
    )


@pytest.mark.asyncio
async def test_failure_response_is_returned_not_raised():
    def handler(request):
        return httpx.Response(200, json={
            "status": "failure", "errorCode": 10051, "errorMessage": "Insufficient funds",
        })

    result = await make_client(handler).retrieve_payment("20011")

    assert result.is_failure()
    assert result.error_code == "10051"


@pytest.mark.asyncio
async def test_retrieve_payment_path():
    paths = []

    def handler(request):
        paths.append(request.url.path)
        return httpx.Response(200, json={"status": "success", "paymentStatus": "SUCCESS"})

    await make_client(handler).retrieve_payment("20011", conversation_id="ord-1")

    assert paths == [PAYMENT_DETAIL_PATH]


@pytest.mark.asyncio
async def test_timeout_becomes_gateway_error():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(PaymentGatewayError):
        await make_client(handler).retrieve_checkout_form("tok-1", conversation_id="ord-1")


@pytest.mark.asyncio
async def test_non_json_response_becomes_gateway_error():
    def handler(request):
        return httpx.Response(502, text="<html>Bad Gateway</html>")

    with pytest.raises(PaymentGatewayError):
        await make_client(handler).retrieve_checkout_form("tok-1", conversation_id="ord-1")


@pytest.mark.asyncio
async def test_response_without_status_becomes_gateway_error():
    def handler(request):
        return httpx.Response(200, json={"message": "ok"})

    with pytest.raises(PaymentGatewayError):
        await make_client(handler).retrieve_checkout_form("tok-1", conversation_id="ord-1")


def test_missing_credentials():
    with pytest.raises(PaymentGatewayError):
        IyzicoClient(BASE_URL, "", "secret-key")


@pytest.mark.asyncio
async def test_initialize_checkout_form():
    bodies = []

    def handler(request):
        assert request.url.path == CHECKOUT_INITIALIZE_PATH
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={
            "status": "success", "token": "tok-1",
            "paymentPageUrl": "https://sandbox-cpp.iyzipay.com?token=tok-1",
        })

    result = await make_client(handler).initialize_checkout_form({
        "locale": "tr", "conversationId": "ord-1", "price": "750.0", "buyer": {"name": "Ayşe"},
    })

    assert result.token == "tok-1"
    assert result.payment_page_url.endswith("token=tok-1")
    assert bodies[0]["buyer"]["name"] == "Ayşe"
