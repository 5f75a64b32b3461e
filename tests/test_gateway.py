from unittest.mock import MagicMock, patch

import pytest
import requests

from core.models import GatewayLog
from payments import gateway
from payments.errors import GatewayError

pytestmark = pytest.mark.django_db


def _response(status_code=200, json_body=None, content_type="application/json", text=""):
    r = MagicMock()
    r.status_code = status_code
    r.headers = {"Content-Type": content_type}
    r.json.return_value = json_body or {}
    r.text = text
    return r


def test_signing_string_sorts_keys_and_skips_checksum():
    params = {"ORDERID": "O1", "MID": "M", "CHECKSUMHASH": "zzz", "TXNAMOUNT": "500.00"}
    assert gateway.signing_string(params) == "MID=M&ORDERID=O1&TXNAMOUNT=500.00"


def test_checksum_round_trip_and_tamper():
    params = {"MID": "TESTMID0001", "ORDERID": "O1", "TXNAMOUNT": "500.00"}
    params["CHECKSUMHASH"] = gateway.generate_checksum(params)
    assert gateway.valid_checksum(params)

    tampered = {**params, "TXNAMOUNT": "1.00"}
    assert not gateway.valid_checksum(tampered)
    assert not gateway.valid_checksum({**params, "CHECKSUMHASH": ""})
    assert not gateway.valid_checksum(params, key="another-key")


def test_normalize_status():
    assert gateway.normalize_status("TXN_SUCCESS") == gateway.SUCCESS
    assert gateway.normalize_status("TXN_FAILURE") == gateway.FAILURE
    assert gateway.normalize_status("PENDING") == gateway.PENDING
    assert gateway.normalize_status(None) == gateway.PENDING


def test_create_order_signs_server_amount(provider, make_attempt, settings):
    settings.GATEWAY_MODE = "STAGING"
    attempt = make_attempt()
    order = gateway.create_order(attempt, provider)

    assert order.redirect_url == "https://securegw-stage.paytm.in/order/process"
    assert order.params["ORDER_ID"] == attempt.order_id
    assert order.params["TXN_AMOUNT"] == "500.00"
    assert gateway.valid_checksum(order.params)

    log = GatewayLog.objects.get(order_id=attempt.order_id)
    assert log.direction == "req"
    assert log.payload["EMAIL"] != provider.email


def test_live_mode_uses_production_urls(settings):
    settings.GATEWAY_MODE = "LIVE"
    assert gateway.url_for("order") == "https://securegw.paytm.in/order/process"
    assert gateway.url_for("status").startswith("https://securegw.paytm.in/")


def test_fetch_status_returns_payload(make_attempt):
    attempt = make_attempt()
    body = {"ORDERID": attempt.order_id, "STATUS": "TXN_SUCCESS", "TXNAMOUNT": "500.00"}
    with patch("payments.gateway.requests.post", return_value=_response(json_body=body)) as post:
        data = gateway.fetch_status(attempt.order_id)

    assert data == body
    sent = post.call_args.kwargs["json"]
    assert sent["ORDERID"] == attempt.order_id
    assert gateway.valid_checksum(sent)
    assert post.call_args.kwargs["timeout"] == gateway.TIMEOUT
    assert GatewayLog.objects.filter(order_id=attempt.order_id, direction="res", status_code=200).exists()


def test_fetch_status_transport_error_raises_gateway_error():
    with patch("payments.gateway.requests.post", side_effect=requests.ConnectionError("refused")):
        with pytest.raises(GatewayError) as exc:
            gateway.fetch_status("ORDER_X")
    assert exc.value.retryable
    assert GatewayLog.objects.filter(order_id="ORDER_X", direction="res").exclude(error="").exists()


def test_fetch_status_non_json_raises_gateway_error():
    html = _response(status_code=502, content_type="text/html", text="<html>bad gateway</html>")
    with patch("payments.gateway.requests.post", return_value=html):
        with pytest.raises(GatewayError):
            gateway.fetch_status("ORDER_Y")
