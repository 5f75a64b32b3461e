# payments/gateway.py
import hashlib
import hmac
import logging
import time
from dataclasses import dataclass, field

import requests
from django.conf import settings

from core.logging import make_gateway_logger

from .amounts import q
from .errors import GatewayError

logger = logging.getLogger(__name__)

TIMEOUT = (5, 25)  # connect, read

URLS = {
    "LIVE": {
        "order": "https://securegw.paytm.in/order/process",
        "status": "https://securegw.paytm.in/merchant-status/getTxnStatus",
    },
    "STAGING": {
        "order": "https://securegw-stage.paytm.in/order/process",
        "status": "https://securegw-stage.paytm.in/merchant-status/getTxnStatus",
    },
}

# Gateway STATUS values
TXN_SUCCESS = "TXN_SUCCESS"
TXN_FAILURE = "TXN_FAILURE"
TXN_PENDING = "PENDING"

SUCCESS = "success"
FAILURE = "failure"
PENDING = "pending"


@dataclass(frozen=True)
class GatewayOrder:
    order_id: str
    redirect_url: str
    params: dict = field(default_factory=dict)


def _mode() -> str:
    mode = str(getattr(settings, "GATEWAY_MODE", "STAGING")).upper()
    return mode if mode in URLS else "STAGING"


def url_for(kind: str) -> str:
    return URLS[_mode()][kind]


def _merchant_key() -> str:
    return getattr(settings, "GATEWAY_MERCHANT_KEY", "") or ""


def normalize_status(raw) -> str:
    s = str(raw or "").upper()
    if s == TXN_SUCCESS:
        return SUCCESS
    if s == TXN_FAILURE:
        return FAILURE
    return PENDING


# ---------------------------------------------------------------------------
# Checksums
# ---------------------------------------------------------------------------
def signing_string(params: dict) -> str:
    return "&".join(
        f"{k}={'' if params[k] is None else params[k]}"
        for k in sorted(params)
        if k != "CHECKSUMHASH"
    )


def generate_checksum(params: dict, key: str | None = None) -> str:
    key = _merchant_key() if key is None else key
    return hmac.new(key.encode(), signing_string(params).encode(), hashlib.sha256).hexdigest()


def valid_checksum(params: dict, checksum: str | None = None, key: str | None = None) -> bool:
    checksum = checksum if checksum is not None else params.get("CHECKSUMHASH")
    key = _merchant_key() if key is None else key
    if not checksum or not key:
        return False
    return hmac.compare_digest(generate_checksum(params, key), str(checksum))


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
def create_order(attempt, payer) -> GatewayOrder:
    """
    Signed form parameters the client posts to the gateway's order page.
    Nothing goes over the wire here; the gateway answers later via the callback.
    """
    params = {
        "MID": settings.GATEWAY_MERCHANT_ID,
        "WEBSITE": settings.GATEWAY_WEBSITE,
        "CHANNEL_ID": settings.GATEWAY_CHANNEL_ID,
        "INDUSTRY_TYPE_ID": settings.GATEWAY_INDUSTRY_TYPE,
        "ORDER_ID": attempt.order_id,
        "CUST_ID": str(payer.pk),
        "TXN_AMOUNT": str(q(attempt.amount)),
        "CALLBACK_URL": settings.GATEWAY_CALLBACK_URL,
        "EMAIL": getattr(payer, "email", "") or "",
        "MOBILE_NO": getattr(payer, "phone", "") or "",
    }
    params["CHECKSUMHASH"] = generate_checksum(params)
    order = GatewayOrder(order_id=attempt.order_id, redirect_url=url_for("order"), params=params)
    make_gateway_logger(payer, attempt.order_id)("req", order.redirect_url, params)
    return order


def fetch_status(order_id: str, user=None) -> dict:
    """Ask the gateway's status API for an order. Raises GatewayError on transport trouble."""
    save = make_gateway_logger(user, order_id)
    endpoint = url_for("status")
    params = {"MID": settings.GATEWAY_MERCHANT_ID, "ORDERID": order_id}
    params["CHECKSUMHASH"] = generate_checksum(params)

    save("req", endpoint, params)
    started = time.monotonic()
    try:
        r = requests.post(endpoint, json=params, timeout=TIMEOUT)
    except requests.RequestException as e:
        elapsed = int((time.monotonic() - started) * 1000)
        save("res", endpoint, {}, None, elapsed, str(e))
        logger.warning("gateway status request failed for %s: %s", order_id, e)
        raise GatewayError(f"gateway unreachable: {e}", order_id=order_id) from e

    elapsed = int((time.monotonic() - started) * 1000)
    if "application/json" in r.headers.get("Content-Type", ""):
        data = r.json()
    else:
        data = {"raw": r.text, "http_status": r.status_code}
    save("res", endpoint, data, r.status_code, elapsed)

    if r.status_code >= 400 or "raw" in data:
        raise GatewayError(f"gateway status HTTP {r.status_code}", order_id=order_id)
    return data
