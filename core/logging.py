import logging

from django.db import DatabaseError

from .models import GatewayLog

logger = logging.getLogger(__name__)

MASKED_FIELDS = {"CHECKSUMHASH", "EMAIL", "MOBILE_NO", "CUST_ID"}


def mask(payload):
    if not isinstance(payload, dict):
        return payload
    out = {}
    for k, v in payload.items():
        if k in MASKED_FIELDS and v:
            s = str(v)
            out[k] = f"{s[:2]}***{s[-2:]}" if len(s) > 6 else "***"
        else:
            out[k] = v
    return out


def make_gateway_logger(user=None, order_id="", provider="paytm"):
    def _save(direction, endpoint, payload, status_code=None, latency_ms=None, error=""):
        try:
            GatewayLog.objects.create(
                user=user, provider=provider, order_id=order_id or "", direction=direction,
                endpoint=endpoint, payload=mask(payload), status_code=status_code,
                latency_ms=latency_ms, error=error or "",
            )
        except DatabaseError:
            # I/O log is best-effort
            logger.warning("could not write gateway log for %s %s", order_id, endpoint, exc_info=True)
    return _save
