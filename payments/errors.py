# payments/errors.py
from __future__ import annotations

from decimal import Decimal


class PaymentError(Exception):
    code = "payment_error"
    http_status = 400
    retryable = False

    def __init__(self, message: str = "", **context):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.context = context

    def as_dict(self) -> dict:
        body = {"code": self.code, "detail": self.message, "retryable": self.retryable}
        body.update({k: v for k, v in self.context.items() if v is not None})
        return body


# ---------------------------------------------------------------------------
# Initiation
# ---------------------------------------------------------------------------
class DuplicateAttempt(PaymentError):
    code = "duplicate_attempt"
    http_status = 409

    def __init__(self, existing):
        super().__init__(
            "A payment for this registration is already in progress or was just completed.",
            order_id=existing.order_id,
            status=existing.status,
        )
        self.existing = existing


class LockBusy(PaymentError):
    code = "payment_in_progress"
    http_status = 409

    def __init__(self, order_id: str | None = None):
        super().__init__("Another payment for this registration is being started.", order_id=order_id)


class AmountMismatch(PaymentError):
    code = "amount_mismatch"
    http_status = 400

    def __init__(self, expected: Decimal, received: Decimal, currency: str, received_currency: str | None = None):
        super().__init__(
            "Payment amount does not match the current registration price.",
            expected=str(expected),
            received=str(received),
            currency=currency,
            received_currency=received_currency,
        )
        self.expected = expected
        self.received = received


class UnknownTarget(PaymentError):
    code = "unknown_target"
    http_status = 404

    def __init__(self, target_id=None):
        super().__init__("Registration not found for this account.", target_id=target_id)


class NotRetryable(PaymentError):
    code = "not_retryable"
    http_status = 404

    def __init__(self, order_id: str):
        super().__init__("No failed or expired payment with this order id.", order_id=order_id)


# ---------------------------------------------------------------------------
# Webhooks (never surfaced to payers)
# ---------------------------------------------------------------------------
class WebhookRejected(PaymentError):
    code = "webhook_rejected"
    http_status = 400


class UnauthorizedOrigin(WebhookRejected):
    code = "unauthorized_origin"
    http_status = 403


class BadSignature(WebhookRejected):
    code = "bad_signature"


class Replay(WebhookRejected):
    code = "replay"


class Stale(WebhookRejected):
    code = "stale"


# ---------------------------------------------------------------------------
# Activation / infrastructure
# ---------------------------------------------------------------------------
class ActivationConflict(PaymentError):
    code = "activation_conflict"
    http_status = 409


class StoreUnavailable(PaymentError):
    code = "store_unavailable"
    http_status = 503
    retryable = True


class GatewayError(PaymentError):
    code = "gateway_error"
    http_status = 502
    retryable = True
