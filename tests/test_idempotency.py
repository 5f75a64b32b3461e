from datetime import timedelta
from unittest.mock import patch

import pytest
from django.db import DatabaseError
from django.utils import timezone

from payments.errors import StoreUnavailable
from payments.idempotency import check_duplicate
from payments.models import PaymentAttempt

pytestmark = pytest.mark.django_db


def test_no_attempts_means_no_duplicate(provider, registration):
    assert check_duplicate(provider, registration) is None


def test_pending_attempt_is_a_duplicate(provider, registration, make_attempt):
    pending = make_attempt()
    assert check_duplicate(provider, registration) == pending


def test_recently_completed_attempt_is_a_duplicate(provider, registration, make_attempt):
    done = make_attempt(status=PaymentAttempt.STATUS_COMPLETED)
    assert check_duplicate(provider, registration) == done


def test_completed_outside_grace_window_is_not_a_duplicate(provider, registration, make_attempt, settings):
    settings.PAYMENT_DUPLICATE_GRACE_SECONDS = 300
    make_attempt(status=PaymentAttempt.STATUS_COMPLETED, completed_at=timezone.now() - timedelta(minutes=6))
    assert check_duplicate(provider, registration) is None


@pytest.mark.parametrize("status", [PaymentAttempt.STATUS_FAILED, PaymentAttempt.STATUS_EXPIRED])
def test_failed_or_expired_attempts_do_not_block(provider, registration, make_attempt, status):
    make_attempt(status=status)
    assert check_duplicate(provider, registration) is None


def test_other_payers_attempts_are_ignored(other_provider, registration, make_attempt):
    make_attempt()
    assert check_duplicate(other_provider, registration) is None


def test_store_error_is_not_treated_as_no_duplicate(provider, registration):
    with patch("payments.idempotency.PaymentAttempt.objects.filter", side_effect=DatabaseError("down")):
        with pytest.raises(StoreUnavailable) as exc:
            check_duplicate(provider, registration)
    assert exc.value.retryable is True
