import json
import logging
import secrets
import time
from dataclasses import dataclass
from urllib.parse import urlencode

from django.conf import settings
from django.core.cache import cache as default_cache
from django.core.serializers.json import DjangoJSONEncoder
from django.db import DatabaseError, models
from django.utils import timezone
from rest_framework.exceptions import APIException

from apps.audit.services import record_audit
from apps.customization.costs import CostBreakdown
from apps.customization.domain import customization_from_payload
from apps.customization.exceptions import (
    AuthenticationRequired,
    CustomizationValidationError,
    GatewayError,
    InvalidPaymentReference,
    PaymentCancelled,
    PaymentIntentNotFound,
)
from apps.customization.services import find_request_by_payment_reference, submit_customization_request

logger = logging.getLogger(__name__)

PAYMENT_INTENT_KEY = "customization_payment_intent"
SUCCESS_STATUSES = {"success", "successful", "completed"}


class PaymentState(models.TextChoices):
    IDLE = "Idle", "Idle"
    AWAITING_CALLBACK = "AwaitingCallback", "Awaiting callback"
    VERIFYING = "Verifying", "Verifying"
    COMPLETED = "Completed", "Completed"
    FAILED = "Failed", "Failed"


def generate_payment_reference():
    prefix = settings.PAYMENT_REFERENCE_PREFIX
    return f"{prefix}_{int(time.time() * 1000)}_{secrets.randbelow(1000000)}"


def build_checkout_url(*, reference, email, total_cost, callback_url=None):
    public_key = settings.PAYSTACK_PUBLIC_KEY
    if not public_key:
        logger.error("PAYSTACK_PUBLIC_KEY is not configured; cannot start payment %s", reference)
        raise GatewayError("Payments are not configured.")
    params = {
        "key": public_key,
        "email": email,
        # Paystack amounts are in the currency's minor unit.
        "amount": int(total_cost * 100),
        "currency": settings.PAYMENT_CURRENCY,
        "ref": reference,
    }
    if callback_url:
        params["callback_url"] = callback_url
    return f"{settings.PAYSTACK_CHECKOUT_URL}?{urlencode(params)}"


class PaymentIntentStore:
    """Per-user payment intent kept across the checkout redirect."""

    def __init__(self, cache=None, timeout=None):
        self.cache = cache or default_cache
        self.timeout = timeout or settings.PAYMENT_INTENT_TTL_SECONDS

    def key(self, user_id):
        return f"{PAYMENT_INTENT_KEY}:{user_id}"

    def save(self, user_id, intent):
        self.cache.set(self.key(user_id), json.dumps(intent, cls=DjangoJSONEncoder), self.timeout)

    def load(self, user_id):
        raw = self.cache.get(self.key(user_id))
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Discarding unreadable payment intent for user %s", user_id)
            self.clear(user_id)
            return None

    def clear(self, user_id):
        self.cache.delete(self.key(user_id))


@dataclass
class PaymentOutcome:
    state: str
    request: object = None
    created: bool = False
    reference: str | None = None


class PaymentCompletionHandler:
    def __init__(self, store=None):
        self.store = store or PaymentIntentStore()
        self.state = PaymentState.IDLE

    @staticmethod
    def _ensure_authenticated(user):
        if user is None or not getattr(user, "is_authenticated", False):
            raise AuthenticationRequired()

    def initiate(self, user, customization, costs, *, callback_url=None):
        self._ensure_authenticated(user)
        customization.validate()
        customization.contact.validate_for_delivery()
        if not user.email:
            raise CustomizationValidationError("email", "Add an email address to your account before paying.")

        reference = generate_payment_reference()
        intent = {
            "reference": reference,
            "user_id": str(user.pk),
            "user_email": user.email,
            "customization": customization.to_payload(),
            "costs": costs.as_dict(),
            "created_at": timezone.now().isoformat(),
        }
        checkout_url = build_checkout_url(
            reference=reference,
            email=user.email,
            total_cost=costs.total_cost,
            callback_url=callback_url,
        )
        self.store.save(user.pk, intent)
        self.state = PaymentState.AWAITING_CALLBACK

        record_audit(
            actor=user,
            action="customization.payment.initiate",
            entity_type="payment",
            entity_id=reference,
            payload={"total_cost": costs.total_cost, "item_type": intent["customization"]["item_type"]},
        )
        logger.info("Payment %s initiated by user %s for %s", reference, user.pk, costs.total_cost)
        return {**intent, "checkout_url": checkout_url, "state": str(self.state)}

    def complete(self, user, reference, status=None):
        self._ensure_authenticated(user)
        self.state = PaymentState.VERIFYING
        try:
            outcome = self._verify(user, (reference or "").strip(), status)
        except APIException as exc:
            # A cancelled payment leaves the handler idle rather than failed.
            if not isinstance(exc, PaymentCancelled):
                self.state = PaymentState.FAILED
                logger.warning(
                    "Payment verification failed for user %s reference %s: %s", user.pk, reference, exc.detail
                )
            raise
        self.state = outcome.state
        return outcome

    def _verify(self, user, reference, status):
        if not reference:
            raise CustomizationValidationError("reference", "Payment reference is missing.")

        if status and status.strip().lower() not in SUCCESS_STATUSES:
            self.cancel(user, reference=reference)
            raise PaymentCancelled()

        intent = self.store.load(user.pk)
        if intent is None:
            try:
                existing = find_request_by_payment_reference(reference, user=user)
            except DatabaseError as exc:
                logger.error("Could not look up payment reference %s: %s", reference, exc)
                raise GatewayError() from exc
            if existing is not None:
                return PaymentOutcome(PaymentState.COMPLETED, existing, False, reference)
            raise PaymentIntentNotFound()

        if intent.get("reference") != reference:
            raise InvalidPaymentReference()

        customization = customization_from_payload(intent["customization"])
        costs = CostBreakdown.from_payload(intent["costs"])
        request, created = submit_customization_request(customization, user, costs, payment_reference=reference)
        self.store.clear(user.pk)

        record_audit(
            actor=user,
            action="customization.payment.complete",
            entity_type="payment",
            entity_id=reference,
            payload={"request_id": request.id, "created": created},
        )
        return PaymentOutcome(PaymentState.COMPLETED, request, created, reference)

    def cancel(self, user, *, reference=None):
        self._ensure_authenticated(user)
        intent = self.store.load(user.pk)
        if intent is not None and reference and intent.get("reference") != reference:
            raise InvalidPaymentReference()
        self.store.clear(user.pk)
        self.state = PaymentState.IDLE

        reference = reference or (intent or {}).get("reference")
        record_audit(
            actor=user,
            action="customization.payment.cancel",
            entity_type="payment",
            entity_id=reference or "",
            payload={"had_intent": intent is not None},
        )
        logger.info("Payment %s cancelled by user %s", reference, user.pk)
        return PaymentOutcome(PaymentState.IDLE, reference=reference)
