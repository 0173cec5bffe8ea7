import logging
from decimal import Decimal

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, IntegrityError, transaction

from apps.audit.services import record_audit
from apps.catalog.models import Product
from apps.customization.costs import DEFAULT_FABRIC_COSTS, MAX_TOTAL_COST, calculate_costs
from apps.customization.domain import ProductCustomization
from apps.customization.exceptions import AuthenticationRequired, CustomizationValidationError, GatewayError
from apps.customization.models import CustomizationRequest, FabricQuality, PrintingTechnique

logger = logging.getLogger(__name__)

DEFAULT_TECHNIQUES = {
    "dtf": ("DTF", Decimal("2510.00")),
    "dtg": ("DTG", Decimal("5110.00")),
    "flock-htv": ("Flock HTV", Decimal("4780.00")),
    "glitter-htv": ("Glitter HTV", Decimal("9111.00")),
    "reflective-htv": ("Reflective HTV", Decimal("5010.00")),
    "sublimation": ("Sublimation", Decimal("3011.00")),
}


def technique_catalog():
    """Active techniques as ``{code: (name, base_cost)}``, falling back to the defaults."""
    rows = PrintingTechnique.objects.filter(is_active=True).values_list("code", "name", "base_cost")
    table = {code: (name, base_cost) for code, name, base_cost in rows}
    if table or PrintingTechnique.objects.exists():
        return table
    return dict(DEFAULT_TECHNIQUES)


def resolve_technique(technique_id):
    if not technique_id:
        return None
    try:
        return technique_catalog()[technique_id]
    except KeyError:
        raise CustomizationValidationError("technique_id", f"Unknown printing technique '{technique_id}'.")


def fabric_cost_table():
    rows = FabricQuality.objects.filter(is_active=True).values_list("quality", "cost")
    table = {quality: cost for quality, cost in rows}
    if table or FabricQuality.objects.exists():
        return table
    return dict(DEFAULT_FABRIC_COSTS)


def price_customization(customization):
    """Attach catalog data to a customization and compute its cost breakdown.

    Costs always come from the technique, fabric and product tables, never
    from client-supplied totals.
    """
    technique = resolve_technique(customization.technique_id)
    technique_cost = None
    if technique is not None:
        name, technique_cost = technique
        customization = customization.with_technique_name(name)

    product_price = None
    if isinstance(customization, ProductCustomization) and customization.product_id:
        try:
            product = Product.objects.get(pk=customization.product_id, is_active=True)
        except (Product.DoesNotExist, DjangoValidationError):
            raise CustomizationValidationError("product_id", "Selected product is not available.")
        customization = customization.with_product(product)
        product_price = product.price

    try:
        costs = calculate_costs(
            technique_cost=technique_cost,
            quantity=customization.quantity,
            fabric_purchase_option=getattr(customization, "fabric_purchase_option", None),
            fabric_quality=getattr(customization, "fabric_quality", None),
            fabric_costs=fabric_cost_table(),
            product_price=product_price,
        )
    except ValueError as exc:
        field = "quantity" if "quantity" in str(exc) else "fabric_quality"
        raise CustomizationValidationError(field, str(exc).capitalize() + ".")
    if costs.total_cost > MAX_TOTAL_COST:
        raise CustomizationValidationError("quantity", "Order total is too large; reduce the quantity.")
    return customization, costs


def find_request_by_payment_reference(payment_reference, *, user=None):
    queryset = CustomizationRequest.objects.filter(payment_reference=payment_reference)
    if user is not None:
        queryset = queryset.filter(user=user)
    return queryset.first()


def guard_duplicate_submission(payment_reference):
    """Return the request already recorded for a payment reference, if any.

    A failed lookup is logged and treated as "no duplicate"; the unique
    constraint on ``payment_reference`` still rejects a second insert.
    """
    if not payment_reference:
        return None
    try:
        existing = find_request_by_payment_reference(payment_reference)
    except DatabaseError as exc:
        logger.warning("Duplicate check failed for payment reference %s: %s", payment_reference, exc)
        return None
    if existing is not None:
        logger.info("Payment reference %s already recorded as request %s", payment_reference, existing.id)
    return existing


def _ensure_authenticated(user):
    if user is None or not getattr(user, "is_authenticated", False):
        raise AuthenticationRequired()


def build_customization_request(customization, user, costs, *, payment_reference=None):
    _ensure_authenticated(user)
    customization.validate()

    email = user.email or ""
    instance = CustomizationRequest.objects.create(
        user=user,
        user_name=email.split("@")[0] if email else user.get_username(),
        user_email=email,
        technique_cost=costs.technique_cost,
        fabric_cost=costs.fabric_cost,
        unit_cost=costs.unit_cost,
        total_cost=costs.total_cost,
        payment_reference=payment_reference or None,
        payment_completed=bool(payment_reference),
        **customization.record_fields(),
    )
    record_audit(
        actor=user,
        action="customization.request.create",
        entity_type="customization_request",
        entity_id=instance.id,
        payload={
            "item_type": instance.item_type,
            "technique_id": instance.technique_id,
            "quantity": instance.quantity,
            "total_cost": str(instance.total_cost),
            "payment_reference": instance.payment_reference,
        },
    )
    logger.info("Created customization request %s for user %s", instance.id, user.pk)
    return instance


def submit_customization_request(customization, user, costs, *, payment_reference=None):
    """Create a request once per payment reference.

    Returns ``(request, created)``.
    """
    _ensure_authenticated(user)
    customization.validate()

    existing = guard_duplicate_submission(payment_reference)
    if existing is not None:
        return existing, False

    try:
        with transaction.atomic():
            instance = build_customization_request(customization, user, costs, payment_reference=payment_reference)
    except IntegrityError as exc:
        if not payment_reference:
            logger.error("Could not save customization request for user %s: %s", user.pk, exc)
            raise GatewayError() from exc
        try:
            winner = find_request_by_payment_reference(payment_reference)
        except DatabaseError as lookup_exc:
            logger.error("Lookup after conflicting payment reference %s failed: %s", payment_reference, lookup_exc)
            raise GatewayError() from lookup_exc
        if winner is None:
            logger.error("Could not save customization request for payment reference %s: %s", payment_reference, exc)
            raise GatewayError() from exc
        logger.info("Concurrent submission for payment reference %s resolved to %s", payment_reference, winner.id)
        return winner, False
    except DatabaseError as exc:
        logger.error("Could not save customization request for user %s: %s", user.pk, exc)
        raise GatewayError() from exc
    return instance, True


def update_customization_status(instance, *, actor, status, admin_notes=None):
    if status != instance.status and not instance.can_transition_to(status):
        raise CustomizationValidationError("status", f"Cannot change status from {instance.status} to {status}.")

    before = {"status": instance.status, "admin_notes": instance.admin_notes}
    instance.status = status
    update_fields = ["status", "updated_at"]
    if admin_notes is not None:
        instance.admin_notes = admin_notes
        update_fields.append("admin_notes")
    instance.save(update_fields=update_fields)

    record_audit(
        actor=actor,
        action="customization.request.status",
        entity_type="customization_request",
        entity_id=instance.id,
        payload={"before": before, "after": {"status": instance.status, "admin_notes": instance.admin_notes}},
    )
    return instance
