import uuid

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from apps.customization.costs import FabricPurchaseOption


class CustomizationStatus(models.TextChoices):
    PENDING = "Pending", "Pending"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"
    COMPLETED = "completed", "Completed"


class ItemType(models.TextChoices):
    PERSONAL_ITEM = "personal_item", "Personal item"
    PRODUCT = "product", "Product"


ALLOWED_STATUS_TRANSITIONS = {
    CustomizationStatus.PENDING: {CustomizationStatus.APPROVED, CustomizationStatus.REJECTED},
    CustomizationStatus.APPROVED: {CustomizationStatus.COMPLETED, CustomizationStatus.REJECTED},
    CustomizationStatus.REJECTED: set(),
    CustomizationStatus.COMPLETED: set(),
}

MONEY = {"max_digits": 12, "decimal_places": 2, "validators": [MinValueValidator(0)]}


class PrintingTechnique(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    code = models.SlugField(max_length=40, unique=True)
    name = models.CharField(max_length=80)
    base_cost = models.DecimalField(**MONEY)
    design_area = models.CharField(max_length=120, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.base_cost})"


class FabricQuality(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    quality = models.PositiveIntegerField(unique=True, help_text="Fabric weight in GSM")
    cost = models.DecimalField(**MONEY)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["quality"]
        verbose_name_plural = "fabric qualities"

    def __str__(self):
        return f"{self.quality} GSM"


class PrintingSize(models.Model):
    """Print size surcharge shown to customers and managed from the back office."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    size = models.CharField(max_length=40, unique=True)
    cost = models.DecimalField(**MONEY)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["cost", "size"]

    def __str__(self):
        return f"{self.size} ({self.cost})"


class CustomizationRequest(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="customization_requests")
    user_name = models.CharField(max_length=150, blank=True)
    user_email = models.EmailField(blank=True)

    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    item_type = models.CharField(max_length=20, choices=ItemType.choices, db_index=True)
    size = models.CharField(max_length=40)
    color = models.CharField(max_length=40, blank=True)
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])

    product = models.ForeignKey(
        "catalog.Product",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="customization_requests",
    )
    product_name = models.CharField(max_length=255, null=True, blank=True)
    product_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    product_size = models.CharField(max_length=40, null=True, blank=True)

    technique_id = models.CharField(max_length=40)
    technique_name = models.CharField(max_length=80, blank=True)
    material_id = models.CharField(max_length=40, null=True, blank=True)
    fabric_purchase_option = models.CharField(
        max_length=20,
        choices=FabricPurchaseOption.choices,
        null=True,
        blank=True,
    )
    fabric_quality = models.PositiveIntegerField(null=True, blank=True)

    technique_cost = models.DecimalField(default=0, **MONEY)
    fabric_cost = models.DecimalField(default=0, **MONEY)
    unit_cost = models.DecimalField(default=0, **MONEY)
    total_cost = models.DecimalField(default=0, **MONEY)

    design_url = models.URLField(max_length=500)
    image_url = models.URLField(max_length=500, null=True, blank=True)

    phone_number = models.CharField(max_length=32, blank=True)
    whatsapp_number = models.CharField(max_length=32, blank=True)
    delivery_address = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    admin_notes = models.TextField(blank=True)

    payment_reference = models.CharField(max_length=80, null=True, blank=True)
    payment_completed = models.BooleanField(default=False)
    status = models.CharField(
        max_length=20,
        choices=CustomizationStatus.choices,
        default=CustomizationStatus.PENDING,
        db_index=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["payment_reference"],
                condition=models.Q(payment_reference__isnull=False),
                name="unique_customization_payment_reference",
            ),
            models.CheckConstraint(condition=models.Q(quantity__gte=1), name="customization_quantity_positive"),
        ]
        indexes = [
            models.Index(fields=["user", "created_at"], name="customization_user_created_idx"),
        ]

    def __str__(self):
        return f"{self.title} [{self.status}]"

    def can_transition_to(self, status):
        return status in ALLOWED_STATUS_TRANSITIONS.get(self.status, set())
