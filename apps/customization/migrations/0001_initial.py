import uuid

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


def money(**kwargs):
    return models.DecimalField(
        decimal_places=2,
        max_digits=12,
        validators=[django.core.validators.MinValueValidator(0)],
        **kwargs,
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("catalog", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="PrintingTechnique",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("code", models.SlugField(max_length=40, unique=True)),
                ("name", models.CharField(max_length=80)),
                ("base_cost", money()),
                ("design_area", models.CharField(blank=True, max_length=120)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={"ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="FabricQuality",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("quality", models.PositiveIntegerField(help_text="Fabric weight in GSM", unique=True)),
                ("cost", money()),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={"ordering": ["quality"], "verbose_name_plural": "fabric qualities"},
        ),
        migrations.CreateModel(
            name="CustomizationRequest",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("user_name", models.CharField(blank=True, max_length=150)),
                ("user_email", models.EmailField(blank=True, max_length=254)),
                ("title", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True)),
                (
                    "item_type",
                    models.CharField(
                        choices=[("personal_item", "Personal item"), ("product", "Product")],
                        db_index=True,
                        max_length=20,
                    ),
                ),
                ("size", models.CharField(max_length=40)),
                ("color", models.CharField(blank=True, max_length=40)),
                (
                    "quantity",
                    models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)]),
                ),
                ("product_name", models.CharField(blank=True, max_length=255, null=True)),
                ("product_price", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("product_size", models.CharField(blank=True, max_length=40, null=True)),
                ("technique_id", models.CharField(max_length=40)),
                ("technique_name", models.CharField(blank=True, max_length=80)),
                ("material_id", models.CharField(blank=True, max_length=40, null=True)),
                (
                    "fabric_purchase_option",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("help_buy", "Help me buy the fabric"),
                            ("already_have", "I already have the fabric"),
                            ("help_me_buy", "Help me buy the fabric"),
                        ],
                        max_length=20,
                        null=True,
                    ),
                ),
                ("fabric_quality", models.PositiveIntegerField(blank=True, null=True)),
                ("technique_cost", money(default=0)),
                ("fabric_cost", money(default=0)),
                ("unit_cost", money(default=0)),
                ("total_cost", money(default=0)),
                ("design_url", models.URLField(max_length=500)),
                ("image_url", models.URLField(blank=True, max_length=500, null=True)),
                ("phone_number", models.CharField(blank=True, max_length=32)),
                ("whatsapp_number", models.CharField(blank=True, max_length=32)),
                ("delivery_address", models.TextField(blank=True)),
                ("notes", models.TextField(blank=True)),
                ("admin_notes", models.TextField(blank=True)),
                ("payment_reference", models.CharField(blank=True, max_length=80, null=True)),
                ("payment_completed", models.BooleanField(default=False)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("Pending", "Pending"),
                            ("approved", "Approved"),
                            ("rejected", "Rejected"),
                            ("completed", "Completed"),
                        ],
                        db_index=True,
                        default="Pending",
                        max_length=20,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "product",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="customization_requests",
                        to="catalog.product",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="customization_requests",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["user", "created_at"], name="customization_user_created_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(payment_reference__isnull=False),
                        fields=["payment_reference"],
                        name="unique_customization_payment_reference",
                    ),
                    models.CheckConstraint(condition=models.Q(quantity__gte=1), name="customization_quantity_positive"),
                ],
            },
        ),
    ]
