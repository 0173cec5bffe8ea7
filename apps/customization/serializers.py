from rest_framework import serializers

from apps.customization.costs import (
    DEFAULT_FABRIC_QUALITY,
    MAX_QUANTITY,
    FabricPurchaseOption,
    requires_fabric_purchase,
)
from apps.customization.domain import ContactDetails, PersonalItemCustomization, ProductCustomization
from apps.customization.models import (
    CustomizationRequest,
    CustomizationStatus,
    FabricQuality,
    ItemType,
    PrintingSize,
    PrintingTechnique,
)


class PrintingTechniqueSerializer(serializers.ModelSerializer):
    class Meta:
        model = PrintingTechnique
        fields = ["id", "code", "name", "base_cost", "design_area", "is_active", "created_at", "updated_at"]
        read_only_fields = ["id", "created_at", "updated_at"]


class FabricQualitySerializer(serializers.ModelSerializer):
    class Meta:
        model = FabricQuality
        fields = ["id", "quality", "cost", "is_active", "created_at", "updated_at"]
        read_only_fields = ["id", "created_at", "updated_at"]

    def validate_quality(self, value):
        if value <= 0:
            raise serializers.ValidationError("GSM must be a positive number.")
        return value


class PrintingSizeSerializer(serializers.ModelSerializer):
    class Meta:
        model = PrintingSize
        fields = ["id", "size", "cost", "is_active", "created_at", "updated_at"]
        read_only_fields = ["id", "created_at", "updated_at"]

    def validate_size(self, value):
        value = value.strip().upper()
        if not value:
            raise serializers.ValidationError("Size is required.")
        duplicates = PrintingSize.objects.filter(size=value)
        if self.instance is not None:
            duplicates = duplicates.exclude(pk=self.instance.pk)
        if duplicates.exists():
            raise serializers.ValidationError("A price for this size already exists.")
        return value


class CustomizationSubmissionSerializer(serializers.Serializer):
    # Required fields are checked by the domain objects so that every entry
    # point reports the same field errors.
    item_type = serializers.ChoiceField(choices=ItemType.choices, default=ItemType.PERSONAL_ITEM)
    product_id = serializers.CharField(allow_blank=True, default="")
    technique_id = serializers.CharField(allow_blank=True, default="")
    design_url = serializers.CharField(allow_blank=True, default="", max_length=500)
    image_url = serializers.URLField(allow_null=True, allow_blank=True, default=None, max_length=500)
    item_description = serializers.CharField(allow_blank=True, default="", max_length=200)
    size = serializers.CharField(allow_blank=True, default="", max_length=40)
    color = serializers.CharField(allow_blank=True, default="", max_length=40)
    quantity = serializers.IntegerField(min_value=1, max_value=MAX_QUANTITY, default=1)
    material_id = serializers.CharField(allow_null=True, allow_blank=True, default=None)
    fabric_purchase_option = serializers.ChoiceField(
        choices=FabricPurchaseOption.choices,
        allow_null=True,
        default=None,
    )
    fabric_quality = serializers.IntegerField(allow_null=True, default=None, min_value=1)
    phone_number = serializers.CharField(allow_blank=True, default="", max_length=32)
    whatsapp_number = serializers.CharField(allow_blank=True, default="", max_length=32)
    delivery_address = serializers.CharField(allow_blank=True, default="")
    notes = serializers.CharField(allow_blank=True, default="")

    def to_customization(self):
        data = self.validated_data
        contact = ContactDetails(
            phone_number=data["phone_number"].strip(),
            whatsapp_number=data["whatsapp_number"].strip(),
            delivery_address=data["delivery_address"].strip(),
            notes=data["notes"],
        )
        common = {
            "technique_id": data["technique_id"].strip(),
            "design_url": data["design_url"].strip(),
            "image_url": data["image_url"] or None,
            "size": data["size"].strip(),
            "color": data["color"].strip(),
            "quantity": data["quantity"],
            "contact": contact,
        }
        if data["item_type"] == ItemType.PRODUCT:
            return ProductCustomization(product_id=data["product_id"].strip(), **common)

        option = data["fabric_purchase_option"]
        fabric_quality = data["fabric_quality"]
        if requires_fabric_purchase(option):
            fabric_quality = fabric_quality or DEFAULT_FABRIC_QUALITY
        else:
            fabric_quality = None
        return PersonalItemCustomization(
            item_description=data["item_description"].strip(),
            material_id=data["material_id"] or None,
            fabric_purchase_option=option,
            fabric_quality=fabric_quality,
            **common,
        )


class CostBreakdownSerializer(serializers.Serializer):
    technique_id = serializers.CharField(allow_blank=True)
    technique_name = serializers.CharField(allow_blank=True)
    technique_cost = serializers.DecimalField(max_digits=12, decimal_places=2)
    fabric_cost = serializers.DecimalField(max_digits=12, decimal_places=2)
    unit_cost = serializers.DecimalField(max_digits=12, decimal_places=2)
    total_cost = serializers.DecimalField(max_digits=12, decimal_places=2)
    product_price = serializers.DecimalField(max_digits=12, decimal_places=2, allow_null=True)
    quantity = serializers.IntegerField()


class CustomizationRequestSerializer(serializers.ModelSerializer):
    class Meta:
        model = CustomizationRequest
        fields = [
            "id",
            "user",
            "user_name",
            "user_email",
            "title",
            "description",
            "item_type",
            "size",
            "color",
            "quantity",
            "product",
            "product_name",
            "product_price",
            "product_size",
            "technique_id",
            "technique_name",
            "material_id",
            "fabric_purchase_option",
            "fabric_quality",
            "technique_cost",
            "fabric_cost",
            "unit_cost",
            "total_cost",
            "design_url",
            "image_url",
            "phone_number",
            "whatsapp_number",
            "delivery_address",
            "notes",
            "admin_notes",
            "payment_reference",
            "payment_completed",
            "status",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class CustomizationStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=CustomizationStatus.choices)
    admin_notes = serializers.CharField(required=False, allow_blank=True, max_length=1000)


class DesignUploadSerializer(serializers.Serializer):
    file = serializers.FileField(allow_empty_file=False)


class PaymentCallbackSerializer(serializers.Serializer):
    reference = serializers.CharField(allow_blank=True, default="")
    trxref = serializers.CharField(allow_blank=True, default="")
    status = serializers.CharField(allow_blank=True, default="")

    def validate(self, attrs):
        attrs["reference"] = (attrs["reference"] or attrs["trxref"]).strip()
        return attrs
