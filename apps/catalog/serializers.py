from rest_framework import serializers

from apps.catalog.models import Product


def _clean_options(value, field_name):
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise serializers.ValidationError(f"{field_name} must be a list of strings.")
    cleaned = []
    for item in value:
        item = item.strip()
        if item and item not in cleaned:
            cleaned.append(item)
    return cleaned


class ProductSerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = [
            "id",
            "sku",
            "name",
            "description",
            "category",
            "price",
            "sizes",
            "colors",
            "image_url",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]

    def validate_sku(self, value):
        return value.strip().upper()

    def validate_sizes(self, value):
        return _clean_options(value, "sizes")

    def validate_colors(self, value):
        return _clean_options(value, "colors")


class PublicCatalogProductSerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = [
            "id",
            "sku",
            "name",
            "description",
            "category",
            "price",
            "sizes",
            "colors",
            "image_url",
            "updated_at",
        ]
        read_only_fields = fields


def product_snapshot(product):
    return {
        "sku": product.sku,
        "name": product.name,
        "category": product.category,
        "price": str(product.price),
        "is_active": product.is_active,
    }
