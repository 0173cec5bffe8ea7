from django.contrib import admin

from apps.customization.models import CustomizationRequest, FabricQuality, PrintingSize, PrintingTechnique


@admin.register(PrintingTechnique)
class PrintingTechniqueAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "base_cost", "design_area", "is_active", "updated_at")
    list_filter = ("is_active",)
    search_fields = ("code", "name")


@admin.register(FabricQuality)
class FabricQualityAdmin(admin.ModelAdmin):
    list_display = ("quality", "cost", "is_active", "updated_at")
    list_filter = ("is_active",)


@admin.register(PrintingSize)
class PrintingSizeAdmin(admin.ModelAdmin):
    list_display = ("size", "cost", "is_active", "updated_at")
    list_filter = ("is_active",)
    search_fields = ("size",)


@admin.register(CustomizationRequest)
class CustomizationRequestAdmin(admin.ModelAdmin):
    list_display = ("title", "user_email", "item_type", "technique_id", "total_cost", "status", "payment_completed", "created_at")
    list_filter = ("status", "item_type", "payment_completed", "technique_id")
    search_fields = ("title", "user_email", "user_name", "payment_reference", "product_name")
    readonly_fields = (
        "id",
        "user",
        "payment_reference",
        "payment_completed",
        "technique_cost",
        "fabric_cost",
        "unit_cost",
        "total_cost",
        "created_at",
        "updated_at",
    )
