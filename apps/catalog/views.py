from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.db.models import Q
from django.utils.decorators import method_decorator
from django.views.decorators.cache import cache_page
from rest_framework import generics, viewsets
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import AllowAny

from apps.audit.services import record_audit
from apps.catalog.models import Product
from apps.catalog.serializers import ProductSerializer, PublicCatalogProductSerializer, product_snapshot
from apps.catalog.throttles import PublicCatalogAnonThrottle
from apps.common.permissions import RolePermission

ORDERING_FIELDS = {"name", "-name", "price", "-price", "created_at", "-created_at"}


def _price_param(params, name):
    raw = params.get(name)
    if raw in (None, ""):
        return None
    try:
        return Decimal(raw)
    except InvalidOperation:
        raise ValidationError({name: ["Must be a number."]})


def filter_products(queryset, params):
    query = params.get("q")
    if query:
        query = query.strip()
        queryset = queryset.filter(
            Q(name__icontains=query) | Q(sku__icontains=query) | Q(description__icontains=query)
        )

    category = params.get("category")
    if category:
        queryset = queryset.filter(category=category.strip().lower())

    min_price = _price_param(params, "min_price")
    if min_price is not None:
        queryset = queryset.filter(price__gte=min_price)
    max_price = _price_param(params, "max_price")
    if max_price is not None:
        queryset = queryset.filter(price__lte=max_price)

    ordering = params.get("ordering")
    if ordering in ORDERING_FIELDS:
        queryset = queryset.order_by(ordering, "sku")
    return queryset


class ProductViewSet(viewsets.ModelViewSet):
    serializer_class = ProductSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["catalog.view"],
        "retrieve": ["catalog.view"],
        "create": ["catalog.manage"],
        "partial_update": ["catalog.manage"],
        "update": ["catalog.manage"],
        "destroy": ["catalog.manage"],
    }

    def get_queryset(self):
        queryset = filter_products(Product.objects.all(), self.request.query_params)
        is_active = self.request.query_params.get("is_active")
        if is_active is not None:
            normalized = is_active.strip().lower()
            if normalized in {"1", "true", "yes"}:
                queryset = queryset.filter(is_active=True)
            elif normalized in {"0", "false", "no"}:
                queryset = queryset.filter(is_active=False)
        return queryset

    def perform_create(self, serializer):
        product = serializer.save()
        record_audit(
            actor=self.request.user,
            action="catalog.product.create",
            entity_type="product",
            entity_id=product.id,
            payload=product_snapshot(product),
        )

    def perform_update(self, serializer):
        before = product_snapshot(self.get_object())
        product = serializer.save()
        record_audit(
            actor=self.request.user,
            action="catalog.product.update",
            entity_type="product",
            entity_id=product.id,
            payload={"before": before, "after": product_snapshot(product)},
        )

    def perform_destroy(self, instance):
        record_audit(
            actor=self.request.user,
            action="catalog.product.delete",
            entity_type="product",
            entity_id=instance.id,
            payload=product_snapshot(instance),
        )
        super().perform_destroy(instance)


@method_decorator(cache_page(settings.PUBLIC_CATALOG_CACHE_TTL_SECONDS), name="dispatch")
class PublicCatalogListView(generics.ListAPIView):
    serializer_class = PublicCatalogProductSerializer
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [PublicCatalogAnonThrottle]

    def get_queryset(self):
        return filter_products(Product.objects.filter(is_active=True).order_by("name"), self.request.query_params)


@method_decorator(cache_page(settings.PUBLIC_CATALOG_CACHE_TTL_SECONDS), name="dispatch")
class PublicCatalogDetailView(generics.RetrieveAPIView):
    serializer_class = PublicCatalogProductSerializer
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [PublicCatalogAnonThrottle]
    lookup_field = "sku"

    def get_queryset(self):
        return Product.objects.filter(is_active=True)
