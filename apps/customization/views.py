from django.conf import settings
from rest_framework import generics, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.response import Response

from apps.audit.services import record_audit
from apps.common.permissions import IsManagerOrReadOnly, RolePermission, has_capability
from apps.customization.costs import DEFAULT_FABRIC_COSTS, DEFAULT_SIZE_PRICES
from apps.customization.models import CustomizationRequest, FabricQuality, PrintingSize, PrintingTechnique
from apps.customization.payments import PaymentCompletionHandler, PaymentIntentStore
from apps.customization.serializers import (
    CostBreakdownSerializer,
    CustomizationRequestSerializer,
    CustomizationStatusSerializer,
    CustomizationSubmissionSerializer,
    DesignUploadSerializer,
    FabricQualitySerializer,
    PaymentCallbackSerializer,
    PrintingSizeSerializer,
    PrintingTechniqueSerializer,
)
from apps.customization.services import (
    DEFAULT_TECHNIQUES,
    price_customization,
    submit_customization_request,
    update_customization_status,
)
from apps.customization.uploads import DesignUploadManager


class AuditedCostTableViewSet(viewsets.ModelViewSet):
    permission_classes = [IsManagerOrReadOnly]
    audit_entity_type = None

    def default_rows(self):
        return []

    def list(self, request, *args, **kwargs):
        if self.get_queryset().model.objects.exists():
            return super().list(request, *args, **kwargs)
        page = self.paginate_queryset(self.default_rows())
        return self.get_paginated_response(page)

    def _audit(self, action_name, instance, payload):
        record_audit(
            actor=self.request.user,
            action=f"costs.{self.audit_entity_type}.{action_name}",
            entity_type=self.audit_entity_type,
            entity_id=instance.id,
            payload=payload,
        )

    def perform_create(self, serializer):
        instance = serializer.save()
        self._audit("create", instance, serializer.data)

    def perform_update(self, serializer):
        before = self.get_serializer(self.get_object()).data
        instance = serializer.save()
        self._audit("update", instance, {"before": before, "after": serializer.data})

    def perform_destroy(self, instance):
        self._audit("delete", instance, self.get_serializer(instance).data)
        super().perform_destroy(instance)


class PrintingTechniqueViewSet(AuditedCostTableViewSet):
    serializer_class = PrintingTechniqueSerializer
    audit_entity_type = "printing_technique"

    def get_queryset(self):
        queryset = PrintingTechnique.objects.all()
        if self.action == "list" and not has_capability(self.request.user, "costs.manage"):
            queryset = queryset.filter(is_active=True)
        return queryset

    def default_rows(self):
        return [
            {"id": None, "code": code, "name": name, "base_cost": str(cost), "design_area": "A4", "is_active": True}
            for code, (name, cost) in DEFAULT_TECHNIQUES.items()
        ]


class FabricQualityViewSet(AuditedCostTableViewSet):
    serializer_class = FabricQualitySerializer
    audit_entity_type = "fabric_quality"

    def get_queryset(self):
        queryset = FabricQuality.objects.all()
        if self.action == "list" and not has_capability(self.request.user, "costs.manage"):
            queryset = queryset.filter(is_active=True)
        return queryset

    def default_rows(self):
        return [
            {"id": None, "quality": quality, "cost": str(cost), "is_active": True}
            for quality, cost in DEFAULT_FABRIC_COSTS.items()
        ]


class PrintingSizeViewSet(AuditedCostTableViewSet):
    serializer_class = PrintingSizeSerializer
    audit_entity_type = "printing_size"

    def get_queryset(self):
        queryset = PrintingSize.objects.all()
        if self.action == "list" and not has_capability(self.request.user, "costs.manage"):
            queryset = queryset.filter(is_active=True)
        return queryset

    def default_rows(self):
        return [
            {"id": None, "size": size, "cost": str(cost), "is_active": True}
            for size, cost in DEFAULT_SIZE_PRICES.items()
        ]


class CostQuoteView(generics.GenericAPIView):
    serializer_class = CustomizationSubmissionSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "post": ["customization.request"],
    }

    def post(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        customization, costs = price_customization(serializer.to_customization())
        quote = CostBreakdownSerializer(
            {
                "technique_id": customization.technique_id,
                "technique_name": customization.technique_name,
                "technique_cost": costs.technique_cost,
                "fabric_cost": costs.fabric_cost,
                "unit_cost": costs.unit_cost,
                "total_cost": costs.total_cost,
                "product_price": costs.product_price,
                "quantity": customization.quantity,
            }
        )
        return Response(quote.data, status=status.HTTP_200_OK)


class DesignUploadView(generics.GenericAPIView):
    serializer_class = DesignUploadSerializer
    permission_classes = [RolePermission]
    parser_classes = [MultiPartParser, FormParser]
    capability_map = {
        "post": ["customization.request"],
    }
    upload_manager_class = DesignUploadManager

    def post(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = self.upload_manager_class().upload(serializer.validated_data["file"], owner=request.user)
        result["url"] = request.build_absolute_uri(result["url"])
        return Response(result, status=status.HTTP_201_CREATED)


class DesignDeleteView(generics.GenericAPIView):
    permission_classes = [RolePermission]
    capability_map = {
        "delete": ["customization.request"],
    }
    upload_manager_class = DesignUploadManager

    def delete(self, request, file_id):
        if not self.upload_manager_class().delete(file_id, owner=request.user):
            raise NotFound("Design file not found.")
        return Response(status=status.HTTP_204_NO_CONTENT)


class CustomizationRequestViewSet(viewsets.ModelViewSet):
    serializer_class = CustomizationRequestSerializer
    permission_classes = [RolePermission]
    http_method_names = ["get", "post", "head", "options"]
    capability_map = {
        "list": ["customization.request"],
        "retrieve": ["customization.request"],
        "create": ["customization.request"],
        "set_status": ["customization.manage"],
    }

    def get_queryset(self):
        queryset = CustomizationRequest.objects.select_related("user", "product").order_by("-created_at")
        params = self.request.query_params
        if has_capability(self.request.user, "customization.view.all"):
            if params.get("user"):
                queryset = queryset.filter(user_id=params["user"])
        else:
            queryset = queryset.filter(user=self.request.user)

        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        if params.get("item_type"):
            queryset = queryset.filter(item_type=params["item_type"])
        if params.get("payment_reference"):
            queryset = queryset.filter(payment_reference=params["payment_reference"])
        return queryset

    def create(self, request, *args, **kwargs):
        submission = CustomizationSubmissionSerializer(data=request.data)
        submission.is_valid(raise_exception=True)
        customization = submission.to_customization()
        customization, costs = price_customization(customization)
        instance, _ = submit_customization_request(customization, request.user, costs)
        return Response(self.get_serializer(instance).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="status")
    def set_status(self, request, pk=None):
        instance = self.get_object()
        serializer = CustomizationStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        instance = update_customization_status(
            instance,
            actor=request.user,
            status=serializer.validated_data["status"],
            admin_notes=serializer.validated_data.get("admin_notes"),
        )
        return Response(self.get_serializer(instance).data, status=status.HTTP_200_OK)


class PaymentViewMixin:
    permission_classes = [RolePermission]
    intent_store_class = PaymentIntentStore

    def get_handler(self):
        return PaymentCompletionHandler(store=self.intent_store_class())


class PaymentInitiateView(PaymentViewMixin, generics.GenericAPIView):
    serializer_class = CustomizationSubmissionSerializer
    capability_map = {
        "post": ["customization.request"],
    }

    def post(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        customization = serializer.to_customization()
        customization, costs = price_customization(customization)
        intent = self.get_handler().initiate(
            request.user,
            customization,
            costs,
            callback_url=settings.PAYMENT_CALLBACK_URL or None,
        )
        return Response(
            {
                "reference": intent["reference"],
                "checkout_url": intent["checkout_url"],
                "state": intent["state"],
                "costs": intent["costs"],
            },
            status=status.HTTP_201_CREATED,
        )


class PaymentCallbackView(PaymentViewMixin, generics.GenericAPIView):
    serializer_class = PaymentCallbackSerializer
    capability_map = {
        "get": ["customization.request"],
    }

    def get(self, request):
        serializer = self.get_serializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        outcome = self.get_handler().complete(
            request.user,
            serializer.validated_data["reference"],
            serializer.validated_data["status"] or None,
        )
        return Response(
            {
                "state": outcome.state,
                "reference": outcome.reference,
                "created": outcome.created,
                "request_id": str(outcome.request.id),
                "request": CustomizationRequestSerializer(outcome.request).data,
            },
            status=status.HTTP_201_CREATED if outcome.created else status.HTTP_200_OK,
        )


class PaymentCancelView(PaymentViewMixin, generics.GenericAPIView):
    capability_map = {
        "post": ["customization.request"],
    }

    def post(self, request):
        reference = str(request.data.get("reference") or "").strip() or None
        outcome = self.get_handler().cancel(request.user, reference=reference)
        return Response({"state": outcome.state, "reference": outcome.reference}, status=status.HTTP_200_OK)
