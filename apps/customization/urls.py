from django.urls import path
from rest_framework.routers import DefaultRouter

from apps.customization.views import (
    CostQuoteView,
    CustomizationRequestViewSet,
    DesignDeleteView,
    DesignUploadView,
    FabricQualityViewSet,
    PaymentCallbackView,
    PaymentCancelView,
    PaymentInitiateView,
    PrintingSizeViewSet,
    PrintingTechniqueViewSet,
)

router = DefaultRouter()
router.register("printing-techniques", PrintingTechniqueViewSet, basename="printing-technique")
router.register("fabric-qualities", FabricQualityViewSet, basename="fabric-quality")
router.register("printing-sizes", PrintingSizeViewSet, basename="printing-size")
router.register("customization-requests", CustomizationRequestViewSet, basename="customization-request")

urlpatterns = [
    path("customization/quote/", CostQuoteView.as_view(), name="customization-quote"),
    path("customization/designs/", DesignUploadView.as_view(), name="customization-design-upload"),
    path("customization/designs/<str:file_id>/", DesignDeleteView.as_view(), name="customization-design-delete"),
    path("customization-payments/", PaymentInitiateView.as_view(), name="customization-payment-initiate"),
    path("customization-payments/callback/", PaymentCallbackView.as_view(), name="customization-payment-callback"),
    path("customization-payments/cancel/", PaymentCancelView.as_view(), name="customization-payment-cancel"),
]
urlpatterns += router.urls
