# purchases/api/urls.py

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from purchases.api.views import (
    APAgingView,
    BillViewSet,
    PaymentViewSet,
    PurchaseOrderViewSet,
    ReceiptViewSet,
    ReorderCheckView,
    RequisitionViewSet,
    VendorViewSet,
)

router = DefaultRouter()
router.register(r"vendors", VendorViewSet, basename="vendors")
router.register(r"requisitions", RequisitionViewSet, basename="requisitions")
router.register(r"purchase-orders", PurchaseOrderViewSet, basename="purchase-orders")
router.register(r"receipts", ReceiptViewSet, basename="receipts")
router.register(r"bills", BillViewSet, basename="bills")
router.register(r"payments", PaymentViewSet, basename="payments")

urlpatterns = [
    path("ap-aging/", APAgingView.as_view(), name="ap-aging"),
    path("reorder-check/", ReorderCheckView.as_view(), name="reorder-check"),
    path("", include(router.urls)),
]
