# inventory/api/urls.py

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from inventory.api.views import (
    InventoryItemViewSet,
    InventoryMovementViewSet,
    SiteInventoryViewSet,
)

router = DefaultRouter()
router.register(r"items", InventoryItemViewSet, basename="inventory-items")
router.register(r"site-inventory", SiteInventoryViewSet, basename="site-inventory")
router.register(r"movements", InventoryMovementViewSet, basename="inventory-movements")

urlpatterns = [
    path("", include(router.urls)),
]
