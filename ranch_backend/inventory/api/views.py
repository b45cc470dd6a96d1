# inventory/api/views.py

"""
INVENTORY API

- items:          master data CRUD (no delete; deactivate instead)
- site-inventory: on-hand quantity + moving-average cost per (item, site)
                  ?site_id=  ?below_reorder_point=true
- movements:      immutable movement history (?item=, ?site_id=, ?source_type=)

Quantities only change through events and receipts, never through this API.
"""

from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import mixins, viewsets
from rest_framework.permissions import IsAuthenticated

from backend.tenancy import TENANT_PARAMETER, TenantScopedMixin
from inventory.api.serializers import (
    InventoryItemSerializer,
    InventoryMovementSerializer,
    SiteInventorySerializer,
)
from inventory.models import InventoryItem, InventoryMovement, SiteInventory


@extend_schema_view(
    list=extend_schema(tags=["inventory"], parameters=[TENANT_PARAMETER]),
    retrieve=extend_schema(tags=["inventory"], parameters=[TENANT_PARAMETER]),
    create=extend_schema(tags=["inventory"], parameters=[TENANT_PARAMETER]),
    update=extend_schema(tags=["inventory"], parameters=[TENANT_PARAMETER]),
    partial_update=extend_schema(tags=["inventory"], parameters=[TENANT_PARAMETER]),
)
class InventoryItemViewSet(
    TenantScopedMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.UpdateModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = InventoryItemSerializer
    permission_classes = [IsAuthenticated]
    filterset_fields = ["category", "is_active", "sku"]

    def get_queryset(self):
        return self.scope(InventoryItem.objects.order_by("name"))

    def perform_create(self, serializer):
        serializer.save(tenant_id=self.tenant_id)


@extend_schema_view(
    list=extend_schema(
        tags=["inventory"],
        parameters=[
            TENANT_PARAMETER,
            OpenApiParameter(name="below_reorder_point", type=bool, required=False),
        ],
    ),
    retrieve=extend_schema(tags=["inventory"], parameters=[TENANT_PARAMETER]),
)
class SiteInventoryViewSet(TenantScopedMixin, viewsets.ReadOnlyModelViewSet):
    serializer_class = SiteInventorySerializer
    permission_classes = [IsAuthenticated]
    tenant_field = "item__tenant_id"
    filterset_fields = ["site_id", "item"]

    def get_queryset(self):
        qs = (
            self.scope(SiteInventory.objects.all())
            .select_related("item")
            .order_by("site_id", "item__name")
        )
        if (self.request.query_params.get("below_reorder_point") or "").lower() in ("1", "true", "yes"):
            below = [row.pk for row in qs if row.is_below_reorder_point]
            qs = qs.filter(pk__in=below)
        return qs


@extend_schema_view(
    list=extend_schema(tags=["inventory"], parameters=[TENANT_PARAMETER]),
    retrieve=extend_schema(tags=["inventory"], parameters=[TENANT_PARAMETER]),
)
class InventoryMovementViewSet(TenantScopedMixin, viewsets.ReadOnlyModelViewSet):
    serializer_class = InventoryMovementSerializer
    permission_classes = [IsAuthenticated]
    tenant_field = "item__tenant_id"
    filterset_fields = ["item", "site_id", "movement_type", "source_type", "source_id"]

    def get_queryset(self):
        return (
            self.scope(InventoryMovement.objects.all())
            .select_related("item")
            .order_by("-created_at", "-id")
        )
