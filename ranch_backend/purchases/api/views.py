# purchases/api/views.py

"""
======================================================
PATH: purchases/api/views.py
======================================================
PURCHASE-TO-PAY API

vendors/                               CRUD (no delete; deactivate)
requisitions/                          list / create
requisitions/<id>/submit|approve|reject|convert/
purchase-orders/                       list / create
purchase-orders/<id>/send|acknowledge|cancel|close/
receipts/                              list / create ("post": true posts at once)
receipts/<id>/post/
receipts/reprocess-failed/
bills/                                 list / create (manual or PO-linked)
bills/<id>/match|submit|approve|void/
payments/                              list / create
ap-aging/?as_of=YYYY-MM-DD
reorder-check/                         POST {"site_id", "create"?}

Status errors answer 409, validation errors 400 (backend.exceptions).
"""

import logging

from django.db import transaction
from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounting.services.aging_service import get_ap_aging
from backend.tenancy import (
    AS_OF_PARAMETER,
    TENANT_PARAMETER,
    TenantScopedMixin,
    query_date,
    tenant_from_request,
)
from purchases.api.serializers import (
    BillCreateSerializer,
    BillSerializer,
    MatchResultSerializer,
    PaymentCreateSerializer,
    PaymentSerializer,
    PurchaseOrderCreateSerializer,
    PurchaseOrderSerializer,
    ReceiptCreateSerializer,
    ReceiptSerializer,
    ReorderCheckSerializer,
    ReorderSuggestionSerializer,
    RequisitionConvertSerializer,
    RequisitionCreateSerializer,
    RequisitionRejectSerializer,
    RequisitionSerializer,
    VendorSerializer,
)
from purchases.models import Bill, Payment, PurchaseOrder, Receipt, Requisition, Vendor
from purchases.services import bill_service, order_service, receiving_service, requisition_service
from purchases.services.payment_service import create_payment
from purchases.services.reorder_service import check_reorder_points

logger = logging.getLogger(__name__)

TENANT_ONLY = extend_schema(tags=["purchases"], parameters=[TENANT_PARAMETER])


class PurchasesViewSet(TenantScopedMixin, mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """Read side shared by every purchasing document; writes go through services."""

    permission_classes = [IsAuthenticated]
    http_method_names = ["get", "post", "head", "options"]
    queryset_base = None

    def get_queryset(self):
        return self.scope(self.queryset_base.all())

    def _respond(self, obj, code=status.HTTP_200_OK) -> Response:
        obj = self.get_queryset().get(pk=obj.pk)
        return Response(self.get_serializer(obj).data, status=code)


# -----------------------------------------
# VENDORS
# -----------------------------------------
@extend_schema_view(
    list=TENANT_ONLY, retrieve=TENANT_ONLY, create=TENANT_ONLY, update=TENANT_ONLY, partial_update=TENANT_ONLY
)
class VendorViewSet(
    TenantScopedMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.UpdateModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = VendorSerializer
    permission_classes = [IsAuthenticated]
    filterset_fields = ["is_active"]

    def get_queryset(self):
        return self.scope(Vendor.objects.order_by("name"))

    def perform_create(self, serializer):
        serializer.save(tenant_id=self.tenant_id)


# -----------------------------------------
# REQUISITIONS
# -----------------------------------------
@extend_schema_view(list=TENANT_ONLY, retrieve=TENANT_ONLY)
class RequisitionViewSet(PurchasesViewSet):
    serializer_class = RequisitionSerializer
    queryset_base = Requisition.objects.prefetch_related("lines", "lines__item").order_by("-created_at")
    filterset_fields = ["status", "site_id", "source"]

    @extend_schema(tags=["purchases"], parameters=[TENANT_PARAMETER], request=RequisitionCreateSerializer, responses={201: RequisitionSerializer})
    def create(self, request, *args, **kwargs):
        s = RequisitionCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data
        req = requisition_service.create_requisition(
            tenant_id=self.tenant_id,
            site_id=data["site_id"],
            requested_by=data.get("requested_by", ""),
            notes=data.get("notes", ""),
            lines=[dict(line) for line in data["lines"]],
        )
        return self._respond(req, status.HTTP_201_CREATED)

    @extend_schema(tags=["purchases"], parameters=[TENANT_PARAMETER], request=None, responses={200: RequisitionSerializer})
    @action(detail=True, methods=["post"])
    def submit(self, request, pk=None):
        return self._respond(requisition_service.submit_requisition(requisition_id=self.get_object().pk))

    @extend_schema(tags=["purchases"], parameters=[TENANT_PARAMETER], request=None, responses={200: RequisitionSerializer})
    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        return self._respond(requisition_service.approve_requisition(requisition_id=self.get_object().pk))

    @extend_schema(tags=["purchases"], parameters=[TENANT_PARAMETER], request=RequisitionRejectSerializer, responses={200: RequisitionSerializer})
    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        req = self.get_object()
        s = RequisitionRejectSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        return self._respond(
            requisition_service.reject_requisition(requisition_id=req.pk, reason=s.validated_data["reason"])
        )

    @extend_schema(tags=["purchases"], parameters=[TENANT_PARAMETER], request=RequisitionConvertSerializer, responses={201: PurchaseOrderSerializer})
    @action(detail=True, methods=["post"])
    def convert(self, request, pk=None):
        req = self.get_object()
        s = RequisitionConvertSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        po = requisition_service.convert_to_po(
            requisition_id=req.pk,
            vendor_id=s.validated_data["vendor_id"],
            expected_date=s.validated_data.get("expected_date"),
        )
        return Response(PurchaseOrderSerializer(po).data, status=status.HTTP_201_CREATED)


# -----------------------------------------
# PURCHASE ORDERS
# -----------------------------------------
@extend_schema_view(list=TENANT_ONLY, retrieve=TENANT_ONLY)
class PurchaseOrderViewSet(PurchasesViewSet):
    serializer_class = PurchaseOrderSerializer
    queryset_base = (
        PurchaseOrder.objects.select_related("vendor").prefetch_related("lines", "lines__item").order_by("-created_at")
    )
    filterset_fields = ["status", "site_id", "vendor"]

    @extend_schema(tags=["purchases"], parameters=[TENANT_PARAMETER], request=PurchaseOrderCreateSerializer, responses={201: PurchaseOrderSerializer})
    def create(self, request, *args, **kwargs):
        s = PurchaseOrderCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data
        po = order_service.create_purchase_order(
            tenant_id=self.tenant_id,
            site_id=data["site_id"],
            vendor_id=data["vendor_id"],
            order_date=data.get("order_date"),
            expected_date=data.get("expected_date"),
            notes=data.get("notes", ""),
            lines=[dict(line) for line in data["lines"]],
        )
        return self._respond(po, status.HTTP_201_CREATED)

    @extend_schema(tags=["purchases"], parameters=[TENANT_PARAMETER], request=None, responses={200: PurchaseOrderSerializer})
    @action(detail=True, methods=["post"])
    def send(self, request, pk=None):
        return self._respond(order_service.send_purchase_order(purchase_order_id=self.get_object().pk))

    @extend_schema(tags=["purchases"], parameters=[TENANT_PARAMETER], request=None, responses={200: PurchaseOrderSerializer})
    @action(detail=True, methods=["post"])
    def acknowledge(self, request, pk=None):
        return self._respond(order_service.acknowledge_purchase_order(purchase_order_id=self.get_object().pk))

    @extend_schema(tags=["purchases"], parameters=[TENANT_PARAMETER], request=None, responses={200: PurchaseOrderSerializer})
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        return self._respond(order_service.cancel_purchase_order(purchase_order_id=self.get_object().pk))

    @extend_schema(tags=["purchases"], parameters=[TENANT_PARAMETER], request=None, responses={200: PurchaseOrderSerializer})
    @action(detail=True, methods=["post"])
    def close(self, request, pk=None):
        return self._respond(order_service.close_purchase_order(purchase_order_id=self.get_object().pk))


# -----------------------------------------
# RECEIPTS
# -----------------------------------------
@extend_schema_view(list=TENANT_ONLY, retrieve=TENANT_ONLY)
class ReceiptViewSet(PurchasesViewSet):
    serializer_class = ReceiptSerializer
    queryset_base = (
        Receipt.objects.select_related("purchase_order")
        .prefetch_related("lines", "lines__po_line", "lines__po_line__item")
        .order_by("-created_at")
    )
    filterset_fields = ["status", "site_id", "purchase_order"]

    @extend_schema(tags=["purchases"], parameters=[TENANT_PARAMETER], request=ReceiptCreateSerializer, responses={201: ReceiptSerializer})
    def create(self, request, *args, **kwargs):
        s = ReceiptCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        # PO must belong to the caller's tenant
        po = self.get_scoped_object(PurchaseOrder.objects.all(), data["purchase_order_id"])

        with transaction.atomic():
            receipt = receiving_service.create_receipt(
                purchase_order_id=po.pk,
                receipt_date=data.get("receipt_date"),
                site_id=data.get("site_id") or None,
                lines=[dict(line) for line in data["lines"]],
            )
            if data.get("post"):
                receiving_service.post_receipt(receipt_id=receipt.pk)
        return self._respond(receipt, status.HTTP_201_CREATED)

    @extend_schema(tags=["purchases"], parameters=[TENANT_PARAMETER], request=None, responses={200: ReceiptSerializer})
    @action(detail=True, methods=["post"], url_path="post")
    def post_receipt(self, request, pk=None):
        receipt = self.get_object()
        receiving_service.post_receipt(receipt_id=receipt.pk)
        return self._respond(receipt)

    @extend_schema(tags=["purchases"], parameters=[TENANT_PARAMETER], request=None, responses={200: dict})
    @action(detail=False, methods=["post"], url_path="reprocess-failed")
    def reprocess_failed(self, request):
        summary = receiving_service.reprocess_failed_receipts(tenant_id=self.tenant_id)
        logger.info("Failed receipts reprocessed", extra={"tenant_id": self.tenant_id, "found": summary["found"]})
        return Response(summary)


# -----------------------------------------
# BILLS
# -----------------------------------------
@extend_schema_view(list=TENANT_ONLY, retrieve=TENANT_ONLY)
class BillViewSet(PurchasesViewSet):
    serializer_class = BillSerializer
    queryset_base = (
        Bill.objects.select_related("vendor")
        .prefetch_related("lines", "lines__po_line", "lines__account")
        .order_by("-bill_date", "-created_at")
    )
    filterset_fields = ["status", "match_status", "vendor", "purchase_order"]

    @extend_schema(tags=["purchases"], parameters=[TENANT_PARAMETER], request=BillCreateSerializer, responses={201: BillSerializer})
    def create(self, request, *args, **kwargs):
        s = BillCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data
        bill = bill_service.create_bill(
            tenant_id=self.tenant_id,
            vendor_id=data["vendor_id"],
            vendor_invoice_number=data.get("vendor_invoice_number", ""),
            purchase_order_id=data.get("purchase_order_id"),
            receipt_id=data.get("receipt_id"),
            bill_date=data.get("bill_date"),
            due_date=data.get("due_date"),
            lines=[dict(line) for line in data.get("lines") or []] or None,
        )
        return self._respond(bill, status.HTTP_201_CREATED)

    @extend_schema(tags=["purchases"], parameters=[TENANT_PARAMETER], request=None, responses={200: MatchResultSerializer})
    @action(detail=True, methods=["post"])
    def match(self, request, pk=None):
        outcome = bill_service.match_bill(bill_id=self.get_object().pk)
        return Response(MatchResultSerializer(outcome).data)

    @extend_schema(tags=["purchases"], parameters=[TENANT_PARAMETER], request=None, responses={200: BillSerializer})
    @action(detail=True, methods=["post"])
    def submit(self, request, pk=None):
        return self._respond(bill_service.submit_bill(bill_id=self.get_object().pk))

    @extend_schema(tags=["purchases"], parameters=[TENANT_PARAMETER], request=None, responses={200: BillSerializer})
    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        return self._respond(bill_service.approve_bill(bill_id=self.get_object().pk))

    @extend_schema(tags=["purchases"], parameters=[TENANT_PARAMETER], request=None, responses={200: BillSerializer})
    @action(detail=True, methods=["post"])
    def void(self, request, pk=None):
        return self._respond(bill_service.void_bill(bill_id=self.get_object().pk))


# -----------------------------------------
# PAYMENTS
# -----------------------------------------
@extend_schema_view(list=TENANT_ONLY, retrieve=TENANT_ONLY)
class PaymentViewSet(PurchasesViewSet):
    serializer_class = PaymentSerializer
    queryset_base = Payment.objects.select_related("bill").order_by("-payment_date", "-created_at")
    filterset_fields = ["bill", "method"]

    @extend_schema(tags=["purchases"], parameters=[TENANT_PARAMETER], request=PaymentCreateSerializer, responses={201: PaymentSerializer})
    def create(self, request, *args, **kwargs):
        s = PaymentCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        bill = self.get_scoped_object(Bill.objects.all(), data["bill_id"])
        payment = create_payment(
            bill_id=bill.pk,
            amount=data["amount"],
            method=data["method"],
            payment_date=data.get("payment_date"),
            reference=data.get("reference", ""),
        )
        return self._respond(payment, status.HTTP_201_CREATED)


# -----------------------------------------
# REPORTS / AUTOMATION
# -----------------------------------------
@extend_schema(tags=["purchases"], parameters=[TENANT_PARAMETER, AS_OF_PARAMETER], responses={200: dict})
class APAgingView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        data = get_ap_aging(tenant_id=tenant_from_request(request), as_of=query_date(request))
        return Response(data, status=status.HTTP_200_OK)


class ReorderCheckView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=["purchases"],
        parameters=[TENANT_PARAMETER],
        request=ReorderCheckSerializer,
        responses={200: ReorderSuggestionSerializer(many=True)},
    )
    def post(self, request):
        s = ReorderCheckSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        suggestions = check_reorder_points(
            tenant_id=tenant_from_request(request),
            site_id=s.validated_data["site_id"],
            create=s.validated_data["create"],
        )
        return Response(ReorderSuggestionSerializer(suggestions, many=True).data, status=status.HTTP_200_OK)
