# accounting/api/views/invoices.py

"""
PATH: accounting/api/views/invoices.py

CUSTOMER INVOICES API

GET  /api/accounting/invoices/                 list (filter: status, customer_id)
POST /api/accounting/invoices/                 create + post Dr AR / Cr revenue
GET  /api/accounting/invoices/<id>/
POST /api/accounting/invoices/<id>/payments/   collect (over-collection -> 400)
POST /api/accounting/invoices/<id>/void/       only while nothing was collected (409)
"""

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.generics import GenericAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from accounting.api.serializers.invoices import (
    CustomerInvoiceCreateSerializer,
    CustomerInvoiceSerializer,
    InvoicePaymentCreateSerializer,
)
from accounting.models.customer_invoice import CustomerInvoice
from accounting.services.invoice_service import create_invoice, record_invoice_payment, void_invoice
from backend.tenancy import TENANT_PARAMETER, TenantScopedMixin


def _invoices():
    return CustomerInvoice.objects.prefetch_related("payments")


class InvoiceScopedView(TenantScopedMixin, GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = CustomerInvoiceSerializer
    tenant_field = "chart__tenant_id"

    def get_queryset(self):
        return self.scope(_invoices())

    def respond(self, invoice, code=status.HTTP_200_OK):
        return Response(CustomerInvoiceSerializer(_invoices().get(pk=invoice.pk)).data, status=code)


class InvoiceListCreateView(InvoiceScopedView):
    filterset_fields = ["status", "customer_id"]

    @extend_schema(tags=["accounting"], parameters=[TENANT_PARAMETER], responses=CustomerInvoiceSerializer(many=True))
    def get(self, request, *args, **kwargs):
        page = self.paginate_queryset(self.filter_queryset(self.get_queryset()))
        return self.get_paginated_response(CustomerInvoiceSerializer(page, many=True).data)

    @extend_schema(
        tags=["accounting"],
        parameters=[TENANT_PARAMETER],
        request=CustomerInvoiceCreateSerializer,
        responses={201: CustomerInvoiceSerializer},
    )
    def post(self, request, *args, **kwargs):
        s = CustomerInvoiceCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        invoice = create_invoice(tenant_id=self.tenant_id, **s.validated_data)
        return self.respond(invoice, status.HTTP_201_CREATED)


class InvoiceDetailView(InvoiceScopedView):
    @extend_schema(tags=["accounting"], parameters=[TENANT_PARAMETER], responses={200: CustomerInvoiceSerializer})
    def get(self, request, pk, *args, **kwargs):
        return self.respond(self.get_scoped_object(CustomerInvoice.objects.all(), pk))


class InvoicePaymentView(InvoiceScopedView):
    @extend_schema(
        tags=["accounting"],
        parameters=[TENANT_PARAMETER],
        request=InvoicePaymentCreateSerializer,
        responses={201: CustomerInvoiceSerializer},
    )
    def post(self, request, pk, *args, **kwargs):
        invoice = self.get_scoped_object(CustomerInvoice.objects.all(), pk)
        s = InvoicePaymentCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        record_invoice_payment(invoice_id=invoice.pk, **s.validated_data)
        return self.respond(invoice, status.HTTP_201_CREATED)


class InvoiceVoidView(InvoiceScopedView):
    @extend_schema(tags=["accounting"], parameters=[TENANT_PARAMETER], request=None, responses={200: CustomerInvoiceSerializer})
    def post(self, request, pk, *args, **kwargs):
        invoice = self.get_scoped_object(CustomerInvoice.objects.all(), pk)
        void_invoice(invoice_id=invoice.pk)
        return self.respond(invoice)
