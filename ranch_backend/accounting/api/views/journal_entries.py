# accounting/api/views/journal_entries.py

"""
PATH: accounting/api/views/journal_entries.py

JOURNAL ENTRIES API

GET  /api/accounting/journal-entries/            list (filter: status, source_type)
POST /api/accounting/journal-entries/            create DRAFT ("post": true to post at once)
POST /api/accounting/journal-entries/<id>/post/
POST /api/accounting/journal-entries/<id>/reverse/

Unbalanced / inactive account -> 400, wrong status / already reversed -> 409
(see backend.exceptions).
"""

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.generics import GenericAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from accounting.api.serializers.journal_entries import (
    JournalEntryCreateSerializer,
    JournalEntryReverseSerializer,
    JournalEntrySerializer,
)
from accounting.models.journal import JournalEntry
from accounting.services.journal_entry_service import (
    create_journal_entry,
    post_journal_entry,
    record_journal_entry,
    reverse_journal_entry,
)
from backend.tenancy import TENANT_PARAMETER, TenantScopedMixin


def _entries():
    return JournalEntry.objects.prefetch_related("lines", "lines__account")


class JournalEntryListCreateView(TenantScopedMixin, GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = JournalEntrySerializer
    tenant_field = "chart__tenant_id"
    filterset_fields = ["status", "source_type", "entry_date"]

    def get_queryset(self):
        return self.scope(_entries()).order_by("-entry_date", "-id")

    @extend_schema(tags=["accounting"], parameters=[TENANT_PARAMETER], responses=JournalEntrySerializer(many=True))
    def get(self, request, *args, **kwargs):
        page = self.paginate_queryset(self.filter_queryset(self.get_queryset()))
        return self.get_paginated_response(JournalEntrySerializer(page, many=True).data)

    @extend_schema(
        tags=["accounting"],
        parameters=[TENANT_PARAMETER],
        request=JournalEntryCreateSerializer,
        responses={201: JournalEntrySerializer},
    )
    def post(self, request, *args, **kwargs):
        s = JournalEntryCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = dict(s.validated_data)
        post_now = data.pop("post", False)

        writer = record_journal_entry if post_now else create_journal_entry
        entry = writer(
            tenant_id=self.tenant_id,
            memo=data["memo"],
            lines=[dict(line) for line in data["lines"]],
            entry_date=data.get("entry_date"),
            reference=data.get("reference"),
        )
        return Response(JournalEntrySerializer(_entries().get(pk=entry.pk)).data, status=status.HTTP_201_CREATED)


class JournalEntryPostView(TenantScopedMixin, GenericAPIView):
    permission_classes = [IsAuthenticated]
    tenant_field = "chart__tenant_id"

    @extend_schema(tags=["accounting"], parameters=[TENANT_PARAMETER], request=None, responses={200: JournalEntrySerializer})
    def post(self, request, pk, *args, **kwargs):
        entry = self.get_scoped_object(JournalEntry.objects.all(), pk)
        post_journal_entry(entry_id=entry.pk)
        return Response(JournalEntrySerializer(_entries().get(pk=entry.pk)).data, status=status.HTTP_200_OK)


class JournalEntryReverseView(TenantScopedMixin, GenericAPIView):
    permission_classes = [IsAuthenticated]
    tenant_field = "chart__tenant_id"

    @extend_schema(
        tags=["accounting"],
        parameters=[TENANT_PARAMETER],
        request=JournalEntryReverseSerializer,
        responses={201: JournalEntrySerializer},
    )
    def post(self, request, pk, *args, **kwargs):
        entry = self.get_scoped_object(JournalEntry.objects.all(), pk)
        s = JournalEntryReverseSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        reversal = reverse_journal_entry(
            entry_id=entry.pk,
            reversal_date=s.validated_data.get("reversal_date"),
            memo=s.validated_data.get("memo") or None,
        )
        return Response(JournalEntrySerializer(_entries().get(pk=reversal.pk)).data, status=status.HTTP_201_CREATED)
