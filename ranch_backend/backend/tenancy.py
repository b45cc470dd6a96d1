# backend/tenancy.py

"""
Tenant scoping for the HTTP layer.

The tenant comes from the X-Tenant-ID header on every request; services
always receive it as an explicit tenant_id argument.
"""

from __future__ import annotations

from django.db.models import QuerySet
from django.shortcuts import get_object_or_404
from django.utils.dateparse import parse_date
from drf_spectacular.utils import OpenApiParameter
from rest_framework.exceptions import ValidationError

TENANT_HEADER = "X-Tenant-ID"

TENANT_PARAMETER = OpenApiParameter(
    name=TENANT_HEADER,
    type=str,
    location=OpenApiParameter.HEADER,
    required=True,
    description="Tenant (farm operation) identifier",
)


def tenant_from_request(request) -> str:
    tenant_id = (request.headers.get(TENANT_HEADER) or "").strip()
    if not tenant_id:
        raise ValidationError({"detail": f"{TENANT_HEADER} header is required"})
    return tenant_id


class TenantScopedMixin:
    """
    For GenericAPIView subclasses: `tenant_field` names the lookup that
    ties a row to its tenant (e.g. "tenant_id" or "chart__tenant_id").
    """

    tenant_field = "tenant_id"

    @property
    def tenant_id(self) -> str:
        return tenant_from_request(self.request)

    def scope(self, qs: QuerySet) -> QuerySet:
        return qs.filter(**{self.tenant_field: self.tenant_id})

    def get_scoped_object(self, qs: QuerySet, pk):
        return get_object_or_404(self.scope(qs), pk=pk)


def query_date(request, name: str = "as_of"):
    """Optional YYYY-MM-DD query parameter; 400 on a malformed value."""
    raw = (request.query_params.get(name) or "").strip()
    if not raw:
        return None
    try:
        value = parse_date(raw)
    except ValueError:
        value = None
    if value is None:
        raise ValidationError({name: "Use YYYY-MM-DD"})
    return value


AS_OF_PARAMETER = OpenApiParameter(
    name="as_of",
    type=str,
    location=OpenApiParameter.QUERY,
    required=False,
    description="Snapshot date (YYYY-MM-DD); defaults to today / all history.",
)
