# accounting/api/views/accounts.py

"""
PATH: accounting/api/views/accounts.py

CHART ACCOUNTS API

GET  /api/accounting/accounts/                 list (filter: account_type, subtype, is_active)
POST /api/accounting/accounts/                 create
GET  /api/accounting/accounts/<id>/balance/    balance (?as_of=YYYY-MM-DD)

Every request is scoped to the tenant in X-Tenant-ID.
"""

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.generics import GenericAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from accounting.api.serializers.accounts import AccountCreateSerializer, AccountSerializer
from accounting.models.account import Account
from accounting.services.balance_service import get_account_balance
from accounting.services.journal_entry_service import create_account
from backend.tenancy import AS_OF_PARAMETER, TENANT_PARAMETER, TenantScopedMixin, query_date


class AccountListCreateView(TenantScopedMixin, GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = AccountSerializer
    tenant_field = "chart__tenant_id"
    filterset_fields = ["account_type", "subtype", "is_active"]

    def get_queryset(self):
        return self.scope(Account.objects.all()).order_by("code")

    @extend_schema(tags=["accounting"], parameters=[TENANT_PARAMETER], responses=AccountSerializer(many=True))
    def get(self, request, *args, **kwargs):
        qs = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(qs)
        return self.get_paginated_response(AccountSerializer(page, many=True).data)

    @extend_schema(
        tags=["accounting"],
        parameters=[TENANT_PARAMETER],
        request=AccountCreateSerializer,
        responses={201: AccountSerializer},
    )
    def post(self, request, *args, **kwargs):
        s = AccountCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        account = create_account(tenant_id=self.tenant_id, **s.validated_data)
        return Response(AccountSerializer(account).data, status=status.HTTP_201_CREATED)


class AccountBalanceView(TenantScopedMixin, GenericAPIView):
    permission_classes = [IsAuthenticated]
    tenant_field = "chart__tenant_id"

    @extend_schema(tags=["accounting"], parameters=[TENANT_PARAMETER, AS_OF_PARAMETER], responses={200: dict})
    def get(self, request, pk, *args, **kwargs):
        account = self.get_scoped_object(Account.objects.all(), pk)
        as_of = query_date(request)
        return Response(
            {
                "account_id": account.pk,
                "code": account.code,
                "name": account.name,
                "normal_balance": account.normal_balance,
                "as_of": as_of.isoformat() if as_of else None,
                "balance": get_account_balance(account, as_of=as_of),
            },
            status=status.HTTP_200_OK,
        )
