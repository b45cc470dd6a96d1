"""
PATH: accounting/api/views/reports.py

READ-ONLY LEDGER REPORTS

GET /api/accounting/trial-balance/?as_of=YYYY-MM-DD
GET /api/accounting/ar-aging/?as_of=YYYY-MM-DD
GET /api/accounting/income-statement/?start=YYYY-MM-DD&end=YYYY-MM-DD
GET /api/accounting/balance-sheet/?as_of=YYYY-MM-DD
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounting.services.aging_service import get_ar_aging
from accounting.services.balance_service import get_balance_sheet, get_income_statement, get_trial_balance
from backend.tenancy import AS_OF_PARAMETER, TENANT_PARAMETER, query_date, tenant_from_request


@extend_schema(tags=["accounting"], parameters=[TENANT_PARAMETER, AS_OF_PARAMETER], responses={200: dict})
class TrialBalanceView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        data = get_trial_balance(tenant_id=tenant_from_request(request), as_of=query_date(request))
        return Response(data, status=status.HTTP_200_OK)


@extend_schema(tags=["accounting"], parameters=[TENANT_PARAMETER, AS_OF_PARAMETER], responses={200: dict})
class ARAgingView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        data = get_ar_aging(tenant_id=tenant_from_request(request), as_of=query_date(request))
        return Response(data, status=status.HTTP_200_OK)


PERIOD_PARAMETERS = [
    OpenApiParameter(name="start", type=str, location=OpenApiParameter.QUERY, required=False, description="First day (YYYY-MM-DD)"),
    OpenApiParameter(name="end", type=str, location=OpenApiParameter.QUERY, required=False, description="Last day (YYYY-MM-DD)"),
]


@extend_schema(tags=["accounting"], parameters=[TENANT_PARAMETER, *PERIOD_PARAMETERS], responses={200: dict})
class IncomeStatementView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        start, end = query_date(request, "start"), query_date(request, "end")
        if start and end and start > end:
            raise ValidationError({"start": "start cannot be after end"})
        data = get_income_statement(tenant_id=tenant_from_request(request), start=start, end=end)
        return Response(data, status=status.HTTP_200_OK)


@extend_schema(tags=["accounting"], parameters=[TENANT_PARAMETER, AS_OF_PARAMETER], responses={200: dict})
class BalanceSheetView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        data = get_balance_sheet(tenant_id=tenant_from_request(request), as_of=query_date(request))
        return Response(data, status=status.HTTP_200_OK)
