# events/api/views.py

"""
======================================================
PATH: events/api/views.py
======================================================
FARM EVENTS API

GET    /api/events/                      list (filter: site_id, event_type, status, posting_status)
POST   /api/events/                      record ("post": true posts right away)
GET    /api/events/<id>/
PATCH  /api/events/<id>/                 edit while UNPOSTED (totals recomputed)
POST   /api/events/<id>/post/
POST   /api/events/<id>/reprocess/       retry a PARTIAL_FAILURE (finished steps skipped)
POST   /api/events/<id>/void/
POST   /api/events/<id>/cancel/          unposted events only
POST   /api/events/reprocess-failed/     retry every PARTIAL_FAILURE of the tenant

A posting that fails after a committed step answers 200 with
partial=true; the event then shows PARTIAL_FAILURE and last_error.
"""

import logging

from django.db import transaction
from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from backend.tenancy import TENANT_PARAMETER, TenantScopedMixin
from events.api.serializers import (
    EventCreateSerializer,
    EventSerializer,
    EventUpdateSerializer,
    PostingResultSerializer,
    ReprocessSummarySerializer,
)
from events.models import Event
from events.services.event_service import cancel_event, create_event, update_event
from events.services.posting_service import (
    post_event,
    reprocess_event,
    reprocess_failed_events,
    void_event,
)

logger = logging.getLogger(__name__)


@extend_schema_view(
    list=extend_schema(tags=["events"], parameters=[TENANT_PARAMETER]),
    retrieve=extend_schema(tags=["events"], parameters=[TENANT_PARAMETER]),
)
class EventViewSet(
    TenantScopedMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = EventSerializer
    permission_classes = [IsAuthenticated]
    filterset_fields = ["site_id", "event_type", "status", "posting_status", "event_date", "group_id"]
    http_method_names = ["get", "post", "patch", "head", "options"]

    def get_queryset(self):
        return self.scope(Event.objects.all()).order_by("-event_date", "-created_at")

    def _result(self, event_id, result: dict) -> Response:
        body = dict(result)
        body["event"] = EventSerializer(Event.objects.get(pk=event_id)).data
        return Response(body, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["events"],
        parameters=[TENANT_PARAMETER],
        request=EventCreateSerializer,
        responses={201: EventSerializer},
    )
    def create(self, request, *args, **kwargs):
        s = EventCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = dict(s.validated_data)
        post_now = data.pop("post", False)

        with transaction.atomic():
            event = create_event(tenant_id=self.tenant_id, **data)
            if post_now:
                post_event(event_id=event.pk)
                event.refresh_from_db()

        return Response(EventSerializer(event).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        tags=["events"],
        parameters=[TENANT_PARAMETER],
        request=EventUpdateSerializer,
        responses={200: EventSerializer},
    )
    def partial_update(self, request, pk=None, *args, **kwargs):
        event = self.get_object()
        s = EventUpdateSerializer(data=request.data, partial=True)
        s.is_valid(raise_exception=True)
        event = update_event(event_id=event.pk, **s.validated_data)
        return Response(EventSerializer(event).data)

    @extend_schema(tags=["events"], parameters=[TENANT_PARAMETER], request=None, responses={200: PostingResultSerializer})
    @action(detail=True, methods=["post"], url_path="post")
    def post_to_books(self, request, pk=None):
        event = self.get_object()
        return self._result(event.pk, post_event(event_id=event.pk))

    @extend_schema(tags=["events"], parameters=[TENANT_PARAMETER], request=None, responses={200: PostingResultSerializer})
    @action(detail=True, methods=["post"])
    def reprocess(self, request, pk=None):
        event = self.get_object()
        return self._result(event.pk, reprocess_event(event_id=event.pk))

    @extend_schema(tags=["events"], parameters=[TENANT_PARAMETER], request=None, responses={200: EventSerializer})
    @action(detail=True, methods=["post"])
    def void(self, request, pk=None):
        event = self.get_object()
        void_event(event_id=event.pk)
        event.refresh_from_db()
        return Response(EventSerializer(event).data)

    @extend_schema(tags=["events"], parameters=[TENANT_PARAMETER], request=None, responses={200: EventSerializer})
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        event = self.get_object()
        return Response(EventSerializer(cancel_event(event_id=event.pk)).data)

    @extend_schema(tags=["events"], parameters=[TENANT_PARAMETER], request=None, responses={200: ReprocessSummarySerializer})
    @action(detail=False, methods=["post"], url_path="reprocess-failed")
    def reprocess_failed(self, request):
        summary = reprocess_failed_events(tenant_id=self.tenant_id)
        logger.info("Failed events reprocessed", extra={"tenant_id": self.tenant_id, "found": summary["found"]})
        return Response(summary)
