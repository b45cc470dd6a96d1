# events/api/urls.py

from django.urls import include, path
from rest_framework.routers import SimpleRouter

from events.api.views import EventViewSet

# Mounted at /api/events/, so the viewset takes the empty prefix
router = SimpleRouter()
router.register(r"", EventViewSet, basename="events")

urlpatterns = [
    path("", include(router.urls)),
]
