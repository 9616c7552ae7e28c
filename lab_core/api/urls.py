# lab_core/api/urls.py
from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter

from lab_core.audit.api.views import AuditEventViewSet
from lab_core.pricing.api.views import CatalogExamViewSet, PriceResolveView
from lab_core.references.api.views import ReferenceViewSet
from lab_core.tariffs.api.views import TariffViewSet

router = DefaultRouter()

# Public catalog
router.register(r"catalog/exams", CatalogExamViewSet, basename="catalog-exams")

# Admin
router.register(r"tariffs", TariffViewSet, basename="tariffs")
router.register(r"references", ReferenceViewSet, basename="references")
router.register(r"audit/events", AuditEventViewSet, basename="audit-events")

urlpatterns = [
    path("catalog/prices/resolve/", PriceResolveView.as_view(), name="catalog-prices-resolve"),

    # Router URLs last (so explicit paths win if ever overlapping)
    *router.urls,
]
