# lab_core/catalog/admin.py
from __future__ import annotations

from django.contrib import admin

from lab_core.catalog.models import Exam


@admin.register(Exam)
class ExamAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "category", "is_public_visible", "legacy_price", "updated_at")
    list_filter = ("is_public_visible", "category")
    search_fields = ("name", "category")
    ordering = ("category", "name")
    readonly_fields = ("created_at", "updated_at")
