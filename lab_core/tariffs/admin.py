from django.contrib import admin

from lab_core.tariffs.models import PriceEntry, Tariff


@admin.register(Tariff)
class TariffAdmin(admin.ModelAdmin):
    list_display = ("name", "kind", "is_taxable", "is_enabled", "updated_at")
    list_filter = ("kind", "is_enabled", "is_taxable")
    search_fields = ("name",)
    ordering = ("kind", "name")


@admin.register(PriceEntry)
class PriceEntryAdmin(admin.ModelAdmin):
    list_display = ("tariff", "exam", "price", "updated_at")
    list_filter = ("tariff",)
    search_fields = ("tariff__name", "exam__name")
    list_select_related = ("tariff", "exam")
    readonly_fields = ("created_at", "updated_at")
