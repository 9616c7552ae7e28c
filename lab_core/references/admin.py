from django.contrib import admin

from lab_core.references.models import Membership, Reference


class MembershipInline(admin.TabularInline):
    model = Membership
    extra = 0
    fields = ("user_id", "created_at")
    readonly_fields = ("created_at",)


@admin.register(Reference)
class ReferenceAdmin(admin.ModelAdmin):
    list_display = ("name", "code", "business_name", "default_tariff", "active", "updated_at")
    list_filter = ("active",)
    search_fields = ("name", "code", "business_name")
    autocomplete_fields = ("default_tariff",)
    inlines = [MembershipInline]


@admin.register(Membership)
class MembershipAdmin(admin.ModelAdmin):
    list_display = ("user_id", "reference", "created_at")
    search_fields = ("user_id", "reference__name")
    ordering = ("user_id", "created_at")
