# dr_core/catalog/admin.py
from django.contrib import admin

from dr_core.catalog.models import Category, Tag, Widget


class TenantOwnedAdmin(admin.ModelAdmin):
    readonly_fields = ("id", "tenant_id", "created_at", "updated_at")

    def get_queryset(self, request):
        # admin is a cross-tenant tool
        return self.model.all_tenants.all()


@admin.register(Category)
class CategoryAdmin(TenantOwnedAdmin):
    list_display = ("name", "code", "tenant_id", "created_at")
    search_fields = ("name", "code")


@admin.register(Tag)
class TagAdmin(TenantOwnedAdmin):
    list_display = ("name", "tenant_id")
    search_fields = ("name",)


@admin.register(Widget)
class WidgetAdmin(TenantOwnedAdmin):
    list_display = ("name", "status", "active", "price", "quantity", "tenant_id", "created_at")
    list_filter = ("status", "active")
    search_fields = ("name",)
    raw_id_fields = ("category",)
