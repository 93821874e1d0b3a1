# dr_core/tenancy/scope.py
from __future__ import annotations

from django.db import models

from dr_core.tenancy.context import tenant_context


class TenantScopedQuerySet(models.QuerySet):
    """
    QuerySet for tenant-owned models.

    Extra helpers here are also what ``scope`` custom filters resolve against.
    """

    def for_tenant(self, tenant_id):
        return self.filter(tenant_id=tenant_id)

    def bulk_create(self, objs, *args, **kwargs):
        tenant_id = tenant_context.tenant_id() if tenant_context.is_active() else None
        if tenant_id is not None:
            for obj in objs:
                if getattr(obj, "tenant_id", None) is None:
                    obj.tenant_id = tenant_id
        return super().bulk_create(objs, *args, **kwargs)


class TenantScopedManager(models.Manager.from_queryset(TenantScopedQuerySet)):
    """
    Default manager that confines every query to the active tenant.

    - active tenant context   -> WHERE tenant_id = <active tenant>
    - global override         -> no filter
    - no context at all       -> no filter (background jobs, shell, migrations)

    Callers that must refuse to run without a tenant call
    ``tenant_context.require_tenant()`` before touching the manager.
    """

    def get_queryset(self):
        qs = super().get_queryset()
        if tenant_context.is_active():
            return qs.filter(tenant_id=tenant_context.tenant_id())
        return qs

    def without_tenant_scope(self):
        return super().get_queryset()

    def for_tenant(self, tenant_id):
        return super().get_queryset().filter(tenant_id=tenant_id)
