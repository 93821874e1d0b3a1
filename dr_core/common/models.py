# dr_core/common/models.py
from __future__ import annotations

import uuid
from django.db import models

from dr_core.tenancy.context import tenant_context
from dr_core.tenancy.scope import TenantScopedManager


class TimeStampedModel(models.Model):
    """
    Standard timestamps for all entities.
    """
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class TenantOwnedModel(TimeStampedModel):
    """
    Enforces tenant isolation at the data layer.

    ``objects`` only ever returns rows of the active tenant; ``all_tenants`` is
    the explicit escape hatch. ``tenant_id`` is stamped from the active context
    on first save and never rewritten afterwards.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant_id = models.UUIDField(db_index=True, editable=False)

    objects = TenantScopedManager()
    all_tenants = models.Manager()

    class Meta:
        abstract = True
        default_manager_name = "objects"

    def save(self, *args, **kwargs):
        if self.tenant_id is None and tenant_context.is_active():
            self.tenant_id = tenant_context.tenant_id()
        super().save(*args, **kwargs)

    @classmethod
    def without_tenant_scope(cls):
        return cls.all_tenants.all()

    @classmethod
    def for_tenant(cls, tenant_id):
        return cls.all_tenants.filter(tenant_id=tenant_id)
