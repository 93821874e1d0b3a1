# dr_core/tenants/services/tenants.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from django.db import transaction
from rest_framework.exceptions import ValidationError

from dr_core.tenants.models import Tenant, TenantMembership, TenantStatus


class TenantService:
    """
    All Tenant mutations live here (write-model boundary).
    """

    @staticmethod
    @transaction.atomic
    def create(
        *,
        name: str,
        code: str,
        metadata: Optional[dict] = None,
        status: str = TenantStatus.ACTIVE,
    ) -> Tenant:
        code = (code or "").strip()
        name = (name or "").strip()

        if not code:
            raise ValidationError({"code": "This field is required."})
        if not name:
            raise ValidationError({"name": "This field is required."})

        if status not in TenantStatus.values:
            raise ValidationError({"status": f"Invalid status. Allowed: {list(TenantStatus.values)}"})

        return Tenant.objects.create(
            name=name,
            code=code,
            status=status,
            metadata=metadata or {},
        )

    @staticmethod
    @transaction.atomic
    def set_status(*, tenant_id: UUID, status: str) -> Tenant:
        if status not in TenantStatus.values:
            raise ValidationError({"status": f"Invalid status. Allowed: {list(TenantStatus.values)}"})

        t = Tenant.objects.select_for_update().get(id=tenant_id)

        # idempotent no-op
        if t.status == status:
            return t

        t.status = status
        t.save(update_fields=["status", "updated_at"])

        # a suspended tenant must not keep serving cached metadata
        from dr_core.cache.metadata import metadata_cache

        transaction.on_commit(lambda: metadata_cache.invalidate_tenant(t.id))
        return t

    @staticmethod
    def suspend(*, tenant_id: UUID) -> Tenant:
        return TenantService.set_status(tenant_id=tenant_id, status=TenantStatus.SUSPENDED)


class MembershipService:
    """
    Membership mutations. Saving or deleting a membership drops the member's
    cached metadata (see dr_core.tenants.signals).
    """

    @staticmethod
    @transaction.atomic
    def add_member(*, tenant: Tenant, user, role: str = "") -> TenantMembership:
        membership, created = TenantMembership.objects.get_or_create(
            tenant=tenant,
            user=user,
            defaults={"role": role, "is_active": True},
        )
        if not created and (not membership.is_active or membership.role != role):
            membership.is_active = True
            membership.role = role
            membership.save(update_fields=["is_active", "role", "updated_at"])
        return membership

    @staticmethod
    @transaction.atomic
    def deactivate(*, tenant: Tenant, user) -> Optional[TenantMembership]:
        membership = TenantMembership.objects.filter(tenant=tenant, user=user).first()
        if membership is None or not membership.is_active:
            return membership
        membership.is_active = False
        membership.save(update_fields=["is_active", "updated_at"])
        return membership
