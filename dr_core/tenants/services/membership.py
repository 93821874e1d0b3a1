# dr_core/tenants/services/membership.py
from __future__ import annotations

from uuid import UUID

from dr_core.tenants.models import TenantMembership


def is_user_member_of_tenant(*, user_id, tenant_id: UUID) -> bool:
    """
    Validate user -> tenant membership.
    This is the single source of truth used by the tenant context.
    """
    if user_id is None:
        return False
    return TenantMembership.objects.filter(
        is_active=True,
        tenant_id=tenant_id,
        user_id=user_id,
    ).exists()


def has_inactive_membership(*, user_id, tenant_id: UUID) -> bool:
    if user_id is None:
        return False
    return TenantMembership.objects.filter(
        is_active=False,
        tenant_id=tenant_id,
        user_id=user_id,
    ).exists()
