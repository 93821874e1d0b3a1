# dr_core/tenancy/resolution.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

import structlog
from django.conf import settings
from rest_framework.exceptions import ValidationError

from dr_core.tenancy.context import TenantState, tenant_context
from dr_core.tenancy.exceptions import MembershipInactive, NoTenantContext, TenantMismatch

logger = structlog.get_logger(__name__)

INVALID_TENANT_MSG = "Invalid organization header. Must be a UUID."

# Accepted even when TENANT_HEADER is customised.
FALLBACK_META_KEYS = ("HTTP_X_TENANT_ID",)


def _meta_key(header: str) -> str:
    return "HTTP_" + header.upper().replace("-", "_")


def _header_value(request) -> Optional[str]:
    header = getattr(settings, "TENANT_HEADER", "X-Organization-Id")
    for key in (_meta_key(header), *FALLBACK_META_KEYS):
        value = request.META.get(key)
        if value:
            return value.strip()
    return None


def _parse_uuid(value: str) -> Optional[UUID]:
    try:
        return UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None


def resolve_tenant_context(request) -> TenantState:
    """
    Populate the tenant context for an authenticated API request.

      - superuser without header      -> global override
      - header missing                -> NoTenantContext (400)
      - header not a UUID             -> ValidationError (400)
      - unknown / inactive tenant     -> TenantMismatch (403)
      - membership exists but inactive-> MembershipInactive (403)
      - not a member                  -> TenantMismatch (403)
    """
    user = getattr(request, "user", None)
    raw = _header_value(request)

    if not raw:
        if user is not None and getattr(user, "is_superuser", False):
            tenant_context.set_global_override(user)
            return tenant_context.snapshot()
        raise NoTenantContext()

    tenant_id = _parse_uuid(raw)
    if tenant_id is None:
        raise ValidationError({"detail": INVALID_TENANT_MSG, "header": raw})

    from dr_core.tenants.selectors import get_tenant_or_none
    from dr_core.tenants.services import membership

    tenant = get_tenant_or_none(tenant_id=tenant_id)
    if tenant is None:
        raise TenantMismatch()

    if membership.has_inactive_membership(user_id=user.pk, tenant_id=tenant.pk):
        raise MembershipInactive()

    tenant_context.set_tenant(tenant, user)
    structlog.contextvars.bind_contextvars(tenant_id=str(tenant.pk))
    return tenant_context.snapshot()


class TenantContextMixin:
    """
    DRF view mixin: resolves the tenant context right after authentication
    and permission checks, before the handler runs; puts the previous state
    back once the response is finalized.
    """

    def initial(self, request, *args, **kwargs):
        self._previous_tenant_state = tenant_context.snapshot()
        super().initial(request, *args, **kwargs)
        resolve_tenant_context(request)

    def finalize_response(self, request, response, *args, **kwargs):
        previous = getattr(self, "_previous_tenant_state", None)
        if previous is not None:
            tenant_context.restore(previous)
        return super().finalize_response(request, response, *args, **kwargs)
