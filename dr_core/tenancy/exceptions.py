# dr_core/tenancy/exceptions.py
from __future__ import annotations

from rest_framework import status
from rest_framework.exceptions import APIException, PermissionDenied

MISSING_TENANT_MSG = "An organization context is required. Send the X-Organization-Id header."
TENANT_ACCESS_DENIED_MSG = "You do not have access to the selected organization."
MEMBERSHIP_INACTIVE_MSG = "Your membership in the selected organization is inactive."


class NoTenantContext(APIException):
    """
    Raised when an operation needs a tenant but none is active.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = MISSING_TENANT_MSG
    default_code = "organization_required"
    error_code = "organization_required"


class TenantMismatch(PermissionDenied):
    """
    The principal is not allowed to act inside the requested tenant.
    """
    default_detail = TENANT_ACCESS_DENIED_MSG
    default_code = "organization_access_denied"
    error_code = "organization_access_denied"


class MembershipInactive(TenantMismatch):
    default_detail = MEMBERSHIP_INACTIVE_MSG
    default_code = "membership_inactive"
    error_code = "membership_inactive"
