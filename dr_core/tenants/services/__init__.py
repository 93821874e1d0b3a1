from dr_core.tenants.services.tenants import MembershipService, TenantService

__all__ = ["MembershipService", "TenantService"]
