# dr_core/tenants/models.py
import uuid
from django.conf import settings
from django.db import models


class TenantStatus(models.TextChoices):
    ACTIVE = "ACTIVE", "Active"
    INACTIVE = "INACTIVE", "Inactive"
    SUSPENDED = "SUSPENDED", "Suspended"
    DELETED = "DELETED", "Deleted"


class Tenant(models.Model):
    """
    Top-level organization.
    Root of all scoping in the system.
    NOT a TenantOwnedModel (it *is* the tenant).
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=255)
    code = models.SlugField(max_length=64, unique=True)  # stable identifier (subdomain-friendly)

    status = models.CharField(
        max_length=16,
        choices=TenantStatus.choices,
        default=TenantStatus.ACTIVE,
        db_index=True,
    )

    # flexible, avoids schema churn (feature flags, onboarding, internal notes, etc.)
    metadata = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "tenants_tenant"
        indexes = [
            models.Index(fields=["status"], name="tenant_status_idx"),
            models.Index(fields=["created_at"], name="tenant_created_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.code})"


class TenantMembership(models.Model):
    """
    User <-> Tenant link. The only thing tenant context checks before it
    lets a user act inside a tenant.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="memberships")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="tenant_memberships")

    # informational; permissions live outside this project
    role = models.CharField(max_length=64, blank=True, default="")
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "tenants_membership"
        constraints = [
            models.UniqueConstraint(fields=["tenant", "user"], name="uq_membership_tenant_user"),
        ]
        indexes = [
            models.Index(fields=["user", "is_active"], name="membership_user_active_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.user_id}@{self.tenant_id}"
