# dr_core/tenants/signals.py
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from dr_core.tenants.models import TenantMembership


@receiver(post_save, sender=TenantMembership)
@receiver(post_delete, sender=TenantMembership)
def membership_changed(sender, instance: TenantMembership, **kwargs):
    # cached metadata is per user; a membership change may alter what they can see
    from dr_core.cache.metadata import metadata_cache

    metadata_cache.invalidate_user(instance.user_id)
    metadata_cache.invalidate_tenant(instance.tenant_id)
