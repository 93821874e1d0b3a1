# dr_core/resources/signals.py
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from dr_core.cache.metadata import metadata_cache
from dr_core.resources.registry import registry


@receiver(post_save)
@receiver(post_delete)
def resource_changed(sender, instance=None, **kwargs):
    slug = registry.slug_for(sender)
    if slug:
        metadata_cache.invalidate_resource(slug)
