# dr_core/resources/apps.py
from django.apps import AppConfig


class ResourcesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "dr_core.resources"

    def ready(self):
        from dr_core.resources import signals  # noqa: F401
        from dr_core.resources.registry import registry

        registry.autodiscover()
