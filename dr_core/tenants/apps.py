from django.apps import AppConfig


class TenantsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "dr_core.tenants"

    def ready(self):
        from dr_core.tenants import signals  # noqa: F401
