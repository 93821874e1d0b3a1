# dr_core/common/apps.py
from django.apps import AppConfig


class CommonConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "dr_core.common"

    def ready(self):
        from dr_core.common.logging import setup_logging

        setup_logging()
