from django.apps import AppConfig
from django.conf import settings


class CoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.core"

    def ready(self) -> None:
        from apps.core.logging import configure_logging

        configure_logging(json_format=settings.LOG_JSON, log_level=settings.LOG_LEVEL)
