from django.apps import AppConfig


class ServiceConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.service"

    def ready(self) -> None:
        from apps.core.logging import get_logger
        from apps.service.context import ServiceSettings

        get_logger(__name__).info("service_started", node_env=ServiceSettings().NODE_ENV)
