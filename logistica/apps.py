from django.apps import AppConfig


class LogisticaConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "logistica"
    verbose_name = "Logística de semillas"
