from django.apps import AppConfig


class GridshareConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "gridshare"
    verbose_name = "GridShare energy trading"
