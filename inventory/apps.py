"""Django app configuration for inventory."""

from django.apps import AppConfig


class InventoryConfig(AppConfig):
    """Configure default auto field and app name."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "inventory"
