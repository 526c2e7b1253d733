from django.apps import AppConfig


class MinesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "mines"
    verbose_name = "Mines (provably fair)"
