from django.apps import AppConfig


class TrialsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.trials"
    label = "trials"
    verbose_name = "Trials"
