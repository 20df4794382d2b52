from django.apps import AppConfig


class InpatientConfig(AppConfig):
    name = 'inpatient'
    default_auto_field = 'django.db.models.BigAutoField'

    def ready(self):
        from inpatient import checks  # noqa: F401  registers system checks
