from django.apps import AppConfig


class MarketingOpsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'marketing_ops'
    verbose_name = 'Marketing Operations'
