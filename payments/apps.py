from django.apps import AppConfig
from django.core.signals import setting_changed


def _reset_mpesa_client(setting, **kwargs):
    if setting.startswith('MPESA_'):
        from .services import get_mpesa_client
        get_mpesa_client.cache_clear()


class PaymentsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'payments'
    verbose_name = 'Payments'

    def ready(self):
        setting_changed.connect(_reset_mpesa_client, dispatch_uid='payments.reset_mpesa_client')
