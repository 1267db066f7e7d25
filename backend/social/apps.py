"""
Social App Configuration
"""
from django.apps import AppConfig


class SocialConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'social'

    def ready(self):
        # Profile creation on user signup
        import social.signals  # noqa
