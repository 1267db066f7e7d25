"""
WSGI config for campusnet project.
"""
import os
from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'campusnet.settings')
application = get_wsgi_application()
