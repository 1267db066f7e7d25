"""
CampusNet URL Configuration
"""
from django.contrib import admin
from django.urls import path, include
from django.http import JsonResponse


def api_root(request):
    """Root endpoint with API information."""
    return JsonResponse({
        'message': 'CampusNet API Server',
        'version': '1.0',
        'endpoints': {
            'feed': '/api/feed/',
            'posts': '/api/posts/<id>/',
            'reactions': '/api/reactions/',
            'users': '/api/users/<id>/',
            'communities': '/api/communities/<id>/',
            'polls': '/api/polls/<id>/',
        },
        'admin': '/admin/',
    })


urlpatterns = [
    path('', api_root, name='api-root'),
    path('admin/', admin.site.urls),
    path('api/', include('social.urls')),
]
