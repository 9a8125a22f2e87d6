"""URL configuration for the marketing operations backend."""
from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', include('marketing_ops.urls')),
]
