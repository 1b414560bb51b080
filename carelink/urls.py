"""
URL configuration for the carelink backend project.

The `urlpatterns` list routes URLs to views.  This module includes
both the Django admin and the API routes provided by the careflow app.
OpenAPI documentation is exposed at ``/swagger/`` and ``/redoc/``;
Prometheus metrics at ``/metrics``.
"""
from django.contrib import admin
from django.urls import path, include

from rest_framework import permissions
from drf_yasg.views import get_schema_view
from drf_yasg import openapi

api_info = openapi.Info(
    title="Carelink API",
    default_version='v1',
    description="Appointment, prescription and pharmacy fulfilment workflow.",
)

schema_view = get_schema_view(
    api_info,
    public=True,
    permission_classes=(permissions.AllowAny,),
)

urlpatterns = [
    path('admin/', admin.site.urls),
    path('', include('careflow.routers')),
    path('', include('django_prometheus.urls')),
    path('swagger/', schema_view.with_ui('swagger', cache_timeout=0), name='schema-swagger-ui'),
    path('redoc/', schema_view.with_ui('redoc', cache_timeout=0), name='schema-redoc'),
]
