"""
URL configuration for the chunked upload backend.

URL Structure:
    /                                        - ReDoc API documentation
    /admin/                                  - Django admin interface
    /schema/                                 - OpenAPI schema (YAML)
    /api/v1/uploads/                         - Upload endpoints
        chunked/                             - Initiate upload session (POST)
        chunked/{token}/                     - Session status (GET) / cancel (DELETE)
        chunked/{token}/resume/              - Status plus missing chunk numbers
        chunked/{token}/chunks/{number}/     - Upload one chunk (PUT, raw body)

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("uploads/", include("uploads.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]
