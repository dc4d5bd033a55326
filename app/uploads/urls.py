"""
URL configuration for uploads app.

API Documentation Groups (following [App Name] - [Group Name] pattern):

Uploads - Chunked Upload:
    POST /chunked/                                - Create upload session
    GET /chunked/{token}/                         - Get session status
    DELETE /chunked/{token}/                      - Cancel session
    GET /chunked/{token}/resume/                  - Status plus missing chunks
    PUT /chunked/{token}/chunks/{num}/            - Upload chunk
"""

from django.urls import path

from uploads.views import (
    ChunkedUploadChunkView,
    ChunkedUploadInitView,
    ChunkedUploadResumeView,
    ChunkedUploadSessionView,
)

app_name = "uploads"

urlpatterns = [
    path("chunked/", ChunkedUploadInitView.as_view(), name="chunked-init"),
    path(
        "chunked/<str:token>/",
        ChunkedUploadSessionView.as_view(),
        name="chunked-session",
    ),
    path(
        "chunked/<str:token>/resume/",
        ChunkedUploadResumeView.as_view(),
        name="chunked-resume",
    ),
    path(
        "chunked/<str:token>/chunks/<int:chunk_number>/",
        ChunkedUploadChunkView.as_view(),
        name="chunked-chunk",
    ),
]
