"""
API views for resumable chunked uploads.

Provides:
- ChunkedUploadInitView: Open an upload session
- ChunkedUploadSessionView: Get session status, or cancel the session
- ChunkedUploadResumeView: Status plus the chunks still missing
- ChunkedUploadChunkView: Upload one chunk as a raw request body

The views are thin: they parse the request, call ChunkedUploadService and
translate application errors into HTTP responses with error_response().
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)
from uploads.exceptions import (
    ChecksumMismatchError,
    ExpiredError,
    SizeMismatchError,
)
from uploads.serializers import (
    CancelResultSerializer,
    ChunkedUploadInitResultSerializer,
    ChunkedUploadInitSerializer,
    ChunkResultSerializer,
    SessionStatusSerializer,
)
from uploads.services.chunked_upload import ChunkedUploadService

# Most specific first: the integrity errors subclass ValidationError
ERROR_STATUS_CODES: list[tuple[type[BaseApplicationError], int]] = [
    (ChecksumMismatchError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (SizeMismatchError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ExpiredError, status.HTTP_410_GONE),
    (ExternalServiceError, status.HTTP_503_SERVICE_UNAVAILABLE),
]

CHUNK_HEADERS = {
    "declared_size": "X-Chunk-Size",
    "total_chunks": "X-Total-Chunks",
    "total_file_size": "X-Total-File-Size",
}

TAGS = ["Uploads - Chunked Upload"]


def error_response(error: BaseApplicationError) -> Response:
    """Render an application error with its mapped HTTP status."""
    for error_class, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_class):
            return Response(error.to_dict(), status=status_code)
    return Response(error.to_dict(), status=status.HTTP_500_INTERNAL_SERVER_ERROR)


def get_chunked_upload_service() -> ChunkedUploadService:
    """Service instance for one request, bound to the configured blob store."""
    return ChunkedUploadService()


class ChunkedUploadInitView(APIView):
    """
    Create a new chunked upload session.

    POST /api/v1/uploads/chunked/
        Initialize a new chunked upload session.

    Response:
        201 Created: Session token and chunk geometry
        400 Bad Request: Invalid file metadata
        401 Unauthorized: Not authenticated
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="create_chunked_upload_session",
        summary="Create chunked upload session",
        description=(
            "Open a resumable upload session. Returns the session token and the "
            "number of chunks to send. Sessions expire after "
            "CHUNKED_UPLOAD_SESSION_TTL_HOURS (24 hours by default)."
        ),
        request=ChunkedUploadInitSerializer,
        responses={
            201: OpenApiResponse(
                response=ChunkedUploadInitResultSerializer,
                description="Session created",
            ),
            400: OpenApiResponse(description="Invalid file metadata"),
            401: OpenApiResponse(description="Authentication required"),
        },
        tags=TAGS,
    )
    def post(self, request):
        """Create a new chunked upload session."""
        serializer = ChunkedUploadInitSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            result = get_chunked_upload_service().init(
                owner=request.user, **serializer.validated_data
            )
        except BaseApplicationError as e:
            return error_response(e)

        return Response(
            ChunkedUploadInitResultSerializer(result).data,
            status=status.HTTP_201_CREATED,
        )


class ChunkedUploadSessionView(APIView):
    """
    Get or cancel a chunked upload session.

    GET /api/v1/uploads/chunked/{token}/
        Get session status and progress.

    DELETE /api/v1/uploads/chunked/{token}/
        Cancel the upload and delete its chunks.

    Only the session owner can access or cancel; other users get 404.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_chunked_upload_session",
        summary="Get upload session status",
        description="Get the current status, progress and uploaded chunk numbers.",
        responses={
            200: OpenApiResponse(
                response=SessionStatusSerializer,
                description="Session status and progress details",
            ),
            404: OpenApiResponse(description="Session not found or not owned by user"),
        },
        tags=TAGS,
    )
    def get(self, request, token):
        """Get session status."""
        try:
            result = get_chunked_upload_service().status(token, request.user)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(SessionStatusSerializer(result).data)

    @extend_schema(
        operation_id="cancel_chunked_upload_session",
        summary="Cancel upload session",
        description=(
            "Cancel an upload that has not started assembling and delete "
            "its uploaded chunks."
        ),
        responses={
            200: OpenApiResponse(
                response=CancelResultSerializer,
                description="Session cancelled",
            ),
            404: OpenApiResponse(description="Session not found or not owned by user"),
            409: OpenApiResponse(description="Session is assembling or already finished"),
        },
        tags=TAGS,
    )
    def delete(self, request, token):
        """Cancel the upload session."""
        try:
            result = get_chunked_upload_service().cancel(token, request.user)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(CancelResultSerializer(result).data)


class ChunkedUploadResumeView(APIView):
    """
    Get the information needed to resume an interrupted upload.

    GET /api/v1/uploads/chunked/{token}/resume/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="resume_chunked_upload_session",
        summary="Resume upload session",
        description=(
            "Get session status plus missing_chunks: the chunk numbers the "
            "client still has to send, ascending."
        ),
        responses={
            200: OpenApiResponse(
                response=SessionStatusSerializer,
                description="Session status with missing chunks",
            ),
            404: OpenApiResponse(description="Session not found or not owned by user"),
        },
        tags=TAGS,
    )
    def get(self, request, token):
        try:
            result = get_chunked_upload_service().resume(token, request.user)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(SessionStatusSerializer(result).data)


class ChunkedUploadChunkView(APIView):
    """
    Upload one chunk.

    PUT /api/v1/uploads/chunked/{token}/chunks/{chunk_number}/
        Upload raw binary chunk data. Chunks may arrive in any order; the
        request that delivers the last missing chunk triggers assembly.

    Optional headers:
        X-Chunk-Checksum: Hex digest of the chunk (session's algorithm)
        X-Chunk-Size: Declared chunk length in bytes
        X-Total-Chunks: Must match the session's chunk count
        X-Total-File-Size: Must match the session's file size
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="upload_chunk",
        summary="Upload chunk",
        description=(
            "Upload raw binary chunk data. Chunk numbers start at 0. When the "
            "last chunk arrives the file is assembled and the response carries "
            "the assembly result."
        ),
        request={"application/octet-stream": {"type": "string", "format": "binary"}},
        parameters=[
            OpenApiParameter("X-Chunk-Checksum", str, OpenApiParameter.HEADER),
            OpenApiParameter("X-Chunk-Size", int, OpenApiParameter.HEADER),
            OpenApiParameter("X-Total-Chunks", int, OpenApiParameter.HEADER),
            OpenApiParameter("X-Total-File-Size", int, OpenApiParameter.HEADER),
        ],
        responses={
            200: OpenApiResponse(
                response=ChunkResultSerializer,
                description="Chunk stored with updated progress",
            ),
            400: OpenApiResponse(description="Chunk number out of range or bad headers"),
            404: OpenApiResponse(description="Session not found or not owned by user"),
            409: OpenApiResponse(description="Duplicate chunk or session not accepting chunks"),
            410: OpenApiResponse(description="Session has expired"),
            422: OpenApiResponse(description="Chunk size or checksum mismatch"),
            503: OpenApiResponse(description="Storage unavailable"),
        },
        tags=TAGS,
    )
    def put(self, request, token, chunk_number):
        """Upload a chunk."""
        # Read raw binary body
        payload = request.body

        try:
            options = self.parse_headers(request)
            result = get_chunked_upload_service().chunk(
                token,
                request.user,
                chunk_number,
                payload,
                **options,
            )
        except BaseApplicationError as e:
            return error_response(e)

        return Response(ChunkResultSerializer(result).data)

    @staticmethod
    def parse_headers(request) -> dict:
        """
        Read the optional chunk headers.

        Raises:
            ValidationError: A numeric header is not an integer
        """
        options = {"checksum": request.headers.get("X-Chunk-Checksum") or None}
        for option, header in CHUNK_HEADERS.items():
            value = request.headers.get(header)
            if value in (None, ""):
                options[option] = None
                continue
            try:
                options[option] = int(value)
            except ValueError:
                raise ValidationError(
                    f"{header} must be an integer",
                    details={"header": header, "value": value},
                ) from None
        return options
