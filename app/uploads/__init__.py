"""
Uploads app - resumable chunked uploads.

Clients open an upload session, send the file as independently arriving
chunks in any order, and the request that lands the last missing chunk
assembles the final file exactly once. Abandoned sessions and expired
temporary artifacts are reclaimed by periodic Celery tasks.

Services (import from uploads.services):
    - ChunkedUploadService: Facade over the operations below
    - SessionManager: init, status, resume, cancel
    - ChunkReceiver: accept_chunk
    - Assembler: assemble
    - ExpiringBlobSweeper: reusable expiry sweep loop

Blob stores (import from uploads.services.blob_store):
    - BlobStore: Abstract key -> bytes storage
    - StorageBlobStore: Django Storage backed (local filesystem by default)
    - S3BlobStore: boto3 backed
    - get_blob_store(): Backend selected by CHUNKED_UPLOAD_BLOB_BACKEND
"""
