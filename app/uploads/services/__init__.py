"""
Upload services.

Subpackages:
    blob_store: Byte storage for chunks and assembled files
    chunked_upload: Session lifecycle, chunk intake and assembly
    sweeper: Expiry and reclamation sweeps run by Celery beat
"""
