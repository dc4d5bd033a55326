# =============================================================================
# Django Project Configuration Package
# =============================================================================
# Settings, URLs, the WSGI application and the Celery application.
#
# Import Celery app to ensure it's loaded when Django starts, so that
# shared_task functions bind to it.
# =============================================================================

from config.celery import app as celery_app

__all__ = ("celery_app",)
