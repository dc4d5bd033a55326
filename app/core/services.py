"""
Base service layer patterns for business logic encapsulation.

Service Layer Philosophy:
    Services encapsulate business logic separate from views and models.
    Views handle HTTP concerns, models handle data, services handle logic.

Error Handling:
    Services raise exceptions from core.exceptions (or app-specific
    subclasses). Views translate them into HTTP responses with
    ``exc.to_dict()``.

Usage:
    from core.services import BaseService

    class SessionManager(BaseService):
        def cancel(self, token, owner):
            ...
            self.get_logger().info("Upload cancelled", extra={...})
"""

from __future__ import annotations

import logging


class BaseService:
    """
    Base class for service layer classes.

    Provides a logger per service class.

    Design Notes:
        - Services hold collaborators (stores, other services), never
          per-request state
        - Raise exceptions from core.exceptions for expected failures
        - Coordination between concurrent requests goes through database
          constraints and django-fsm compare-and-swap saves, not locks
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")
