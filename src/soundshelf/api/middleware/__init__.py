"""API middleware package."""

from soundshelf.api.middleware.request_context import (
    RequestContextMiddleware,
    SlowRequestMiddleware,
)

__all__ = ["RequestContextMiddleware", "SlowRequestMiddleware"]
