"""API middleware components."""

from media_archive.api.middleware.correlation import CorrelationMiddleware

__all__ = ["CorrelationMiddleware"]
