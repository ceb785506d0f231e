"""Middleware package for the KidGuard API."""

from kidguard.middleware.correlation import CORRELATION_ID_HEADER, CorrelationIdMiddleware
from kidguard.middleware.rate_limit import limiter, rate_limit_exceeded_handler

__all__ = [
    "CORRELATION_ID_HEADER",
    "CorrelationIdMiddleware",
    "limiter",
    "rate_limit_exceeded_handler",
]
