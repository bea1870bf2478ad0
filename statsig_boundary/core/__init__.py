"""
Core primitives shared across the statsig_boundary package.
"""

from .diagnostics import ERROR_BOUNDARY, Diagnostics, DiagnosticsMarker, Marker, diagnostics
from .error_boundary import EXCEPTION_ENDPOINT, BoundaryPolicy, ErrorBoundary
from .exceptions import (
    USAGE_ERRORS,
    StatsigError,
    StatsigInvalidArgumentError,
    StatsigUninitializedError,
)
from .identity import StatsigIdentity
from .logging import init_logger

__all__ = [
    "ERROR_BOUNDARY",
    "EXCEPTION_ENDPOINT",
    "BoundaryPolicy",
    "Diagnostics",
    "DiagnosticsMarker",
    "ErrorBoundary",
    "Marker",
    "StatsigError",
    "StatsigIdentity",
    "StatsigInvalidArgumentError",
    "StatsigUninitializedError",
    "USAGE_ERRORS",
    "diagnostics",
    "init_logger",
]
