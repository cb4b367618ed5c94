"""Upstream data source adapters and pipeline errors.

Import WhoopAdapter from whoopdash.adapters.whoop (it depends on whoopdash.auth).
"""

from whoopdash.adapters.base import (
    AdapterError,
    BaseAdapter,
    NetworkError,
    NormalizationError,
    ReauthorizationRequired,
    Unauthenticated,
    UpstreamError,
    WhoopDashError,
)

__all__ = [
    # Base
    "BaseAdapter",
    # Errors
    "WhoopDashError",
    "AdapterError",
    "Unauthenticated",
    "ReauthorizationRequired",
    "UpstreamError",
    "NetworkError",
    "NormalizationError",
]
