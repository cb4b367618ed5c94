"""Base adapter interface and the error hierarchy for the pipeline."""

from abc import ABC, abstractmethod
from typing import Any

import structlog

logger = structlog.get_logger()

# Upstream bodies are logged for diagnosis, but never in full
BODY_LOG_LIMIT = 500


def truncate_body(body: Any, limit: int = BODY_LOG_LIMIT) -> str:
    """Render an upstream response body for logs and error messages."""
    text = body if isinstance(body, str) else repr(body)
    if len(text) > limit:
        return text[:limit] + "..."
    return text


class BaseAdapter(ABC):
    """Abstract base class for upstream data source adapters.

    All adapters must implement:
    - connect(): Establish connection/authentication
    - disconnect(): Clean up resources
    - health_check(): Verify adapter is operational
    """

    def __init__(self, name: str) -> None:
        """Initialize adapter with a name for logging."""
        self.name = name
        self._connected = False
        self.logger = logger.bind(adapter=name)

    @property
    def is_connected(self) -> bool:
        """Check if adapter is currently connected."""
        return self._connected

    @abstractmethod
    async def connect(self) -> bool:
        """Establish connection to the data source.

        Returns:
            True if connection successful, False otherwise.
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Disconnect and clean up resources."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Verify the adapter is operational.

        Returns:
            True if adapter can communicate with data source.
        """
        pass

    async def __aenter__(self) -> "BaseAdapter":
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.disconnect()


class WhoopDashError(Exception):
    """Base exception for every pipeline failure."""

    pass


class Unauthenticated(WhoopDashError):
    """Raised when no token record and no bootstrap refresh token exist."""

    def __init__(self, message: str = "No stored credentials; run the authorization flow first") -> None:
        self.message = message
        super().__init__(message)


class ReauthorizationRequired(WhoopDashError):
    """Raised when the refresh token is rejected. Retrying will not help."""

    def __init__(self, message: str, status_code: int | None = None, body: Any = None) -> None:
        self.message = message
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class AdapterError(WhoopDashError):
    """Base exception for adapter errors."""

    def __init__(self, adapter_name: str, message: str) -> None:
        self.adapter_name = adapter_name
        self.message = message
        super().__init__(f"[{adapter_name}] {message}")


class UpstreamError(AdapterError):
    """Raised on a non-2xx response from a data endpoint."""

    def __init__(self, adapter_name: str, status_code: int, body: Any, path: str = "") -> None:
        self.status_code = status_code
        self.body = body
        self.path = path
        super().__init__(
            adapter_name, f"{path} returned {status_code}: {truncate_body(body)}"
        )


class NetworkError(AdapterError):
    """Raised when no response was received at all."""

    pass


class NormalizationError(WhoopDashError):
    """Raised when an upstream payload has an unrecognised shape."""

    pass
