"""
Exceptions raised by the page cache and its collaborators.
"""

from typing import Any, Dict, Optional

from shared.errors import ExternalServiceError


class StoreError(ExternalServiceError):
    """Transport, auth or serialization failure talking to the durable tier."""

    def __init__(self, message: str = "Durable store error", details: Optional[Dict[str, Any]] = None):
        super().__init__("durable_store", message, details)


class RenderError(ExternalServiceError):
    """Failure in the rendering collaborator for a single request."""

    def __init__(self, message: str = "Rendering failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("renderer", message, details)
