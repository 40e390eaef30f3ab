"""
Domain errors for Frame Tracker.

Each error carries a machine-readable code and an HTTP status so the API
layer can render it without knowing the concrete type.
"""

from typing import Any, Dict, Optional


class FrameTrackerError(Exception):
    """Base class for all domain errors."""

    code = "FRAME_TRACKER_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(FrameTrackerError):
    """Raised when a referenced order, customer or material does not exist."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity_kind: str, entity_id: str):
        self.entity_kind = entity_kind
        self.entity_id = entity_id
        super().__init__(
            f"{entity_kind} '{entity_id}' not found",
            {"entity_kind": entity_kind, "entity_id": entity_id},
        )


class ValidationError(FrameTrackerError):
    """Raised for malformed values such as an unknown status."""

    code = "VALIDATION_ERROR"
    status_code = 422


class ConflictError(FrameTrackerError):
    """Raised for duplicates and, in strict mode, illegal transitions."""

    code = "CONFLICT"
    status_code = 409


class IntegrationError(FrameTrackerError):
    """Raised when the store cannot complete a write."""

    code = "INTEGRATION_ERROR"
    status_code = 503
