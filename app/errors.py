"""Domain exceptions raised by the bookkeeping services.

Each exception carries an HTTP status code so the API layer can map it to a
response without knowing about individual error types.
"""
from typing import Any, Dict, Optional


class LoftError(Exception):
    """Base exception for all bookkeeping errors."""

    status_code = 500

    def __init__(self, message: str, detail: Optional[Dict[str, Any]] = None):
        self.message = message
        self.detail = detail or {}
        super().__init__(message)


class ValidationError(LoftError):
    """Raised when period, currency or date input is malformed."""

    status_code = 400

    def __init__(self, field: str, value: Any, reason: Optional[str] = None):
        self.field = field
        self.value = value
        msg = f"Invalid {field}: {value!r}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg, {"field": field, "value": value})


class NotFoundError(LoftError):
    """Raised when a requested record doesn't exist for the user."""

    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found", {"entity": entity, "id": entity_id})


class ReferentialIntegrityError(LoftError):
    """Raised when a sale references a missing or foreign product."""

    status_code = 404

    def __init__(self, entity: str, entity_id: Any, reason: str = "missing or owned by another user"):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity} {entity_id} is {reason}",
            {"entity": entity, "id": entity_id},
        )


class InvalidState(LoftError):
    """Raised when a write would leave a record in an impossible state."""

    status_code = 409

    def __init__(self, entity: str, field: str, value: Any, reason: Optional[str] = None):
        self.entity = entity
        self.field = field
        self.value = value
        msg = f"Invalid {entity}.{field}: {value!r}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg, {"entity": entity, "field": field, "value": value})


class InvalidTransition(InvalidState):
    """Raised when a sale status change is not allowed by the state machine."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__("Sale", "status", target, f"cannot move from {current} to {target}")


class SubscriptionLimitError(LoftError):
    """Raised when a free-tier user hits the product cap."""

    status_code = 403

    def __init__(self, current_count: int, limit: int):
        self.current_count = current_count
        self.limit = limit
        super().__init__(
            f"Free tier limited to {limit} products. Upgrade to Pro for unlimited inventory.",
            {"upgradeRequired": True, "currentCount": current_count, "limit": limit},
        )


class UpgradeRequired(LoftError):
    """Raised when a free-tier user calls a Pro-only feature."""

    status_code = 403

    def __init__(self, feature: str):
        self.feature = feature
        super().__init__(f"{feature} requires Pro subscription", {"upgradeRequired": True, "feature": feature})


class InsufficientInventoryError(LoftError):
    """Raised when a sale requests more units than the product has."""

    status_code = 400

    def __init__(self, available: int, requested: int):
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient inventory. Available: {available}, Requested: {requested}",
            {"available": available, "requested": requested},
        )


class DataUnavailable(LoftError):
    """Raised when an underlying store query fails."""

    status_code = 503

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        super().__init__(f"Data unavailable while computing {operation}", {"operation": operation})
