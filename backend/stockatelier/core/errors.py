"""
Typed errors raised by the stock and work services.

Every error carries a stable machine-readable ``code``, the HTTP status the
transport maps it to, a human-readable ``message`` and optional structured
``detail``. All of them are raised before the first write of the unit of work
they belong to, so callers never observe a partial effect.

    StockAtelierError
    +-- ValidationError                 400
    +-- InvalidBusinessRuleError        400
    +-- InvalidAssigneesError           400
    +-- UnauthenticatedError            401
    +-- ForbiddenError                  403
    +-- NotFoundError                   404
    +-- DuplicateMaterialError          409
    +-- InsufficientStockError          409
    +-- ConflictStateError              409
        +-- EquipmentArchivedError
        +-- TaskArchivedError
        +-- TaskOrEquipmentArchivedError
        +-- NoChangesError
        +-- AgentInactiveError
        +-- LastActiveAdminError
"""

from __future__ import annotations

from typing import Any
from uuid import UUID


class StockAtelierError(Exception):
    code = "ERROR"
    status_code = 500
    default_message = "unexpected error"

    def __init__(self, message: str | None = None, **detail: Any) -> None:
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        for k, v in self.detail.items():
            body[k] = str(v) if isinstance(v, UUID) else v
        return body


class ValidationError(StockAtelierError):
    code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "invalid payload"


class InvalidBusinessRuleError(StockAtelierError):
    code = "INVALID_BUSINESS_RULE"
    status_code = 400
    default_message = "business rule violated"


class InvalidAssigneesError(StockAtelierError):
    code = "INVALID_ASSIGNEES"
    status_code = 400
    default_message = "some assignees are unknown or inactive"


class UnauthenticatedError(StockAtelierError):
    code = "UNAUTHENTICATED"
    status_code = 401
    default_message = "authentication required"


class ForbiddenError(StockAtelierError):
    code = "FORBIDDEN"
    status_code = 403
    default_message = "not allowed"


class NotFoundError(StockAtelierError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "resource not found"


class DuplicateMaterialError(StockAtelierError):
    code = "DUPLICATE_MATERIAL"
    status_code = 409
    default_message = "this material already exists"

    def __init__(self, existing_material_id: UUID, existing_material_name: str, message: str | None = None) -> None:
        super().__init__(
            message,
            existing_material_id=existing_material_id,
            existing_material_name=existing_material_name,
        )
        self.existing_material_id = existing_material_id
        self.existing_material_name = existing_material_name


class InsufficientStockError(StockAtelierError):
    code = "INSUFFICIENT_STOCK"
    status_code = 409
    default_message = "insufficient stock for this withdrawal"

    def __init__(self, material_id: UUID, available: int, requested: int, message: str | None = None) -> None:
        super().__init__(message, material_id=material_id, available=available, requested=requested)
        self.material_id = material_id
        self.available = available
        self.requested = requested


class ConflictStateError(StockAtelierError):
    code = "CONFLICT"
    status_code = 409
    default_message = "conflicting state"


class EquipmentArchivedError(ConflictStateError):
    code = "EQUIPMENT_ARCHIVED"
    default_message = "cannot add a task to an archived equipment"


class TaskArchivedError(ConflictStateError):
    code = "TASK_ARCHIVED"
    default_message = "task is archived, unarchive it before editing"


class TaskOrEquipmentArchivedError(ConflictStateError):
    code = "TASK_OR_EQUIPMENT_ARCHIVED"
    default_message = "cannot change the status of an archived task"


class NoChangesError(ConflictStateError):
    code = "NO_CHANGES"
    default_message = "no changes detected"


class AgentInactiveError(ConflictStateError):
    code = "AGENT_INACTIVE"
    default_message = "this agent is deactivated"


class LastActiveAdminError(ConflictStateError):
    code = "LAST_ACTIVE_ADMIN"
    default_message = "cannot deactivate the last active admin"
