from __future__ import annotations


class AppError(RuntimeError):
    """Base application-level error."""


class RequisitionValidationError(AppError):
    """Requisition failed one or more step validators."""

    def __init__(self, messages: list[str]) -> None:
        self.messages = list(messages)
        super().__init__("\n".join(self.messages))


class AuthenticationError(AppError):
    """No signed-in user for an operation that needs one."""


class NotFoundError(AppError):
    """Requested requisition does not exist."""


class PersistenceError(AppError):
    """Document store failed and retries, if any, are exhausted."""


class RenderError(AppError):
    """Requisition document could not be produced."""
