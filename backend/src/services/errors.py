"""Typed failures raised by the proposal engine.

Routes translate these into HTTP responses; see ``backend.src.app.main``.
"""

from __future__ import annotations


class ProposalError(Exception):
    status_code = 500
    error_code = "internal_server_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ProposalError):
    status_code = 404
    error_code = "not_found"


class ForbiddenError(ProposalError):
    status_code = 403
    error_code = "forbidden"


class ProposalValidationError(ProposalError):
    status_code = 400
    error_code = "validation_error"

    def __init__(self, message: str, missing_fields: list[str] | None = None):
        super().__init__(message)
        self.missing_fields = list(missing_fields or [])


class ConflictError(ProposalError):
    status_code = 409
    error_code = "conflict"


class SchemaError(ProposalError):
    """A physical table layout the compatibility shim cannot reconcile.

    The message is for logs only; clients get a generic failure.
    """

    error_code = "schema_error"
