from enum import Enum


class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ErrorKind(str, Enum):
    not_found = "NotFound"
    forbidden = "Forbidden"
    invalid_state = "InvalidState"
    duplicate_assignment = "DuplicateAssignment"
    duplicate_evaluation = "DuplicateEvaluation"
    capacity_exceeded = "CapacityExceeded"
    ineligible_supervisor = "IneligibleSupervisor"
    invalid_input = "InvalidInput"
    # Only ever reported inside batch manifests.
    no_eligible_supervisor = "NoEligibleSupervisor"


class WorkflowError(AppError):
    """A structured failure of an engine operation.

    Raised inside the services and converted to a failed ``OperationResult``
    at the engine boundary.
    """
    kind: ErrorKind = ErrorKind.invalid_state
    default_status_code: int = 400

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=self.default_status_code, details=details)


class NotFoundError(WorkflowError):
    kind = ErrorKind.not_found
    default_status_code = 404

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with id {resource_id} not found",
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class ForbiddenError(WorkflowError):
    kind = ErrorKind.forbidden
    default_status_code = 403


class InvalidStateError(WorkflowError):
    kind = ErrorKind.invalid_state
    default_status_code = 409


class DuplicateAssignmentError(WorkflowError):
    kind = ErrorKind.duplicate_assignment
    default_status_code = 409


class DuplicateEvaluationError(WorkflowError):
    kind = ErrorKind.duplicate_evaluation
    default_status_code = 409


class CapacityExceededError(WorkflowError):
    kind = ErrorKind.capacity_exceeded
    default_status_code = 409


class IneligibleSupervisorError(WorkflowError):
    kind = ErrorKind.ineligible_supervisor
    default_status_code = 422


class InvalidInputError(WorkflowError):
    kind = ErrorKind.invalid_input
    default_status_code = 422

