# core/errors.py

from enum import Enum
from typing import Any, Dict, Optional

from fastapi import HTTPException


# -----------------------------------------------------
# Error kinds shared by the engine, the adapters and the HTTP layer
# -----------------------------------------------------
class ErrorCode(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    APPROVAL_ALREADY_PROCESSED = "APPROVAL_ALREADY_PROCESSED"
    ROOM_AT_CAPACITY = "ROOM_AT_CAPACITY"
    WORKFLOW_STEP_FAILED = "WORKFLOW_STEP_FAILED"
    CONTEXT_NOT_FOUND = "CONTEXT_NOT_FOUND"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"

    def __str__(self):
        return str(self.value)


class ServiceError(Exception):
    """
    Base class for every failure the core reports to its callers.

    Carries a machine-readable ``code`` so the UI can tell a concurrent
    decision ("already processed") apart from a real fault.
    """

    code: ErrorCode = ErrorCode.UNKNOWN_ERROR
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": str(self.code),
            "message": self.message,
            "details": self.details,
        }

    def __repr__(self):
        return f"{type(self).__name__}({self.code}: {self.message})"


class NotFoundError(ServiceError):
    code = ErrorCode.NOT_FOUND
    status_code = 404


class ValidationError(ServiceError):
    code = ErrorCode.VALIDATION_ERROR
    status_code = 400


class ApprovalAlreadyProcessedError(ServiceError):
    code = ErrorCode.APPROVAL_ALREADY_PROCESSED
    status_code = 409


class RoomAtCapacityError(ServiceError):
    code = ErrorCode.ROOM_AT_CAPACITY
    status_code = 409


class WorkflowStepFailedError(ServiceError):
    code = ErrorCode.WORKFLOW_STEP_FAILED
    status_code = 500

    def __init__(self, message: str, step: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.step = step
        if step:
            self.details.setdefault("step", step)


class ContextNotFoundError(ServiceError):
    code = ErrorCode.CONTEXT_NOT_FOUND
    status_code = 403


class UnknownServiceError(ServiceError):
    code = ErrorCode.UNKNOWN_ERROR
    status_code = 500


def extract_supabase_error(error: Exception) -> str:
    """
    Safely extract readable details from Supabase Python client errors.
    Handles:
      • PostgREST errors
      • GoTrue (Auth) errors
      • Generic Python exceptions
    """

    # Case 1: Supabase Auth / GoTrue / PostgREST APIError
    message = getattr(error, "message", None)
    if message:
        return str(message)

    # Case 2: Supabase errors with args (common)
    if getattr(error, "args", None):
        return str(error.args[0])

    # Case 3: Plain string fallback
    return str(error) or "Unknown Supabase error"


def store_error(error: Exception, operation: str) -> UnknownServiceError:
    """
    Wrap a raw store exception as UnknownServiceError.
    Returns (doesn't raise) so the caller decides where to raise it from.
    """
    from core.logging_config import logger

    detail = extract_supabase_error(error)
    logger.error(f"{operation}: {detail}")
    return UnknownServiceError(f"{operation} failed", {"error": detail})


def to_http_exception(error: ServiceError) -> HTTPException:
    """
    Convert a ServiceError into an HTTPException carrying the error kind,
    so callers can show "already decided by someone else" instead of a
    generic failure.
    """
    return HTTPException(status_code=error.status_code, detail=error.to_dict())
