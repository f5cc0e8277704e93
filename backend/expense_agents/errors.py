from typing import Any, Dict, List

from pydantic import ValidationError


class ExpenseWorkflowError(Exception):
    """Base class for errors raised by the expense workflow.

    Each subclass carries the HTTP status the API layer should answer with.
    """

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ExpenseValidationError(ExpenseWorkflowError):
    status_code = 400

    @classmethod
    def from_pydantic(cls, error: ValidationError) -> "ExpenseValidationError":
        return cls(format_validation_errors(error.errors()))


class ReportNotFoundError(ExpenseWorkflowError):
    status_code = 404

    def __init__(self, report_id: str):
        super().__init__("Expense report not found")
        self.report_id = report_id


class PreconditionError(ExpenseWorkflowError):
    status_code = 400


class InvalidTransitionError(PreconditionError):

    def __init__(self, message: str, current_status: str, event: str):
        super().__init__(message)
        self.current_status = current_status
        self.event = event


def format_validation_errors(errors: List[Dict[str, Any]]) -> str:
    parts = []
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "Invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid request"


def safe_error_message(error: Any) -> str:
    """Return a printable message for ``error`` without leaking tracebacks."""
    if isinstance(error, ExpenseWorkflowError):
        return error.message
    if isinstance(error, ValidationError):
        return format_validation_errors(error.errors())
    if isinstance(error, BaseException):
        message = str(error)
        return message if message else error.__class__.__name__
    if isinstance(error, str) and error:
        return error
    return "Unexpected error"
