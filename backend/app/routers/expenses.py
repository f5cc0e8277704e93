"""
Expense Workflow API Endpoints

REST surface over the expense-approval workflow: submission, policy
validation, approval routing, payment, status lookup and listing.
Every error response is rendered as {"error": <message>}.
"""

import logging
from typing import Any, Dict, NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from expense_agents.errors import ExpenseWorkflowError, safe_error_message
from expense_agents.schemas import ApprovalDecisionRequest, PaymentRequest
from expense_agents.workflow import ExpenseWorkflowService

from app.dependencies import get_workflow_service

router = APIRouter(prefix="/api/expenses", tags=["expenses"])
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _raise_http_error(error: Exception, operation: str, report_id: Optional[str] = None) -> NoReturn:
    if isinstance(error, ExpenseWorkflowError) and error.status_code < 500:
        logger.info(f"{operation} failed for report {report_id}: {error.message}")
        raise HTTPException(status_code=error.status_code, detail=error.message) from error

    logger.error(f"Unexpected error during {operation} (report {report_id}): {error}", exc_info=True)
    raise HTTPException(status_code=500, detail=safe_error_message(error)) from error


# ---------------------------------------------------------------------------
# Employee Endpoints
# ---------------------------------------------------------------------------

@router.post("/submit")
async def submit_expense_report(
    payload: Dict[str, Any] = Body(..., description="Expense report draft"),
    service: ExpenseWorkflowService = Depends(get_workflow_service),
):
    """
    Submit a new expense report.

    The server assigns the report ID, submission date and status; the
    report total is computed from the items when omitted and must match
    them when supplied.
    """
    try:
        result = await service.submit(payload)
    except Exception as e:
        _raise_http_error(e, "submission")
    return result.to_wire()


@router.post("/{report_id}/validate")
async def validate_expense_report(
    report_id: str,
    service: ExpenseWorkflowService = Depends(get_workflow_service),
):
    """Run the policy check and record its violations on the workflow."""
    try:
        result = await service.validate(report_id)
    except Exception as e:
        _raise_http_error(e, "validation", report_id)
    return result.to_wire()


@router.get("/{report_id}/status")
async def get_expense_status(
    report_id: str,
    service: ExpenseWorkflowService = Depends(get_workflow_service),
):
    """Full workflow record with derived progress flags."""
    try:
        result = await service.get_status(report_id)
    except Exception as e:
        _raise_http_error(e, "status lookup", report_id)
    return result.to_wire()


# ---------------------------------------------------------------------------
# Approver Endpoints
# ---------------------------------------------------------------------------

@router.post("/{report_id}/approve")
async def process_approval(
    report_id: str,
    decision: ApprovalDecisionRequest,
    service: ExpenseWorkflowService = Depends(get_workflow_service),
):
    """
    Approve, reject or request more information.

    A manager approval above the manager ceiling escalates to finance, and a
    finance approval above the finance ceiling escalates to admin.
    """
    try:
        result = await service.decide(report_id, decision)
    except Exception as e:
        _raise_http_error(e, "approval", report_id)
    return result.to_wire()


# ---------------------------------------------------------------------------
# Finance Endpoints
# ---------------------------------------------------------------------------

@router.post("/{report_id}/pay")
async def process_payment(
    report_id: str,
    payment: Optional[PaymentRequest] = Body(None),
    service: ExpenseWorkflowService = Depends(get_workflow_service),
):
    """Pay an approved report. Anything not in status 'approved' is refused."""
    try:
        result = await service.pay(report_id, payment)
    except Exception as e:
        _raise_http_error(e, "payment", report_id)
    return result.to_wire()


@router.get("")
async def list_expense_reports(
    status: Optional[str] = Query(None, description="Filter by workflow status"),
    employee_id: Optional[str] = Query(None, alias="employeeId", description="Filter by employee ID"),
    service: ExpenseWorkflowService = Depends(get_workflow_service),
):
    """Summary rows for every matching workflow, in submission order."""
    try:
        result = await service.list_reports(status=status, employee_id=employee_id)
    except Exception as e:
        _raise_http_error(e, "listing")
    return result.to_wire()
