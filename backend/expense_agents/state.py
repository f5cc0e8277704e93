from typing import Any, Dict, List, Optional
from pydantic import Field, model_validator
from enum import Enum
from datetime import datetime, timezone
import uuid

from .errors import InvalidTransitionError
from .schemas import (
    ApprovalRules,
    CamelModel,
    ExpenseReport,
    Notification,
    PaymentDetails,
    PolicyViolation,
    ReportStatus,
)


class WorkflowStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    POLICY_CHECK_PENDING = "policy_check_pending"
    POLICY_CHECK_COMPLETED = "policy_check_completed"
    MANAGER_APPROVAL_PENDING = "manager_approval_pending"
    MANAGER_APPROVED = "manager_approved"
    FINANCE_APPROVAL_PENDING = "finance_approval_pending"
    FINANCE_APPROVED = "finance_approved"
    ADMIN_APPROVAL_PENDING = "admin_approval_pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"
    REQUIRES_ADDITIONAL_INFO = "requires_additional_info"
    POLICY_VIOLATION_DETECTED = "policy_violation_detected"


class WorkflowEvent(str, Enum):
    POLICY_PASSED = "policy_passed"
    POLICY_VIOLATED = "policy_violated"
    ESCALATE_TO_FINANCE = "escalate_to_finance"
    ESCALATE_TO_ADMIN = "escalate_to_admin"
    FINAL_APPROVE = "final_approve"
    REJECT = "reject"
    REQUEST_INFO = "request_info"
    PAY = "pay"


# States in which an approver may approve, reject or ask for information.
REVIEWABLE_STATES = frozenset({
    WorkflowStatus.POLICY_CHECK_COMPLETED,
    WorkflowStatus.POLICY_VIOLATION_DETECTED,
    WorkflowStatus.REQUIRES_ADDITIONAL_INFO,
    WorkflowStatus.MANAGER_APPROVAL_PENDING,
    WorkflowStatus.FINANCE_APPROVAL_PENDING,
    WorkflowStatus.ADMIN_APPROVAL_PENDING,
})

# States from which the policy check may be (re)run.
VALIDATABLE_STATES = frozenset({
    WorkflowStatus.SUBMITTED,
    WorkflowStatus.POLICY_CHECK_PENDING,
    WorkflowStatus.POLICY_CHECK_COMPLETED,
    WorkflowStatus.POLICY_VIOLATION_DETECTED,
    WorkflowStatus.REQUIRES_ADDITIONAL_INFO,
})

TERMINAL_STATES = frozenset({WorkflowStatus.REJECTED, WorkflowStatus.PAID})


def _build_transition_table() -> Dict[tuple, WorkflowStatus]:
    table: Dict[tuple, WorkflowStatus] = {
        (WorkflowStatus.APPROVED, WorkflowEvent.PAY): WorkflowStatus.PAID,
    }
    for state in VALIDATABLE_STATES:
        table[(state, WorkflowEvent.POLICY_PASSED)] = WorkflowStatus.POLICY_CHECK_COMPLETED
        table[(state, WorkflowEvent.POLICY_VIOLATED)] = WorkflowStatus.POLICY_VIOLATION_DETECTED
    for state in REVIEWABLE_STATES:
        table[(state, WorkflowEvent.FINAL_APPROVE)] = WorkflowStatus.APPROVED
        table[(state, WorkflowEvent.REJECT)] = WorkflowStatus.REJECTED
        table[(state, WorkflowEvent.REQUEST_INFO)] = WorkflowStatus.REQUIRES_ADDITIONAL_INFO
        table[(state, WorkflowEvent.ESCALATE_TO_FINANCE)] = WorkflowStatus.FINANCE_APPROVAL_PENDING
        table[(state, WorkflowEvent.ESCALATE_TO_ADMIN)] = WorkflowStatus.ADMIN_APPROVAL_PENDING
    return table


TRANSITIONS = _build_transition_table()

REPORT_STATUS_BY_WORKFLOW_STATUS = {
    WorkflowStatus.DRAFT: ReportStatus.DRAFT,
    WorkflowStatus.SUBMITTED: ReportStatus.SUBMITTED,
    WorkflowStatus.POLICY_CHECK_PENDING: ReportStatus.SUBMITTED,
    WorkflowStatus.POLICY_CHECK_COMPLETED: ReportStatus.SUBMITTED,
    WorkflowStatus.POLICY_VIOLATION_DETECTED: ReportStatus.SUBMITTED,
    WorkflowStatus.MANAGER_APPROVAL_PENDING: ReportStatus.PENDING_MANAGER_APPROVAL,
    WorkflowStatus.MANAGER_APPROVED: ReportStatus.PENDING_FINANCE_APPROVAL,
    WorkflowStatus.FINANCE_APPROVAL_PENDING: ReportStatus.PENDING_FINANCE_APPROVAL,
    WorkflowStatus.FINANCE_APPROVED: ReportStatus.PENDING_ADMIN_APPROVAL,
    WorkflowStatus.ADMIN_APPROVAL_PENDING: ReportStatus.PENDING_ADMIN_APPROVAL,
    WorkflowStatus.APPROVED: ReportStatus.APPROVED,
    WorkflowStatus.REJECTED: ReportStatus.REJECTED,
    WorkflowStatus.PAID: ReportStatus.PAID,
    WorkflowStatus.REQUIRES_ADDITIONAL_INFO: ReportStatus.REQUIRES_ADDITIONAL_INFO,
}


def next_status(current: WorkflowStatus, event: WorkflowEvent) -> WorkflowStatus:
    try:
        return TRANSITIONS[(current, event)]
    except KeyError:
        raise InvalidTransitionError(
            f"Cannot apply '{event.value}' to an expense report in status '{current.value}'",
            current_status=current.value,
            event=event.value,
        ) from None


def report_status_for(status: WorkflowStatus) -> ReportStatus:
    return REPORT_STATUS_BY_WORKFLOW_STATUS[status]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExpenseWorkflow(CamelModel):
    """Mutable envelope tracking one expense report through the approval pipeline.

    ``status`` is authoritative; ``expense_report.status`` is always derived from
    it and only :meth:`advance` changes either of them.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    report_id: str
    status: WorkflowStatus = WorkflowStatus.SUBMITTED
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    expense_report: ExpenseReport
    policy_violations: Optional[List[PolicyViolation]] = None
    payment_details: Optional[PaymentDetails] = None
    approval_rules: Optional[ApprovalRules] = None
    estimated_approval_time: Optional[str] = None
    notifications: List[Notification] = Field(default_factory=list)

    @model_validator(mode="after")
    def sync_report_status(self):
        self.expense_report.status = report_status_for(self.status)
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    def advance(self, event: WorkflowEvent, now: Optional[datetime] = None) -> WorkflowStatus:
        new_status = next_status(self.status, event)
        self.status = new_status
        self.expense_report.status = report_status_for(new_status)
        self.touch(now)
        return new_status

    def touch(self, now: Optional[datetime] = None) -> None:
        self.updated_at = now or _utcnow()

    def summary(self) -> Dict[str, Any]:
        report = self.expense_report
        return {
            "report_id": self.report_id,
            "workflow_id": self.id,
            "title": report.title,
            "employee_name": report.employee_info.name,
            "department": report.employee_info.department,
            "total_amount": report.total_amount,
            "status": self.status.value,
            "submission_date": report.submission_date,
            "updated_at": self.updated_at,
        }
