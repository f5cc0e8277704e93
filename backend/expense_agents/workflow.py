"""
Expense Workflow Service

Runs the expense-approval pipeline: submit -> validate -> approve / reject /
request info (escalating manager -> finance -> admin) -> pay. Every step loads
one workflow record from the store, mutates it through the state machine and
commits it atomically; a step that fails leaves the record untouched.
"""

from typing import Any, Callable, Dict, Optional, Type, TypeVar, Union
from datetime import datetime, timezone
import logging
import uuid

from pydantic import BaseModel, ValidationError

from .approval_system import ApprovalRouter
from .errors import ExpenseValidationError
from .query import WorkflowQueryService
from .schemas import (
    ApprovalDecisionRequest,
    ApprovalResponse,
    ApprovalRules,
    ExpenseReport,
    ExpenseReportDraft,
    Notification,
    NotificationType,
    PaymentRequest,
    PaymentResponse,
    ReportListing,
    SubmissionResult,
    ValidationResponse,
    WorkflowStatusView,
)
from .state import ExpenseWorkflow, WorkflowEvent, WorkflowStatus
from .state_manager import InMemoryWorkflowStore, WorkflowStore
from .tools import ExpenseReportValidator, PaymentSettler

TModel = TypeVar("TModel", bound=BaseModel)

SUBMISSION_NEXT_STEPS = [
    "Policy validation check",
    "Receipt processing",
    "Compliance verification",
    "Approval routing",
]


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_payload(model: Type[TModel], payload: Union[TModel, Dict[str, Any], None]) -> TModel:
    """Validate ``payload`` against ``model``, raising ExpenseValidationError."""
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload or {})
    except ValidationError as e:
        raise ExpenseValidationError.from_pydantic(e) from e


class ExpenseWorkflowService:

    def __init__(self,
                 store: Optional[WorkflowStore] = None,
                 rules: Optional[ApprovalRules] = None,
                 validator: Optional[ExpenseReportValidator] = None,
                 router: Optional[ApprovalRouter] = None,
                 settler: Optional[PaymentSettler] = None,
                 id_factory: Optional[Callable[[], str]] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.store = store or InMemoryWorkflowStore()
        self.rules = rules or ApprovalRules()
        self.validator = validator or ExpenseReportValidator(self.rules)
        self.router = router or ApprovalRouter(self.rules)
        self.settler = settler or PaymentSettler()
        self.queries = WorkflowQueryService(self.store)
        self.id_factory = id_factory or _new_id
        self.clock = clock or _utcnow

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    async def submit(self, payload: Union[ExpenseReportDraft, Dict[str, Any]]) -> SubmissionResult:
        draft = parse_payload(ExpenseReportDraft, payload)
        now = self.clock()
        report_id = self.id_factory()

        report = ExpenseReport.model_validate({
            **draft.model_dump(mode="json"),
            "id": report_id,
            "submission_date": now,
        })
        workflow = ExpenseWorkflow(
            id=self.id_factory(),
            report_id=report_id,
            status=WorkflowStatus.SUBMITTED,
            created_at=now,
            updated_at=now,
            expense_report=report,
            approval_rules=self.rules.model_copy(deep=True),
        )
        self._notify(workflow, NotificationType.STATUS_UPDATE, now)
        await self.store.put(workflow)

        self.logger.info(
            f"Submitted report {report_id} ({report.total_amount:.2f} {report.expenses[0].currency}) "
            f"for employee {report.employee_id}"
        )
        return SubmissionResult(
            report_id=report_id,
            workflow_id=workflow.id,
            status=workflow.status.value,
            message="Expense report submitted successfully",
            next_steps=list(SUBMISSION_NEXT_STEPS),
        )

    async def validate(self, report_id: str) -> ValidationResponse:
        now = self.clock()

        def apply(workflow: ExpenseWorkflow):
            result = self.validator.validate(workflow.expense_report)
            workflow.advance(
                WorkflowEvent.POLICY_PASSED if result.passed else WorkflowEvent.POLICY_VIOLATED,
                now,
            )
            workflow.policy_violations = list(result.violations)
            workflow.estimated_approval_time = result.estimated_processing_time
            if not result.passed:
                self._notify(workflow, NotificationType.VIOLATION_ALERT, now)
            return result

        result = await self.store.update(report_id, apply)
        return ValidationResponse(**result.model_dump(), report_id=report_id, timestamp=now)

    async def decide(self, report_id: str,
                     payload: Union[ApprovalDecisionRequest, Dict[str, Any]]) -> ApprovalResponse:
        request = parse_payload(ApprovalDecisionRequest, payload)
        now = self.clock()

        def apply(workflow: ExpenseWorkflow):
            decision = self.router.route(workflow, request, now)
            self._notify(workflow, NotificationType.STATUS_UPDATE, now)
            if decision.requires_additional_approval:
                self._notify(workflow, NotificationType.APPROVAL_REQUEST, now)
            return decision

        decision = await self.store.update(report_id, apply)
        return ApprovalResponse(**decision.model_dump(), report_id=report_id)

    async def pay(self, report_id: str,
                  payload: Union[PaymentRequest, Dict[str, Any], None] = None) -> PaymentResponse:
        request = parse_payload(PaymentRequest, payload)
        now = self.clock()

        def apply(workflow: ExpenseWorkflow):
            result = self.settler.settle(workflow, now, payment_method=request.payment_method)
            self._notify(workflow, NotificationType.PAYMENT_NOTIFICATION, now)
            return result

        result = await self.store.update(report_id, apply)
        return PaymentResponse(**result.model_dump(), report_id=report_id)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def get_status(self, report_id: str) -> WorkflowStatusView:
        return await self.queries.get_status(report_id)

    async def list_reports(self, status: Optional[str] = None,
                           employee_id: Optional[str] = None) -> ReportListing:
        return await self.queries.list_reports(status=status, employee_id=employee_id)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _notify(self, workflow: ExpenseWorkflow, notification_type: NotificationType,
                now: datetime) -> None:
        # Recorded only; nothing is delivered.
        workflow.notifications.append(Notification(
            recipient=workflow.expense_report.employee_info.email,
            type=notification_type,
            sent_at=now,
        ))
