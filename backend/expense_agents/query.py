from typing import Optional
import logging

from .schemas import (
    ApproverRole,
    ReportListing,
    ReportSummary,
    WorkflowProgress,
    WorkflowStatusView,
)
from .state import ExpenseWorkflow, WorkflowStatus
from .state_manager import WorkflowStore


def progress_of(workflow: ExpenseWorkflow) -> WorkflowProgress:
    report = workflow.expense_report
    return WorkflowProgress(
        submitted=True,
        policy_checked=workflow.policy_violations is not None,
        manager_approved=report.has_approval_from(ApproverRole.MANAGER),
        finance_approved=report.has_approval_from(ApproverRole.FINANCE),
        admin_approved=report.has_approval_from(ApproverRole.ADMIN),
        payment_processed=workflow.status == WorkflowStatus.PAID,
    )


class WorkflowQueryService:
    """Read-only projections over the workflow store."""

    def __init__(self, store: WorkflowStore):
        self.store = store
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def get_status(self, report_id: str) -> WorkflowStatusView:
        workflow = await self.store.require(report_id)
        return WorkflowStatusView(
            report_id=workflow.report_id,
            workflow_id=workflow.id,
            status=workflow.status.value,
            progress=progress_of(workflow),
            expense_report=workflow.expense_report,
            policy_violations=workflow.policy_violations,
            payment_details=workflow.payment_details,
            created_at=workflow.created_at,
            updated_at=workflow.updated_at,
        )

    async def list_reports(self, status: Optional[str] = None,
                           employee_id: Optional[str] = None) -> ReportListing:

        def matches(workflow: ExpenseWorkflow) -> bool:
            if status and workflow.status.value != status:
                return False
            if employee_id and workflow.expense_report.employee_id != employee_id:
                return False
            return True

        workflows = await self.store.list(matches)
        reports = [ReportSummary(**workflow.summary()) for workflow in workflows]

        self.logger.debug(
            f"Listed {len(reports)} report(s) (status={status}, employee_id={employee_id})"
        )
        return ReportListing(reports=reports, total=len(reports))
