from typing import List, Optional
import logging
from datetime import datetime, timezone
from dataclasses import dataclass

from .errors import InvalidTransitionError
from .schemas import (
    ApprovalAction,
    ApprovalDecision,
    ApprovalDecisionRequest,
    ApprovalOutcome,
    ApprovalRecord,
    ApprovalRules,
    ApproverRole,
    ExpenseReport,
)
from .state import ExpenseWorkflow, WorkflowEvent, WorkflowStatus, REVIEWABLE_STATES


DEFAULT_COMMENTS = {
    ApprovalAction.APPROVE: "Approved as per policy",
    ApprovalAction.REJECT: "Does not meet approval criteria",
    ApprovalAction.REQUEST_INFO: "Additional information required",
}

OUTCOME_BY_ACTION = {
    ApprovalAction.APPROVE: ApprovalOutcome.APPROVED,
    ApprovalAction.REJECT: ApprovalOutcome.REJECTED,
    ApprovalAction.REQUEST_INFO: ApprovalOutcome.REQUESTED_INFO,
}

PENDING_ROLE_BY_STATUS = {
    WorkflowStatus.MANAGER_APPROVAL_PENDING: ApproverRole.MANAGER,
    WorkflowStatus.FINANCE_APPROVAL_PENDING: ApproverRole.FINANCE,
    WorkflowStatus.ADMIN_APPROVAL_PENDING: ApproverRole.ADMIN,
}

ESCALATION_EVENT_BY_ROLE = {
    ApproverRole.FINANCE: WorkflowEvent.ESCALATE_TO_FINANCE,
    ApproverRole.ADMIN: WorkflowEvent.ESCALATE_TO_ADMIN,
}


@dataclass
class EscalationRule:
    """An approver's ceiling: approvals above it need ``next_approver`` too."""

    rule_id: str
    name: str
    approver_role: ApproverRole
    value_threshold: float
    next_approver: ApproverRole


class ApprovalRouter:

    def __init__(self, rules: Optional[ApprovalRules] = None):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.rules = rules or ApprovalRules()
        self._escalation_rules: List[EscalationRule] = []

        self._initialize_default_rules()

    def _initialize_default_rules(self):

        self._escalation_rules = [
            EscalationRule(
                rule_id="manager_ceiling",
                name="Manager approval ceiling",
                approver_role=ApproverRole.MANAGER,
                value_threshold=self.rules.max_manager_approval,
                next_approver=ApproverRole.FINANCE,
            ),
            EscalationRule(
                rule_id="finance_ceiling",
                name="Finance approval ceiling",
                approver_role=ApproverRole.FINANCE,
                value_threshold=self.rules.max_finance_approval,
                next_approver=ApproverRole.ADMIN,
            ),
        ]

    @property
    def escalation_rules(self) -> List[EscalationRule]:
        return list(self._escalation_rules)

    def next_approver_for(self, approver_role: ApproverRole, total_amount: float) -> Optional[ApproverRole]:
        for rule in self._escalation_rules:
            if rule.approver_role == approver_role and total_amount > rule.value_threshold:
                return rule.next_approver
        return None

    def decide(self,
               report: ExpenseReport,
               approver_role: ApproverRole,
               action: ApprovalAction,
               approver_id: str,
               comments: Optional[str] = None,
               now: Optional[datetime] = None) -> ApprovalDecision:
        """Work out the outcome of one approver action without touching any state."""
        next_approver = None
        if action == ApprovalAction.APPROVE:
            next_approver = self.next_approver_for(approver_role, report.total_amount)
        requires_additional_approval = next_approver is not None

        return ApprovalDecision(
            approved=action == ApprovalAction.APPROVE,
            rejected=action == ApprovalAction.REJECT,
            info_requested=action == ApprovalAction.REQUEST_INFO,
            approver_role=approver_role,
            approver_id=approver_id,
            comments=comments or DEFAULT_COMMENTS[action],
            next_approver=next_approver,
            requires_additional_approval=requires_additional_approval,
            final_approval=action == ApprovalAction.APPROVE and not requires_additional_approval,
            timestamp=now or datetime.now(timezone.utc),
        )

    def route(self, workflow: ExpenseWorkflow, request: ApprovalDecisionRequest,
              now: datetime) -> ApprovalDecision:
        """Apply an approver action to ``workflow`` in place.

        Raises InvalidTransitionError, before any mutation, when the workflow is
        not awaiting a decision from ``request.approver_role``.
        """
        self._check_can_act(workflow, request.approver_role)

        report = workflow.expense_report
        decision = self.decide(
            report,
            request.approver_role,
            request.action,
            request.approver_id,
            comments=request.comments,
            now=now,
        )

        new_status = workflow.advance(self._event_for(decision), now)

        report.approval_history.append(ApprovalRecord(
            approved_by=request.approver_id,
            approver_role=request.approver_role,
            action=OUTCOME_BY_ACTION[request.action],
            timestamp=decision.timestamp,
            comments=decision.comments,
        ))
        if decision.rejected:
            report.rejection_reason = decision.comments
        elif decision.info_requested:
            report.additional_info_requested = decision.comments

        self.logger.info(
            f"Report {workflow.report_id}: {request.approver_role.value} {request.approver_id} "
            f"-> {request.action.value}, status now {new_status.value}"
        )
        return decision

    def _check_can_act(self, workflow: ExpenseWorkflow, approver_role: ApproverRole) -> None:
        if workflow.status not in REVIEWABLE_STATES:
            self.logger.warning(
                f"Rejected approval action on report {workflow.report_id} in status {workflow.status.value}"
            )
            raise InvalidTransitionError(
                f"Expense report in status '{workflow.status.value}' is not awaiting an approval decision",
                current_status=workflow.status.value,
                event="approval_decision",
            )

        pending_role = PENDING_ROLE_BY_STATUS.get(workflow.status)
        if pending_role is not None and pending_role != approver_role:
            self.logger.warning(
                f"Rejected {approver_role.value} action on report {workflow.report_id}: "
                f"awaiting {pending_role.value}"
            )
            raise InvalidTransitionError(
                f"Expense report is awaiting {pending_role.value} approval; "
                f"{approver_role.value} cannot act on it",
                current_status=workflow.status.value,
                event="approval_decision",
            )

    def _event_for(self, decision: ApprovalDecision) -> WorkflowEvent:
        if decision.rejected:
            return WorkflowEvent.REJECT
        if decision.info_requested:
            return WorkflowEvent.REQUEST_INFO
        if decision.requires_additional_approval:
            return ESCALATION_EVENT_BY_ROLE[decision.next_approver]
        return WorkflowEvent.FINAL_APPROVE
