import pytest

from expense_agents.approval_system import ApprovalRouter
from expense_agents.errors import InvalidTransitionError
from expense_agents.schemas import (
    ApprovalAction,
    ApprovalDecisionRequest,
    ApprovalOutcome,
    ApprovalRules,
    ApproverRole,
    ExpenseReport,
    ReportStatus,
)
from expense_agents.state import ExpenseWorkflow, WorkflowStatus

from .conftest import FIXED_NOW, make_draft, make_item


def build_workflow(total, status=WorkflowStatus.POLICY_CHECK_COMPLETED):
    report = ExpenseReport.model_validate({
        **make_draft(make_item(total)),
        "id": "rep-1",
        "submissionDate": FIXED_NOW,
    })
    return ExpenseWorkflow(id="wf-1", report_id="rep-1", status=status, expense_report=report)


def request(role, action, comments=None):
    return ApprovalDecisionRequest(
        approver_role=role, approver_id=f"{role.value}-1", action=action, comments=comments
    )


@pytest.fixture
def router():
    return ApprovalRouter(ApprovalRules())


def test_next_approver_for_ceilings(router):
    assert router.next_approver_for(ApproverRole.MANAGER, 1000) is None
    assert router.next_approver_for(ApproverRole.MANAGER, 1000.01) == ApproverRole.FINANCE
    assert router.next_approver_for(ApproverRole.FINANCE, 5000) is None
    assert router.next_approver_for(ApproverRole.FINANCE, 7000) == ApproverRole.ADMIN
    assert router.next_approver_for(ApproverRole.ADMIN, 1_000_000) is None


def test_decide_is_pure(router):
    workflow = build_workflow(1800)

    decision = router.decide(
        workflow.expense_report, ApproverRole.MANAGER, ApprovalAction.APPROVE, "m-1", now=FIXED_NOW
    )

    assert decision.approved
    assert decision.requires_additional_approval
    assert decision.next_approver == ApproverRole.FINANCE
    assert not decision.final_approval
    assert decision.comments == "Approved as per policy"
    assert workflow.status == WorkflowStatus.POLICY_CHECK_COMPLETED
    assert workflow.expense_report.approval_history == []


def test_manager_approval_within_ceiling_is_final(router):
    workflow = build_workflow(300)

    decision = router.route(workflow, request(ApproverRole.MANAGER, ApprovalAction.APPROVE), FIXED_NOW)

    assert decision.final_approval
    assert workflow.status == WorkflowStatus.APPROVED
    assert workflow.expense_report.status == ReportStatus.APPROVED
    [record] = workflow.expense_report.approval_history
    assert record.action == ApprovalOutcome.APPROVED
    assert record.approved_by == "manager-1"
    assert record.timestamp == FIXED_NOW


def test_manager_approval_above_ceiling_escalates_to_finance(router):
    workflow = build_workflow(1800)

    router.route(workflow, request(ApproverRole.MANAGER, ApprovalAction.APPROVE), FIXED_NOW)

    assert workflow.status == WorkflowStatus.FINANCE_APPROVAL_PENDING
    assert workflow.expense_report.status == ReportStatus.PENDING_FINANCE_APPROVAL


def test_full_escalation_chain_to_admin(router):
    workflow = build_workflow(1200)
    workflow.expense_report.total_amount = 7000

    router.route(workflow, request(ApproverRole.MANAGER, ApprovalAction.APPROVE), FIXED_NOW)
    assert workflow.status == WorkflowStatus.FINANCE_APPROVAL_PENDING

    decision = router.route(workflow, request(ApproverRole.FINANCE, ApprovalAction.APPROVE), FIXED_NOW)
    assert decision.next_approver == ApproverRole.ADMIN
    assert workflow.status == WorkflowStatus.ADMIN_APPROVAL_PENDING

    decision = router.route(workflow, request(ApproverRole.ADMIN, ApprovalAction.APPROVE), FIXED_NOW)
    assert decision.final_approval
    assert workflow.status == WorkflowStatus.APPROVED
    assert [r.approver_role for r in workflow.expense_report.approval_history] == [
        ApproverRole.MANAGER, ApproverRole.FINANCE, ApproverRole.ADMIN,
    ]


def test_reject_records_reason(router):
    workflow = build_workflow(300)

    decision = router.route(
        workflow, request(ApproverRole.MANAGER, ApprovalAction.REJECT, "Personal expense"), FIXED_NOW
    )

    assert decision.rejected
    assert workflow.status == WorkflowStatus.REJECTED
    assert workflow.expense_report.rejection_reason == "Personal expense"
    assert workflow.expense_report.approval_history[0].action == ApprovalOutcome.REJECTED


def test_request_info_uses_default_comment(router):
    workflow = build_workflow(300)

    router.route(workflow, request(ApproverRole.MANAGER, ApprovalAction.REQUEST_INFO), FIXED_NOW)

    assert workflow.status == WorkflowStatus.REQUIRES_ADDITIONAL_INFO
    assert workflow.expense_report.additional_info_requested == "Additional information required"
    assert workflow.expense_report.approval_history[0].action == ApprovalOutcome.REQUESTED_INFO


@pytest.mark.parametrize("status", [
    WorkflowStatus.SUBMITTED,
    WorkflowStatus.APPROVED,
    WorkflowStatus.REJECTED,
    WorkflowStatus.PAID,
])
def test_decisions_refused_outside_reviewable_states(router, status):
    workflow = build_workflow(300, status=status)

    with pytest.raises(InvalidTransitionError):
        router.route(workflow, request(ApproverRole.MANAGER, ApprovalAction.APPROVE), FIXED_NOW)

    assert workflow.status == status
    assert workflow.expense_report.approval_history == []


def test_only_pending_role_may_act(router):
    workflow = build_workflow(1800, status=WorkflowStatus.FINANCE_APPROVAL_PENDING)

    with pytest.raises(InvalidTransitionError, match="awaiting finance approval"):
        router.route(workflow, request(ApproverRole.MANAGER, ApprovalAction.APPROVE), FIXED_NOW)

    assert workflow.status == WorkflowStatus.FINANCE_APPROVAL_PENDING


def test_default_escalation_rules(router):
    rules = {rule.rule_id: rule for rule in router.escalation_rules}

    assert rules["manager_ceiling"].value_threshold == 1000
    assert rules["finance_ceiling"].next_approver == ApproverRole.ADMIN


def test_finance_approval_within_finance_ceiling_is_final(router):
    workflow = build_workflow(1500, status=WorkflowStatus.POLICY_VIOLATION_DETECTED)

    decision = router.route(workflow, request(ApproverRole.FINANCE, ApprovalAction.APPROVE), FIXED_NOW)

    assert decision.final_approval
    assert not decision.requires_additional_approval
    assert decision.next_approver is None
    assert workflow.status == WorkflowStatus.APPROVED
    assert workflow.expense_report.status == ReportStatus.APPROVED
