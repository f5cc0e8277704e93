from typing import List, Optional
import math

from ..schemas import (
    ApprovalRules,
    ApproverRole,
    ExpenseItem,
    ExpenseReport,
    PolicyCheckResult,
    PolicyViolation,
    ViolationSeverity,
    ViolationType,
)
from . import BaseTool


def _amount(value: float) -> str:
    return f"{value:.2f}".rstrip("0").rstrip(".")


class ExpenseReportValidator(BaseTool[ExpenseReport, PolicyCheckResult]):
    """Evaluates spending rules against an expense report.

    Item rules run first, in item order, then the aggregate rules that decide
    which approvers the report needs. The result depends only on the report and
    the configured rules.
    """

    def __init__(self, rules: Optional[ApprovalRules] = None):
        super().__init__(
            name="expense_policy_validator",
            description="Checks expense items against receipt and spending-limit rules and lists the approvers a report needs",
        )
        self.rules = rules or ApprovalRules()

    def validate(self, report: ExpenseReport) -> PolicyCheckResult:
        violations: List[PolicyViolation] = []
        auto_approvable = True

        for item in report.expenses:
            item_violations = self._check_item(item)
            if item_violations:
                auto_approvable = False
                violations.extend(item_violations)

        required_approvers = self._required_approvers(report.total_amount)
        if report.total_amount > self.rules.auto_approval_threshold:
            auto_approvable = False

        result = PolicyCheckResult(
            passed=len(violations) == 0,
            violations=violations,
            auto_approvable=auto_approvable,
            required_approvers=required_approvers,
            estimated_processing_time=f"{math.ceil(1 + len(violations) * 0.5)} hours",
            validation_score=max(0, 100 - len(violations) * 20),
        )
        self.logger.info(
            f"Validated report {report.id}: {len(violations)} violation(s), "
            f"approvers={[role.value for role in required_approvers]}, auto_approvable={auto_approvable}"
        )
        return result

    def _check_item(self, item: ExpenseItem) -> List[PolicyViolation]:
        violations = []

        if item.amount > self.rules.single_item_limit:
            violations.append(PolicyViolation(
                type=ViolationType.EXCEEDS_LIMIT,
                severity=ViolationSeverity.MEDIUM,
                description=(
                    f"Expense of ${_amount(item.amount)} exceeds single item limit of "
                    f"${_amount(self.rules.single_item_limit)}"
                ),
                suggested_action="Require manager approval",
            ))
        else:
            category_limit = self.rules.category_limits.get(item.category)
            if category_limit is not None and item.amount > category_limit:
                violations.append(PolicyViolation(
                    type=ViolationType.EXCEEDS_LIMIT,
                    severity=ViolationSeverity.MEDIUM,
                    description=(
                        f"Expense of ${_amount(item.amount)} exceeds the {item.category.value} "
                        f"limit of ${_amount(category_limit)}"
                    ),
                    suggested_action="Require manager approval",
                ))

        if item.amount > self.rules.requires_receipt_threshold and not item.receipt_url:
            violations.append(PolicyViolation(
                type=ViolationType.MISSING_RECEIPT,
                severity=ViolationSeverity.HIGH,
                description=f"Receipt required for expense of ${_amount(item.amount)}",
                suggested_action="Request receipt upload",
            ))

        return violations

    def _required_approvers(self, total_amount: float) -> List[ApproverRole]:
        approvers = []
        if total_amount > self.rules.auto_approval_threshold:
            approvers.append(ApproverRole.MANAGER)
        if total_amount > self.rules.max_manager_approval:
            approvers.append(ApproverRole.FINANCE)
        if total_amount > self.rules.max_finance_approval:
            approvers.append(ApproverRole.ADMIN)
        return approvers

    def get_input_schema(self) -> type[ExpenseReport]:
        return ExpenseReport

    def get_output_schema(self) -> type[PolicyCheckResult]:
        return PolicyCheckResult
