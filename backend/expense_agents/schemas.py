from enum import Enum
from typing import Any, Dict, List, Optional
from datetime import datetime
import uuid

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    HttpUrl,
    model_validator,
)
from pydantic.alias_generators import to_camel


class ExpenseCategory(str, Enum):
    TRAVEL = "travel"
    MEALS = "meals"
    OFFICE_SUPPLIES = "office_supplies"
    SOFTWARE = "software"
    TRAINING = "training"
    MARKETING = "marketing"
    EQUIPMENT = "equipment"
    PROFESSIONAL_SERVICES = "professional_services"
    UTILITIES = "utilities"
    OTHER = "other"


class ReportStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    PENDING_MANAGER_APPROVAL = "pending_manager_approval"
    PENDING_FINANCE_APPROVAL = "pending_finance_approval"
    PENDING_ADMIN_APPROVAL = "pending_admin_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"
    REQUIRES_ADDITIONAL_INFO = "requires_additional_info"


class ApproverRole(str, Enum):
    MANAGER = "manager"
    FINANCE = "finance"
    ADMIN = "admin"


class ApprovalAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_INFO = "request_info"


class ApprovalOutcome(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    REQUESTED_INFO = "requested_info"


class ViolationType(str, Enum):
    EXCEEDS_LIMIT = "exceeds_limit"
    MISSING_RECEIPT = "missing_receipt"
    INVALID_CATEGORY = "invalid_category"
    DUPLICATE_EXPENSE = "duplicate_expense"
    OUTDATED_EXPENSE = "outdated_expense"
    INVALID_MERCHANT = "invalid_merchant"
    POLICY_BREACH = "policy_breach"


class ViolationSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class NotificationType(str, Enum):
    APPROVAL_REQUEST = "approval_request"
    STATUS_UPDATE = "status_update"
    VIOLATION_ALERT = "violation_alert"
    PAYMENT_NOTIFICATION = "payment_notification"


class NotificationStatus(str, Enum):
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire; either is accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


# ---------------------------------------------------------------------------
# Expense report
# ---------------------------------------------------------------------------

class ExpenseItem(CamelModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    category: ExpenseCategory
    description: str = Field(min_length=1)
    amount: float = Field(gt=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")  # YYYY-MM-DD
    merchant: str = Field(min_length=1)
    receipt_url: Optional[HttpUrl] = None
    notes: Optional[str] = None


class EmployeeInfo(CamelModel):
    name: str = Field(min_length=1)
    email: EmailStr
    department: str = Field(min_length=1)
    manager_id: Optional[str] = None
    cost_center: Optional[str] = None


class ExpenseReportDraft(CamelModel):
    """Submission payload. Server-owned fields sent by the caller are ignored."""

    title: str = Field(min_length=1)
    employee_id: str = Field(min_length=1)
    employee_info: EmployeeInfo
    expenses: List[ExpenseItem] = Field(min_length=1)
    total_amount: Optional[float] = Field(default=None, gt=0)
    business_purpose: str = Field(min_length=1)

    @model_validator(mode="after")
    def check_total_amount(self):
        computed = round(sum(item.amount for item in self.expenses), 2)
        if computed <= 0:
            raise ValueError("expense amounts must add up to at least 0.01")
        if self.total_amount is None:
            self.total_amount = computed
        elif abs(self.total_amount - computed) > 0.005:
            raise ValueError(
                f"totalAmount {self.total_amount} does not match the sum of expense amounts {computed}"
            )
        return self


class ApprovalRecord(CamelModel):
    approved_by: str
    approver_role: ApproverRole
    action: ApprovalOutcome
    timestamp: datetime
    comments: Optional[str] = None


class ExpenseReport(ExpenseReportDraft):
    id: str
    submission_date: datetime
    status: ReportStatus = ReportStatus.SUBMITTED
    approval_history: List[ApprovalRecord] = Field(default_factory=list)
    rejection_reason: Optional[str] = None
    additional_info_requested: Optional[str] = None

    def has_approval_from(self, role: ApproverRole) -> bool:
        return any(
            record.approver_role == role and record.action == ApprovalOutcome.APPROVED
            for record in self.approval_history
        )


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------

class PolicyViolation(CamelModel):
    type: ViolationType
    severity: ViolationSeverity
    description: str
    suggested_action: str


class ApprovalRules(CamelModel):
    """Spending thresholds used by the validator and the approval router."""

    auto_approval_threshold: float = Field(default=50.0, gt=0)
    requires_receipt_threshold: float = Field(default=25.0, gt=0)
    single_item_limit: float = Field(default=1000.0, gt=0)
    max_manager_approval: float = Field(default=1000.0, gt=0)
    max_finance_approval: float = Field(default=5000.0, gt=0)
    category_limits: Dict[ExpenseCategory, float] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_ceilings(self):
        if self.max_finance_approval < self.max_manager_approval:
            raise ValueError("maxFinanceApproval must not be lower than maxManagerApproval")
        for category, limit in self.category_limits.items():
            if limit <= 0:
                raise ValueError(f"category limit for {category.value} must be positive")
        return self


class PolicyCheckResult(CamelModel):
    passed: bool
    violations: List[PolicyViolation] = Field(default_factory=list)
    auto_approvable: bool
    required_approvers: List[ApproverRole] = Field(default_factory=list)
    estimated_processing_time: str
    validation_score: int = Field(ge=0, le=100)


# ---------------------------------------------------------------------------
# Workflow side records
# ---------------------------------------------------------------------------

class Notification(CamelModel):
    recipient: EmailStr
    type: NotificationType
    sent_at: datetime
    status: NotificationStatus = NotificationStatus.SENT


class PaymentDetails(CamelModel):
    transaction_id: str
    payment_method: str
    payment_date: str
    amount: float


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class ApprovalDecisionRequest(CamelModel):
    approver_role: ApproverRole
    approver_id: str = Field(min_length=1)
    action: ApprovalAction
    comments: Optional[str] = None


class PaymentRequest(CamelModel):
    payment_method: Optional[str] = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class SubmissionResult(CamelModel):
    success: bool = True
    report_id: str
    workflow_id: str
    status: str
    message: str
    next_steps: List[str] = Field(default_factory=list)


class ValidationResponse(PolicyCheckResult):
    success: bool = True
    report_id: str
    timestamp: datetime


class ApprovalDecision(CamelModel):
    approved: bool
    rejected: bool
    info_requested: bool
    approver_role: ApproverRole
    approver_id: str
    comments: str
    next_approver: Optional[ApproverRole] = None
    requires_additional_approval: bool = False
    final_approval: bool = False
    timestamp: datetime


class ApprovalResponse(ApprovalDecision):
    success: bool = True
    report_id: str


class Beneficiary(CamelModel):
    name: str
    email: EmailStr


class PaymentResult(CamelModel):
    processed: bool = True
    payment_method: str
    transaction_id: str
    payment_amount: float
    estimated_payment_date: str
    actual_payment_date: str
    payment_status: str = "processed"
    beneficiary: Beneficiary
    timestamp: datetime


class PaymentResponse(PaymentResult):
    success: bool = True
    report_id: str


class WorkflowProgress(CamelModel):
    submitted: bool = True
    policy_checked: bool = False
    manager_approved: bool = False
    finance_approved: bool = False
    admin_approved: bool = False
    payment_processed: bool = False


class WorkflowStatusView(CamelModel):
    success: bool = True
    report_id: str
    workflow_id: str
    status: str
    progress: WorkflowProgress
    expense_report: ExpenseReport
    policy_violations: Optional[List[PolicyViolation]] = None
    payment_details: Optional[PaymentDetails] = None
    created_at: datetime
    updated_at: datetime


class ReportSummary(CamelModel):
    report_id: str
    workflow_id: str
    title: str
    employee_name: str
    department: str
    total_amount: float
    status: str
    submission_date: datetime
    updated_at: datetime


class ReportListing(CamelModel):
    success: bool = True
    reports: List[ReportSummary] = Field(default_factory=list)
    total: int = 0
