from .errors import (
    ExpenseWorkflowError, ExpenseValidationError, ReportNotFoundError,
    PreconditionError, InvalidTransitionError, safe_error_message
)
from .schemas import (
    ExpenseCategory, ReportStatus, ApproverRole, ApprovalAction, ApprovalOutcome,
    ViolationType, ViolationSeverity, NotificationType,
    ExpenseItem, EmployeeInfo, ExpenseReportDraft, ExpenseReport, ApprovalRecord,
    PolicyViolation, ApprovalRules, PolicyCheckResult, PaymentDetails,
    ApprovalDecisionRequest, PaymentRequest, ApprovalDecision, PaymentResult,
)
from .state import ExpenseWorkflow, WorkflowEvent, WorkflowStatus, TRANSITIONS, next_status
from .state_manager import WorkflowStore, InMemoryWorkflowStore
from .tools import ExpenseReportValidator, PaymentSettler
from .approval_system import ApprovalRouter, EscalationRule
from .query import WorkflowQueryService
from .workflow import ExpenseWorkflowService
from .base import Agent, AgentInput, AgentOutput
from .registry import AgentRegistry, AgentNotFoundError, get_agent
from .expense_agent import ExpenseWorkflowAgent
from .register_agents import register_all_agents
