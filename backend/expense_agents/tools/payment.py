from typing import Callable, Optional
from datetime import datetime, timedelta
import uuid

from ..errors import PreconditionError
from ..schemas import Beneficiary, PaymentDetails, PaymentResult
from ..state import ExpenseWorkflow, WorkflowEvent, WorkflowStatus
from . import BaseTool

DEFAULT_PAYMENT_METHOD = "direct_deposit"
PAYMENT_LEAD_DAYS = 2
NOT_APPROVED_MESSAGE = "Expense report must be approved before payment"


def generate_transaction_id() -> str:
    return f"TXN{uuid.uuid4().hex[:16].upper()}"


class PaymentSettler(BaseTool[ExpenseWorkflow, PaymentResult]):
    """Moves an approved workflow to ``paid`` and records the settlement.

    No payment gateway is involved; the settlement is simulated and always
    succeeds once the precondition holds.
    """

    def __init__(self, transaction_id_factory: Optional[Callable[[], str]] = None):
        super().__init__(
            name="expense_payment_settler",
            description="Settles approved expense reports and records payment details",
        )
        self.transaction_id_factory = transaction_id_factory or generate_transaction_id

    def settle(self, workflow: ExpenseWorkflow, now: datetime,
               payment_method: Optional[str] = None) -> PaymentResult:
        if workflow.status != WorkflowStatus.APPROVED:
            self.logger.warning(
                f"Payment refused for report {workflow.report_id}: status is {workflow.status.value}"
            )
            raise PreconditionError(NOT_APPROVED_MESSAGE)

        report = workflow.expense_report
        today = now.date()
        result = PaymentResult(
            payment_method=payment_method or DEFAULT_PAYMENT_METHOD,
            transaction_id=self.transaction_id_factory(),
            payment_amount=report.total_amount,
            estimated_payment_date=(today + timedelta(days=PAYMENT_LEAD_DAYS)).isoformat(),
            actual_payment_date=today.isoformat(),
            beneficiary=Beneficiary(
                name=report.employee_info.name,
                email=report.employee_info.email,
            ),
            timestamp=now,
        )

        workflow.advance(WorkflowEvent.PAY, now)
        workflow.payment_details = PaymentDetails(
            transaction_id=result.transaction_id,
            payment_method=result.payment_method,
            payment_date=result.actual_payment_date,
            amount=result.payment_amount,
        )

        self.logger.info(
            f"Paid report {workflow.report_id}: {result.payment_amount:.2f} via "
            f"{result.payment_method} ({result.transaction_id})"
        )
        return result

    def get_input_schema(self) -> type[ExpenseWorkflow]:
        return ExpenseWorkflow

    def get_output_schema(self) -> type[PaymentResult]:
        return PaymentResult
