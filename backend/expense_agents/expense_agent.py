"""
Expense Workflow Agent - LangChain Powered

Exposes the expense-approval workflow (submit, validate, approve, pay, status,
list) as LangChain tools and lets a chat model drive them from natural-language
requests. All business rules live in ExpenseWorkflowService; the model only
decides which tool to call next.
"""

from typing import Any, Awaitable, Dict, List, Optional
import json
import os

from langchain_core.tools import StructuredTool
from pydantic import BaseModel, Field

from .base import Agent, AgentInput, AgentOutput
from .errors import ExpenseWorkflowError, safe_error_message
from .workflow import ExpenseWorkflowService


# ---------------------------------------------------------------------------
# Tool Input Schemas
# ---------------------------------------------------------------------------

class SubmitExpenseReportInput(BaseModel):
    report: Dict[str, Any] = Field(
        description=(
            "Expense report draft with title, employeeId, employeeInfo {name, email, department}, "
            "expenses [{category, description, amount, currency, date, merchant, receiptUrl?}], "
            "businessPurpose and optional totalAmount"
        )
    )


class ReportIdInput(BaseModel):
    report_id: str = Field(description="ID of the expense report returned at submission")


class ProcessApprovalInput(BaseModel):
    report_id: str = Field(description="ID of the expense report")
    approver_role: str = Field(description="Role of the approver: manager, finance or admin")
    approver_id: str = Field(description="ID of the person taking the decision")
    action: str = Field(description="Decision: approve, reject or request_info")
    comments: Optional[str] = Field(default=None, description="Optional comments for the employee")


class ProcessPaymentInput(BaseModel):
    report_id: str = Field(description="ID of an approved expense report")
    payment_method: Optional[str] = Field(default=None, description="Payment method, defaults to direct_deposit")


class ListExpenseReportsInput(BaseModel):
    status: Optional[str] = Field(default=None, description="Only reports in this workflow status")
    employee_id: Optional[str] = Field(default=None, description="Only reports of this employee")


# ---------------------------------------------------------------------------
# Expense Workflow Agent
# ---------------------------------------------------------------------------

class ExpenseWorkflowAgent(Agent[AgentInput, AgentOutput]):
    """
    LangChain-powered agent for the expense-approval workflow.

    The chat model is injectable; when none is given a ChatOpenAI model is
    built on first use from ``api_key``, falling back to OPENAI_API_KEY.
    """

    def __init__(self,
                 service: ExpenseWorkflowService,
                 llm: Any = None,
                 model_name: str = "gpt-4o-mini",
                 max_iterations: int = 6,
                 api_key: Optional[str] = None):
        super().__init__(
            name="expense_workflow_agent",
            description="LangChain-powered agent that submits, validates, routes for approval and pays expense reports",
        )
        self.service = service
        self.model_name = model_name
        self.api_key = api_key
        self.max_iterations = max_iterations
        self._llm = llm
        self._llm_with_tools = None

        self.tools = [
            StructuredTool.from_function(
                coroutine=self._tool_submit_expense_report,
                name="submit_expense_report",
                description=(
                    "Submit a new expense report. Returns the reportId used by every other tool. "
                    "The report starts in status 'submitted'."
                ),
                args_schema=SubmitExpenseReportInput,
            ),
            StructuredTool.from_function(
                coroutine=self._tool_validate_expense_report,
                name="validate_expense_report",
                description=(
                    "Run the policy check on a submitted report. Returns violations, "
                    "autoApprovable, requiredApprovers, estimatedProcessingTime and validationScore. "
                    "ALWAYS call this before any approval decision."
                ),
                args_schema=ReportIdInput,
            ),
            StructuredTool.from_function(
                coroutine=self._tool_process_approval,
                name="process_approval",
                description=(
                    "Record an approve, reject or request_info decision by a manager, finance or admin. "
                    "Approvals above the approver's ceiling escalate to the next approver."
                ),
                args_schema=ProcessApprovalInput,
            ),
            StructuredTool.from_function(
                coroutine=self._tool_process_payment,
                name="process_payment",
                description="Pay an approved expense report. Fails if the report is not approved.",
                args_schema=ProcessPaymentInput,
            ),
            StructuredTool.from_function(
                coroutine=self._tool_get_expense_status,
                name="get_expense_status",
                description="Get the workflow status, progress flags, violations and payment details of a report.",
                args_schema=ReportIdInput,
            ),
            StructuredTool.from_function(
                coroutine=self._tool_list_expense_reports,
                name="list_expense_reports",
                description="List expense reports, optionally filtered by workflow status or employee ID.",
                args_schema=ListExpenseReportsInput,
            ),
        ]
        self.tool_map = {tool.name: tool for tool in self.tools}

        rules = service.rules
        self.system_prompt = f"""You are an Expense Approvals Workflow Agent.

You help employees and approvers move expense reports through the approval pipeline:
submit -> validate -> approve / reject / request_info -> pay.

TOOLS AVAILABLE:
1. submit_expense_report    - Create a report from the employee's expenses
2. validate_expense_report  - Run the policy check on a report
3. process_approval         - Record a manager, finance or admin decision
4. process_payment          - Pay an approved report
5. get_expense_status       - Look up the current state of a report
6. list_expense_reports     - List reports by status or employee

EXPENSE POLICY:
- Items above ${rules.requires_receipt_threshold:g} need a receipt
- Items above ${rules.single_item_limit:g} exceed the single item limit
- Reports above ${rules.auto_approval_threshold:g} need manager approval
- Reports above ${rules.max_manager_approval:g} also need finance approval
- Reports above ${rules.max_finance_approval:g} also need admin approval

RULES:
- Never invent report IDs; use the ones returned by the tools
- Validate a report before routing it for approval
- Only pay reports whose status is 'approved'
- If a tool returns an error, explain it to the user instead of retrying blindly

Finish with a short summary of what was done and the report's current status."""

        self.logger.info("Expense Workflow Agent initialized with LangChain tools")

    # -------------------------------------------------------------------------
    # Agent Loop
    # -------------------------------------------------------------------------

    def _get_llm_with_tools(self):
        if self._llm_with_tools is None:
            llm = self._llm
            if llm is None:
                from langchain_openai import ChatOpenAI

                llm = ChatOpenAI(
                    model=self.model_name,
                    temperature=0,
                    api_key=self.api_key or os.getenv("OPENAI_API_KEY"),
                )
            self._llm_with_tools = llm.bind_tools(self.tools)
        return self._llm_with_tools

    async def _run_agent_loop(self, user_input: str) -> tuple[str, list]:
        """Run the LangChain tool-calling agent loop."""
        llm_with_tools = self._get_llm_with_tools()
        messages: List[Any] = [
            {"role": "system", "content": self.system_prompt},
            {"role": "user", "content": user_input},
        ]
        intermediate_steps = []

        for _ in range(self.max_iterations):
            response = await llm_with_tools.ainvoke(messages)

            if not response.tool_calls:
                return str(response.content), intermediate_steps

            messages.append(response)

            for tool_call in response.tool_calls:
                tool_name = tool_call["name"]
                tool_args = tool_call["args"]
                self.logger.info(f"LLM calling tool: {tool_name} with args: {tool_args}")

                tool = self.tool_map.get(tool_name)
                if tool is None:
                    tool_result = json.dumps({"error": f"Unknown tool '{tool_name}'"})
                else:
                    try:
                        tool_result = await tool.ainvoke(tool_args)
                    except Exception as e:
                        self.logger.error(f"Tool execution error ({tool_name}): {e}", exc_info=True)
                        tool_result = json.dumps({"error": safe_error_message(e)})

                intermediate_steps.append((tool_name, tool_args, tool_result))
                messages.append({
                    "role": "tool",
                    "content": str(tool_result),
                    "tool_call_id": tool_call["id"],
                })

        return "ERROR: Max iterations reached without final answer", intermediate_steps

    # -------------------------------------------------------------------------
    # Main Execute
    # -------------------------------------------------------------------------

    async def execute(self, input_data: AgentInput) -> AgentOutput:
        user_input = input_data.message
        if input_data.report_id:
            user_input += f"\n\nREPORT ID: {input_data.report_id}"
        if input_data.data:
            user_input += f"\n\nDATA: {json.dumps(input_data.data, default=str)}"

        try:
            llm_output, intermediate_steps = await self._run_agent_loop(user_input)
        except Exception as e:
            self.logger.error(f"Error running expense workflow agent: {e}", exc_info=True)
            return self.create_output(
                success=False,
                message=f"Failed to process request: {safe_error_message(e)}",
                reasoning="The agent could not complete the request",
            )

        steps = [
            {"tool": name, "args": args, "result": self._parse_tool_result(result)}
            for (name, args, result) in intermediate_steps
        ]
        return self.create_output(
            success=not llm_output.startswith("ERROR:"),
            message=llm_output,
            reasoning=f"Completed after {len(steps)} tool call(s)",
            data={"steps": steps},
            tool_calls=[step["tool"] for step in steps],
        )

    # -------------------------------------------------------------------------
    # LangChain Tool Functions (called autonomously by the LLM)
    # -------------------------------------------------------------------------

    async def _tool_submit_expense_report(self, report: Dict[str, Any]) -> str:
        return await self._call_service(self.service.submit(report))

    async def _tool_validate_expense_report(self, report_id: str) -> str:
        return await self._call_service(self.service.validate(report_id))

    async def _tool_process_approval(self, report_id: str, approver_role: str, approver_id: str,
                                     action: str, comments: Optional[str] = None) -> str:
        return await self._call_service(self.service.decide(report_id, {
            "approver_role": approver_role,
            "approver_id": approver_id,
            "action": action,
            "comments": comments,
        }))

    async def _tool_process_payment(self, report_id: str, payment_method: Optional[str] = None) -> str:
        return await self._call_service(
            self.service.pay(report_id, {"payment_method": payment_method})
        )

    async def _tool_get_expense_status(self, report_id: str) -> str:
        return await self._call_service(self.service.get_status(report_id))

    async def _tool_list_expense_reports(self, status: Optional[str] = None,
                                         employee_id: Optional[str] = None) -> str:
        return await self._call_service(self.service.list_reports(status=status, employee_id=employee_id))

    # -------------------------------------------------------------------------
    # Helper Functions
    # -------------------------------------------------------------------------

    async def _call_service(self, operation: Awaitable[Any]) -> str:
        try:
            result = await operation
        except ExpenseWorkflowError as e:
            self.logger.warning(f"Workflow tool returned error: {e.message}")
            return json.dumps({"error": e.message})
        return json.dumps(result.to_wire())

    def _parse_tool_result(self, result: Any) -> Any:
        if isinstance(result, str):
            try:
                return json.loads(result)
            except json.JSONDecodeError:
                return result
        return result

    def get_input_schema(self) -> type[AgentInput]:
        return AgentInput

    def get_output_schema(self) -> type[AgentOutput]:
        return AgentOutput
