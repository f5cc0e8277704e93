import json

import pytest
from langchain_core.messages import AIMessage

from expense_agents.base import AgentInput
from expense_agents.expense_agent import ExpenseWorkflowAgent

from .conftest import make_draft, make_item


class ScriptedChatModel:
    """Stands in for a tool-calling chat model, replaying canned responses."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.bound_tools = None
        self.calls = []

    def bind_tools(self, tools):
        self.bound_tools = tools
        return self

    async def ainvoke(self, messages):
        self.calls.append(list(messages))
        return self.responses.pop(0)


def tool_call(name, args, call_id="call-1"):
    return AIMessage(content="", tool_calls=[{"name": name, "args": args, "id": call_id}])


@pytest.mark.asyncio
async def test_agent_exposes_workflow_tools(service):
    agent = ExpenseWorkflowAgent(service, llm=ScriptedChatModel([]))

    assert sorted(agent.tool_map) == [
        "get_expense_status",
        "list_expense_reports",
        "process_approval",
        "process_payment",
        "submit_expense_report",
        "validate_expense_report",
    ]
    assert "$1000" in agent.system_prompt


@pytest.mark.asyncio
async def test_agent_runs_tools_until_final_answer(service):
    llm = ScriptedChatModel([
        tool_call("submit_expense_report", {"report": make_draft(make_item(30))}),
        tool_call("validate_expense_report", {"report_id": "id-1"}, call_id="call-2"),
        AIMessage(content="Report id-1 passed the policy check."),
    ])
    agent = ExpenseWorkflowAgent(service, llm=llm)

    output = await agent.execute(AgentInput(message="Submit my lunch receipt"))

    assert output.success
    assert output.message == "Report id-1 passed the policy check."
    assert output.tool_calls == ["submit_expense_report", "validate_expense_report"]
    submit_step, validate_step = output.data["steps"]
    assert submit_step["result"]["reportId"] == "id-1"
    assert validate_step["result"]["passed"] is True
    assert llm.bound_tools == agent.tools
    assert (await service.get_status("id-1")).status == "policy_check_completed"


@pytest.mark.asyncio
async def test_tool_errors_are_returned_to_the_model(service):
    llm = ScriptedChatModel([
        tool_call("process_payment", {"report_id": "missing"}),
        AIMessage(content="That report does not exist."),
    ])
    agent = ExpenseWorkflowAgent(service, llm=llm)

    output = await agent.execute(AgentInput(message="Pay report missing", report_id="missing"))

    assert output.success
    assert output.data["steps"][0]["result"] == {"error": "Expense report not found"}
    tool_message = llm.calls[1][-1]
    assert tool_message["role"] == "tool"
    assert json.loads(tool_message["content"]) == {"error": "Expense report not found"}
    assert "REPORT ID: missing" in llm.calls[0][1]["content"]


@pytest.mark.asyncio
async def test_unknown_tool_is_reported(service):
    llm = ScriptedChatModel([
        tool_call("delete_everything", {}),
        AIMessage(content="I cannot do that."),
    ])
    agent = ExpenseWorkflowAgent(service, llm=llm)

    output = await agent.execute(AgentInput(message="Delete all reports"))

    assert output.data["steps"][0]["result"] == {"error": "Unknown tool 'delete_everything'"}


@pytest.mark.asyncio
async def test_max_iterations_marks_failure(service):
    llm = ScriptedChatModel([
        tool_call("list_expense_reports", {}, call_id=f"call-{i}") for i in range(2)
    ])
    agent = ExpenseWorkflowAgent(service, llm=llm, max_iterations=2)

    output = await agent.execute(AgentInput(message="Keep listing"))

    assert not output.success
    assert output.message.startswith("ERROR: Max iterations reached")
    assert output.tool_calls == ["list_expense_reports", "list_expense_reports"]


@pytest.mark.asyncio
async def test_model_failure_is_reported(service):

    class BrokenChatModel(ScriptedChatModel):
        async def ainvoke(self, messages):
            raise ConnectionError("model unavailable")

    agent = ExpenseWorkflowAgent(service, llm=BrokenChatModel([]))

    output = await agent.execute(AgentInput(message="Anything"))

    assert not output.success
    assert output.message == "Failed to process request: model unavailable"


@pytest.mark.asyncio
async def test_agent_endpoint(service):
    import httpx

    from app.config import Settings
    from app.main import create_app

    llm = ScriptedChatModel([
        tool_call("list_expense_reports", {"employee_id": "emp-1"}),
        AIMessage(content="You have no reports."),
    ])
    app = create_app(settings=Settings(), service=service, llm=llm)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post("/api/agent/expenses", json={"message": "List my reports"})

    body = response.json()
    assert response.status_code == 200
    assert body["success"] is True
    assert body["tool_calls"] == ["list_expense_reports"]
    assert body["data"]["steps"][0]["result"]["total"] == 0


@pytest.mark.asyncio
async def test_agent_endpoint_rejects_empty_message(client):
    response = await client.post("/api/agent/expenses", json={"message": ""})

    assert response.status_code == 400
