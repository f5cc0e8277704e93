import pytest

from expense_agents.expense_agent import ExpenseWorkflowAgent
from expense_agents.register_agents import register_all_agents
from expense_agents.registry import AgentNotFoundError, AgentRegistry


def test_register_and_lookup(service):
    registry = AgentRegistry()
    agent = ExpenseWorkflowAgent(service)

    registry.register(agent)

    assert registry.get("expense_workflow_agent") is agent
    assert registry.list_agents() == ["expense_workflow_agent"]


def test_duplicate_registration_is_refused(service):
    registry = AgentRegistry()
    registry.register(ExpenseWorkflowAgent(service))

    with pytest.raises(ValueError, match="already registered"):
        registry.register(ExpenseWorkflowAgent(service))


def test_unknown_agent_raises():
    with pytest.raises(AgentNotFoundError):
        AgentRegistry().get("nobody")


def test_agent_info_lists_tools(service):
    registry = AgentRegistry()
    register_all_agents(service, registry=registry)

    info = registry.get_agent_info("expense_workflow_agent")

    assert info["input_schema"] == "AgentInput"
    assert info["output_schema"] == "AgentOutput"
    assert "process_payment" in info["tools"]


def test_register_all_agents_replaces_previous_registration(service):
    registry = AgentRegistry()
    register_all_agents(service, registry=registry)
    first = registry.get("expense_workflow_agent")

    assert register_all_agents(service, registry=registry) == ["expense_workflow_agent"]
    assert registry.get("expense_workflow_agent") is not first

    registry.unregister("expense_workflow_agent")
    assert registry.list_agents() == []


def test_register_all_agents_passes_api_key(service):
    registry = AgentRegistry()

    register_all_agents(service, registry=registry, api_key="sk-configured")

    assert registry.get("expense_workflow_agent").api_key == "sk-configured"
