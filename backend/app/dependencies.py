from fastapi import Request

from expense_agents.registry import AgentRegistry
from expense_agents.workflow import ExpenseWorkflowService


def get_workflow_service(request: Request) -> ExpenseWorkflowService:
    return request.app.state.workflow_service


def get_agent_registry(request: Request) -> AgentRegistry:
    return request.app.state.agent_registry
