"""
Agent Registration Module

Registers the expense workflow agent with an agent registry.
Called during application startup.
"""

from typing import Any, List, Optional
import logging

from expense_agents.expense_agent import ExpenseWorkflowAgent
from expense_agents.registry import AgentRegistry, registry as default_registry
from expense_agents.workflow import ExpenseWorkflowService

logger = logging.getLogger(__name__)


def register_all_agents(service: ExpenseWorkflowService,
                        registry: Optional[AgentRegistry] = None,
                        llm: Any = None,
                        model_name: str = "gpt-4o-mini",
                        max_iterations: int = 6,
                        api_key: Optional[str] = None) -> List[str]:
    """
    Register all available agents, replacing any previous registration so the
    application can be rebuilt (e.g. once per test) with a fresh service.
    """
    registry = registry or default_registry
    logger.info("Registering agents...")

    agent = ExpenseWorkflowAgent(
        service,
        llm=llm,
        model_name=model_name,
        max_iterations=max_iterations,
        api_key=api_key,
    )
    registry.unregister(agent.name)
    registry.register(agent)

    registered = registry.list_agents()
    logger.info(f"Total agents registered: {len(registered)}")
    logger.info(f"Available agents: {', '.join(registered)}")

    return registered


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    registered = register_all_agents(ExpenseWorkflowService())
    print(f"\nSuccessfully registered {len(registered)} agents:")
    for agent_name in registered:
        info = default_registry.get_agent_info(agent_name)
        print(f"  - {agent_name}: {info['description']}")
