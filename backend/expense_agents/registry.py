from typing import Any, Dict, List
import logging
from .base import Agent

logger = logging.getLogger(__name__)


class AgentNotFoundError(KeyError):
    pass


class AgentRegistry:
    """Name -> agent lookup shared by the API layer."""

    def __init__(self):
        self._agents: Dict[str, Agent] = {}

    def register(self, agent: Agent) -> None:
        if agent.name in self._agents:
            raise ValueError(f"Agent '{agent.name}' is already registered")
        self._agents[agent.name] = agent
        logger.info(f"Registered agent: {agent.name}")

    def get(self, name: str) -> Agent:
        try:
            return self._agents[name]
        except KeyError:
            raise AgentNotFoundError(f"Agent '{name}' not found") from None

    def list_agents(self) -> List[str]:
        return list(self._agents)

    def get_agent_info(self, name: str) -> Dict[str, Any]:
        agent = self.get(name)
        return {
            "name": agent.name,
            "description": agent.description,
            "input_schema": agent.get_input_schema().__name__,
            "output_schema": agent.get_output_schema().__name__,
            "tools": sorted(getattr(agent, "tool_map", {})),
        }

    def unregister(self, name: str) -> None:
        if self._agents.pop(name, None) is not None:
            logger.info(f"Unregistered agent: {name}")

    def clear(self) -> None:
        self._agents.clear()


registry = AgentRegistry()


def get_agent(name: str) -> Agent:
    return registry.get(name)
