import logging

from fastapi import APIRouter, Depends, HTTPException

from expense_agents.base import AgentInput
from expense_agents.errors import safe_error_message
from expense_agents.registry import AgentNotFoundError, AgentRegistry

from app.dependencies import get_agent_registry

router = APIRouter(prefix="/api/agent", tags=["agent"])
logger = logging.getLogger(__name__)

EXPENSE_AGENT_NAME = "expense_workflow_agent"


@router.post("/expenses")
async def run_expense_agent(
    input_data: AgentInput,
    agent_registry: AgentRegistry = Depends(get_agent_registry),
):
    """Hand a natural-language request to the expense workflow agent."""
    try:
        agent = agent_registry.get(EXPENSE_AGENT_NAME)
    except AgentNotFoundError as e:
        logger.error(f"Expense agent is not registered: {e}")
        raise HTTPException(status_code=500, detail="Expense workflow agent is not available") from e

    logger.info(f"Running {agent.name} for report {input_data.report_id or '-'}")
    try:
        output = await agent.execute(input_data)
    except Exception as e:
        logger.error(f"Agent execution failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=safe_error_message(e)) from e
    return output.model_dump()
