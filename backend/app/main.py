from typing import Any, Optional
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from expense_agents.errors import format_validation_errors
from expense_agents.register_agents import register_all_agents
from expense_agents.registry import AgentRegistry
from expense_agents.workflow import ExpenseWorkflowService

from .config import Settings
from .routers import agent, expenses

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(settings: Optional[Settings] = None,
               service: Optional[ExpenseWorkflowService] = None,
               llm: Any = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Expense Approvals Workflow Agent API",
        description="Expense report submission, policy validation, approval routing and payment for LLM tool-calling agents",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    service = service or ExpenseWorkflowService(rules=settings.approval_rules)
    agent_registry = AgentRegistry()
    register_all_agents(
        service,
        registry=agent_registry,
        llm=llm,
        model_name=settings.openai_model,
        max_iterations=settings.agent_max_iterations,
        api_key=settings.openai_api_key,
    )

    app.state.settings = settings
    app.state.workflow_service = service
    app.state.agent_registry = agent_registry

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": format_validation_errors(exc.errors())})

    @app.get("/", response_class=PlainTextResponse)
    def read_root():
        return f"{settings.app_name} - OK"

    app.include_router(expenses.router)
    app.include_router(agent.router)

    logger.info(f"{settings.app_name} ready with {len(agent_registry.list_agents())} agent(s)")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
