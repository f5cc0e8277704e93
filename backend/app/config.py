from dataclasses import dataclass, field
from typing import List, Optional
import os

from dotenv import load_dotenv

from expense_agents.schemas import ApprovalRules

load_dotenv()


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a number, got {value!r}") from None


@dataclass
class Settings:
    app_name: str = "Expense Approvals Workflow Agent"
    port: int = 4002
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:4200"])
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    agent_max_iterations: int = 6
    approval_rules: ApprovalRules = field(default_factory=ApprovalRules)

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = ApprovalRules()
        return cls(
            app_name=os.getenv("APP_NAME", cls.app_name),
            port=int(os.getenv("PORT", cls.port)),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
            cors_origins=[
                origin.strip()
                for origin in os.getenv("CORS_ORIGINS", "http://localhost:4200").split(",")
                if origin.strip()
            ],
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_model=os.getenv("OPENAI_MODEL", cls.openai_model),
            agent_max_iterations=int(os.getenv("AGENT_MAX_ITERATIONS", cls.agent_max_iterations)),
            approval_rules=ApprovalRules(
                auto_approval_threshold=_float_env(
                    "EXPENSE_AUTO_APPROVAL_THRESHOLD", defaults.auto_approval_threshold),
                requires_receipt_threshold=_float_env(
                    "EXPENSE_RECEIPT_THRESHOLD", defaults.requires_receipt_threshold),
                single_item_limit=_float_env(
                    "EXPENSE_SINGLE_ITEM_LIMIT", defaults.single_item_limit),
                max_manager_approval=_float_env(
                    "EXPENSE_MAX_MANAGER_APPROVAL", defaults.max_manager_approval),
                max_finance_approval=_float_env(
                    "EXPENSE_MAX_FINANCE_APPROVAL", defaults.max_finance_approval),
            ),
        )
