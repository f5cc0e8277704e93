from abc import ABC, abstractmethod
from typing import Any, Dict, TypeVar, Generic
from pydantic import BaseModel
import logging

logger = logging.getLogger(__name__)

TInput = TypeVar('TInput', bound=BaseModel)
TOutput = TypeVar('TOutput', bound=BaseModel)


class BaseTool(ABC, Generic[TInput, TOutput]):
    """A synchronous step of the expense workflow, named and schema-typed."""

    def __init__(self, name: str, description: str):
        self.name = name
        self.description = description
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @abstractmethod
    def get_input_schema(self) -> type[TInput]:
        pass

    @abstractmethod
    def get_output_schema(self) -> type[TOutput]:
        pass

    def get_tool_info(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.get_input_schema().__name__,
            "output_schema": self.get_output_schema().__name__,
        }


from .policy import ExpenseReportValidator  # noqa: E402
from .payment import PaymentSettler  # noqa: E402

__all__ = [
    "BaseTool",
    "ExpenseReportValidator",
    "PaymentSettler",
]
