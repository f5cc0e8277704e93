from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, TypeVar, Generic
from pydantic import BaseModel, ConfigDict, Field
import logging

TInput = TypeVar('TInput', bound=BaseModel)
TOutput = TypeVar('TOutput', bound=BaseModel)


class AgentInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(min_length=1)
    report_id: Optional[str] = Field(default=None, alias="reportId")
    data: Dict[str, Any] = Field(default_factory=dict)


class AgentOutput(BaseModel):
    success: bool
    message: str
    reasoning: str
    data: Dict[str, Any] = Field(default_factory=dict)
    tool_calls: List[str] = Field(default_factory=list)


class Agent(ABC, Generic[TInput, TOutput]):

    def __init__(self, name: str, description: str):
        self.name = name
        self.description = description
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @abstractmethod
    async def execute(self, input_data: TInput) -> TOutput:
        pass

    @abstractmethod
    def get_input_schema(self) -> type[TInput]:
        pass

    @abstractmethod
    def get_output_schema(self) -> type[TOutput]:
        pass

    def create_output(self, success: bool, message: str, reasoning: str,
                      data: Optional[Dict[str, Any]] = None,
                      tool_calls: Optional[List[str]] = None) -> TOutput:
        return self.get_output_schema()(
            success=success,
            message=message,
            reasoning=reasoning,
            data=data or {},
            tool_calls=tool_calls or [],
        )
