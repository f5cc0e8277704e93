from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, TypeVar
import asyncio
import logging

from .errors import ReportNotFoundError
from .state import ExpenseWorkflow

T = TypeVar("T")

WorkflowPredicate = Callable[[ExpenseWorkflow], bool]
WorkflowMutator = Callable[[ExpenseWorkflow], T]


class WorkflowStore(ABC):
    """Keyed storage for workflow records, one record per report ID."""

    @abstractmethod
    async def get(self, report_id: str) -> Optional[ExpenseWorkflow]:
        pass

    @abstractmethod
    async def put(self, workflow: ExpenseWorkflow) -> None:
        pass

    @abstractmethod
    async def list(self, predicate: Optional[WorkflowPredicate] = None) -> List[ExpenseWorkflow]:
        pass

    @abstractmethod
    async def update(self, report_id: str, mutator: WorkflowMutator) -> T:
        """Atomically apply ``mutator`` to the record for ``report_id``.

        The mutation is committed only when ``mutator`` returns; if it raises,
        the stored record is left unchanged. Raises ReportNotFoundError for an
        unknown report.
        """

    async def require(self, report_id: str) -> ExpenseWorkflow:
        workflow = await self.get(report_id)
        if workflow is None:
            raise ReportNotFoundError(report_id)
        return workflow


class InMemoryWorkflowStore(WorkflowStore):

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self._workflows: Dict[str, ExpenseWorkflow] = {}
        self._lock = asyncio.Lock()

    async def get(self, report_id: str) -> Optional[ExpenseWorkflow]:
        workflow = self._workflows.get(report_id)
        return workflow.model_copy(deep=True) if workflow else None

    async def put(self, workflow: ExpenseWorkflow) -> None:
        async with self._lock:
            self._workflows[workflow.report_id] = workflow.model_copy(deep=True)
        self.logger.debug(f"Stored workflow {workflow.id} for report {workflow.report_id}")

    async def list(self, predicate: Optional[WorkflowPredicate] = None) -> List[ExpenseWorkflow]:
        workflows = list(self._workflows.values())
        if predicate:
            workflows = [w for w in workflows if predicate(w)]
        return [w.model_copy(deep=True) for w in workflows]

    async def update(self, report_id: str, mutator: WorkflowMutator) -> T:
        async with self._lock:
            current = self._workflows.get(report_id)
            if current is None:
                raise ReportNotFoundError(report_id)

            working_copy = current.model_copy(deep=True)
            result = mutator(working_copy)
            self._workflows[report_id] = working_copy

        self.logger.debug(f"Updated workflow for report {report_id} -> {working_copy.status.value}")
        return result

    def __len__(self) -> int:
        return len(self._workflows)

    def clear(self) -> None:
        self._workflows.clear()
        self.logger.info("Cleared all workflows from store")
