from abc import ABC, abstractmethod
from typing import Dict, Type

from pydantic import BaseModel, ConfigDict

from fixflow.workflow.models import FlowConfig, FlowType


class StepSchema(BaseModel):
    """
    Base for per-step fragment schemas. Fragments may carry extra keys
    (e.g. ids the controller adds), only the declared fields are checked.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True, str_strip_whitespace=True)


class FlowDefinition(ABC):
    @property
    @abstractmethod
    def flow_type(self) -> FlowType:
        """The closed-enum tag of this flow (e.g. FlowType.WORK_ORDER_NEW)."""
        pass

    @property
    @abstractmethod
    def config(self) -> FlowConfig:
        """Navigation policy and presentation metadata."""
        pass

    @property
    @abstractmethod
    def step_schemas(self) -> Dict[int, Type[StepSchema]]:
        """
        Typed schema of the fragment each step accepts.
        Steps left out here are ungoverned.
        """
        pass
