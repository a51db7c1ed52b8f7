from typing import Dict, Optional, Type

from pydantic import Field

from fixflow.workflow.base import FlowDefinition, StepSchema
from fixflow.workflow.models import FlowConfig, FlowType


class WorkTypeStep(StepSchema):
    type_of_work: str = Field(..., alias="typeOfWork", min_length=1)


class ServiceTypeStep(StepSchema):
    type_of_service: str = Field(..., alias="typeOfService", min_length=1)


class PriorityStep(StepSchema):
    priority: str = Field(..., min_length=1)


class LocationStep(StepSchema):
    location: str = Field(..., min_length=3, max_length=100)


class EquipmentStep(StepSchema):
    # Equipment is optional; users may skip it
    equipment: Optional[str] = Field(None, max_length=100)


class DescriptionStep(StepSchema):
    description: str = Field(..., min_length=10, max_length=500)


class WorkOrderFlow(FlowDefinition):
    @property
    def flow_type(self) -> FlowType:
        return FlowType.WORK_ORDER_NEW

    @property
    def config(self) -> FlowConfig:
        return FlowConfig(
            total_steps=6,
            title="Work Order Creation",
            description="Create a new maintenance work order",
            allow_back=True,
            allow_cancel=True,
            show_progress=True,
        )

    @property
    def step_schemas(self) -> Dict[int, Type[StepSchema]]:
        return {
            1: WorkTypeStep,
            2: ServiceTypeStep,
            3: PriorityStep,
            4: LocationStep,
            5: EquipmentStep,
            6: DescriptionStep,
        }
