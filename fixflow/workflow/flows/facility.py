from typing import Dict, Literal, Type

from pydantic import Field, field_validator

from fixflow.workflow.base import FlowDefinition, StepSchema
from fixflow.workflow.models import FlowConfig, FlowType


class FacilityNameStep(StepSchema):
    name: str = Field(..., min_length=2, max_length=60)


class CityStep(StepSchema):
    city: str = Field(..., min_length=2, max_length=40)


class PhoneStep(StepSchema):
    phone: str = Field(..., min_length=10, max_length=25)


class PlanStep(StepSchema):
    plan: Literal["free", "pro", "business"]

    @field_validator("plan", mode="before")
    @classmethod
    def normalize_plan(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value


class FacilityRegistrationFlow(FlowDefinition):
    @property
    def flow_type(self) -> FlowType:
        return FlowType.FACILITY_REGISTRATION

    @property
    def config(self) -> FlowConfig:
        return FlowConfig(
            total_steps=4,
            title="Facility Registration",
            description="Register a new facility and choose a plan",
            allow_back=False,
            allow_cancel=True,
            show_progress=True,
        )

    @property
    def step_schemas(self) -> Dict[int, Type[StepSchema]]:
        return {
            1: FacilityNameStep,
            2: CityStep,
            3: PhoneStep,
            4: PlanStep,
        }
