import re
from typing import Dict, Optional, Type, Union

from pydantic import Field, field_validator

from fixflow.workflow.base import FlowDefinition, StepSchema
from fixflow.workflow.models import FlowConfig, FlowType


class FullNameStep(StepSchema):
    full_name: str = Field(..., alias="fullName", min_length=2, max_length=50)


class EmailStep(StepSchema):
    # None means the user skipped the step
    email: Optional[str] = Field(None, pattern=r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class UserPhoneStep(StepSchema):
    phone: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def digit_count(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        digits = re.sub(r"\D", "", value)
        if not 7 <= len(digits) <= 15:
            raise ValueError("phone must contain 7 to 15 digits")
        return value


class JobTitleStep(StepSchema):
    job_title: Optional[str] = Field(None, alias="jobTitle", max_length=100)


class FacilityChoiceStep(StepSchema):
    facility_id: Union[int, str] = Field(..., alias="facilityId")


class UserRegistrationFlow(FlowDefinition):
    @property
    def flow_type(self) -> FlowType:
        return FlowType.USER_REGISTRATION

    @property
    def config(self) -> FlowConfig:
        return FlowConfig(
            total_steps=5,
            title="User Registration",
            description="Create your profile and join a facility",
            allow_back=False,
            allow_cancel=True,
            show_progress=True,
        )

    @property
    def step_schemas(self) -> Dict[int, Type[StepSchema]]:
        return {
            1: FullNameStep,
            2: EmailStep,
            3: UserPhoneStep,
            4: JobTitleStep,
            5: FacilityChoiceStep,
        }
