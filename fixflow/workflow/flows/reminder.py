from datetime import date
from typing import Dict, Optional, Type

from pydantic import Field, field_validator

from fixflow.workflow.base import FlowDefinition, StepSchema
from fixflow.workflow.models import FlowConfig, FlowType


class TitleStep(StepSchema):
    title: str = Field(..., min_length=3, max_length=100)


class DueDateStep(StepSchema):
    due_date: str = Field(..., alias="dueDate", pattern=r"^\d{4}-\d{2}-\d{2}$")

    @field_validator("due_date")
    @classmethod
    def must_be_calendar_date(cls, value: str) -> str:
        # Only the shape and calendar validity are checked here; "in the future"
        # depends on the clock and belongs to the caller.
        try:
            date.fromisoformat(value)
        except ValueError:
            raise ValueError("dueDate is not a real calendar date")
        return value


class ReminderDescriptionStep(StepSchema):
    description: Optional[str] = Field(None, max_length=500)


class ReminderFlow(FlowDefinition):
    @property
    def flow_type(self) -> FlowType:
        return FlowType.REMINDER_NEW

    @property
    def config(self) -> FlowConfig:
        return FlowConfig(
            total_steps=3,
            title="New Reminder",
            description="Create a personal or facility reminder",
            allow_back=False,
            allow_cancel=True,
            show_progress=False,
        )

    @property
    def step_schemas(self) -> Dict[int, Type[StepSchema]]:
        return {
            1: TitleStep,
            2: DueDateStep,
            3: ReminderDescriptionStep,
        }
