import logging
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel

from fixflow.workflow.config import navigation_options
from fixflow.workflow.engine import FlowEngine
from fixflow.workflow.errors import NoActiveFlow
from fixflow.workflow.models import FlowSession, NavigationOptions, Progress
from fixflow.workflow.progress import render_progress
from fixflow.workflow.validation import StepValidator, step_validator

logger = logging.getLogger(__name__)


class StepOutcome(BaseModel):
    status: Literal["advanced", "invalid", "ready_to_confirm"]
    message: str = ""
    session: FlowSession
    progress: Optional[Progress] = None
    navigation: NavigationOptions


def describe(session: FlowSession, status: str, message: str = "") -> StepOutcome:
    progress = None
    if session.config.show_progress:
        progress = render_progress(session.current_step, session.total_steps)
    return StepOutcome(
        status=status,
        message=message,
        session=session,
        progress=progress,
        navigation=navigation_options(session),
    )


class FlowController:
    """
    Validate-then-advance loop shared by every chat controller.
    """

    def __init__(self, engine: FlowEngine, validator: Optional[StepValidator] = None):
        self.engine = engine
        self.validator = validator or step_validator

    async def submit_step(self, owner_id: str, fragment: Dict[str, Any]) -> StepOutcome:
        flow = await self.engine.get_active_flow(owner_id)
        if flow is None:
            raise NoActiveFlow(owner_id)

        result = self.validator.validate(flow.flow_type, flow.current_step, fragment)
        if not result.valid:
            logger.info(
                f"Rejected input for step {flow.current_step} of {flow.flow_type.value}",
                extra={"owner_id": owner_id, "flow_type": flow.flow_type.value, "step": flow.current_step},
            )
            return describe(flow, "invalid", result.message)

        if flow.current_step < flow.total_steps:
            flow = await self.engine.advance_step(owner_id, flow.current_step + 1, fragment)
            return describe(flow, "advanced")

        # Last step: keep the answer and wait for the caller to confirm/complete
        flow = await self.engine.update_data(owner_id, fragment)
        return describe(flow, "ready_to_confirm")
