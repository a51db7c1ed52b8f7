"""
Step validation for flow fragments.

Each flow type carries a typed step schema (see fixflow.workflow.flows). A
fragment submitted for (flow_type, step) is accepted when that step's schema
accepts it. Validation is pure: no store access, no clock, no logging side
effects beyond warning about ungoverned steps.

The engine never calls the validator. Callers validate first and only call
FlowEngine.advance_step when the result is valid.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type, Union

from pydantic import ValidationError

from fixflow.core.settings import settings
from fixflow.workflow.base import FlowDefinition, StepSchema
from fixflow.workflow.flows import FLOW_DEFINITIONS
from fixflow.workflow.models import FlowType, ValidationResult

logger = logging.getLogger(__name__)


def _format_errors(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        field = ".".join(str(loc) for loc in item.get("loc", ())) or "fragment"
        parts.append(f"{field}: {item.get('msg')}")
    return "; ".join(parts)


class StepValidator:
    def __init__(
        self,
        definitions: Optional[Mapping[FlowType, FlowDefinition]] = None,
        strict: Optional[bool] = None,
    ):
        self.definitions = dict(definitions if definitions is not None else FLOW_DEFINITIONS)
        self.strict = settings.flow.strict_validation if strict is None else strict

    def schema_for(self, flow_type: Union[FlowType, str], step: int) -> Optional[Type[StepSchema]]:
        definition = self.definitions.get(FlowType(flow_type))
        if definition is None:
            return None
        return definition.step_schemas.get(step)

    def validate(self, flow_type: Union[FlowType, str], step: int, fragment: Dict[str, Any]) -> ValidationResult:
        """
        Check a data fragment offered for one step of a flow.

        Args:
            flow_type: The flow tag (enum member or its wire value)
            step: The step the fragment is meant for
            fragment: The data the user supplied at that step

        Returns:
            ValidationResult with valid=True when the step's schema accepts the fragment
        """
        try:
            flow_type = FlowType(flow_type)
        except ValueError:
            return ValidationResult(valid=False, message=f"Unknown flow type '{flow_type}'")

        schema = self.schema_for(flow_type, step)
        if schema is None:
            # Ungoverned step: permissive unless strict mode is on
            logger.warning(
                f"No validator registered for step {step} of flow {flow_type.value}",
                extra={"flow_type": flow_type.value, "step": step},
            )
            if self.strict:
                return ValidationResult(
                    valid=False,
                    message=f"Step {step} of flow {flow_type.value} has no registered validator",
                )
            return ValidationResult(valid=True, message="")

        try:
            schema.model_validate(fragment or {})
        except ValidationError as e:
            return ValidationResult(
                valid=False,
                message=f"Invalid data for step {step} in flow {flow_type.value}: {_format_errors(e)}",
            )
        return ValidationResult(valid=True, message="")

    def ungoverned_steps(self) -> List[Tuple[FlowType, int]]:
        """
        Every configured (flow_type, step) pair that has no registered schema.
        Intended for startup checks and tests, so new steps cannot silently
        accept arbitrary data.
        """
        missing = []
        for flow_type, definition in self.definitions.items():
            schemas = definition.step_schemas
            for step in range(1, definition.config.total_steps + 1):
                if step not in schemas:
                    missing.append((flow_type, step))
        return missing


step_validator = StepValidator()


def validate(flow_type: Union[FlowType, str], step: int, fragment: Dict[str, Any]) -> ValidationResult:
    return step_validator.validate(flow_type, step, fragment)
