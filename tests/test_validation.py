from typing import Dict, Type

import pytest

from fixflow.workflow.base import FlowDefinition, StepSchema
from fixflow.workflow.flows import FLOW_DEFINITIONS
from fixflow.workflow.models import FlowConfig, FlowType
from fixflow.workflow.validation import StepValidator, validate


@pytest.fixture
def validator():
    return StepValidator(strict=False)


@pytest.mark.parametrize(
    "flow_type, step, fragment",
    [
        ("wo_new", 1, {"typeOfWork": "repair"}),
        ("wo_new", 4, {"location": "Bldg A"}),
        ("wo_new", 5, {}),
        ("wo_new", 6, {"description": "Water leaking from the ceiling"}),
        ("reg_fac", 3, {"phone": "+91 98765 43210"}),
        ("reg_fac", 4, {"plan": " Pro "}),
        ("reminder_new", 2, {"dueDate": "2030-02-28"}),
        ("reminder_new", 3, {}),
        ("register_user", 2, {"email": None}),
        ("register_user", 3, {"phone": "555-123-4567"}),
        ("register_user", 5, {"facilityId": 7}),
    ],
)
def test_accepts_valid_fragments(validator, flow_type, step, fragment):
    result = validator.validate(flow_type, step, fragment)
    assert result.valid, result.message


@pytest.mark.parametrize(
    "flow_type, step, fragment, field",
    [
        ("wo_new", 1, {}, "typeOfWork"),
        ("wo_new", 4, {"location": "AB"}, "location"),
        ("wo_new", 6, {"description": "short"}, "description"),
        ("reg_fac", 1, {"name": "X"}, "name"),
        ("reg_fac", 4, {"plan": "enterprise"}, "plan"),
        ("reminder_new", 2, {"dueDate": "28/02/2030"}, "dueDate"),
        ("reminder_new", 2, {"dueDate": "2030-02-30"}, "dueDate"),
        ("register_user", 2, {"email": "not-an-email"}, "email"),
        ("register_user", 3, {"phone": "12"}, "phone"),
        ("register_user", 5, {}, "facilityId"),
    ],
)
def test_rejects_invalid_fragments(validator, flow_type, step, fragment, field):
    result = validator.validate(flow_type, step, fragment)

    assert not result.valid
    assert f"step {step} in flow {flow_type}" in result.message
    assert field in result.message


def test_whitespace_is_stripped_before_length_checks(validator):
    assert not validator.validate("wo_new", 4, {"location": "  A  "}).valid


def test_extra_keys_are_allowed(validator):
    result = validator.validate("wo_new", 1, {"typeOfWork": "repair", "facilityId": 3})
    assert result.valid


def test_unknown_flow_type_is_invalid(validator):
    result = validator.validate("wo_unknown", 1, {})

    assert not result.valid
    assert "wo_unknown" in result.message


def test_builtin_flows_govern_every_step():
    assert StepValidator(strict=True).ungoverned_steps() == []


def test_module_level_validate_uses_builtin_flows():
    assert validate(FlowType.WORK_ORDER_NEW, 3, {"priority": "high"}).valid


class TwoStepSchema(StepSchema):
    answer: str


class PartiallyGovernedFlow(FlowDefinition):
    @property
    def flow_type(self) -> FlowType:
        return FlowType.REMINDER_NEW

    @property
    def config(self) -> FlowConfig:
        return FlowConfig(total_steps=3)

    @property
    def step_schemas(self) -> Dict[int, Type[StepSchema]]:
        return {2: TwoStepSchema}


@pytest.fixture
def partial_definitions():
    return {**FLOW_DEFINITIONS, FlowType.REMINDER_NEW: PartiallyGovernedFlow()}


def test_ungoverned_steps_are_listed(partial_definitions):
    validator = StepValidator(definitions=partial_definitions, strict=False)

    assert validator.ungoverned_steps() == [(FlowType.REMINDER_NEW, 1), (FlowType.REMINDER_NEW, 3)]


def test_ungoverned_step_is_permissive_by_default(partial_definitions, caplog):
    validator = StepValidator(definitions=partial_definitions, strict=False)

    with caplog.at_level("WARNING", logger="fixflow.workflow.validation"):
        result = validator.validate("reminder_new", 1, {"anything": "goes"})

    assert result.valid
    assert "No validator registered for step 1" in caplog.text


def test_ungoverned_step_fails_in_strict_mode(partial_definitions):
    validator = StepValidator(definitions=partial_definitions, strict=True)

    result = validator.validate("reminder_new", 3, {"anything": "goes"})

    assert not result.valid
    assert "no registered validator" in result.message
    assert validator.validate("reminder_new", 2, {"answer": "yes"}).valid
