import pytest

from fixflow.workflow.config import get_flow_config, navigation_options
from fixflow.workflow.models import FlowType


@pytest.mark.parametrize(
    "flow_type, total_steps, allow_back, show_progress",
    [
        ("wo_new", 6, True, True),
        ("reg_fac", 4, False, True),
        ("reminder_new", 3, False, False),
        ("register_user", 5, False, True),
    ],
)
def test_registered_configs(flow_type, total_steps, allow_back, show_progress):
    config = get_flow_config(flow_type)

    assert config.total_steps == total_steps
    assert config.allow_back is allow_back
    assert config.allow_cancel is True
    assert config.show_progress is show_progress
    assert config.title


def test_unknown_flow_type_raises():
    with pytest.raises(ValueError):
        get_flow_config("nope")


@pytest.mark.asyncio
async def test_back_is_offered_only_with_history(engine):
    session = await engine.start_flow("1", FlowType.WORK_ORDER_NEW)
    assert navigation_options(session).can_go_back is False

    session = await engine.advance_step("1", 2, {"typeOfWork": "repair"})
    options = navigation_options(session)
    assert options.can_go_back is True
    assert options.can_cancel is True
    assert options.show_progress is True


@pytest.mark.asyncio
async def test_back_is_never_offered_when_flow_disallows_it(engine):
    await engine.start_flow("1", FlowType.FACILITY_REGISTRATION)
    session = await engine.advance_step("1", 2, {"name": "Plant A"})

    assert navigation_options(session).can_go_back is False
    # Navigation options are advisory; the engine still honors go_back
    session = await engine.go_back("1")
    assert session.current_step == 1
