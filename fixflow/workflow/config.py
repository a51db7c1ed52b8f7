from typing import Union

from fixflow.workflow.base import FlowDefinition
from fixflow.workflow.flows import FLOW_DEFINITIONS
from fixflow.workflow.models import FlowConfig, FlowSession, FlowType, NavigationOptions


def get_flow_definition(flow_type: Union[FlowType, str]) -> FlowDefinition:
    """
    Resolve a flow type (enum member or its wire value) to its definition.
    Raises ValueError for unknown tags.
    """
    return FLOW_DEFINITIONS[FlowType(flow_type)]


def get_flow_config(flow_type: Union[FlowType, str]) -> FlowConfig:
    return get_flow_definition(flow_type).config


def navigation_options(session: FlowSession) -> NavigationOptions:
    """
    What the presentation layer should offer for this session. This never
    restricts the engine: go_back/cancel_flow are honored whenever called.
    """
    config = session.config
    return NavigationOptions(
        can_go_back=config.allow_back and session.can_go_back,
        can_cancel=config.allow_cancel,
        show_progress=config.show_progress,
    )
