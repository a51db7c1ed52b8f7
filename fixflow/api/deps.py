from typing import Annotated

from fastapi import Depends, Request

from fixflow.workflow.controller import FlowController
from fixflow.workflow.engine import FlowEngine


def get_engine(request: Request) -> FlowEngine:
    # Built once in the app lifespan around the configured store
    return request.app.state.engine


def get_controller(engine: Annotated[FlowEngine, Depends(get_engine)]) -> FlowController:
    return FlowController(engine)
