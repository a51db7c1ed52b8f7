
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any

from fixflow.workflow.models import FlowConfig, FlowSession, FlowType, NavigationOptions, Progress

class StartFlowRequest(BaseModel):
    flow_type: FlowType
    initial_data: Dict[str, Any] = Field(default_factory=dict)
    config: Optional[FlowConfig] = None # defaults to the registered config of flow_type

class SubmitStepRequest(BaseModel):
    fragment: Dict[str, Any] = Field(default_factory=dict)

class AdvanceStepRequest(BaseModel):
    next_step: int
    data: Dict[str, Any] = Field(default_factory=dict)

class UpdateDataRequest(BaseModel):
    data: Dict[str, Any]

class CompleteFlowRequest(BaseModel):
    data: Dict[str, Any] = Field(default_factory=dict)

class CancelFlowRequest(BaseModel):
    reason: str = "User cancelled"

class ValidateStepRequest(BaseModel):
    flow_type: FlowType
    step: int
    fragment: Dict[str, Any] = Field(default_factory=dict)

class FlowResponse(BaseModel):
    session: FlowSession
    navigation: NavigationOptions
    progress: Optional[Progress] = None
    progress_bar: Optional[str] = None

class ErrorResponse(BaseModel):
    error: str
    detail: str
