from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class FlowType(str, Enum):
    """Closed set of wizard kinds the assistant knows how to run."""
    WORK_ORDER_NEW = "wo_new"
    FACILITY_REGISTRATION = "reg_fac"
    REMINDER_NEW = "reminder_new"
    USER_REGISTRATION = "register_user"


class FlowStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class FlowConfig(BaseModel):
    """Navigation policy for a flow type. Copied into a session at start and never changed."""
    model_config = ConfigDict(frozen=True)

    total_steps: int = Field(..., ge=1)
    allow_back: bool = True
    allow_cancel: bool = True
    show_progress: bool = True
    title: str = ""
    description: str = ""


class HistoryEntry(BaseModel):
    step: int
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime


class FlowSession(BaseModel):
    owner_id: str
    flow_type: FlowType
    current_step: int = 1
    total_steps: int
    data: Dict[str, Any] = Field(default_factory=dict)
    history: List[HistoryEntry] = Field(default_factory=list)
    status: FlowStatus = FlowStatus.ACTIVE
    config: FlowConfig
    version: int = 1
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == FlowStatus.ACTIVE

    @property
    def can_go_back(self) -> bool:
        return len(self.history) > 0


class ValidationResult(BaseModel):
    valid: bool
    message: str = ""


class Progress(BaseModel):
    percentage: int
    filled_ticks: int
    empty_ticks: int


class NavigationOptions(BaseModel):
    can_go_back: bool
    can_cancel: bool
    show_progress: bool
