from .work_order import WorkOrderFlow
from .facility import FacilityRegistrationFlow
from .reminder import ReminderFlow
from .user_registration import UserRegistrationFlow

# Registry of all available flows
# New flows need a FlowType member and an entry here
AVAILABLE_FLOWS = [
    WorkOrderFlow(),
    FacilityRegistrationFlow(),
    ReminderFlow(),
    UserRegistrationFlow()
]

FLOW_DEFINITIONS = {flow.flow_type: flow for flow in AVAILABLE_FLOWS}
