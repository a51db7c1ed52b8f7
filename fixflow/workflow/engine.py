
import copy
import logging
from datetime import timedelta
from typing import Any, Callable, Dict, Optional, Union

from fixflow.core.observability import TraceManager
from fixflow.core.settings import settings
from fixflow.services.flow_store import FlowStore
from fixflow.workflow.clock import Clock, utc_now
from fixflow.workflow.config import get_flow_config
from fixflow.workflow.errors import (
    CorruptRecord,
    InvalidStepTransition,
    NoActiveFlow,
    NoPreviousStep,
    VersionConflict,
)
from fixflow.workflow.models import FlowConfig, FlowSession, FlowStatus, FlowType, HistoryEntry

logger = logging.getLogger(__name__)

class FlowEngine:
    """
    Per-owner multi-step wizard state machine.

    The engine holds no session state of its own; every call reads the
    owner's record from the store, applies one transition and writes it back
    with a version check. Sessions idle for longer than the TTL are deleted
    the next time they are read.
    """

    def __init__(
        self,
        store: FlowStore,
        clock: Optional[Clock] = None,
        ttl: Optional[timedelta] = None,
        max_conflict_retries: Optional[int] = None,
    ):
        self.store = store
        self.clock = clock or utc_now
        self.ttl = ttl if ttl is not None else timedelta(minutes=settings.flow.ttl_minutes)
        self.max_conflict_retries = (
            settings.flow.max_conflict_retries if max_conflict_retries is None else max_conflict_retries
        )
        logger.info(f"Flow Engine initialized with {type(store).__name__}, ttl={self.ttl}")

    # --- Lifecycle ---

    async def start_flow(
        self,
        owner_id: str,
        flow_type: Union[FlowType, str],
        initial_data: Optional[Dict[str, Any]] = None,
        config: Optional[FlowConfig] = None,
    ) -> FlowSession:
        """
        Begin a fresh flow, replacing whatever the owner had before (no merge).
        """
        flow_type = FlowType(flow_type)
        config = config or get_flow_config(flow_type)

        now = self.clock()

        # Bump past the old record's version so a write based on the old
        # session cannot land on the new one. Other read failures propagate.
        try:
            previous = await self.store.get(owner_id)
            version = previous.version + 1 if previous else 1
        except CorruptRecord:
            logger.warning(f"Discarding unreadable flow record for owner {owner_id}")
            # Old version unknown: use a millisecond clock reading, far past any step counter
            version = int(now.timestamp() * 1000)

        flow = FlowSession(
            owner_id=owner_id,
            flow_type=flow_type,
            current_step=1,
            total_steps=config.total_steps,
            data=copy.deepcopy(initial_data or {}),
            history=[],
            status=FlowStatus.ACTIVE,
            config=config,
            version=version,
            created_at=now,
            updated_at=now,
        )
        await self.store.upsert(owner_id, flow)
        TraceManager.flow_event("started", owner_id, flow_type.value, 1, total_steps=config.total_steps)
        return flow

    async def get_flow(self, owner_id: str) -> Optional[FlowSession]:
        """
        The owner's stored session in any status, or None. Expired sessions
        are deleted here.
        """
        flow = await self.store.get(owner_id)
        if flow is None:
            return None

        if self.clock() - flow.updated_at > self.ttl:
            try:
                await self.store.delete(owner_id, expected_version=flow.version)
            except VersionConflict:
                # Restarted or touched since the read; reread what is there now
                return await self.get_flow(owner_id)
            logger.info(f"Flow for owner {owner_id} expired", extra={"owner_id": owner_id, "flow_type": flow.flow_type.value})
            TraceManager.flow_event("expired", owner_id, flow.flow_type.value, flow.current_step)
            return None

        return flow

    async def get_active_flow(self, owner_id: str) -> Optional[FlowSession]:
        flow = await self.get_flow(owner_id)
        if flow is None or not flow.is_active:
            return None
        return flow

    async def has_active_flow(self, owner_id: str, flow_type: Optional[Union[FlowType, str]] = None) -> bool:
        flow = await self.get_active_flow(owner_id)
        if flow is None:
            return False
        return flow_type is None or flow.flow_type == FlowType(flow_type)

    async def advance_step(
        self,
        owner_id: str,
        next_step: int,
        data_patch: Optional[Dict[str, Any]] = None,
    ) -> FlowSession:
        def apply(flow: FlowSession, now) -> None:
            if next_step != flow.current_step + 1 or next_step > flow.total_steps:
                raise InvalidStepTransition(owner_id, flow.current_step, next_step, flow.total_steps)
            flow.history.append(
                HistoryEntry(step=flow.current_step, data=copy.deepcopy(flow.data), timestamp=now)
            )
            flow.data = {**flow.data, **(data_patch or {})}
            flow.current_step = next_step

        return await self._mutate(owner_id, apply, "advanced")

    async def go_back(self, owner_id: str) -> FlowSession:
        """
        Restore the snapshot taken before the last advance. Data entered since
        then is dropped, not merged.
        """
        def apply(flow: FlowSession, now) -> None:
            if not flow.history:
                raise NoPreviousStep(owner_id)
            previous = flow.history.pop()
            flow.current_step = previous.step
            flow.data = previous.data

        return await self._mutate(owner_id, apply, "went_back")

    async def update_data(self, owner_id: str, data_patch: Dict[str, Any]) -> FlowSession:
        def apply(flow: FlowSession, now) -> None:
            flow.data = {**flow.data, **(data_patch or {})}

        return await self._mutate(owner_id, apply, "data_updated")

    async def complete_flow(self, owner_id: str, final_data: Optional[Dict[str, Any]] = None) -> FlowSession:
        def apply(flow: FlowSession, now) -> None:
            flow.data = {**flow.data, **(final_data or {})}
            flow.status = FlowStatus.COMPLETED
            flow.completed_at = now

        return await self._mutate(owner_id, apply, "completed")

    async def cancel_flow(self, owner_id: str, reason: str = "User cancelled") -> Optional[FlowSession]:
        def apply(flow: FlowSession, now) -> None:
            flow.status = FlowStatus.CANCELLED
            flow.cancelled_at = now
            flow.cancel_reason = reason

        try:
            return await self._mutate(owner_id, apply, "cancelled", reason=reason)
        except NoActiveFlow:
            # Nothing to cancel
            return None

    async def clear_flow(self, owner_id: str) -> None:
        await self.store.delete(owner_id)
        TraceManager.flow_event("cleared", owner_id)

    async def reap_expired(self) -> int:
        """
        Delete every record idle past the TTL. Optional hygiene; reads expire
        sessions on their own.
        """
        removed = await self.store.delete_expired(self.clock() - self.ttl)
        logger.info(f"Reaped {removed} expired flows")
        return removed

    # --- Helpers ---

    async def _mutate(
        self,
        owner_id: str,
        apply: Callable[[FlowSession, Any], None],
        event: str,
        **event_fields,
    ) -> FlowSession:
        """
        Read the active session, apply one transition and write it back only if
        nobody else wrote in between. Conflicting writes are retried on a fresh
        read. Errors raised by `apply` leave the stored record untouched.
        """
        attempts = self.max_conflict_retries + 1
        for attempt in range(1, attempts + 1):
            flow = await self.get_active_flow(owner_id)
            if flow is None:
                raise NoActiveFlow(owner_id)

            expected_version = flow.version
            now = self.clock()
            apply(flow, now)
            flow.version = expected_version + 1
            flow.updated_at = now

            try:
                await self.store.upsert(owner_id, flow, expected_version=expected_version)
            except VersionConflict:
                logger.warning(
                    f"Version conflict on flow for owner {owner_id} (attempt {attempt}/{attempts})",
                    extra={"owner_id": owner_id, "flow_type": flow.flow_type.value},
                )
                if attempt == attempts:
                    raise
                continue

            TraceManager.flow_event(event, owner_id, flow.flow_type.value, flow.current_step, **event_fields)
            return flow

        raise RuntimeError("unreachable")
