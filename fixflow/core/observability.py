
import logging
import uuid
import contextvars
import json
import time
from typing import Optional, Dict, Any

# Context Variables for Trace Context
_trace_id_ctx = contextvars.ContextVar("trace_id", default=None)

_trace_logger = logging.getLogger("fixflow.trace")

class TraceManager:
    """
    Manages structured event logging and tracing context.
    Events are emitted as one JSON document per line on the `fixflow.trace` logger,
    so they land wherever the root logging handler sends them.
    """

    @staticmethod
    def get_trace_id() -> str:
        tid = _trace_id_ctx.get()
        if not tid:
            tid = str(uuid.uuid4())
            _trace_id_ctx.set(tid)
        return tid

    @staticmethod
    def set_trace_id(trace_id: str):
        _trace_id_ctx.set(trace_id)

    @staticmethod
    def log(level: str, message: str, extra: Optional[Dict[str, Any]] = None):
        """
        Structured log emission.
        """
        payload = {
            "timestamp": time.time(),
            "level": level.upper(),
            "message": message,
            "trace_id": TraceManager.get_trace_id(),
            **(extra or {})
        }
        _trace_logger.log(
            logging.getLevelName(level.upper()),
            json.dumps(payload, default=str),
            extra={"trace_id": payload["trace_id"]},
        )

    @staticmethod
    def info(message: str, **kwargs):
        TraceManager.log("INFO", message, kwargs)

    @staticmethod
    def error(message: str, exc: Optional[Exception] = None, **kwargs):
        extra = kwargs
        if exc:
            extra["error"] = str(exc)
            extra["error_type"] = type(exc).__name__
        TraceManager.log("ERROR", message, extra)

    @staticmethod
    def flow_event(event: str, owner_id: str, flow_type: Optional[str] = None, step: Optional[int] = None, **kwargs):
        """
        Flow lifecycle transitions (started, advanced, went_back, completed, ...).
        """
        TraceManager.info(
            f"Flow {event}",
            feature="flow",
            event=event,
            owner_id=owner_id,
            flow_type=flow_type,
            step=step,
            **kwargs
        )
