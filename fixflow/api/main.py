
from fastapi import FastAPI, HTTPException, Request, Depends, Query
from fastapi.responses import JSONResponse
from typing import Annotated
from contextlib import asynccontextmanager
import uuid
import logging
import time

from fixflow.core.settings import settings
from fixflow.core.logging import setup_logging
from fixflow.core.observability import TraceManager
from fixflow.api.deps import get_engine, get_controller
from fixflow.api.schemas import (
    StartFlowRequest,
    SubmitStepRequest,
    AdvanceStepRequest,
    UpdateDataRequest,
    CompleteFlowRequest,
    CancelFlowRequest,
    ValidateStepRequest,
    FlowResponse,
)
from fixflow.services.flow_store import build_flow_store
from fixflow.workflow.config import get_flow_config, navigation_options
from fixflow.workflow.controller import FlowController, StepOutcome
from fixflow.workflow.engine import FlowEngine
from fixflow.workflow.errors import (
    InvalidStepTransition,
    NoActiveFlow,
    NoPreviousStep,
    StorageFailure,
    VersionConflict,
)
from fixflow.workflow.models import FlowConfig, FlowSession, FlowType, Progress, ValidationResult
from fixflow.workflow.progress import format_progress_bar, render_progress
from fixflow.workflow.validation import step_validator

# Setup
setup_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: build the configured store and the engine around it
    store = build_flow_store()
    if settings.flow.store_backend == "database":
        from fixflow.db.models import Base
        from fixflow.db.session import get_engine as get_db_engine
        async with get_db_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    ungoverned = step_validator.ungoverned_steps()
    if ungoverned:
        logger.warning(f"Flow steps without validators: {ungoverned}")

    app.state.engine = FlowEngine(store)

    yield

    # Shutdown
    await store.close()
    if settings.flow.store_backend == "database":
        from fixflow.db.session import dispose_engine
        await dispose_engine()
    if settings.flow.store_backend == "redis":
        from fixflow.core.cache import CacheClient
        await CacheClient.close()

app = FastAPI(title="FixFlow Conversational Flow Engine", version="1.0.0", lifespan=lifespan)

# Middleware for Trace ID
@app.middleware("http")
async def add_trace_id(request: Request, call_next):
    trace_id = request.headers.get("X-Trace-Id", str(uuid.uuid4()))
    TraceManager.set_trace_id(trace_id)
    request.state.trace_id = trace_id

    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    response.headers["X-Trace-Id"] = trace_id
    TraceManager.info(f"Request: {request.method} {request.url.path}", status=response.status_code, duration_ms=duration*1000)
    return response

# Error mapping: engine errors are expected conditions the chat layer turns into prompts
def _error(status_code: int, exc: Exception, detail: str = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": type(exc).__name__, "detail": detail or str(exc)},
    )

@app.exception_handler(NoActiveFlow)
async def no_active_flow_handler(request: Request, exc: NoActiveFlow):
    return _error(404, exc)

@app.exception_handler(NoPreviousStep)
async def no_previous_step_handler(request: Request, exc: NoPreviousStep):
    return _error(409, exc)

@app.exception_handler(VersionConflict)
async def version_conflict_handler(request: Request, exc: VersionConflict):
    return _error(409, exc, "The flow changed while this request was processed. Please try again.")

@app.exception_handler(InvalidStepTransition)
async def invalid_step_handler(request: Request, exc: InvalidStepTransition):
    return _error(422, exc)

@app.exception_handler(StorageFailure)
async def storage_failure_handler(request: Request, exc: StorageFailure):
    TraceManager.error(f"Storage failure on {request.method} {request.url.path}", exc=exc)
    return _error(503, exc, "Something went wrong, please try again.")

def flow_response(session: FlowSession) -> FlowResponse:
    progress = None
    progress_bar = None
    if session.config.show_progress:
        progress = render_progress(session.current_step, session.total_steps)
        progress_bar = format_progress_bar(session.current_step, session.total_steps)
    return FlowResponse(
        session=session,
        navigation=navigation_options(session),
        progress=progress,
        progress_bar=progress_bar,
    )

EngineDep = Annotated[FlowEngine, Depends(get_engine)]

# Routes
@app.get("/health")
async def health_check():
    status = "healthy"
    if settings.flow.store_backend == "redis":
        from fixflow.core.cache import CacheClient
        if not await CacheClient.ping():
            status = "degraded"
    return {"status": status, "env": settings.env, "store": settings.flow.store_backend}

@app.get("/flows/configs/{flow_type}", response_model=FlowConfig)
async def flow_config(flow_type: FlowType):
    return get_flow_config(flow_type)

@app.get("/flows/progress", response_model=Progress)
async def progress(step: Annotated[int, Query(ge=0)], total: Annotated[int, Query(ge=1)]):
    return render_progress(step, total)

@app.post("/flows/validate", response_model=ValidationResult)
async def validate_step(body: ValidateStepRequest):
    return step_validator.validate(body.flow_type, body.step, body.fragment)

@app.get("/flows/{owner_id}", response_model=FlowResponse)
async def get_flow(owner_id: str, engine: EngineDep):
    session = await engine.get_flow(owner_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"No flow for owner {owner_id}")
    return flow_response(session)

@app.post("/flows/{owner_id}/start", response_model=FlowResponse)
async def start_flow(owner_id: str, body: StartFlowRequest, engine: EngineDep):
    session = await engine.start_flow(owner_id, body.flow_type, body.initial_data, body.config)
    return flow_response(session)

@app.post("/flows/{owner_id}/steps", response_model=StepOutcome)
async def submit_step(
    owner_id: str,
    body: SubmitStepRequest,
    controller: Annotated[FlowController, Depends(get_controller)],
):
    return await controller.submit_step(owner_id, body.fragment)

@app.post("/flows/{owner_id}/advance", response_model=FlowResponse)
async def advance_step(owner_id: str, body: AdvanceStepRequest, engine: EngineDep):
    session = await engine.advance_step(owner_id, body.next_step, body.data)
    return flow_response(session)

@app.post("/flows/{owner_id}/back", response_model=FlowResponse)
async def go_back(owner_id: str, engine: EngineDep):
    session = await engine.go_back(owner_id)
    return flow_response(session)

@app.patch("/flows/{owner_id}/data", response_model=FlowResponse)
async def update_data(owner_id: str, body: UpdateDataRequest, engine: EngineDep):
    session = await engine.update_data(owner_id, body.data)
    return flow_response(session)

@app.post("/flows/{owner_id}/complete", response_model=FlowResponse)
async def complete_flow(owner_id: str, body: CompleteFlowRequest, engine: EngineDep):
    session = await engine.complete_flow(owner_id, body.data)
    return flow_response(session)

@app.post("/flows/{owner_id}/cancel")
async def cancel_flow(owner_id: str, body: CancelFlowRequest, engine: EngineDep):
    session = await engine.cancel_flow(owner_id, body.reason)
    if session is None:
        return {"status": "ok", "cancelled": False}
    return {"status": "ok", "cancelled": True, "flow": flow_response(session).model_dump(mode="json")}

@app.delete("/flows/{owner_id}")
async def clear_flow(owner_id: str, engine: EngineDep):
    await engine.clear_flow(owner_id)
    return {"status": "ok"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
