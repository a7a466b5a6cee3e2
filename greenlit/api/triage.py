"""
Incident API
============
HTTP surface over the IncidentEngine.

Routes:
    POST /api/triage                          — full invocation (ledger updated + saved)
    POST /api/triage/preview                  — classification and routing only, no ledger write
    GET  /api/signatures/{fingerprint}        — ledger memory for a fingerprint
    PUT  /api/signatures/{fingerprint}/thread — attach a discussion thread URL

Handlers are plain `def` so FastAPI runs them in its threadpool; the engine
blocks on git and ledger I/O.
"""
import logging
from functools import lru_cache

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator

from greenlit.agents.orchestrator import IncidentEngine
from greenlit.core.config import load_config
from greenlit.models.failure_event import FailureEvent
from greenlit.models.incident import IncidentRecord
from greenlit.models.signature import MemorySummary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Incidents"])


class ThreadRequest(BaseModel):
    thread_url: str

    @field_validator("thread_url")
    @classmethod
    def validate_thread_url(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("thread_url must be an http(s) URL")
        return v


class ThreadResponse(BaseModel):
    fingerprint: str
    thread_url: str


@lru_cache(maxsize=1)
def get_engine() -> IncidentEngine:
    """Process-wide engine built from the project config file and environment."""
    return IncidentEngine(load_config())


@router.post("/triage", response_model=IncidentRecord)
def triage_failure(event: FailureEvent, engine: IncidentEngine = Depends(get_engine)):
    """Classify, route and own a CI failure, then record it in the ledger."""
    if not event.failed_jobs:
        raise HTTPException(status_code=400, detail="No failed jobs in event")
    logger.info("Triage requested for %s run %s", event.repo, event.run_id)
    return engine.handle(event)


@router.post("/triage/preview", response_model=IncidentRecord)
def preview_failure(event: FailureEvent, engine: IncidentEngine = Depends(get_engine)):
    """Same as /triage but never writes the ledger."""
    if not event.failed_jobs:
        raise HTTPException(status_code=400, detail="No failed jobs in event")
    return engine.triage(event)


@router.get("/signatures/{fingerprint}", response_model=MemorySummary)
def get_signature(fingerprint: str, engine: IncidentEngine = Depends(get_engine)):
    memory = engine.memory_for(fingerprint)
    if memory is None:
        raise HTTPException(status_code=404, detail="Unknown fingerprint")
    return memory


@router.put("/signatures/{fingerprint}/thread", response_model=ThreadResponse)
def set_thread(fingerprint: str, request: ThreadRequest, engine: IncidentEngine = Depends(get_engine)):
    if not engine.attach_thread(fingerprint, request.thread_url):
        raise HTTPException(status_code=404, detail="Unknown fingerprint")
    return ThreadResponse(fingerprint=fingerprint, thread_url=request.thread_url)
