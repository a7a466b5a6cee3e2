"""
Incident Models
===============
FailureCard    — short human-facing summary with a recommended action.
IncidentRecord — the complete result of one engine invocation.

Used by:
    - IncidentEngine as its return value
    - /api/triage as the response schema
"""
from typing import List, Optional

from pydantic import BaseModel, Field

from greenlit.core.constants import FailureClass, FailureType, RoutingDecision
from .evidence import EvidencePack
from .owner import OwnerAssignment
from .signature import AttemptDecision, MemorySummary


class FailureCard(BaseModel):
    title: str
    summary: str
    workflow_name: str
    job: Optional[str] = None
    step: Optional[str] = None
    failed_command: str = "unknown"
    error_signature: str
    evidence: Optional[EvidencePack] = None
    failure_type: FailureType
    failure_class: FailureClass
    routing_decision: RoutingDecision
    owner: Optional[OwnerAssignment] = None
    memory: Optional[MemorySummary] = None
    action: str


class IncidentRecord(BaseModel):
    # --- Run metadata ---
    run_id: int
    repo: str
    branch: str
    sha: str
    workflow_name: str

    # --- Classification ---
    failure_type: FailureType
    failure_class: FailureClass
    error_signature: str
    extracted_errors: List[str] = Field(default_factory=list)
    failed_command: str
    relevant_files: List[str] = Field(default_factory=list)
    changed_files: List[str] = Field(default_factory=list)
    recent_commits: List[str] = Field(default_factory=list)
    evidence: EvidencePack

    # --- Memory / gating ---
    fingerprint: str
    gate: AttemptDecision
    memory: MemorySummary

    # --- Decisions ---
    routing_decision: RoutingDecision
    owner: OwnerAssignment
    failure_card: FailureCard

    # --- Persistence (filled by record_outcome) ---
    ledger_outcome: Optional[str] = None
    ledger_saved: bool = False
    timestamp: str
