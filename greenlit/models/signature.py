"""
Signature Ledger Models
=======================
Persisted memory of recurring failures, keyed by fingerprint.

On disk the ledger is a single JSON document with camelCase keys:

    { "records": { "<fingerprint>": {
        "signature": ..., "attempts": 2, "lastSeen": "2025-01-01T00:00:00.000Z",
        "lastOutcome": "fix", "lastOwner": ..., "lastResolution": ..., "threadUrl": ...
    } } }

SignatureRecord lifecycle:
    created by update_signature_ledger, mutated only by update (attempts,
    lastSeen, lastOutcome, details) or set_signature_thread (threadUrl),
    removed by TTL pruning.
"""
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from greenlit.core.constants import SignatureOutcome


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, validate_assignment=True)


class SignatureRecord(_CamelModel):
    signature: str
    attempts: int = 0
    last_seen: str
    last_outcome: SignatureOutcome
    last_owner: Optional[str] = None
    last_resolution: Optional[str] = None
    thread_url: Optional[str] = None


class SignatureLedger(_CamelModel):
    records: Dict[str, SignatureRecord] = Field(default_factory=dict)


class AttemptDecision(BaseModel):
    """Result of gating a fingerprint against the ledger."""
    allowed: bool
    reason: Optional[str] = None
    record: Optional[SignatureRecord] = None


class MemorySummary(BaseModel):
    seen_before: bool = False
    last_seen: Optional[str] = None
    last_outcome: Optional[str] = None
    last_owner: Optional[str] = None
    last_resolution: Optional[str] = None
    thread_url: Optional[str] = None
