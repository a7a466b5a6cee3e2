"""
Constants
Centralised storage for the classification axes, routing decisions,
ledger outcomes and owner sources shared across the engine.
"""
from typing import Dict, Literal, get_args

FailureType = Literal["test", "lint", "build", "typecheck", "unknown"]
FailureClass = Literal[
    "deterministic",
    "flaky",
    "secrets",
    "permissions",
    "infra_outage",
    "dependency_registry",
    "unknown",
]
RoutingDecision = Literal["fix_attempt", "report_only", "flake_workflow", "escalate"]
SignatureOutcome = Literal["fix", "report-only", "quarantine", "failed"]
OwnerSource = Literal["codeowners", "blame", "team_map", "last_commit", "fallback", "unknown"]
Confidence = Literal["high", "medium", "low"]

FAILURE_TYPES = get_args(FailureType)
FAILURE_CLASSES = get_args(FailureClass)
SIGNATURE_OUTCOMES = get_args(SignatureOutcome)

# Ledger outcomes that block any further fix attempt for a signature
BLOCKING_OUTCOMES = frozenset({"report-only", "quarantine"})

# Routing decision → ledger outcome recorded when no explicit outcome is given
DEFAULT_OUTCOMES: Dict[str, str] = {
    "report_only": "report-only",
    "flake_workflow": "quarantine",
    "fix_attempt": "failed",
    "escalate": "failed",
}

ERROR_SIGNATURE_MAX = 300
ERROR_LINE_MAX = 200
MAX_EXTRACTED_ERRORS = 20
MAX_RELEVANT_FILES = 15
UNKNOWN_ERROR = "Unknown error"
