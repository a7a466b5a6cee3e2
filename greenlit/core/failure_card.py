"""
Failure Card
============
Builds the short human-facing card attached to every incident.

DETERMINISM CONTRACT:
  - This module NEVER calls an LLM.
  - This module NEVER reads environment variables.
  - Given the same incident fields, it ALWAYS returns the same card.

Card wording:
  title    → "Failure Card: {workflow_name}"
  summary  → first line of the error signature, at most 180 chars
  action   → fixed sentence per routing decision (RECOMMENDED_ACTIONS)
"""
from typing import Dict, Optional

from greenlit.models.classification import ClassificationReport
from greenlit.models.evidence import EvidencePack
from greenlit.models.incident import FailureCard
from greenlit.models.owner import OwnerAssignment
from greenlit.models.signature import MemorySummary

ELLIPSIS = "…"
SUMMARY_MAX = 180

RECOMMENDED_ACTIONS: Dict[str, str] = {
    "report_only":    "Report-only. Review logs and apply a manual fix.",
    "flake_workflow": "Suspected flake. Rerun the job or quarantine the test.",
    "fix_attempt":    "Investigate and apply a manual fix.",
    "escalate":       "Escalate for human investigation.",
}


def truncate_line(text: str, max_length: int = SUMMARY_MAX) -> str:
    """First line of text, cut to max_length with a trailing ellipsis."""
    line = (text or "").split("\n")[0].strip()
    if len(line) <= max_length:
        return line
    return line[:max(0, max_length - 1)] + ELLIPSIS


def recommended_action(routing_decision: str, workflow_name: str) -> str:
    return RECOMMENDED_ACTIONS.get(routing_decision, f"Review failure in {workflow_name}.")


def build_failure_card(
    workflow_name: str,
    report: ClassificationReport,
    evidence: EvidencePack,
    routing_decision: str,
    owner: Optional[OwnerAssignment] = None,
    memory: Optional[MemorySummary] = None,
) -> FailureCard:
    """Assemble the failure card for one incident."""
    return FailureCard(
        title=f"Failure Card: {workflow_name}",
        summary=truncate_line(report.error_signature or "CI failure detected"),
        workflow_name=workflow_name,
        job=evidence.job,
        step=evidence.step,
        failed_command=report.failed_command or "unknown",
        error_signature=report.error_signature,
        evidence=evidence,
        failure_type=report.classification.failure_type,
        failure_class=report.classification.failure_class,
        routing_decision=routing_decision,
        owner=owner,
        memory=memory,
        action=recommended_action(routing_decision, workflow_name),
    )
