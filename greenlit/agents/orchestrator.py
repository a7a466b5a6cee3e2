"""
Incident Engine
===============
The central pipeline of the CI incident engine. Turns one failed workflow
run into a classified, fingerprinted, owner-assigned incident.

Pipeline (strict order, no speculation):
    1. Evidence extraction   — best file:line pointer into the logs
    2. Classification        — failure type / class, error details
    3. Fingerprinting        — stable id for deduplication
    4. Ledger gating         — max attempts, prior report-only / quarantine
    5. Owner resolution      — CODEOWNERS → blame → team map → last commit → fallback
    6. Routing               — report_only / flake_workflow / fix_attempt / escalate
    7. Failure card
    8. Ledger update + save  — only in handle() / record_outcome()

Gating:
    A blocked fingerprint is always routed report_only, whatever the policy
    would have chosen.

Persistence:
    The ledger is loaded, mutated and saved as an explicit value. Within one
    process the load → mutate → save cycle is serialized per ledger path, so
    two concurrent incidents sharing a fingerprint cannot lose an update.
    A failed save is logged and reported via IncidentRecord.ledger_saved;
    the computed incident is still returned.
"""
import os
import logging
import threading
from datetime import datetime, timezone
from typing import Dict, Optional

from greenlit.core.config import EngineConfig, get_default_config
from greenlit.core.constants import DEFAULT_OUTCOMES, SIGNATURE_OUTCOMES, SignatureOutcome
from greenlit.core.failure_card import build_failure_card
from greenlit.models.failure_event import FailureEvent
from greenlit.models.incident import IncidentRecord
from greenlit.models.signature import MemorySummary, SignatureLedger
from greenlit.parser.classification import classify_failure
from greenlit.parser.evidence import build_evidence_pack
from greenlit.services.git_history import GitHistory, SubprocessGitHistory
from greenlit.services.owner_resolver import build_candidate_files, resolve_owner_assignment
from greenlit.services.policy_router import route_failure
from greenlit.services.signature_ledger import (
    format_timestamp,
    get_signature_memory,
    load_signature_ledger,
    prune_expired_signatures,
    save_signature_ledger,
    set_signature_thread,
    should_attempt_signature,
    update_signature_ledger,
)
from greenlit.utils.fingerprint import compute_fingerprint

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Ledger locks (one per ledger file)
# ---------------------------------------------------------------------------
_LEDGER_LOCKS: Dict[str, threading.Lock] = {}
_LEDGER_LOCKS_GUARD = threading.Lock()


def _ledger_lock(path: str) -> threading.Lock:
    key = os.path.abspath(path)
    with _LEDGER_LOCKS_GUARD:
        if key not in _LEDGER_LOCKS:
            _LEDGER_LOCKS[key] = threading.Lock()
        return _LEDGER_LOCKS[key]


class IncidentEngine:
    """
    Runs the classification and routing pipeline for CI failure events.
    """

    def __init__(self, config: Optional[EngineConfig] = None, git: Optional[GitHistory] = None) -> None:
        self.config = config or get_default_config()
        self.git = git or SubprocessGitHistory(self.config.repo_root, timeout=self.config.git_timeout)

    @property
    def ledger_path(self) -> str:
        return self.config.signature_ledger.path

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    def _triage(self, event: FailureEvent, ledger: SignatureLedger) -> IncidentRecord:
        logs = event.combined_logs()

        # --- 1. Evidence ---
        evidence = build_evidence_pack(logs, event.failed_jobs)

        # --- 2. Classification ---
        report = classify_failure(logs, event.failed_jobs, evidence, self.config.default_command)
        classification = report.classification

        # --- 3. Fingerprint ---
        fingerprint = compute_fingerprint(
            event.repo,
            classification.failure_type,
            report.error_signature,
            report.failed_command,
            evidence.job,
            evidence.step,
        )

        # --- 4. Ledger gate ---
        gate = should_attempt_signature(
            fingerprint,
            ledger,
            max_attempts=self.config.routing.max_attempts_per_signature,
            ttl_days=self.config.signature_ledger.ttl_days,
        )
        memory = get_signature_memory(gate.record)
        if not gate.allowed:
            logger.warning("Skipping fix attempt: %s", gate.reason)

        # --- 5. Owner ---
        changed_files = event.changed_files if event.changed_files is not None else self.git.changed_files()
        recent_commits = event.recent_commits if event.recent_commits is not None else self.git.recent_commits(5)
        candidates = build_candidate_files(evidence.file, report.relevant_files, changed_files)
        owner = resolve_owner_assignment(
            candidates,
            self.config.owner_routing,
            self.git,
            evidence_file=evidence.file,
            evidence_line=evidence.line,
            repo_root=self.config.repo_root,
        )

        # --- 6. Routing ---
        routing_decision = route_failure(
            classification.failure_class,
            classification.failure_type,
            self.config.routing,
        )
        if not gate.allowed:
            routing_decision = "report_only"

        # --- 7. Card ---
        card = build_failure_card(
            event.workflow_name, report, evidence, routing_decision, owner=owner, memory=memory
        )

        logger.info(
            "Incident %s/%s: type=%s class=%s routing=%s owner=%s fingerprint=%s",
            event.repo,
            event.run_id,
            classification.failure_type,
            classification.failure_class,
            routing_decision,
            owner.owner,
            fingerprint[:8],
        )

        return IncidentRecord(
            run_id=event.run_id,
            repo=event.repo,
            branch=event.branch,
            sha=event.sha,
            workflow_name=event.workflow_name,
            failure_type=classification.failure_type,
            failure_class=classification.failure_class,
            error_signature=report.error_signature,
            extracted_errors=report.extracted_errors,
            failed_command=report.failed_command,
            relevant_files=report.relevant_files,
            changed_files=list(changed_files),
            recent_commits=list(recent_commits),
            evidence=evidence,
            fingerprint=fingerprint,
            gate=gate,
            memory=memory,
            routing_decision=routing_decision,
            owner=owner,
            failure_card=card,
            timestamp=format_timestamp(datetime.now(timezone.utc)),
        )

    def _record(
        self,
        incident: IncidentRecord,
        ledger: SignatureLedger,
        outcome: Optional[SignatureOutcome],
        resolution: Optional[str],
        thread_url: Optional[str],
    ) -> IncidentRecord:
        outcome = outcome or DEFAULT_OUTCOMES[incident.routing_decision]
        if resolution is None and not incident.gate.allowed:
            resolution = incident.gate.reason or "Signature attempt blocked"

        update_signature_ledger(
            incident.fingerprint,
            ledger,
            outcome,
            owner=incident.owner.owner,
            resolution=resolution,
            thread_url=thread_url,
        )

        saved = True
        try:
            save_signature_ledger(self.ledger_path, ledger)
        except OSError as e:
            logger.error("Failed to save signature ledger %s: %s", self.ledger_path, e)
            saved = False

        return incident.model_copy(update={"ledger_outcome": outcome, "ledger_saved": saved})

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def triage(self, event: FailureEvent) -> IncidentRecord:
        """
        Classify, fingerprint, gate, own and route a failure without
        persisting anything.
        """
        ledger = load_signature_ledger(self.ledger_path)
        return self._triage(event, ledger)

    def record_outcome(
        self,
        incident: IncidentRecord,
        outcome: Optional[SignatureOutcome] = None,
        resolution: Optional[str] = None,
        thread_url: Optional[str] = None,
    ) -> IncidentRecord:
        """
        Record the outcome of an incident in the ledger and save it.

        When outcome is omitted it is derived from the routing decision
        (report_only → report-only, flake_workflow → quarantine, otherwise
        failed).

        Raises
        ------
        ValueError
            If outcome is not a known ledger outcome; nothing is written.
        """
        if outcome is not None and outcome not in SIGNATURE_OUTCOMES:
            raise ValueError(f"Unknown ledger outcome {outcome!r}")
        with _ledger_lock(self.ledger_path):
            ledger = load_signature_ledger(self.ledger_path)
            return self._record(incident, ledger, outcome, resolution, thread_url)

    def handle(self, event: FailureEvent) -> IncidentRecord:
        """Full once-per-event invocation: triage, then record and save."""
        with _ledger_lock(self.ledger_path):
            ledger = load_signature_ledger(self.ledger_path)
            incident = self._triage(event, ledger)
            return self._record(incident, ledger, None, None, None)

    def attach_thread(self, fingerprint: str, thread_url: str) -> bool:
        """Store a discussion thread URL on a known fingerprint. False if unknown."""
        with _ledger_lock(self.ledger_path):
            ledger = load_signature_ledger(self.ledger_path)
            if not set_signature_thread(fingerprint, ledger, thread_url):
                return False
            save_signature_ledger(self.ledger_path, ledger)
            return True

    def memory_for(self, fingerprint: str) -> Optional[MemorySummary]:
        """What the ledger remembers about a fingerprint, or None if unknown."""
        ledger = load_signature_ledger(self.ledger_path)
        prune_expired_signatures(ledger, self.config.signature_ledger.ttl_days)
        record = ledger.records.get(fingerprint)
        if record is None:
            return None
        return get_signature_memory(record)
