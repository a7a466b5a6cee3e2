"""
Signature Ledger Service
========================
Persisted memory of CI failure fingerprints: how often a fix was attempted,
what happened last time, who owned it.

The ledger is an explicit value: callers load it, pass it through the
gate/update functions, and save it once at the end. Nothing here holds
process-wide state, so an invocation abandoned before save() leaves the
persisted document untouched.

Persistence:
    - load_signature_ledger() never raises: a missing or unreadable
      document yields an empty ledger; a malformed record is dropped on its
      own and the other records are kept.
    - save_signature_ledger() creates missing parent directories and
      replaces the document atomically. I/O errors propagate to the caller.

Gating (should_attempt_signature):
    1. Prune expired records (TTL in days, unparsable lastSeen also expires)
    2. No record                          → allowed
    3. attempts >= max attempts           → blocked
    4. lastOutcome report-only/quarantine → blocked
    5. Otherwise                          → allowed
"""
import os
import json
import logging
import tempfile
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import ValidationError

from greenlit.core.constants import BLOCKING_OUTCOMES, SIGNATURE_OUTCOMES, SignatureOutcome
from greenlit.models.signature import (
    AttemptDecision,
    MemorySummary,
    SignatureLedger,
    SignatureRecord,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------
def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """Render as ISO-8601 UTC with milliseconds and a Z suffix."""
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC. None if unparsable."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------
def load_signature_ledger(file_path: str) -> SignatureLedger:
    """
    Load the ledger document.

    Records are validated one at a time: a malformed record is dropped with
    a warning and the rest of the ledger is kept.

    Parameters
    ----------
    file_path : str
        Ledger JSON location.

    Returns
    -------
    SignatureLedger
        The stored ledger, or an empty one if the file is absent, unreadable
        or has no records map. Never raises.
    """
    if not os.path.exists(file_path):
        return SignatureLedger()

    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        # json.JSONDecodeError is a ValueError
        logger.warning("Ignoring unreadable ledger %s: %s", file_path, e)
        return SignatureLedger()

    records = data.get("records") if isinstance(data, dict) else None
    if not isinstance(records, dict):
        logger.warning("Ledger %s has no records map, starting empty", file_path)
        return SignatureLedger()

    ledger = SignatureLedger()
    for fingerprint, raw in records.items():
        try:
            ledger.records[fingerprint] = SignatureRecord.model_validate(raw)
        except ValidationError as e:
            logger.warning(
                "Dropping malformed ledger record %s (%d error(s))",
                fingerprint[:8], e.error_count(),
            )
    return ledger


def save_signature_ledger(file_path: str, ledger: SignatureLedger) -> None:
    """
    Write the full ledger document, creating parent directories first.

    Raises
    ------
    OSError
        If the document cannot be written. Retryable: in-memory results
        computed before the save stay valid.
    """
    directory = os.path.dirname(os.path.abspath(file_path))
    os.makedirs(directory, exist_ok=True)

    payload = ledger.model_dump(by_alias=True, exclude_none=True)
    fd, tmp_path = tempfile.mkstemp(prefix=".signatures-", suffix=".json", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
        os.replace(tmp_path, file_path)
    except OSError:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise

    logger.debug("Saved %d ledger record(s) to %s", len(ledger.records), file_path)


# ---------------------------------------------------------------------------
# Mutation / gating
# ---------------------------------------------------------------------------
def prune_expired_signatures(
    ledger: SignatureLedger,
    ttl_days: int,
    now: Optional[datetime] = None,
) -> int:
    """
    Drop records last seen before now - ttl_days, or with an unparsable
    lastSeen. Mutates the ledger in place and returns the number removed.
    """
    cutoff = (now or _utcnow()) - timedelta(days=ttl_days)
    expired = []
    for fingerprint, record in ledger.records.items():
        seen = parse_timestamp(record.last_seen)
        if seen is None or seen < cutoff:
            expired.append(fingerprint)

    for fingerprint in expired:
        del ledger.records[fingerprint]

    if expired:
        logger.info("Pruned %d expired signature(s)", len(expired))
    return len(expired)


def should_attempt_signature(
    fingerprint: str,
    ledger: SignatureLedger,
    max_attempts: int,
    ttl_days: int,
    now: Optional[datetime] = None,
) -> AttemptDecision:
    """
    Decide whether another fix attempt is allowed for a fingerprint.

    Prunes expired records first. A snapshot of the existing record (if any)
    is returned alongside the decision.
    """
    prune_expired_signatures(ledger, ttl_days, now=now)

    record = ledger.records.get(fingerprint)
    if record is None:
        return AttemptDecision(allowed=True)

    if record.attempts >= max_attempts:
        return AttemptDecision(
            allowed=False,
            reason=f"Signature {fingerprint[:8]} exceeded max attempts ({record.attempts})",
            record=record.model_copy(),
        )

    if record.last_outcome in BLOCKING_OUTCOMES:
        return AttemptDecision(
            allowed=False,
            reason=f"Signature {fingerprint[:8]} previously routed to {record.last_outcome}",
            record=record.model_copy(),
        )

    return AttemptDecision(allowed=True, record=record.model_copy())


def update_signature_ledger(
    fingerprint: str,
    ledger: SignatureLedger,
    outcome: SignatureOutcome,
    owner: Optional[str] = None,
    resolution: Optional[str] = None,
    thread_url: Optional[str] = None,
    now: Optional[datetime] = None,
) -> SignatureRecord:
    """
    Record one more attempt for a fingerprint.

    Creates the record on first sight, bumps attempts, stamps lastSeen and
    lastOutcome. Details that are not supplied keep their stored value.

    Raises
    ------
    ValueError
        If outcome is not a known ledger outcome. The ledger is left untouched.
    """
    if outcome not in SIGNATURE_OUTCOMES:
        raise ValueError(
            f"Unknown ledger outcome {outcome!r}, expected one of {', '.join(SIGNATURE_OUTCOMES)}"
        )

    timestamp = format_timestamp(now or _utcnow())
    record = ledger.records.get(fingerprint)
    if record is None:
        record = SignatureRecord(
            signature=fingerprint,
            attempts=0,
            last_seen=timestamp,
            last_outcome=outcome,
        )

    record.attempts += 1
    record.last_seen = timestamp
    record.last_outcome = outcome
    if owner:
        record.last_owner = owner
    if resolution:
        record.last_resolution = resolution
    if thread_url:
        record.thread_url = thread_url

    ledger.records[fingerprint] = record
    return record


def set_signature_thread(fingerprint: str, ledger: SignatureLedger, thread_url: str) -> bool:
    """
    Attach a discussion thread to an existing record.

    No-op (returns False) for unknown fingerprints; never touches attempts
    or lastOutcome.
    """
    record = ledger.records.get(fingerprint)
    if record is None:
        return False
    record.thread_url = thread_url
    return True


def get_signature_memory(record: Optional[SignatureRecord]) -> MemorySummary:
    """Summarize what the ledger remembers about a failure."""
    if record is None:
        return MemorySummary(seen_before=False)

    return MemorySummary(
        seen_before=True,
        last_seen=record.last_seen,
        last_outcome=record.last_outcome,
        last_owner=record.last_owner,
        last_resolution=record.last_resolution,
        thread_url=record.thread_url,
    )
