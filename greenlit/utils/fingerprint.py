"""
Failure Fingerprint Utility
===========================
Generates stable fingerprints for CI failures so recurring failures can be
deduplicated and looked up in the signature ledger.

A fingerprint combines:
    - repository identifier
    - failure_type
    - normalized error signature
    - failed command
    - evidence job / step

Normalization:
    Error text carries volatile content (counts, durations, addresses,
    checkout paths). It is rewritten before hashing:
        hex addresses  → X
        digit runs     → N
        /path/runs/    → /PATH/
        whitespace     → single space
    then lower-cased. Hex runs first: once digits are rewritten an address
    no longer looks like one.

Rules:
    - SHA-256 over the "|"-joined payload, full 64 hex chars.
    - Deterministic: same inputs (after normalization) → same fingerprint.
"""
import re
import hashlib
from typing import Optional

_HEX_ADDRESS = re.compile(r"0x[0-9a-f]+", re.I)
_DIGITS = re.compile(r"\d+")
_PATH_RUN = re.compile(r"/[\w\-./]+/")
_WHITESPACE = re.compile(r"\s+")

FINGERPRINT_DELIMITER = "|"


def normalize_error_signature(signature: str) -> str:
    """
    Strip volatile content from an error signature.

    Parameters
    ----------
    signature : str
        Raw error signature line.

    Returns
    -------
    str
        Normalized, lower-cased signature.
    """
    normalized = _HEX_ADDRESS.sub("X", signature or "")
    normalized = _DIGITS.sub("N", normalized)
    normalized = _PATH_RUN.sub("/PATH/", normalized)
    normalized = _WHITESPACE.sub(" ", normalized)
    return normalized.strip().lower()


def compute_fingerprint(
    repo: str,
    failure_type: str,
    error_signature: str,
    failed_command: str,
    job: Optional[str] = None,
    step: Optional[str] = None,
) -> str:
    """
    Generate the ledger fingerprint for a failure.

    Parameters
    ----------
    repo : str
        Repository identifier ("owner/repo").
    failure_type : str
        Classified failure type.
    error_signature : str
        Primary error line; normalized before hashing.
    failed_command : str
        Inferred failed command.
    job, step : str | None
        Evidence job and step names; empty when absent.

    Returns
    -------
    str
        64-character lowercase hex digest.
    """
    payload = FINGERPRINT_DELIMITER.join([
        repo,
        failure_type,
        normalize_error_signature(error_signature),
        failed_command,
        job or "",
        step or "",
    ])
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
