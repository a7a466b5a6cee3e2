"""
Classification
==============
Maps raw CI logs and failed-job metadata onto the two failure axes, and
pulls out the error details used for fingerprinting and reporting.

Failure Type (what kind of check failed):
    test, lint, typecheck, build, unknown

Failure Class (what kind of root cause):
    secrets, permissions, infra_outage, dependency_registry, flaky,
    deterministic, unknown

Classification Strategy:
    1. JOB NAME TOKENS FIRST — explicit signal from the CI config
    2. LOG REGEX SECOND — same precedence order, on the log text
    3. Ordered rule tables, first match wins, every table has a terminal default
    4. NEVER dynamic inference or LLM

Contract:
    - DETERMINISTIC: same logs + jobs → same classification, always.
    - Never raises.
"""
import re
import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from greenlit.core.config import DEFAULT_COMMAND
from greenlit.core.constants import (
    ERROR_LINE_MAX,
    ERROR_SIGNATURE_MAX,
    MAX_EXTRACTED_ERRORS,
    MAX_RELEVANT_FILES,
    UNKNOWN_ERROR,
    FailureClass,
    FailureType,
)
from greenlit.models.classification import ClassificationReport, FailureClassification
from greenlit.models.evidence import EvidencePack
from greenlit.models.failure_event import FailedJob

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# 1. Failure Type — job-name tokens (checked in order)
# ---------------------------------------------------------------------------
_JOB_NAME_RULES: List[Tuple[Tuple[str, ...], FailureType]] = [
    (("test", "jest", "vitest"), "test"),
    (("lint", "eslint"), "lint"),
    (("typecheck", "tsc"), "typecheck"),
    (("build",), "build"),
]

# ---------------------------------------------------------------------------
# 2. Failure Type — log-content markers (same order as job-name rules)
# ---------------------------------------------------------------------------
_LOG_TYPE_RULES: List[Tuple[re.Pattern, FailureType]] = [
    (re.compile(r"test (failed|failure)|assertion|expect.*to|✕|failed tests?:", re.I), "test"),
    (re.compile(r"eslint|prettier|lint error|linting", re.I), "lint"),
    (re.compile(r"ts\d+:|type error|cannot find name|type '.*' is not assignable", re.I), "typecheck"),
    (re.compile(r"build (failed|error)|compile error|module not found", re.I), "build"),
]


# ---------------------------------------------------------------------------
# 3. Failure Class — disjoint pattern sets in fixed priority
# ---------------------------------------------------------------------------
def _patterns(*sources: str) -> Tuple[re.Pattern, ...]:
    return tuple(re.compile(s, re.I) for s in sources)


_CLASS_RULES: List[Tuple[FailureClass, Tuple[re.Pattern, ...]]] = [
    ("secrets", _patterns(
        r"permission denied",
        r"resource not accessible",
        r"missing required secret",
        r"unable to resolve credentials",
        r"authentication failed",
        r"401 unauthorized",
        r"403 forbidden",
        r"EACCES",
        r"secret .* not found",
    )),
    ("permissions", _patterns(
        r"insufficient permissions?",
        r"does not have permission",
        r"not authorized to perform",
        r"AccessDenied",
        r"must have (?:admin|write|push) (?:rights|access)",
    )),
    ("infra_outage", _patterns(
        r"429 too many requests",
        r"503 service unavailable",
        r"502 bad gateway",
        r"ETIMEDOUT",
        r"ECONNREFUSED",
        r"ENOTFOUND",
        r"dns resolution failed",
        r"network error",
        r"rate limit exceeded",
        r"github api rate",
    )),
    ("dependency_registry", _patterns(
        r"npm err! 404",
        r"npm err! 503",
        r"could not resolve.*registry",
        r"failed to fetch.*package",
        r"checksum mismatch",
        r"integrity check failed",
        r"pypi.*unavailable",
        r"crates\.io.*error",
    )),
    ("flaky", _patterns(
        r"flaky",
        r"intermittent",
        r"timeout.*test",
        r"jest.*exceeded timeout",
        r"race condition",
    )),
]


# ---------------------------------------------------------------------------
# 4. Error signature patterns (first match wins)
# ---------------------------------------------------------------------------
_SIGNATURE_PATTERNS: List[re.Pattern] = [
    re.compile(r"[\w.]*Error:.*$", re.M),
    re.compile(r"FAIL.*$", re.M),
    re.compile(r"error\[E\d+\]:.*$", re.M),
    re.compile(r"\w+Exception:.*$", re.M),
    re.compile(r"panic:.*$", re.M),
    re.compile(r"AssertionError.*$", re.M),
    re.compile(r"✕.*$", re.M),
    re.compile(r"FAILED.*$", re.M),
]

_ERROR_TOKEN = re.compile(r"error", re.I)
_ERROR_LINE = re.compile(r"error|fail|✕", re.I)


# ---------------------------------------------------------------------------
# 5. Failed command inference
# ---------------------------------------------------------------------------
_STEP_RUN_COMMAND = re.compile(r"\bRun (.+)", re.I)

_COMMAND_PATTERNS: List[re.Pattern] = [
    re.compile(r"\bnpm (?:run )?(?!ERR\b)\w+"),
    re.compile(r"\byarn (?:run )?\w+"),
    re.compile(r"\bpnpm (?:run )?\w+"),
    re.compile(r"\bpytest.*$", re.M),
    re.compile(r"\bcargo test.*$", re.M),
    re.compile(r"\bgo test.*$", re.M),
    re.compile(r"\bjest.*$", re.M),
    re.compile(r"\bvitest.*$", re.M),
]


# ---------------------------------------------------------------------------
# 6. Relevant file paths
# ---------------------------------------------------------------------------
_FILE_PATTERNS: List[re.Pattern] = [
    re.compile(r"(?:^|\s)((?:src|lib|test|tests|app|packages)/[\w\-/.]+\.\w+)", re.M),
    re.compile(r"(?:at |in )([^\s:()]+\.[jt]sx?:\d+)", re.M),
    re.compile(r"([^\s:()]+\.[jt]sx?):\d+:\d+", re.M),
]
_LINE_SUFFIX = re.compile(r":\d+.*$")


def _unique(items: Iterable[str]) -> List[str]:
    """Order-preserving de-duplication."""
    return list(dict.fromkeys(items))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def classify_failure_type(logs: str, failed_jobs: Sequence[FailedJob]) -> FailureType:
    """
    Classify which kind of check failed.

    Job names are checked first (test → lint → typecheck → build), then the
    log text with the same precedence. Falls back to "unknown".
    """
    job_names = " ".join(job.job_name.lower() for job in failed_jobs)
    for tokens, failure_type in _JOB_NAME_RULES:
        if any(token in job_names for token in tokens):
            return failure_type

    for pattern, failure_type in _LOG_TYPE_RULES:
        if pattern.search(logs or ""):
            return failure_type

    return "unknown"


def classify_failure_class(logs: str) -> FailureClass:
    """
    Classify the root-cause class of a failure.

    Only the highest-priority matching pattern set is consulted. Logs with
    no content at all carry no signal and classify as "unknown"; any other
    log without a matching set is "deterministic".
    """
    if not logs or not logs.strip():
        return "unknown"

    for failure_class, patterns in _CLASS_RULES:
        if any(p.search(logs) for p in patterns):
            return failure_class

    return "deterministic"


def extract_error_signature(logs: str) -> str:
    """
    Extract the primary error line for fingerprinting (≤ 300 chars).

    Tries the signature patterns in order, then the first line containing
    "error", then the literal "Unknown error".
    """
    logs = logs or ""
    for pattern in _SIGNATURE_PATTERNS:
        match = pattern.search(logs)
        if match:
            return match.group(0)[:ERROR_SIGNATURE_MAX]

    for line in logs.split("\n"):
        if _ERROR_TOKEN.search(line):
            return line[:ERROR_SIGNATURE_MAX]

    return UNKNOWN_ERROR


def extract_error_messages(logs: str) -> List[str]:
    """Every distinct error/fail-like line (trimmed, ≤ 200 chars), first 20 kept."""
    errors: List[str] = []
    for line in (logs or "").split("\n"):
        stripped = line.strip()
        if len(stripped) > 10 and _ERROR_LINE.search(stripped):
            errors.append(stripped[:ERROR_LINE_MAX])
    return _unique(errors)[:MAX_EXTRACTED_ERRORS]


def extract_failed_command(
    failed_jobs: Sequence[FailedJob],
    logs: str,
    default_command: str = DEFAULT_COMMAND,
) -> str:
    """
    Infer the command that failed.

    1. "Run <command>" failed-step names (GitHub Actions default naming)
    2. Common package-manager / test-runner invocations found in the log
    3. The configured default command
    """
    for job in failed_jobs:
        for step in job.failed_steps:
            match = _STEP_RUN_COMMAND.search(step.step_name)
            if match:
                return match.group(1).strip()

    for pattern in _COMMAND_PATTERNS:
        match = pattern.search(logs or "")
        if match:
            return match.group(0).strip()

    return default_command


def extract_file_paths(logs: str) -> List[str]:
    """Repository files mentioned in the logs, line numbers stripped, vendored code excluded."""
    files: List[str] = []
    for pattern in _FILE_PATTERNS:
        files.extend(m.group(1) for m in pattern.finditer(logs or ""))

    cleaned = (_LINE_SUFFIX.sub("", f) for f in _unique(files))
    return _unique(f for f in cleaned if "node_modules" not in f)[:MAX_RELEVANT_FILES]


def classify_failure(
    logs: str,
    failed_jobs: Sequence[FailedJob],
    evidence: Optional[EvidencePack] = None,
    default_command: str = DEFAULT_COMMAND,
) -> ClassificationReport:
    """
    Run the full classifier over one failure.

    Parameters
    ----------
    logs : str
        Combined raw log text of the failed jobs.
    failed_jobs : Sequence[FailedJob]
        Failed jobs (names and failed steps are used).
    evidence : EvidencePack | None
        Evidence pack; its file leads the relevant-file list.
    default_command : str
        Returned as the failed command when none can be inferred.

    Returns
    -------
    ClassificationReport
        Classification plus error details. Never raises.
    """
    classification = FailureClassification(
        failure_type=classify_failure_type(logs, failed_jobs),
        failure_class=classify_failure_class(logs),
    )

    relevant_files = extract_file_paths(logs)
    if evidence is not None and evidence.file:
        relevant_files = _unique([evidence.file, *relevant_files])[:MAX_RELEVANT_FILES]

    report = ClassificationReport(
        classification=classification,
        error_signature=extract_error_signature(logs),
        extracted_errors=extract_error_messages(logs),
        failed_command=extract_failed_command(failed_jobs, logs, default_command),
        relevant_files=relevant_files,
    )

    logger.info(
        "Classified failure as type=%s class=%s (%d error line(s))",
        classification.failure_type,
        classification.failure_class,
        len(report.extracted_errors),
    )
    return report
