"""
Evidence Extractor
==================
Scans raw log text and failed-step metadata for the single most likely
failure location and packs it into an EvidencePack.

Pipeline:
    1. Split log into lines
    2. Find every `path.ext:line[:col]` reference (common source extensions)
    3. Score each reference by failure-keyword density in a small window
       (2 lines before → 3 lines after): score = 1 + keyword hits
    4. Pick the highest score, earliest line on ties
    5. Excerpt 5 lines before → 6 lines after the pick, or the last 10
       lines of the log when nothing matched
    6. Attach first failed job / first failed step

Contract:
    - Pure function of its inputs.
    - Never raises: missing signals leave optional fields unset.
"""
import re
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from greenlit.models.evidence import EvidencePack
from greenlit.models.failure_event import FailedJob

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------
FILE_LINE_PATTERN = re.compile(
    r"([^\s:()'\"\[\]]+?\.(?:[jt]sx?|py|go|rs|java|cs|cpp|c|rb|php|kt|swift|scala)):(\d+)(?::\d+)?"
)

# "failed" is listed before "fail" so each occurrence counts once
_KEYWORD_PATTERN = re.compile(r"error|failed|fail|exception|traceback|panic", re.IGNORECASE)

# Scoring window and excerpt window, relative to the matched line
_SCORE_BEFORE = 2
_SCORE_AFTER = 3
_EXCERPT_BEFORE = 5
_EXCERPT_AFTER = 6
_TAIL_LINES = 10


@dataclass(frozen=True)
class _FileLineMatch:
    """Internal: one file:line reference found in the log."""
    index: int
    file: str
    line: str
    score: int


def _window_score(lines: Sequence[str], index: int) -> int:
    """Score = 1 + failure keywords found from 2 lines before to 3 lines after."""
    start = max(index - _SCORE_BEFORE, 0)
    end = min(index + _SCORE_AFTER + 1, len(lines))
    window = "\n".join(lines[start:end])
    return 1 + len(_KEYWORD_PATTERN.findall(window))


def _find_matches(lines: Sequence[str]) -> List[_FileLineMatch]:
    matches: List[_FileLineMatch] = []
    for index, text in enumerate(lines):
        m = FILE_LINE_PATTERN.search(text)
        if not m:
            continue
        matches.append(_FileLineMatch(
            index=index,
            file=m.group(1),
            line=m.group(2),
            score=_window_score(lines, index),
        ))
    return matches


def _select_best(matches: Sequence[_FileLineMatch]) -> Optional[_FileLineMatch]:
    """Highest score wins; the earliest line index breaks ties."""
    best: Optional[_FileLineMatch] = None
    for match in matches:
        if best is None or match.score > best.score:
            best = match
    return best


def _excerpt(lines: Sequence[str], index: Optional[int]) -> Optional[str]:
    if not lines:
        return None
    if index is not None:
        start = max(index - _EXCERPT_BEFORE, 0)
        end = min(index + _EXCERPT_AFTER, len(lines))
        return "\n".join(lines[start:end])
    return "\n".join(lines[max(len(lines) - _TAIL_LINES, 0):])


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def build_evidence_pack(logs: str, failed_jobs: Sequence[FailedJob]) -> EvidencePack:
    """
    Build a compact evidence pack from logs and failed job metadata.

    Parameters
    ----------
    logs : str
        Combined raw log text of the failed jobs.
    failed_jobs : Sequence[FailedJob]
        Failed jobs in CI order; only the first job and its first failed
        step are used.

    Returns
    -------
    EvidencePack
        Frozen evidence pack. Never raises.
    """
    lines = logs.split("\n") if logs else []

    best = _select_best(_find_matches(lines))
    fields: dict = {}
    if best is not None:
        fields["file"] = best.file
        fields["line"] = best.line
        logger.debug("Evidence match %s:%s (score %d)", best.file, best.line, best.score)

    excerpt = _excerpt(lines, best.index if best is not None else None)
    if excerpt:
        fields["excerpt"] = excerpt

    if failed_jobs:
        first_job = failed_jobs[0]
        fields["job"] = first_job.job_name
        if first_job.failed_steps:
            fields["step"] = first_job.failed_steps[0].step_name

    return EvidencePack(**fields)
