"""
Owner Resolver
==============
Resolves the owner responsible for a CI incident through a strict priority
chain. Each tier runs only if every earlier tier produced nothing.

    1. CODEOWNERS   — last matching rule for the first matching file  (high)
    2. Blame        — author of the evidence line or a nearby line    (medium)
    3. Team map     — longest matching directory prefix               (low)
    4. Last commit  — author of the most recent commit on a file      (low)
    5. Fallback     — configured fallback owner, never fails          (low)

Candidate files:
    evidence file first, then files mentioned in the logs, then changed
    files; normalized to forward-slash repository-relative paths and
    de-duplicated in order.
"""
import re
import logging
import posixpath
from typing import Iterable, List, Optional

from greenlit.core.config import OwnerRoutingConfig
from greenlit.models.owner import OwnerAssignment
from greenlit.parser.codeowners import find_codeowners_match, load_codeowners
from greenlit.services.git_history import GitHistory

logger = logging.getLogger(__name__)

_LINE_NUMBER = re.compile(r"\d+")


# ---------------------------------------------------------------------------
# Candidate files
# ---------------------------------------------------------------------------
def normalize_path(file_path: str) -> str:
    """Forward slashes, collapsed segments, no leading "./"."""
    cleaned = file_path.strip().replace("\\", "/")
    if not cleaned:
        return ""
    normalized = posixpath.normpath(cleaned)
    if normalized.startswith("./"):
        normalized = normalized[2:]
    return "" if normalized == "." else normalized


def build_candidate_files(
    evidence_file: Optional[str],
    relevant_files: Iterable[str] = (),
    changed_files: Iterable[str] = (),
) -> List[str]:
    """Ordered, de-duplicated candidate files for owner lookup."""
    files = [evidence_file, *relevant_files, *changed_files]
    normalized = (normalize_path(f) for f in files if f)
    return list(dict.fromkeys(f for f in normalized if f))


# ---------------------------------------------------------------------------
# Tier helpers
# ---------------------------------------------------------------------------
def parse_line_number(line: Optional[str]) -> Optional[int]:
    if not line:
        return None
    match = _LINE_NUMBER.search(line)
    if not match:
        return None
    return int(match.group(0))


def build_line_candidates(line_number: int, depth: int) -> List[int]:
    """The evidence line first, then alternating -offset/+offset below depth."""
    candidates = [line_number]
    for offset in range(1, depth):
        lower = line_number - offset
        if lower > 0:
            candidates.append(lower)
        candidates.append(line_number + offset)
    return candidates


def _resolve_from_blame(
    git: GitHistory,
    evidence_file: Optional[str],
    evidence_line: Optional[str],
    depth: int,
) -> Optional[OwnerAssignment]:
    file_path = normalize_path(evidence_file) if evidence_file else ""
    line_number = parse_line_number(evidence_line)
    if not file_path or not line_number or depth <= 0:
        return None

    for candidate in build_line_candidates(line_number, depth):
        author = git.blame_author(file_path, candidate)
        if not author:
            continue
        return OwnerAssignment(
            owner=author,
            source="blame",
            reason=f"git blame at {file_path}:{candidate}",
            confidence="medium",
            file=file_path,
            line=str(candidate),
        )
    return None


def _resolve_from_team_map(files: List[str], config: OwnerRoutingConfig) -> Optional[OwnerAssignment]:
    best_prefix = ""
    best_owner = ""
    best_file = ""
    for file_path in files:
        for prefix, owner in config.team_map.items():
            normalized_prefix = normalize_path(prefix).rstrip("/")
            if not normalized_prefix or not file_path.startswith(normalized_prefix):
                continue
            if len(normalized_prefix) > len(best_prefix):
                best_prefix, best_owner, best_file = normalized_prefix, owner, file_path

    if not best_prefix:
        return None
    return OwnerAssignment(
        owner=best_owner,
        source="team_map",
        reason=f"team map match: {best_prefix}",
        confidence="low",
        file=best_file,
    )


def _resolve_from_last_commit(git: GitHistory, files: List[str]) -> Optional[OwnerAssignment]:
    for file_path in files:
        author = git.last_commit_author(file_path)
        if author:
            return OwnerAssignment(
                owner=author,
                source="last_commit",
                reason=f"last commit on {file_path}",
                confidence="low",
                file=file_path,
            )
    return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def resolve_owner_assignment(
    candidate_files: List[str],
    config: OwnerRoutingConfig,
    git: GitHistory,
    evidence_file: Optional[str] = None,
    evidence_line: Optional[str] = None,
    repo_root: str = ".",
) -> OwnerAssignment:
    """
    Resolve exactly one owner for an incident.

    Parameters
    ----------
    candidate_files : list[str]
        Normalized candidate files (see build_candidate_files).
    config : OwnerRoutingConfig
        CODEOWNERS locations, blame depth, team map, fallback owner.
    git : GitHistory
        Blame / last-commit lookups; failures mean "no answer".
    evidence_file, evidence_line : str | None
        Evidence location used by the blame tier.
    repo_root : str
        Directory relative CODEOWNERS locations are resolved against.

    Returns
    -------
    OwnerAssignment
        Always populated; the fallback tier cannot fail.
    """
    rules = load_codeowners(config.codeowners_paths, repo_root=repo_root)
    match = find_codeowners_match(candidate_files, rules)
    if match is not None:
        rule, file_path = match
        logger.info("Owner from CODEOWNERS %s:%d", rule.source_path, rule.line_number)
        return OwnerAssignment(
            owner=" ".join(rule.owners),
            source="codeowners",
            reason=f"CODEOWNERS match: {rule.pattern} ({rule.source_path}:{rule.line_number})",
            confidence="high",
            candidates=list(rule.owners),
            file=file_path,
        )

    for tier in (
        lambda: _resolve_from_blame(git, evidence_file, evidence_line, config.blame_depth),
        lambda: _resolve_from_team_map(candidate_files, config),
        lambda: _resolve_from_last_commit(git, candidate_files),
    ):
        assignment = tier()
        if assignment is not None:
            logger.info("Owner from %s: %s", assignment.source, assignment.reason)
            return assignment

    logger.info("No owner signal found, using fallback owner %s", config.fallback_owner)
    return OwnerAssignment(
        owner=config.fallback_owner or "unassigned",
        source="fallback",
        reason="fallback owner",
        confidence="low",
    )
