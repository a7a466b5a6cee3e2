"""
CODEOWNERS Reader
=================
Parses CODEOWNERS files into ordered ownership rules and matches repository
paths against them.

Pattern compilation (codeowners_pattern_to_regex):
    /pattern     → anchored at the repository root
    pattern      → may match at any directory depth
    pattern/     → the whole subtree
    **           → any characters, across "/"
    *            → any characters within one path segment
    ?            → exactly one character
    anything else is matched literally

Matching:
    Later rules override earlier ones: for a file the LAST matching rule
    wins. Candidate files are tried in order and the first file with any
    match decides.

Tolerant:
    Missing files, blank lines, comments (whole-line or trailing), and lines
    without owners are skipped.
"""
import os
import re
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

_REGEX_SPECIALS = set(".+^${}()|[]\\")


@dataclass(frozen=True)
class CodeownerRule:
    """One CODEOWNERS line, immutable once parsed."""
    pattern: str
    owners: Tuple[str, ...]
    regex: re.Pattern
    source_path: str
    line_number: int

    def matches(self, file_path: str) -> bool:
        return self.regex.search(file_path) is not None


# ---------------------------------------------------------------------------
# Pattern compilation
# ---------------------------------------------------------------------------
def _glob_to_regex(glob: str) -> str:
    regex = []
    i = 0
    while i < len(glob):
        char = glob[i]
        if char == "*" and i + 1 < len(glob) and glob[i + 1] == "*":
            regex.append(".*")
            i += 2
            continue
        if char == "*":
            regex.append("[^/]*")
        elif char == "?":
            regex.append(".")
        elif char in _REGEX_SPECIALS:
            regex.append("\\" + char)
        else:
            regex.append(char)
        i += 1
    return "".join(regex)


def codeowners_pattern_to_regex(pattern: str) -> re.Pattern:
    """
    Compile a CODEOWNERS glob into an anchored path matcher.

    Parameters
    ----------
    pattern : str
        Glob text as written in the CODEOWNERS file.

    Returns
    -------
    re.Pattern
        Regex matching whole repository-relative paths (forward slashes).
    """
    cleaned = pattern.strip()
    anchored = cleaned.startswith("/")
    if anchored:
        cleaned = cleaned.lstrip("/")

    if cleaned.endswith("/"):
        cleaned = f"{cleaned}**"

    prefix = "^" if anchored else "(^|.*/)"
    return re.compile(f"{prefix}{_glob_to_regex(cleaned)}$")


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------
def parse_codeowners(content: str, source_path: str = "CODEOWNERS") -> List[CodeownerRule]:
    """Parse CODEOWNERS text into rules, keeping file order."""
    rules: List[CodeownerRule] = []
    for index, raw_line in enumerate(content.splitlines()):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        parts = line.split()
        pattern, owners = parts[0], []
        for token in parts[1:]:
            if token.startswith("#"):
                break
            owners.append(token)
        if not owners:
            logger.debug("Skipping ownerless CODEOWNERS line %s:%d", source_path, index + 1)
            continue

        rules.append(CodeownerRule(
            pattern=pattern,
            owners=tuple(owners),
            regex=codeowners_pattern_to_regex(pattern),
            source_path=source_path,
            line_number=index + 1,
        ))
    return rules


def load_codeowners(paths: Iterable[str], repo_root: str = ".") -> List[CodeownerRule]:
    """
    Load rules from every configured CODEOWNERS location that exists.

    Relative paths are resolved against repo_root; rules keep the
    configured path as their source.
    """
    rules: List[CodeownerRule] = []
    for path in paths:
        full_path = path if os.path.isabs(path) else os.path.join(repo_root, path)
        if not os.path.isfile(full_path):
            continue
        try:
            with open(full_path, "r", encoding="utf-8") as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Cannot read CODEOWNERS %s: %s", full_path, e)
            continue
        rules.extend(parse_codeowners(content, source_path=path))

    logger.debug("Loaded %d CODEOWNERS rule(s)", len(rules))
    return rules


def find_codeowners_match(
    files: Sequence[str],
    rules: Sequence[CodeownerRule],
) -> Optional[Tuple[CodeownerRule, str]]:
    """
    Find the owning rule for the first candidate file that any rule matches.

    Returns
    -------
    tuple[CodeownerRule, str] | None
        (last matching rule, matched file), or None if nothing matches.
    """
    for file_path in files:
        matched: Optional[CodeownerRule] = None
        for rule in rules:
            if rule.matches(file_path):
                matched = rule
        if matched is not None:
            return matched, file_path
    return None
