"""
Owner Assignment Model
======================
The single responsible owner resolved for an incident. Always populated:
the fallback tier guarantees an assignment even when every heuristic fails.

Fields:
    owner       — owner handle(s), space-joined for multi-owner CODEOWNERS rules
    source      — codeowners / blame / team_map / last_commit / fallback / unknown
    reason      — human-readable explanation of the match
    confidence  — high (codeowners), medium (blame), low (everything else)
    candidates  — all owners of the matched CODEOWNERS rule
    file, line  — the file (and blame line) the owner was resolved from
"""
from typing import List, Optional

from pydantic import BaseModel

from greenlit.core.constants import Confidence, OwnerSource


class OwnerAssignment(BaseModel):
    owner: str
    source: OwnerSource
    reason: str
    confidence: Confidence
    candidates: Optional[List[str]] = None
    file: Optional[str] = None
    line: Optional[str] = None
