"""
Evidence Pack Model
===================
Compact pointer into the log identifying the most likely failure location.
Produced once per incident and never mutated afterwards.

Fields:
    file     — repository path of the best file:line match (absent if none)
    line     — line number as a string (absent if none)
    excerpt  — multi-line log window around the match, or the log tail
    job      — first failed job name
    step     — first failed step of that job
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict


class EvidencePack(BaseModel):
    model_config = ConfigDict(frozen=True)

    file: Optional[str] = None
    line: Optional[str] = None
    excerpt: Optional[str] = None
    job: Optional[str] = None
    step: Optional[str] = None
