"""
Classification Models
=====================
FailureClassification — the two independent axes of a failure:
    failure_type   — what kind of check failed (test, lint, build, typecheck, unknown)
    failure_class  — what kind of root cause (deterministic, flaky, secrets, ...)

ClassificationReport — everything the classifier derives from the logs:
    classification, error_signature, extracted_errors, failed_command,
    relevant_files
"""
from typing import List

from pydantic import BaseModel, Field

from greenlit.core.constants import FailureClass, FailureType


class FailureClassification(BaseModel):
    failure_type: FailureType = "unknown"
    failure_class: FailureClass = "unknown"


class ClassificationReport(BaseModel):
    classification: FailureClassification = Field(default_factory=FailureClassification)
    error_signature: str
    extracted_errors: List[str] = Field(default_factory=list)
    failed_command: str
    relevant_files: List[str] = Field(default_factory=list)
