"""
Failure Event Model
===================
Pydantic models for the raw CI failure handed to the engine by the log
collector. One FailureEvent per failed workflow run.

Fields:
    run_id          — CI provider workflow run identifier
    repo            — repository identifier ("owner/repo")
    branch / sha    — head branch and commit of the failed run
    workflow_name   — human-readable workflow name
    failed_jobs     — ordered failed jobs, each with its raw log text
    changed_files   — files touched by the change under test (None → ask git)
    recent_commits  — one-line summaries of recent commits (None → ask git)
"""
from typing import List, Optional

from pydantic import BaseModel, Field


class FailedStep(BaseModel):
    step_name: str
    conclusion: str = "failure"
    started_at: str = ""
    completed_at: str = ""


class FailedJob(BaseModel):
    job_id: int = 0
    job_name: str
    failed_steps: List[FailedStep] = Field(default_factory=list)
    logs: str = ""


class FailureEvent(BaseModel):
    run_id: int = 0
    repo: str
    branch: str = "unknown"
    sha: str = "unknown"
    workflow_name: str = "CI"
    failed_jobs: List[FailedJob] = Field(default_factory=list)
    changed_files: Optional[List[str]] = None
    recent_commits: Optional[List[str]] = None

    def combined_logs(self) -> str:
        """Concatenate every failed job's log, separated by a marker line."""
        return "\n---\n".join(job.logs for job in self.failed_jobs)
