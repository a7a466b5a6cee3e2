"""
Shared fixtures.

FakeGitHistory stands in for the git CLI so no test shells out.
"""
import os

# Keep test runs from writing dated log files
os.environ.setdefault("LOG_DIR", "")

import pytest

from greenlit.core.config import EngineConfig, OwnerRoutingConfig, SignatureLedgerConfig
from greenlit.models.failure_event import FailedJob, FailedStep, FailureEvent


class FakeGitHistory:
    def __init__(self, blame=None, last_commit=None, changed=None, commits=None):
        self.blame = blame or {}              # (file, line) → author
        self.last_commit = last_commit or {}  # file → author
        self.changed = changed or []
        self.commits = commits or []
        self.blame_calls = []
        self.last_commit_calls = []

    def blame_author(self, file_path, line):
        self.blame_calls.append((file_path, line))
        return self.blame.get((file_path, line))

    def last_commit_author(self, file_path):
        self.last_commit_calls.append(file_path)
        return self.last_commit.get(file_path)

    def changed_files(self):
        return list(self.changed)

    def recent_commits(self, count=5):
        return list(self.commits[:count])


@pytest.fixture
def fake_git():
    return FakeGitHistory()


@pytest.fixture
def engine_config(tmp_path):
    return EngineConfig(
        signature_ledger=SignatureLedgerConfig(path=str(tmp_path / "data" / "signatures.json"), ttl_days=30),
        owner_routing=OwnerRoutingConfig(
            codeowners_paths=["CODEOWNERS"],
            blame_depth=0,
            team_map={},
            fallback_owner="unassigned",
        ),
        repo_root=str(tmp_path),
    )


VITEST_LOG = "\n".join([
    "> demo@1.0.0 test",
    "> vitest run",
    "",
    " FAIL  demo/math.test.ts > add > adds numbers",
    "AssertionError: expected 5 to equal 6",
    " ❯ demo/math.test.ts:6:23",
    "      4|   it('adds numbers', () => {",
    "      5|     expect(add(2, 3)).toBe(5);",
    "      6|     expect(add(2, 3)).toBe(6);",
    "",
    "Test Files  1 failed (1)",
])


def make_event(logs=VITEST_LOG, job_name="unit (vitest)", step_name="Run npm test", **overrides):
    fields = dict(
        run_id=42,
        repo="acme/widgets",
        branch="main",
        sha="abc123",
        workflow_name="CI",
        failed_jobs=[FailedJob(
            job_id=7,
            job_name=job_name,
            failed_steps=[FailedStep(step_name=step_name)],
            logs=logs,
        )],
        changed_files=[],
        recent_commits=[],
    )
    fields.update(overrides)
    return FailureEvent(**fields)


@pytest.fixture
def vitest_event():
    return make_event()
