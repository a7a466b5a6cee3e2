"""
Unit Tests — Evidence Extractor
===============================
Scored-window file:line selection, excerpt windows, and job/step metadata.
"""
import pytest
from pydantic import ValidationError

from greenlit.models.evidence import EvidencePack
from greenlit.models.failure_event import FailedJob, FailedStep
from greenlit.parser.evidence import FILE_LINE_PATTERN, build_evidence_pack


def _jobs(job_name="test", steps=("Run npm test",)):
    return [FailedJob(job_name=job_name, failed_steps=[FailedStep(step_name=s) for s in steps])]


class TestFileLinePattern:

    def test_matches_path_line_column(self):
        m = FILE_LINE_PATTERN.search("    at src/app.ts:42:3")
        assert m.group(1) == "src/app.ts"
        assert m.group(2) == "42"

    def test_strips_stack_frame_parenthesis(self):
        m = FILE_LINE_PATTERN.search("    at Object.<anonymous> (src/foo.test.tsx:12:5)")
        assert m.group(1) == "src/foo.test.tsx"

    def test_python_path(self):
        m = FILE_LINE_PATTERN.search("tests/test_api.py:88: AssertionError")
        assert m.group(1) == "tests/test_api.py"
        assert m.group(2) == "88"

    def test_ignores_unknown_extension(self):
        assert FILE_LINE_PATTERN.search("config/settings.yml:3") is None


class TestWindowScoring:

    def test_keyword_dense_window_wins(self):
        log = "\n".join(
            ["Running suite", "    at src/app.ts:42:3"]
            + [f"log line {i}" for i in range(9)]
            + ["Error: Cannot read property 'x' of undefined", "    at src/utils.ts:17:10", "done"]
        )
        evidence = build_evidence_pack(log, _jobs())
        assert evidence.file == "src/utils.ts"
        assert evidence.line == "17"

    def test_tie_goes_to_earliest_line(self):
        log = "\n".join(["at src/a.ts:1:1"] + ["quiet"] * 10 + ["at src/b.ts:2:2"])
        evidence = build_evidence_pack(log, _jobs())
        assert evidence.file == "src/a.ts"
        assert evidence.line == "1"

    def test_keywords_outside_window_do_not_count(self):
        log = "\n".join(
            ["at src/a.ts:1:1"]
            + ["quiet"] * 5
            + ["at src/b.ts:2:2"]
            + ["quiet"] * 4
            + ["panic: traceback exception failed"]
        )
        # keyword line sits 5 lines below b, outside its window
        evidence = build_evidence_pack(log, _jobs())
        assert evidence.file == "src/a.ts"


class TestExcerpt:

    def test_excerpt_window_around_match(self):
        lines = [f"line {i}" for i in range(40)]
        lines[20] = "Error at lib/core.py:99"
        evidence = build_evidence_pack("\n".join(lines), _jobs())
        excerpt = evidence.excerpt.split("\n")
        assert excerpt[0] == "line 15"
        assert excerpt[-1] == "line 25"
        assert len(excerpt) == 11

    def test_excerpt_clamped_to_log_start(self):
        log = "\n".join(["Error in src/main.go:3", "a", "b"])
        evidence = build_evidence_pack(log, _jobs())
        assert evidence.excerpt == log

    def test_no_match_uses_log_tail(self):
        lines = [f"output {i}" for i in range(25)]
        evidence = build_evidence_pack("\n".join(lines), _jobs())
        assert evidence.file is None
        assert evidence.line is None
        assert evidence.excerpt.split("\n") == lines[-10:]


class TestJobMetadata:

    def test_first_job_and_first_step(self):
        jobs = _jobs("lint", ("Run eslint .", "Upload report")) + _jobs("test", ("Run jest",))
        evidence = build_evidence_pack("no locations here", jobs)
        assert evidence.job == "lint"
        assert evidence.step == "Run eslint ."

    def test_job_without_failed_steps(self):
        evidence = build_evidence_pack("x", [FailedJob(job_name="build")])
        assert evidence.job == "build"
        assert evidence.step is None

    def test_no_signal_at_all(self):
        assert build_evidence_pack("", []) == EvidencePack()

    def test_evidence_is_immutable(self):
        evidence = build_evidence_pack("at src/a.ts:1:1", _jobs())
        with pytest.raises(ValidationError):
            evidence.file = "other.ts"
