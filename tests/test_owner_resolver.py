"""
Unit Tests — Owner Resolver
===========================
Priority chain: CODEOWNERS → blame → team map → last commit → fallback.

Git lookups go through FakeGitHistory; CODEOWNERS files live in tmp_path.
"""
import pytest

from greenlit.core.config import OwnerRoutingConfig
from greenlit.services.owner_resolver import (
    build_candidate_files,
    build_line_candidates,
    normalize_path,
    parse_line_number,
    resolve_owner_assignment,
)

from conftest import FakeGitHistory


def _config(**overrides):
    fields = dict(codeowners_paths=["CODEOWNERS"], blame_depth=0, team_map={}, fallback_owner="unassigned")
    fields.update(overrides)
    return OwnerRoutingConfig(**fields)


def _resolve(tmp_path, files, git=None, evidence_file=None, evidence_line=None, **config):
    return resolve_owner_assignment(
        files,
        _config(**config),
        git or FakeGitHistory(),
        evidence_file=evidence_file,
        evidence_line=evidence_line,
        repo_root=str(tmp_path),
    )


# ===========================================================================
# Candidate files
# ===========================================================================
class TestCandidates:

    @pytest.mark.parametrize("raw, expected", [
        ("./src/a.ts", "src/a.ts"),
        ("src\\win\\b.ts", "src/win/b.ts"),
        ("src//c.ts", "src/c.ts"),
        ("  lib/d.py ", "lib/d.py"),
        (".", ""),
        ("", ""),
    ])
    def test_normalize_path(self, raw, expected):
        assert normalize_path(raw) == expected

    def test_order_and_dedup(self):
        files = build_candidate_files(
            "./src/a.ts",
            ["src/a.ts", "src/b.ts"],
            ["src\\b.ts", "README.md"],
        )
        assert files == ["src/a.ts", "src/b.ts", "README.md"]

    def test_missing_evidence_file(self):
        assert build_candidate_files(None, [], ["x.py"]) == ["x.py"]

    def test_line_candidates(self):
        assert build_line_candidates(10, 1) == [10]
        assert build_line_candidates(10, 3) == [10, 9, 11, 8, 12]
        assert build_line_candidates(1, 2) == [1, 2]

    def test_parse_line_number(self):
        assert parse_line_number("42") == 42
        assert parse_line_number(None) is None
        assert parse_line_number("n/a") is None


# ===========================================================================
# Tier 1 — CODEOWNERS
# ===========================================================================
class TestCodeownersTier:

    def test_override_scenario(self, tmp_path):
        (tmp_path / "CODEOWNERS").write_text("* @team-a\n/src/ @team-b\n", encoding="utf-8")
        owner = _resolve(tmp_path, ["src/a.ts"])
        assert owner.owner == "@team-b"
        assert owner.source == "codeowners"
        assert owner.confidence == "high"
        assert "/src/" in owner.reason
        assert "CODEOWNERS:2" in owner.reason
        assert owner.file == "src/a.ts"

    def test_file_rule_after_glob(self, tmp_path):
        (tmp_path / "CODEOWNERS").write_text("src/* @team-a\nsrc/foo.ts @team-b\n", encoding="utf-8")
        owner = _resolve(tmp_path, ["src/foo.ts"])
        assert owner.owner == "@team-b"
        assert owner.source == "codeowners"
        assert "CODEOWNERS:2" in owner.reason

    def test_multiple_owners(self, tmp_path):
        (tmp_path / "CODEOWNERS").write_text("/src/ @alice @acme/web\n", encoding="utf-8")
        owner = _resolve(tmp_path, ["src/a.ts"])
        assert owner.owner == "@alice @acme/web"
        assert owner.candidates == ["@alice", "@acme/web"]

    def test_beats_every_other_tier(self, tmp_path):
        (tmp_path / "CODEOWNERS").write_text("* @team-a\n", encoding="utf-8")
        git = FakeGitHistory(blame={("src/a.ts", 3): "Alice <a@x>"})
        owner = _resolve(
            tmp_path, ["src/a.ts"], git=git,
            evidence_file="src/a.ts", evidence_line="3",
            blame_depth=1, team_map={"src/": "team-beta"},
        )
        assert owner.source == "codeowners"
        assert git.blame_calls == []


# ===========================================================================
# Tier 2 — blame
# ===========================================================================
class TestBlameTier:

    def test_exact_line(self, tmp_path):
        git = FakeGitHistory(blame={("src/a.ts", 12): "Alice <alice@example.com>"})
        owner = _resolve(tmp_path, ["src/a.ts"], git=git,
                         evidence_file="src/a.ts", evidence_line="12", blame_depth=1)
        assert owner.owner == "Alice <alice@example.com>"
        assert owner.source == "blame"
        assert owner.confidence == "medium"
        assert owner.line == "12"

    def test_nearby_line(self, tmp_path):
        git = FakeGitHistory(blame={("src/a.ts", 13): "Bob <bob@example.com>"})
        owner = _resolve(tmp_path, ["src/a.ts"], git=git,
                         evidence_file="src/a.ts", evidence_line="12", blame_depth=2)
        assert owner.owner == "Bob <bob@example.com>"
        assert git.blame_calls == [("src/a.ts", 12), ("src/a.ts", 11), ("src/a.ts", 13)]

    def test_skipped_when_depth_zero(self, tmp_path):
        git = FakeGitHistory(blame={("src/a.ts", 12): "Alice"})
        owner = _resolve(tmp_path, ["src/a.ts"], git=git,
                         evidence_file="src/a.ts", evidence_line="12", blame_depth=0)
        assert owner.source == "fallback"
        assert git.blame_calls == []

    def test_skipped_without_line(self, tmp_path):
        git = FakeGitHistory()
        _resolve(tmp_path, ["src/a.ts"], git=git, evidence_file="src/a.ts", blame_depth=3)
        assert git.blame_calls == []


# ===========================================================================
# Tier 3 — team map
# ===========================================================================
class TestTeamMapTier:

    def test_missing_codeowners_uses_team_map(self, tmp_path):
        owner = _resolve(tmp_path, ["src/foo.ts"], team_map={"src/": "team-beta"})
        assert owner.owner == "team-beta"
        assert owner.source == "team_map"
        assert owner.confidence == "low"

    def test_longest_prefix_wins(self, tmp_path):
        team_map = {"src/": "team-web", "src/payments/": "team-payments"}
        owner = _resolve(tmp_path, ["docs/x.md", "src/payments/charge.ts"], team_map=team_map)
        assert owner.owner == "team-payments"
        assert owner.file == "src/payments/charge.ts"

    def test_longest_prefix_across_files(self, tmp_path):
        team_map = {"src/": "team-web", "lib/core/": "team-core"}
        owner = _resolve(tmp_path, ["src/a.ts", "lib/core/b.ts"], team_map=team_map)
        assert owner.owner == "team-core"


# ===========================================================================
# Tier 4 / 5 — last commit, fallback
# ===========================================================================
class TestLastCommitAndFallback:

    def test_last_commit(self, tmp_path):
        git = FakeGitHistory(last_commit={"lib/b.py": "Carol <carol@example.com>"})
        owner = _resolve(tmp_path, ["lib/a.py", "lib/b.py"], git=git)
        assert owner.owner == "Carol <carol@example.com>"
        assert owner.source == "last_commit"
        assert owner.file == "lib/b.py"
        assert git.last_commit_calls == ["lib/a.py", "lib/b.py"]

    def test_fallback(self, tmp_path):
        owner = _resolve(tmp_path, ["lib/a.py"], fallback_owner="@acme/oncall")
        assert owner.owner == "@acme/oncall"
        assert owner.source == "fallback"
        assert owner.confidence == "low"

    def test_fallback_with_no_candidates(self, tmp_path):
        owner = _resolve(tmp_path, [])
        assert owner.owner == "unassigned"
        assert owner.source == "fallback"
