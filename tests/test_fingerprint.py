"""
Unit Tests — Failure Fingerprint
================================
Normalization of volatile error text and fingerprint stability.
"""
from greenlit.utils.fingerprint import compute_fingerprint, normalize_error_signature


class TestNormalize:

    def test_digits_collapsed(self):
        assert normalize_error_signature("expected 5 to equal 6") == "expected n to equal n"

    def test_hex_address_collapsed(self):
        assert normalize_error_signature("segfault at 0x7ffD3e2A") == "segfault at x"

    def test_path_runs_collapsed(self):
        sig = "Cannot open /home/runner/work/app/config.json"
        assert normalize_error_signature(sig) == "cannot open /path/config.json"

    def test_whitespace_and_case(self):
        assert normalize_error_signature("  Error:\tBad   Thing \n") == "error: bad thing"

    def test_empty(self):
        assert normalize_error_signature("") == ""


class TestComputeFingerprint:

    def _fp(self, **overrides):
        fields = dict(
            repo="acme/widgets",
            failure_type="test",
            error_signature="AssertionError: expected 5 to equal 6",
            failed_command="npm test",
            job="unit",
            step="Run npm test",
        )
        fields.update(overrides)
        return compute_fingerprint(**fields)

    def test_is_sha256_hex(self):
        fp = self._fp()
        assert len(fp) == 64
        assert all(c in "0123456789abcdef" for c in fp)

    def test_deterministic(self):
        assert self._fp() == self._fp()

    def test_volatile_numbers_ignored(self):
        assert self._fp() == self._fp(error_signature="AssertionError: expected 17 to equal 18")

    def test_hex_case_ignored(self):
        a = self._fp(error_signature="panic at 0xABCDEF")
        b = self._fp(error_signature="panic at 0xabcdef")
        assert a == b

    def test_directory_prefixes_ignored(self):
        a = self._fp(error_signature="ENOENT: cannot open /home/runner/work/widgets/fixtures/x.json")
        b = self._fp(error_signature="ENOENT: cannot open /tmp/build-7/fixtures/x.json")
        assert a == b
        assert a != self._fp(error_signature="ENOENT: cannot open /tmp/build-7/fixtures/y.json")

    def test_each_component_matters(self):
        base = self._fp()
        assert self._fp(repo="acme/other") != base
        assert self._fp(failure_type="lint") != base
        assert self._fp(error_signature="TypeError: x is undefined") != base
        assert self._fp(failed_command="npm run test:ci") != base
        assert self._fp(job="e2e") != base
        assert self._fp(step="Run vitest") != base

    def test_missing_job_and_step(self):
        assert self._fp(job=None, step=None) == self._fp(job="", step="")
