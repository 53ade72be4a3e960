"""
Tests for the error classifier — rule ordering, diagnostics, retryability.
"""

import pytest

from brewsync.core.data.error_rules import ERROR_RULES, RETRYABLE_KINDS
from brewsync.core.models.package import ErrorKind
from brewsync.core.services.error_classifier import classify, is_retryable


class TestClassify:
    @pytest.mark.parametrize(
        ("output", "kind"),
        [
            ('Error: No available formula with the name "foo".', ErrorKind.NOT_FOUND),
            ("Error: No Cask with this name exists", ErrorKind.NOT_FOUND),
            ("npm ERR! 404 Not Found - GET https://registry.npmjs.org/nope", ErrorKind.NOT_FOUND),
            ("Warning: wget 1.21 is already installed", ErrorKind.ALREADY_INSTALLED),
            ("curl: (6) Could not resolve host; no internet", ErrorKind.NO_INTERNET),
            ("npm ERR! code ENOTFOUND", ErrorKind.NO_INTERNET),
            ("curl: (7) Failed to connect: Connection refused", ErrorKind.CONNECTION_REFUSED),
            ("Operation timed out after 30000 milliseconds", ErrorKind.TIMEOUT),
            ("npm ERR! code EACCES", ErrorKind.PERMISSION_DENIED),
            ("write failed: No space left on device", ErrorKind.DISK_FULL),
            ("Error: SHA256 mismatch", ErrorKind.DOWNLOAD_CORRUPTED),
            ("Error: Another `brew update` process is already running", ErrorKind.ALREADY_RUNNING),
            ("Error: A `brew install` process has already locked /opt/homebrew", ErrorKind.ALREADY_RUNNING),
            ("Error: signature mismatch for cask", ErrorKind.SIGNATURE_MISMATCH),
            ("npm ERR! code ERESOLVE", ErrorKind.DEPENDENCY_CONFLICT),
        ],
    )
    def test_known_patterns(self, output, kind):
        assert classify(output).kind is kind

    def test_case_insensitive(self):
        assert classify("CONNECTION REFUSED").kind is ErrorKind.CONNECTION_REFUSED

    def test_first_rule_wins(self):
        # Matches both NOT_FOUND and TIMEOUT; NOT_FOUND comes first.
        out = "Error: No available formula with the name foo\ncurl: timed out"
        assert classify(out).kind is ErrorKind.NOT_FOUND

    def test_not_found_before_no_internet(self):
        out = "npm ERR! 404 Not Found\nnpm ERR! code ENOTFOUND"
        assert classify(out).kind is ErrorKind.NOT_FOUND

    def test_reason_is_human_readable(self):
        assert classify("connection timed out").reason == "connection timed out"

    def test_already_installed_is_not_an_error(self):
        verdict = classify("Warning: already installed")
        assert verdict.is_error is False

    def test_pure(self):
        text = "Error: Connection refused"
        assert classify(text) == classify(text)


class TestDiagnostic:
    def test_first_error_line_becomes_reason(self):
        out = "==> Downloading\nError: something odd happened\nError: second"
        verdict = classify(out)
        assert verdict.kind is ErrorKind.DIAGNOSTIC
        assert verdict.reason == "Error: something odd happened"

    def test_npm_err_marker(self):
        verdict = classify("npm ERR! code E999")
        assert verdict.kind is ErrorKind.DIAGNOSTIC

    def test_truncated_to_sixty_chars(self):
        line = "Error: " + "x" * 100
        verdict = classify(line)
        assert verdict.reason == line[:60] + "..."
        assert len(verdict.reason) == 63

    def test_unknown_without_marker(self):
        verdict = classify("segfault\ncore dumped")
        assert verdict.kind is ErrorKind.UNKNOWN
        assert verdict.reason == "unknown error"

    def test_empty_output_is_unknown(self):
        assert classify("").kind is ErrorKind.UNKNOWN


class TestRetryable:
    def test_exact_retryable_set(self):
        assert RETRYABLE_KINDS == {
            ErrorKind.TIMEOUT,
            ErrorKind.CONNECTION_REFUSED,
            ErrorKind.NO_INTERNET,
            ErrorKind.DOWNLOAD_CORRUPTED,
            ErrorKind.ALREADY_RUNNING,
            ErrorKind.SIGNATURE_MISMATCH,
        }

    @pytest.mark.parametrize("kind", list(ErrorKind))
    def test_is_retryable_matches_set(self, kind):
        assert is_retryable(kind) is (kind in RETRYABLE_KINDS)

    def test_none_not_retryable(self):
        assert is_retryable(None) is False

    def test_classification_exposes_retryable(self):
        assert classify("Connection refused").retryable is True
        assert classify("No available formula").retryable is False

    def test_custom_rules(self):
        rules = [(("boom",), ErrorKind.DISK_FULL)]
        assert classify("BOOM", rules=rules).kind is ErrorKind.DISK_FULL
        assert len(ERROR_RULES) > 1
