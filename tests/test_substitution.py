"""Tests for backup name substitutions.

These tests verify:
1. Literal names pass through untouched
2. Every token of one name resolves against the same instant
3. Named formats, the UTC_ prefix and custom patterns
4. Sanitization of generated names
5. Directory templates resolved per path segment
"""

import os
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from conftest import FIXED_INSTANT
from portainer_backup.backup.substitution import (
    CustomFormat,
    NamedFormat,
    SubstitutionSnapshot,
    format_custom,
    has_substitutions,
    parse_token,
    process_substitutions,
    resolve_directory,
    sanitize_filename,
)


@pytest.fixture
def snapshot() -> SubstitutionSnapshot:
    return SubstitutionSnapshot(now=FIXED_INSTANT)


class TestLiteralNames:
    """Names without placeholders are the operator's responsibility."""

    @pytest.mark.parametrize("name", [
        "portainer-backup.tar.gz",
        "weird:name?.tar.gz",
        "a/b",
        "",
        "{single}",
        "{{unterminated",
    ])
    def test_literal_name_returned_unchanged(self, name):
        """Test that names without placeholders are neither substituted nor sanitized."""
        assert process_substitutions(name) == name

    def test_has_substitutions(self):
        """Test placeholder detection."""
        assert has_substitutions("backup-{{DATE}}.tar.gz")
        assert has_substitutions("{{}}")
        assert not has_substitutions("backup.tar.gz")


class TestSnapshotConsistency:
    """All tokens of one name observe a single instant."""

    def test_same_snapshot_is_deterministic(self, snapshot):
        """Test that resolving twice against one snapshot yields identical names."""
        template = "backup-{{DATETIME}}-{{MILLIS}}-{{ISO}}.tar.gz"
        assert snapshot.substitute(template) == snapshot.substitute(template)

    def test_date_and_time_share_instant(self):
        """Test that DATE and TIME never drift even when resolution is slow."""
        instants = iter([
            datetime(2024, 1, 16, 23, 59, 59, 999000).astimezone(),
            datetime(2024, 1, 17, 0, 0, 1).astimezone(),
        ])
        snapshot = SubstitutionSnapshot.capture(lambda: next(instants))
        first = snapshot.substitute("{{DATE}}")
        time.sleep(0.01)
        combined = snapshot.substitute("{{DATE}}_{{TIME}}")

        assert combined == f"{first}_235959"
        assert first == "2024-01-16"

    def test_process_substitutions_uses_given_snapshot(self, snapshot):
        """Test that an explicit snapshot is honoured."""
        assert process_substitutions("{{DATE}}-{{TIME}}", snapshot) == "2024-01-16-130509"

    def test_capture_makes_naive_clock_aware(self):
        """Test that a naive clock value is localized."""
        snapshot = SubstitutionSnapshot.capture(lambda: datetime(2024, 1, 16, 12, 0, 0))
        assert snapshot.now.tzinfo is not None


class TestNamedFormats:
    """Named formats against a fixed +02:00 instant."""

    @pytest.mark.parametrize("token,expected", [
        ("DATE", "2024-01-16"),
        ("TIME", "130509"),
        ("DATETIME", "2024-01-16T130509"),
        ("TIMESTAMP", "20240116T130509.123+0200"),
        ("ISO8601", "2024-01-16T13:05:09.123+02:00"),
        ("ISO", "2024-01-16T13:05:09.123+02:00"),
        ("ISO_BASIC", "20240116T130509.123+0200"),
        ("ISO_NO_OFFSET", "2024-01-16T13:05:09.123"),
        ("ISO_DATE", "2024-01-16"),
        ("ISO_WEEKDATE", "2024-W03-2"),
        ("ISO_TIME", "13:05:09.123+02:00"),
        ("HTTP", "Tue, 16 Jan 2024 11:05:09 GMT"),
        ("MILLIS", "1705403109123"),
        ("SECONDS", "1705403109.123"),
        ("UNIX", "1705403109.123"),
        ("EPOCH", "1705403109.123"),
        ("LOCALE", "1/16/2024"),
        ("LOCALE_DATE", "1/16/2024"),
        ("LOCALE_TIME", "13:05"),
        ("DATE_SHORT", "1/16/2024"),
        ("DATE_MED", "Jan 16, 2024"),
        ("DATE_MED_WITH_WEEKDAY", "Tue, Jan 16, 2024"),
        ("DATE_FULL", "January 16, 2024"),
        ("DATE_HUGE", "Tuesday, January 16, 2024"),
        ("TIME_SIMPLE", "1:05 PM"),
        ("TIME_WITH_SECONDS", "1:05:09 PM"),
        ("TIME_WITH_SHORT_OFFSET", "1:05:09 PM GMT+02"),
        ("TIME_24_SIMPLE", "13:05"),
        ("TIME_24_WITH_SECONDS", "13:05:09"),
        ("TIME_24_WITH_SHORT_OFFSET", "13:05:09 GMT+02"),
        ("DATETIME_SHORT", "1/16/2024, 1:05 PM"),
        ("DATETIME_MED", "Jan 16, 2024, 1:05 PM"),
        ("DATETIME_SHORT_WITH_SECONDS", "1/16/2024, 1:05:09 PM"),
        ("DATETIME_FULL", "January 16, 2024 at 1:05 PM GMT+02"),
        ("DATETIME_HUGE_WITH_SECONDS", "Tuesday, January 16, 2024 at 1:05:09 PM GMT+02"),
    ])
    def test_named_format(self, snapshot, token, expected):
        """Test the raw value of each named format."""
        assert snapshot.resolve(token) == expected

    def test_rfc2822(self, snapshot):
        """Test RFC 2822 rendering keeps the local offset."""
        assert snapshot.resolve("RFC2822") == "Tue, 16 Jan 2024 13:05:09 +0200"

    def test_every_named_format_resolves(self, snapshot):
        """Test that no named format raises."""
        for member in NamedFormat:
            assert isinstance(snapshot.resolve(member.value), str)

    def test_parse_token(self):
        """Test splitting of UTC prefix and format variant."""
        assert parse_token("DATE") == (False, NamedFormat.DATE)
        assert parse_token("UTC_ISO") == (True, NamedFormat.ISO)
        assert parse_token("yyyy") == (False, CustomFormat("yyyy"))


class TestUtcPrefix:
    """The UTC_ prefix converts the captured instant for one token only."""

    def test_utc_time(self, snapshot):
        """Test that UTC_TIME is two hours behind TIME at +02:00."""
        assert snapshot.resolve("UTC_TIME") == "110509"
        assert snapshot.resolve("TIME") == "130509"

    def test_utc_iso_uses_zulu(self, snapshot):
        """Test that ISO in UTC ends with Z."""
        assert snapshot.resolve("UTC_ISO") == "2024-01-16T11:05:09.123Z"

    def test_utc_and_local_in_one_name(self, snapshot):
        """Test mixing local and UTC tokens in one name."""
        assert snapshot.substitute("{{TIME}}-{{UTC_TIME}}") == "130509-110509"

    def test_utc_date_can_cross_midnight(self):
        """Test that UTC conversion changes the date where appropriate."""
        instant = datetime(2024, 1, 16, 1, 0, 0, tzinfo=timezone(timedelta(hours=5)))
        snapshot = SubstitutionSnapshot(now=instant)
        assert snapshot.substitute("{{DATE}}/{{UTC_DATE}}") == "2024-01-16-2024-01-15"


class TestCustomFormats:
    """Tokens outside the named table are custom time patterns."""

    @pytest.mark.parametrize("pattern,expected", [
        ("yyyyMMdd", "20240116"),
        ("yyyy-MM-dd'T'HH", "2024-01-16T13"),
        ("yy.M.d", "24.1.16"),
        ("MMMM", "January"),
        ("EEE", "Tue"),
        ("hh a", "01 PM"),
        ("ooo", "016"),
        ("q", "1"),
        ("WW", "03"),
        ("%Y%m", "202401"),
        ("%Y-%m-%d %H", "2024-01-16 13"),
    ])
    def test_custom_pattern(self, pattern, expected):
        """Test custom patterns against the fixed instant."""
        assert format_custom(pattern, FIXED_INSTANT) == expected

    def test_empty_token_is_empty_literal(self, snapshot):
        """Test that {{}} resolves to nothing."""
        assert snapshot.substitute("backup-{{}}.tar.gz") == "backup-.tar.gz"

    def test_unknown_token_is_best_effort(self, snapshot):
        """Test that unknown tokens never raise."""
        result = snapshot.substitute("backup-{{NOT_A_FORMAT}}.tar.gz")
        assert result.startswith("backup-")
        assert result.endswith(".tar.gz")

    def test_quoted_literal_passthrough(self, snapshot):
        """Test quoted literals are copied verbatim."""
        assert snapshot.resolve("'daily'-yyyy") == "daily-2024"


class TestSanitization:
    """Generated names are made safe as single path segments."""

    def test_slash_becomes_hyphen(self, snapshot):
        """Test that / in a resolved name becomes -."""
        assert snapshot.substitute("{{DATE_SHORT}}") == "1-16-2024"

    def test_colon_becomes_underscore(self, snapshot):
        """Test that : in a resolved name becomes _."""
        assert snapshot.substitute("{{ISO}}") == "2024-01-16T13_05_09.123+02_00"

    def test_http_date_sanitized(self, snapshot):
        """Test a realistic multi-character case."""
        assert snapshot.substitute("{{HTTP}}.tar.gz") == "Tue, 16 Jan 2024 11_05_09 GMT.tar.gz"

    def test_literal_text_sanitized_with_tokens(self, snapshot):
        """Test that literal text around tokens is sanitized as well."""
        assert snapshot.substitute('a?b*c"|<>{{DATE}}') == "abc2024-01-16"

    @pytest.mark.parametrize("name,expected", [
        ("app/", "app-"),
        ("db:prod", "db_prod"),
        ("tab\there", "tabhere"),
        ("..", ""),
        ("CON", ""),
        ("trailing. ", "trailing"),
        ("normal-name_1.yaml", "normal-name_1.yaml"),
    ])
    def test_sanitize_filename(self, name, expected):
        """Test the sanitization rules directly."""
        assert sanitize_filename(name) == expected

    def test_truncates_to_255_bytes(self):
        """Test that long names are truncated on a character boundary."""
        result = sanitize_filename("é" * 200)
        assert len(result.encode("utf-8")) <= 255
        assert result == "é" * 127


class TestResolveDirectory:
    """Directory templates are resolved segment by segment."""

    def test_segments_resolved_individually(self, tmp_path, snapshot):
        """Test that a slash produced by a token does not create a new directory level."""
        directory = resolve_directory(str(tmp_path / "{{DATE_SHORT}}" / "daily"), snapshot)
        assert directory == (tmp_path / "1-16-2024" / "daily").resolve()

    def test_result_is_absolute(self, snapshot, monkeypatch, tmp_path):
        """Test that relative directories are made absolute."""
        monkeypatch.chdir(tmp_path)
        directory = resolve_directory("backup/{{DATE}}", snapshot)
        assert directory.is_absolute()
        assert directory == (tmp_path / "backup" / "2024-01-16").resolve()

    def test_literal_directory(self, tmp_path):
        """Test that literal directories are only made absolute."""
        assert resolve_directory(str(tmp_path)) == Path(str(tmp_path)).resolve()
