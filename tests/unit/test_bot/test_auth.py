"""Tests for the sender allowlist."""

import pytest

from src.bot.middleware.auth import SenderAllowlist, normalize_sender


class TestNormalizeSender:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("123456", "123456"),
            ("+62 812-3456", "628123456"),
            ("(021) 555 01", "02155501"),
            ("@SomeUser", "someuser"),
            ("user42", "user42"),
            ("  ", ""),
        ],
    )
    def test_forms(self, raw, expected):
        assert normalize_sender(raw) == expected


class TestSenderAllowlist:
    def test_empty_admits_everyone(self):
        allowlist = SenderAllowlist()
        assert allowlist.is_open
        assert allowlist.is_allowed("anyone")

    def test_digit_normalized_match(self):
        allowlist = SenderAllowlist(["+62 812 3456"])
        assert allowlist.is_allowed("628123456")
        assert allowlist.is_allowed("+62-812-3456")
        assert not allowlist.is_allowed("628123457")

    def test_handles_case_insensitive(self):
        allowlist = SenderAllowlist(["@Daud"])
        assert allowlist.is_allowed("daud")
        assert not allowlist.is_allowed("someone")

    def test_blank_entries_ignored(self):
        assert SenderAllowlist(["", "  "]).is_open
