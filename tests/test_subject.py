"""
Unit tests for account_calendar_sync.sync.subject.
"""

import pytest

from account_calendar_sync.sync.subject import account_tag
from account_calendar_sync.sync.subject import transform_subject


class TestPlainSubject:
    def test_prefixed_with_display_name(self):
        assert transform_subject("Sync", "Bob") == "Bob : Sync"

    def test_email_display_name_kept_whole(self):
        assert transform_subject("Review", "alice@example.com") == "alice@example.com : Review"

    def test_empty_subject(self):
        assert transform_subject("", "Bob") == "Bob : "


class TestAbbreviatedSubject:
    def test_email_name_uses_domain_tag_and_six_characters(self):
        result = transform_subject("Weekly Standup Meeting", "alice@example.com", abbreviate=True)
        assert result == "EX : Weekly"

    def test_plain_name_uses_four_character_tag_and_five_characters(self):
        assert transform_subject("Team sync", "Personal", abbreviate=True) == "PERS : Teams"

    def test_two_short_words_are_joined(self):
        assert transform_subject("1 on 1", "bob@work.org", abbreviate=True) == "WO : 1on"

    def test_single_word_subject(self):
        assert transform_subject("Dentist", "bob@work.org", abbreviate=True) == "WO : Dentis"

    def test_empty_subject(self):
        assert transform_subject("", "Bob", abbreviate=True) == "BOB : "

    def test_whitespace_runs_are_ignored(self):
        assert transform_subject("  Budget   review ", "Home", abbreviate=True) == "HOME : Budge"

    @pytest.mark.parametrize(
        "display_name, tag",
        [
            ("alice@example.com", "EX"),
            ("x@y", "Y"),
            ("trailing@", ""),
            ("Bo", "BO"),
            ("Personal", "PERS"),
        ],
    )
    def test_account_tag_clamps_to_available_length(self, display_name, tag):
        assert account_tag(display_name) == tag
