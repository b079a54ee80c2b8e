"""Tests for input normalization helpers"""
from src.shared.utils.sanitization import normalize_emails, parse_id_list


class TestNormalizeEmails:
    def test_delimited_string(self):
        assert normalize_emails(" Alice@Example.com, bob@example.com;carol@example.com  alice@example.com") == [
            "alice@example.com",
            "bob@example.com",
            "carol@example.com",
        ]

    def test_iterable_and_none(self):
        assert normalize_emails(["A@x.io", "", None, "a@x.io "]) == ["a@x.io"]
        assert normalize_emails(None) == []


class TestParseIdList:
    def test_comma_separated(self):
        assert parse_id_list("a, b,,a") == ["a", "b"]

    def test_iterable(self):
        assert parse_id_list([" x ", "y", ""]) == ["x", "y"]
