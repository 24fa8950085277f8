"""Tests for oracle reply parsing and view invalidation."""

import pytest

from onestop.errors import OracleParseError
from onestop.services import ViewInvalidator, parse_oracle_json, strip_code_fences


class TestParseOracleJson:

    @pytest.mark.parametrize("text", [
        '{"a": 1}',
        '```json\n{"a": 1}\n```',
        '```\n{"a": 1}```',
        '  {"a": 1}  \n',
    ])
    def test_object_with_or_without_fences(self, text):
        assert parse_oracle_json(text) == {"a": 1}

    @pytest.mark.parametrize("text", [
        None,
        "",
        "not json",
        "[1, 2]",
        '"just a string"',
        "42",
        '{"amount": Infinity}',
        '{"a": 1',
    ])
    def test_rejects_everything_else(self, text):
        with pytest.raises(OracleParseError):
            parse_oracle_json(text)

    def test_strip_code_fences(self):
        assert strip_code_fences("```json\n{}\n```") == "{}"


class TestViewInvalidator:

    def test_listeners_notified_in_order(self):
        invalidator = ViewInvalidator()
        seen = []
        invalidator.subscribe(seen.append)

        assert invalidator.revalidate_transaction(7) == ["/dashboard", "/account/7"]
        assert seen == ["/dashboard", "/account/7"]

    def test_unsubscribe(self):
        invalidator = ViewInvalidator()
        seen = []
        unsubscribe = invalidator.subscribe(seen.append)
        unsubscribe()

        invalidator.revalidate("/dashboard")

        assert seen == []
        assert invalidator.drain() == ["/dashboard"]
        assert invalidator.drain() == []

    def test_broken_listener_does_not_raise(self):
        invalidator = ViewInvalidator()
        seen = []

        def broken(path):
            raise RuntimeError("cache gone")

        invalidator.subscribe(broken)
        invalidator.subscribe(seen.append)

        invalidator.revalidate("/dashboard")

        assert seen == ["/dashboard"]

    def test_pending_keys_are_bounded(self):
        invalidator = ViewInvalidator(max_pending=4)
        seen = []
        invalidator.subscribe(seen.append)

        for account_id in range(1000):
            invalidator.revalidate_transaction(account_id)

        assert len(seen) == 2000
        assert invalidator.drain() == ["/dashboard", "/account/998", "/dashboard", "/account/999"]
