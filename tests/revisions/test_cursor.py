"""Tests for the opaque ``olderCursor`` codec."""

from __future__ import annotations

import base64

import pytest

from wikistats.revisions.cursor import Cursor, decode_cursor, encode_cursor


def _b64(raw: str) -> str:
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")


class TestEncodeCursor:
    @pytest.mark.parametrize("token", [None, "", "   "])
    def test_no_token_gives_no_cursor(self, token: str | None) -> None:
        assert encode_cursor(token, "||") is None
        assert encode_cursor(token, "-||") is None

    def test_cursor_is_unpadded_urlsafe_base64(self) -> None:
        cursor = encode_cursor("20200110120000|934015232", "-||")
        assert cursor is not None
        assert "=" not in cursor
        assert "+" not in cursor and "/" not in cursor

    def test_missing_param_defaults_to_sentinel(self) -> None:
        assert decode_cursor(encode_cursor("20200110120000|1")) == Cursor("20200110120000|1", "||")


class TestDecodeCursor:
    @pytest.mark.parametrize(
        ("token", "param"),
        [
            ("20200110120000|934015232", "-||"),
            ("20010115192713|1", "||"),
            ("token with spaces and ünïcödé", "x=y"),
            ("a&b|1", "-||"),
            ("20200110120000|1", "a&b=c%20d+e"),
        ],
    )
    def test_round_trip(self, token: str, param: str) -> None:
        assert decode_cursor(encode_cursor(token, param)) == Cursor(token, param)

    @pytest.mark.parametrize("cursor", [None, "", "  "])
    def test_blank_means_start(self, cursor: str | None) -> None:
        assert decode_cursor(cursor) == Cursor()

    def test_upstream_key_names_are_accepted(self) -> None:
        cursor = _b64("rvcontinue=20150101000000|555&continue=-||")
        assert decode_cursor(cursor) == Cursor("20150101000000|555", "-||")

    def test_raw_rvcontinue_with_pipe_is_accepted(self) -> None:
        assert decode_cursor("20150101000000|555") == Cursor("20150101000000|555", "||")

    def test_garbage_without_pipe_means_start(self) -> None:
        assert decode_cursor("not*base64!") == Cursor()

    def test_payload_without_token_means_start(self) -> None:
        assert decode_cursor(_b64("continuationParam=||")) == Cursor()

    def test_invalid_utf8_means_start(self) -> None:
        cursor = base64.urlsafe_b64encode(b"\xff\xfe\xfd").decode("ascii").rstrip("=")
        assert decode_cursor(cursor) == Cursor()

    def test_token_cannot_override_param(self) -> None:
        cursor = encode_cursor("x&continuationParam=evil", "-||")
        assert decode_cursor(cursor) == Cursor("x&continuationParam=evil", "-||")
