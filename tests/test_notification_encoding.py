from __future__ import annotations

from urllib.parse import parse_qsl, unquote_plus

import pytest

from cronping.notification import (
    AUTH_KEY_MAX_BYTES,
    HOSTNAME_MAX_BYTES,
    MESSAGE_MAX_BYTES,
    EventKind,
    HeartbeatNotification,
    encode_ping,
    format_stamp,
    make_stamp,
    ping_url,
    truncate_bytes,
)


def _keys(query: str) -> list[str]:
    return [k for k, _v in parse_qsl(query, keep_blank_values=True)]


def test_format_stamp_fixed_three_decimals() -> None:
    assert format_stamp(1700000000.123456) == "1700000000.123"
    assert format_stamp(2.0) == "2.000"
    assert "e" not in format_stamp(1e-7)


def test_make_stamp_has_sub_second_precision() -> None:
    a = make_stamp()
    assert isinstance(a, float)
    assert a > 1_600_000_000


def test_minimal_notification_only_has_try() -> None:
    encoded = encode_ping(HeartbeatNotification(identifier="abc123", event=EventKind.RUN))
    assert encoded.query(1) == "try=1"
    assert encoded.url("https://cronitor.link", 1) == "https://cronitor.link/abc123/run?try=1"


def test_all_fields_in_fixed_order() -> None:
    n = HeartbeatNotification(
        identifier="job",
        event=EventKind.COMPLETE,
        stamp=1700000000.123456,
        message="done ok",
        tag="t1",
        duration=12.5,
        exit_code=0,
    )
    encoded = encode_ping(n, ping_auth_key="secret", hostname="web 1")
    assert encoded.query(4) == (
        "try=4&stamp=1700000000.123&msg=done+ok&auth_key=secret&host=web+1&duration=12.500&tag=t1&status_code=0"
    )


@pytest.mark.parametrize(
    ("kwargs", "auth", "host", "expected"),
    [
        ({"message": "m"}, "", "", ["try", "msg"]),
        ({"tag": "x"}, "", "", ["try", "tag"]),
        ({"duration": 1.0}, "", "", ["try", "duration"]),
        ({"exit_code": 3}, "", "", ["try", "status_code"]),
        ({"stamp": 1.0}, "", "h", ["try", "stamp", "host"]),
        ({}, "k", "", ["try", "auth_key"]),
        ({"message": "", "tag": ""}, "", "", ["try"]),
    ],
)
def test_field_present_iff_supplied(kwargs: dict, auth: str, host: str, expected: list[str]) -> None:
    n = HeartbeatNotification(identifier="job", event=EventKind.PING, **kwargs)
    query = encode_ping(n, ping_auth_key=auth, hostname=host).query(1)
    assert _keys(query) == expected
    assert "&&" not in query
    assert not query.endswith("&")


def test_exit_code_zero_is_still_sent() -> None:
    n = HeartbeatNotification(identifier="job", event=EventKind.FAIL, exit_code=0, duration=0.0)
    assert encode_ping(n).query(1) == "try=1&duration=0.000&status_code=0"


def test_only_try_varies_between_attempts() -> None:
    n = HeartbeatNotification(identifier="job", event=EventKind.RUN, stamp=10.0, message="hello")
    encoded = encode_ping(n, hostname="box")
    q1, q6 = encoded.query(1), encoded.query(6)
    assert q1.replace("try=1", "", 1) == q6.replace("try=6", "", 1)


def test_truncate_bytes_is_identity_at_or_under_limit() -> None:
    assert truncate_bytes("abc", 3) == b"abc"
    assert truncate_bytes("", 50) == b""
    assert truncate_bytes("a" * 51, 50) == b"a" * 50


def test_truncate_bytes_counts_bytes_not_characters() -> None:
    # "é" is two bytes in UTF-8; the cut may split it.
    raw = truncate_bytes("é" * 30, 50)
    assert len(raw) == 50
    raw = truncate_bytes("é" * 30, 51)
    assert len(raw) == 51
    assert raw[-1:] == "é".encode("utf-8")[:1]


def test_message_truncated_to_limit_before_escaping() -> None:
    n = HeartbeatNotification(identifier="job", event=EventKind.COMPLETE, message="a b" * 1000)
    query = encode_ping(n).query(1)
    msg = query.split("&msg=", 1)[1]
    assert len(unquote_plus(msg)) == MESSAGE_MAX_BYTES
    assert unquote_plus(msg) == ("a b" * 1000)[:MESSAGE_MAX_BYTES]


def test_short_message_is_unchanged() -> None:
    text = "backup finished: 12 files"
    n = HeartbeatNotification(identifier="job", event=EventKind.COMPLETE, message=text)
    msg = encode_ping(n).query(1).split("&msg=", 1)[1]
    assert unquote_plus(msg) == text


def test_auth_key_and_hostname_truncated_to_50_bytes() -> None:
    n = HeartbeatNotification(identifier="job", event=EventKind.RUN)
    query = encode_ping(n, ping_auth_key="k" * 80, hostname="h" * 80).query(1)
    params = dict(parse_qsl(query))
    assert params["auth_key"] == "k" * AUTH_KEY_MAX_BYTES
    assert params["host"] == "h" * HOSTNAME_MAX_BYTES


def test_hostname_escaped_after_truncation() -> None:
    n = HeartbeatNotification(identifier="job", event=EventKind.RUN)
    query = encode_ping(n, hostname="a&b=c").query(1)
    assert query == "try=1&host=a%26b%3Dc"


def test_multibyte_message_escapes_truncated_bytes() -> None:
    n = HeartbeatNotification(identifier="job", event=EventKind.RUN, message="x" * 1999 + "é")
    msg = encode_ping(n).query(1).split("&msg=", 1)[1]
    # 1999 ASCII bytes plus the first byte of the two-byte "é".
    assert msg == "x" * 1999 + "%C3"


def test_tag_is_passed_through_unescaped() -> None:
    n = HeartbeatNotification(identifier="job", event=EventKind.RUN, tag="a b")
    assert encode_ping(n).query(1) == "try=1&tag=a b"


def test_ping_url_accepts_plain_event_string() -> None:
    assert ping_url("https://cronitor.io/", "abc", "fail", "try=3") == "https://cronitor.io/abc/fail?try=3"
