import base64
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

import pytest

from logservice.signature import _string_to_sign, now_rfc1123, signature

DATE = "Mon, 02 Jan 2006 15:04:05 GMT"


def _headers(**extra):
    headers = {"Date": DATE, "x-log-bodyrawsize": "0"}
    headers.update(extra)
    return headers


def test_missing_date_raises():
    with pytest.raises(ValueError, match="Date"):
        signature("secret", "GET", "/logstores", {"x-log-bodyrawsize": "0"})


def test_digest_is_sha1_sized():
    digest = signature("secret", "GET", "/logstores", _headers())
    assert len(base64.b64decode(digest)) == 20


def test_signature_is_deterministic():
    first = signature("secret", "GET", "/logstores", _headers())
    second = signature("secret", "GET", "/logstores", _headers())
    assert first == second


def test_sls_header_case_and_whitespace_ignored():
    plain = {"Date": DATE, "x-log-apiversion": "0.6.0"}
    messy = {"Date": DATE, " X-Log-ApiVersion ": "  0.6.0 "}
    assert signature("secret", "GET", "/", plain) == signature("secret", "GET", "/", messy)


def test_other_headers_not_signed():
    base = signature("secret", "GET", "/logstores", _headers())
    with_agent = signature("secret", "GET", "/logstores", _headers(**{"User-Agent": "agent"}))
    assert base == with_agent


def test_query_order_does_not_matter():
    a = signature("secret", "GET", "/logstores?b=2&a=1", _headers())
    b = signature("secret", "GET", "/logstores?a=1&b=2", _headers())
    assert a == b


def test_string_to_sign_layout():
    headers = {
        "Content-MD5": "ABC",
        "Content-Type": "application/json",
        "Date": DATE,
        "x-log-bodyrawsize": "0",
        "x-log-apiversion": "0.6.0",
    }
    expected = (
        "POST\nABC\napplication/json\n" + DATE + "\n"
        "x-log-apiversion:0.6.0\nx-log-bodyrawsize:0\n/logstores/s?a=1&b=2"
    )
    assert _string_to_sign("POST", "/logstores/s?b=2&a=1", headers) == expected


def test_repeated_query_values_concatenated():
    text = _string_to_sign("GET", "/x?a=1&a=2", {"Date": DATE})
    assert text.endswith("/x?a=1a=2")


def test_unsafe_path_is_escaped():
    text = _string_to_sign("GET", "/a b", {"Date": DATE})
    assert text.endswith("\n/a%20b")


def test_empty_headers_line_when_no_sls_headers():
    text = _string_to_sign("GET", "/p", {"Date": DATE})
    assert text.split("\n") == ["GET", "", "", DATE, "", "/p"]


def test_now_rfc1123():
    value = now_rfc1123()
    assert value.endswith(" GMT")
    parsed = parsedate_to_datetime(value)
    assert abs((datetime.now(timezone.utc) - parsed).total_seconds()) < 5