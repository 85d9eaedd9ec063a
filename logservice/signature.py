"""Request signing for the log service API."""

from __future__ import annotations

import base64
import hashlib
import hmac
import re
from collections import defaultdict
from email.utils import formatdate
from string import ascii_letters, digits
from urllib.parse import parse_qsl, quote, unquote, urlsplit

_SIGNED_PREFIXES = ("x-log-", "x-acs-")
_RAW_PATH_CHARS = frozenset(ascii_letters + digits + "-_.~!$&'()*+,;=:@/[]%")
_PATH_SAFE = "$&+,/:;=@"
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def now_rfc1123() -> str:
    """Current time in RFC 1123 format in GMT, e.g. "Mon, 02 Jan 2006 15:04:05 GMT"."""
    return formatdate(usegmt=True)


def _escaped_path(path: str) -> str:
    if _BAD_ESCAPE.search(path):
        raise ValueError(f"invalid URL escape in {path!r}")
    if all(char in _RAW_PATH_CHARS for char in path):
        return path
    return quote(unquote(path), safe=_PATH_SAFE)


def _canonical_headers(headers: dict[str, str]) -> str:
    names: list[str] = []
    values: dict[str, str] = {}
    for key, value in headers.items():
        name = key.lower().strip()
        if name.startswith(_SIGNED_PREFIXES):
            values[name] = value.strip()
            names.append(name)
    return "\n".join(f"{name}:{values[name]}" for name in sorted(names))


def _canonical_resource(uri: str) -> str:
    parts = urlsplit(uri)
    resource = _escaped_path(parts.path)
    if parts.query:
        params: dict[str, list[str]] = defaultdict(list)
        for key, value in parse_qsl(parts.query, keep_blank_values=True):
            params[key].append(value)
        resource += "?" + "&".join(
            "".join(f"{key}={value}" for value in params[key]) for key in sorted(params)
        )
    return resource


def _string_to_sign(method: str, uri: str, headers: dict[str, str]) -> str:
    if "Date" not in headers:
        raise ValueError("Can't find 'Date' header")
    return "\n".join(
        (
            method,
            headers.get("Content-MD5", ""),
            headers.get("Content-Type", ""),
            headers["Date"],
            _canonical_headers(headers),
            _canonical_resource(uri),
        )
    )


def signature(access_key_secret: str, method: str, uri: str, headers: dict[str, str]) -> str:
    """Return base64(hmac-sha1(string to sign, secret)) for a request."""
    message = _string_to_sign(method, uri, headers)
    mac = hmac.new(access_key_secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha1)
    return base64.b64encode(mac.digest()).decode("ascii")