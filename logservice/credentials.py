"""Fetching temporary access credentials from a local file or the instance metadata service."""

from __future__ import annotations

import base64
import binascii
import json
import os
import threading
import urllib.request
from datetime import datetime, timezone
from typing import Callable, NamedTuple, Optional

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

ECS_RAM_URL = "http://100.100.100.200/latest/meta-data/ram/security-credentials/"
EXPIRATION_TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

_BLOCK_SIZE = 16
_FETCH_TIMEOUT = 3
_FETCH_TRIES = 3


class Credentials(NamedTuple):
    """Temporary credentials; unpacks as (id, secret, token, expiration)."""

    access_key_id: str
    access_key_secret: str
    security_token: str
    expiration: datetime


class _NoSecretFile(FileNotFoundError):
    """The credentials file does not exist."""


def _parse_expiration(text: str) -> datetime:
    return datetime.strptime(text, EXPIRATION_TIME_FORMAT).replace(tzinfo=timezone.utc)


def pkcs5_unpad(data: bytes) -> bytes:
    """Strip PKCS#5 padding, whose length is given by the last byte."""
    if not data:
        raise ValueError("cannot unpad empty data")
    padding = data[-1]
    if padding > len(data):
        raise ValueError("invalid padding length")
    return data[: len(data) - padding]


def decrypt(data: str, keyring: bytes) -> bytes:
    """Decrypt base64 text holding an IV followed by AES-CBC ciphertext."""
    try:
        raw = base64.b64decode(data, validate=True)
    except binascii.Error as exc:
        raise ValueError(f"invalid base64 data: {exc}") from exc
    if len(keyring) not in (16, 24, 32):
        raise ValueError(f"invalid AES key size {len(keyring)}")
    if len(raw) < _BLOCK_SIZE or len(raw) % _BLOCK_SIZE:
        raise ValueError("ciphertext is not a whole number of blocks")
    iv, body = raw[:_BLOCK_SIZE], raw[_BLOCK_SIZE:]
    decryptor = Cipher(algorithms.AES(keyring), modes.CBC(iv)).decryptor()
    return pkcs5_unpad(decryptor.update(body) + decryptor.finalize())


def ak_from_local_file(path: str) -> Credentials:
    """Read encrypted credentials from a JSON file.

    Raises FileNotFoundError if the file is missing and ValueError if it is
    malformed or the credentials have expired.
    """
    try:
        os.stat(path)
    except OSError as exc:
        raise _NoSecretFile("no secret file") from exc
    with open(path, "rb") as handle:
        info = json.load(handle)
    if not isinstance(info, dict):
        raise ValueError("credentials file is not a JSON object")
    keyring = str(info.get("keyring") or "").encode("utf-8")
    key_id = decrypt(str(info.get("access.key.id") or ""), keyring)
    key_secret = decrypt(str(info.get("access.key.secret") or ""), keyring)
    security_token = decrypt(str(info.get("security.token") or ""), keyring)
    expiration = _parse_expiration(str(info.get("expiration") or ""))
    if expiration < datetime.now(timezone.utc):
        raise ValueError("invalid token which is expired")
    return Credentials(
        key_id.decode("utf-8"),
        key_secret.decode("utf-8"),
        security_token.decode("utf-8"),
        expiration,
    )


def fetch_ecs_token() -> bytes:
    """Fetch the credentials document of the instance's first RAM role."""
    with urllib.request.urlopen(ECS_RAM_URL, timeout=_FETCH_TIMEOUT) as response:
        roles = response.read().decode("utf-8").strip().split("\n")
    with urllib.request.urlopen(ECS_RAM_URL + roles[0], timeout=_FETCH_TIMEOUT) as response:
        return response.read()


def _parse_token_result(document: bytes) -> Credentials:
    result = json.loads(document)
    if not isinstance(result, dict):
        raise ValueError("token result is not a JSON object")
    code = str(result.get("Code") or "")
    if code.lower() != "success":
        raise ValueError(f"token request failed with code {code!r}")
    return Credentials(
        str(result.get("AccessKeyId") or ""),
        str(result.get("AccessKeySecret") or ""),
        str(result.get("SecurityToken") or ""),
        _parse_expiration(str(result.get("Expiration") or "")),
    )


def update_token(config_file_path: str) -> Credentials:
    """Get credentials from the file if it exists, else from the metadata service."""
    if config_file_path:
        try:
            return ak_from_local_file(config_file_path)
        except _NoSecretFile:
            pass
    error: Optional[Exception] = None
    for _ in range(_FETCH_TRIES):
        try:
            return _parse_token_result(fetch_ecs_token())
        except (OSError, ValueError) as exc:
            error = exc
    assert error is not None
    raise error


def new_token_update_func(
    role: str, config_file_path: str
) -> tuple[Callable[[], Credentials], threading.Event]:
    """Return a credentials updater and an event that signals shutdown."""

    def updater() -> Credentials:
        return update_token(config_file_path)

    return updater, threading.Event()