import base64
import json
import os
from datetime import datetime, timedelta, timezone
from unittest import mock

import pytest
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from logservice.credentials import (
    ECS_RAM_URL,
    Credentials,
    ak_from_local_file,
    decrypt,
    fetch_ecs_token,
    new_token_update_func,
    pkcs5_unpad,
    update_token,
)

KEYRING = ("secret" * 3)[:16]


def _encrypt(plain: str, keyring: str = KEYRING) -> str:
    data = plain.encode("utf-8")
    pad = 16 - len(data) % 16
    data += bytes([pad]) * pad
    iv = os.urandom(16)
    encryptor = Cipher(algorithms.AES(keyring.encode("utf-8")), modes.CBC(iv)).encryptor()
    return base64.b64encode(iv + encryptor.update(data) + encryptor.finalize()).decode("ascii")


def _write_file(tmp_path, expiration: datetime):
    path = tmp_path / "ak.json"
    document = {
        "access.key.id": _encrypt("placeholder"),
        "access.key.secret": _encrypt("secret"),
        "security.token": _encrypt("token"),
        "expiration": expiration.strftime("%Y-%m-%dT%H:%M:%SZ"),
        "keyring": KEYRING,
    }
    path.write_text(json.dumps(document))
    return path


class _Response:
    def __init__(self, body: bytes):
        self.body = body

    def read(self):
        return self.body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def test_pkcs5_unpad_strips_padding():
    assert pkcs5_unpad(b"abc\x02\x02") == b"abc"


def test_pkcs5_unpad_empty_raises():
    with pytest.raises(ValueError):
        pkcs5_unpad(b"")


def test_decrypt_round_trip():
    assert decrypt(_encrypt("hello world"), KEYRING.encode()) == b"hello world"


def test_decrypt_bad_key_size():
    with pytest.raises(ValueError):
        decrypt(_encrypt("hello"), b"short")


def test_ak_from_local_file_reads_credentials(tmp_path):
    expiration = (datetime.now(timezone.utc) + timedelta(days=1)).replace(microsecond=0)
    path = _write_file(tmp_path, expiration)
    creds = ak_from_local_file(str(path))
    assert creds.access_key_id == "placeholder"
    assert creds.access_key_secret == "secret"
    assert creds.security_token == "token"
    assert creds.expiration == expiration


def test_ak_from_local_file_expired(tmp_path):
    path = _write_file(tmp_path, datetime.now(timezone.utc) - timedelta(days=1))
    with pytest.raises(ValueError, match="expired"):
        ak_from_local_file(str(path))


def test_ak_from_local_file_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        ak_from_local_file(str(tmp_path / "missing.json"))


def test_update_token_prefers_file(tmp_path):
    path = _write_file(tmp_path, datetime.now(timezone.utc) + timedelta(days=1))
    key_id, _, security_token, _ = update_token(str(path))
    assert (key_id, security_token) == ("placeholder", "token")


@mock.patch("urllib.request.urlopen")
def test_update_token_from_metadata_service(urlopen, tmp_path):
    document = {
        "AccessKeyId": "placeholder",
        "AccessKeySecret": "secret",
        "SecurityToken": "token",
        "Expiration": "2030-01-01T00:00:00Z",
        "Code": "Success",
    }
    urlopen.side_effect = [
        _Response(b"role1\nrole2\n"),
        _Response(json.dumps(document).encode()),
    ]
    creds = update_token(str(tmp_path / "missing.json"))
    assert creds == Credentials(
        "placeholder", "secret", "token", datetime(2030, 1, 1, tzinfo=timezone.utc)
    )
    assert urlopen.call_args_list[1].args[0] == ECS_RAM_URL + "role1"


@mock.patch("urllib.request.urlopen")
def test_update_token_failing_code_retries_then_raises(urlopen):
    urlopen.side_effect = lambda url, timeout: _Response(
        b"role1" if url == ECS_RAM_URL else b'{"Code": "Failed"}'
    )
    with pytest.raises(ValueError):
        update_token("")
    assert urlopen.call_count == 6


@mock.patch("urllib.request.urlopen")
def test_fetch_ecs_token_returns_role_document(urlopen):
    urlopen.side_effect = [_Response(b"  role1  "), _Response(b"{}")]
    assert fetch_ecs_token() == b"{}"
    assert urlopen.call_args_list[0].args[0] == ECS_RAM_URL


def test_new_token_update_func(tmp_path):
    path = _write_file(tmp_path, datetime.now(timezone.utc) + timedelta(days=1))
    updater, shutdown = new_token_update_func("role", str(path))
    assert updater().access_key_id == "placeholder"
    assert shutdown.is_set() is False