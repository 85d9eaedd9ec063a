"""Mapping of shard hash keys onto a fixed number of hash buckets."""

from __future__ import annotations

import hashlib
import re
from itertools import islice

_ZERO32 = "0" * 32
_HEX_PAIRS = re.compile(r"(?:[0-9a-fA-F]{2})*")
_MAX_PARSED = 511


def _bit_value(value: int, bits: int) -> int:
    if bits >= 16:
        return value
    if bits >= 8:
        return value & 0xE
    if bits >= 4:
        return value & 0xC
    if bits >= 2:
        return value & 0x8
    return 0


def _nibbles(data: bytes):
    for byte in data:
        yield byte >> 4
        yield byte & 0xF


def adjust_hash(shard_hash: str, buckets: int) -> str:
    """Return the 32-digit hex hash of the bucket that shard_hash falls into."""
    digest = hashlib.md5(shard_hash.encode("utf-8")).digest()
    digits = []
    for nibble in islice(_nibbles(digest), len(digest)):
        if buckets <= 0:
            break
        digits.append(format(_bit_value(nibble, buckets), "x"))
        buckets >>= 4
    return "".join(digits) + _ZERO32[: 32 - len(digits)]


def adjust_hash_old(shard_hash: str, buckets: int) -> str:
    """Older bucket mapping based on the leading bits of the MD5 digest."""
    bits = md5_to_bin(to_md5(shard_hash))
    prefix = fill_zero(bits[: bit_count(buckets)], 8)
    value = min(int(prefix, 2), _MAX_PARSED)
    return fill_zero(format(value, "x"), 32)


def bit_count(buckets: int) -> int:
    """Return log2 of buckets, which must be a positive power of two."""
    if buckets <= 0 or buckets & (buckets - 1):
        raise ValueError(
            f"buckets must be a power of 2, got {buckets},and The parameter "
            "buckets must be greater than or equal to 1 and less than or equal to 256."
        )
    return format(buckets, "b").count("0")


def to_md5(name: str) -> str:
    return hashlib.md5(name.encode("utf-8")).hexdigest()


def md5_to_bin(md5: str) -> str:
    """Binary digits of a hex string; decoding stops at the first bad pair."""
    data = bytes.fromhex(_HEX_PAIRS.match(md5).group())
    return "".join(format(byte, "08b") for byte in data)


def fill_zero(x: str, n: int) -> str:
    """Pad x on the right with zeros up to n characters."""
    return x + "0" * max(0, n - len(x))