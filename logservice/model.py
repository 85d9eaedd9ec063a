"""Data models for log queries, indexes, machine groups, sub stores and shippers."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, is_dataclass
from typing import Any

MACHINE_ID_TYPE_IP = "ip"
MACHINE_ID_TYPE_USER_DEFINED = "userdefined"

OSS_SHIPPER_TYPE = "oss"

_SUB_STORE_KEY_TYPES = frozenset({"text", "long", "double"})
_MAX_SUB_STORE_TTL = 3650

_HTML_ESCAPES = (
    ("<", "\\u003c"),
    (">", "\\u003e"),
    ("&", "\\u0026"),
    ("\u2028", "\\u2028"),
    ("\u2029", "\\u2029"),
)

_DEFAULT_TOKENS = (
    " ", "\n", "\t", "\r", ",", ";", "[", "]", "{", "}", "(", ")", "&", "^",
    "*", "#", "@", "~", "=", "<", ">", "/", "\\", "?", ":", "'", '"',
)


def _json(name: str, *, omitempty: bool = False, **kwargs: Any) -> Any:
    """A dataclass field carrying its JSON name and omit-when-empty flag."""
    return field(metadata={"json": name, "omitempty": omitempty}, **kwargs)


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if is_dataclass(value):
        return False
    return not value


def _encode(value: Any) -> Any:
    """Turn a model into plain JSON data; map keys come out sorted."""
    if is_dataclass(value) and not isinstance(value, type):
        out: dict[str, Any] = {}
        for f in fields(value):
            name = f.metadata.get("json")
            if name is None:
                continue
            item = getattr(value, f.name)
            if f.metadata.get("omitempty") and _is_empty(item):
                continue
            out[name] = _encode(item)
        return out
    if isinstance(value, dict):
        return {key: _encode(value[key]) for key in sorted(value)}
    if isinstance(value, (list, tuple)):
        return [_encode(item) for item in value]
    return value


def _dumps(data: Any) -> str:
    text = json.dumps(data, ensure_ascii=False, separators=(",", ":"))
    for char, escaped in _HTML_ESCAPES:
        text = text.replace(char, escaped)
    return text


def _get(data: dict, key: str, default: Any) -> Any:
    value = data.get(key)
    return default if value is None else value


def _is_complete(progress: str) -> bool:
    return progress.lower() == "complete"


@dataclass
class GetLogRequest:
    """Parameters of a log query."""

    from_time: int = 0
    to_time: int = 0
    topic: str = ""
    lines: int = 0
    offset: int = 0
    reverse: bool = False
    query: str = ""
    power_sql: bool = False

    def to_url_params(self) -> dict[str, str]:
        return {
            "type": "log",
            "from": str(int(self.from_time)),
            "to": str(int(self.to_time)),
            "topic": self.topic,
            "line": str(int(self.lines)),
            "offset": str(int(self.offset)),
            "reverse": "true" if self.reverse else "false",
            "powerSql": "true" if self.power_sql else "false",
            "query": self.query,
        }


@dataclass
class SingleHistogram:
    progress: str = ""
    count: int = 0
    from_time: int = 0
    to_time: int = 0


@dataclass
class GetHistogramsResponse:
    progress: str = ""
    count: int = 0
    histograms: list[SingleHistogram] = field(default_factory=list)

    def is_complete(self) -> bool:
        return _is_complete(self.progress)


@dataclass
class GetLogsResponse:
    progress: str = ""
    count: int = 0
    logs: list[dict[str, str]] = field(default_factory=list)
    contents: str = ""
    has_sql: bool = False
    header: dict[str, list[str]] = field(default_factory=dict)

    def is_complete(self) -> bool:
        return _is_complete(self.progress)

    def get_keys(self) -> list[str]:
        """Return the key names listed under "keys" in the contents document."""
        content = json.loads(self.contents)
        if not isinstance(content, dict):
            raise ValueError("contents is not a JSON object")
        keys = content.get("keys")
        if keys is None:
            return []
        if not isinstance(keys, list):
            raise ValueError("contents 'keys' is not a list")
        for key in keys:
            if not isinstance(key, str):
                raise TypeError(f"key {key!r} is not a string")
        return list(keys)


@dataclass
class GetLogLinesResponse(GetLogsResponse):
    """Log query response holding raw JSON lines instead of parsed logs."""

    lines: list[Any] = field(default_factory=list)


@dataclass
class GetContextLogsResponse:
    progress: str = ""
    total_lines: int = 0
    back_lines: int = 0
    forward_lines: int = 0
    logs: list[dict[str, str]] = field(default_factory=list)

    def is_complete(self) -> bool:
        return _is_complete(self.progress)


@dataclass
class JsonKey:
    type: str = _json("type", default="")
    alias: str = _json("alias", omitempty=True, default="")
    doc_value: bool = _json("doc_value", omitempty=True, default=False)

    def to_dict(self) -> dict[str, Any]:
        return _encode(self)


@dataclass
class IndexKey:
    token: list[str] | None = _json("token", default=None)
    case_sensitive: bool = _json("caseSensitive", default=False)
    type: str = _json("type", default="")
    doc_value: bool = _json("doc_value", omitempty=True, default=False)
    alias: str = _json("alias", omitempty=True, default="")
    chn: bool = _json("chn", default=False)
    json_keys: dict[str, JsonKey] | None = _json("json_keys", omitempty=True, default=None)

    def to_dict(self) -> dict[str, Any]:
        return _encode(self)


@dataclass
class IndexLine:
    token: list[str] | None = _json("token", default=None)
    case_sensitive: bool = _json("caseSensitive", default=False)
    include_keys: list[str] | None = _json("include_keys", omitempty=True, default=None)
    exclude_keys: list[str] | None = _json("exclude_keys", omitempty=True, default=None)
    chn: bool = _json("chn", default=False)

    def to_dict(self) -> dict[str, Any]:
        return _encode(self)


@dataclass
class Index:
    """Index configuration of a log store."""

    keys: dict[str, IndexKey] | None = _json("keys", omitempty=True, default=None)
    line: IndexLine | None = _json("line", omitempty=True, default=None)
    ttl: int = _json("ttl", omitempty=True, default=0)
    max_text_len: int = _json("max_text_len", omitempty=True, default=0)
    log_reduce: bool = _json("log_reduce", default=False)
    log_reduce_white_list: list[str] | None = _json(
        "log_reduce_white_list", omitempty=True, default=None
    )
    log_reduce_black_list: list[str] | None = _json(
        "log_reduce_black_list", omitempty=True, default=None
    )

    def to_dict(self) -> dict[str, Any]:
        return _encode(self)

    def to_json(self) -> str:
        return _dumps(self.to_dict())


def create_default_index() -> Index:
    """Return a full-text index configuration."""
    return Index(line=IndexLine(token=list(_DEFAULT_TOKENS), case_sensitive=False))


@dataclass
class MachineGroupAttribute:
    external_name: str = _json("externalName", default="")
    topic_name: str = _json("groupTopic", default="")


@dataclass
class MachineGroup:
    name: str = _json("groupName", default="")
    type: str = _json("groupType", default="")
    machine_id_type: str = _json("machineIdentifyType", default="")
    machine_id_list: list[str] | None = _json("machineList", default=None)
    attribute: MachineGroupAttribute = _json(
        "groupAttribute", default_factory=MachineGroupAttribute
    )
    create_time: int = _json("createTime", omitempty=True, default=0)
    last_modify_time: int = _json("lastModifyTime", omitempty=True, default=0)

    def to_dict(self) -> dict[str, Any]:
        return _encode(self)


@dataclass
class Machine:
    ip: str = ""
    unique_id: str = ""
    userdefined_id: str = ""
    last_heartbeat_time: int = 0


@dataclass
class MachineList:
    total: int = 0
    machines: list[Machine] = field(default_factory=list)


@dataclass
class SubStoreKey:
    name: str = _json("name", default="")
    type: str = _json("type", default="")

    def is_valid(self) -> bool:
        return bool(self.name) and self.type in _SUB_STORE_KEY_TYPES


@dataclass
class SubStore:
    name: str = _json("name", omitempty=True, default="")
    ttl: int = _json("ttl", default=0)
    sorted_key_count: int = _json("sortedKeyCount", default=0)
    time_index: int = _json("timeIndex", default=0)
    keys: list[SubStoreKey] = _json("keys", default_factory=list)

    def is_valid(self) -> bool:
        key_count = len(self.keys)
        if self.sorted_key_count <= 0 or self.sorted_key_count >= key_count:
            return False
        if self.time_index >= key_count or self.time_index < self.sorted_key_count:
            return False
        if self.ttl <= 0 or self.ttl > _MAX_SUB_STORE_TTL:
            return False
        for index, key in enumerate(self.keys):
            if not key.is_valid():
                return False
            if index == self.time_index and key.type != "long":
                return False
            if index < self.sorted_key_count and key.type == "double":
                return False
        return True


def new_sub_store(name, ttl, sorted_key_count, time_index, keys) -> SubStore:
    """Build a sorted sub store, raising ValueError if its layout is invalid."""
    store = SubStore(
        name=name,
        ttl=ttl,
        sorted_key_count=sorted_key_count,
        time_index=time_index,
        keys=list(keys),
    )
    if not store.is_valid():
        raise ValueError(f"invalid sub store {name!r}")
    return store


@dataclass
class OssStorageCsvDetail:
    delimiter: str = _json("delemiter", default="")
    header: bool = _json("header", default=False)
    line_feed: str = _json("lineFeed", default="")
    columns: list[str] = _json("columns", default_factory=list)
    null_identifier: str = _json("nullIdentfifier", default="")
    quote: str = _json("quote", default="")


@dataclass
class ParquetConfig:
    name: str = _json("name", default="")
    type: str = _json("type", default="")


@dataclass
class OssStorageParquet:
    columns: list[ParquetConfig] = _json("columns", default_factory=list)


@dataclass
class OssStorageJsonDetail:
    enable_tag: bool = _json("enableTag", default=False)


@dataclass
class ShipperStorage:
    format: str = _json("format", default="")
    detail: Any = _json("detail", default=None)


@dataclass
class OSSShipperConfig:
    oss_bucket: str = _json("ossBucket", default="")
    oss_prefix: str = _json("ossPrefix", default="")
    role_arn: str = _json("roleArn", default="")
    buffer_interval: int = _json("bufferInterval", default=0)
    buffer_size: int = _json("bufferSize", default=0)
    compress_type: str = _json("compressType", default="")
    path_format: str = _json("pathFormat", default="")
    format: str = _json("format", default="")
    storage: ShipperStorage = _json("storage", default_factory=ShipperStorage)

    @classmethod
    def _from_dict(cls, data: Any) -> OSSShipperConfig:
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValueError("target configuration is not a JSON object")
        storage = _get(data, "storage", {})
        if not isinstance(storage, dict):
            raise ValueError("storage is not a JSON object")
        return cls(
            oss_bucket=_get(data, "ossBucket", ""),
            oss_prefix=_get(data, "ossPrefix", ""),
            role_arn=_get(data, "roleArn", ""),
            buffer_interval=_get(data, "bufferInterval", 0),
            buffer_size=_get(data, "bufferSize", 0),
            compress_type=_get(data, "compressType", ""),
            path_format=_get(data, "pathFormat", ""),
            format=_get(data, "format", ""),
            storage=ShipperStorage(
                format=_get(storage, "format", ""),
                detail=storage.get("detail"),
            ),
        )


@dataclass
class Shipper:
    """A log shipper; only OSS targets are understood when decoding."""

    shipper_name: str = _json("shipperName", default="")
    target_type: str = _json("targetType", default="")
    target_configuration: Any = _json("targetConfiguration", default=None)
    raw_target_configuration: str | None = None

    def to_json(self) -> str:
        return _dumps(_encode(self))

    @classmethod
    def from_json(cls, data: str | bytes) -> Shipper:
        document = json.loads(data)
        if not isinstance(document, dict):
            raise ValueError("shipper is not a JSON object")
        target_type = _get(document, "targetType", "")
        if target_type != OSS_SHIPPER_TYPE:
            raise ValueError(f"unknown target type {target_type}")
        if "targetConfiguration" not in document:
            raise ValueError("missing targetConfiguration")
        raw = document["targetConfiguration"]
        return cls(
            shipper_name=_get(document, "shipperName", ""),
            target_type=target_type,
            target_configuration=OSSShipperConfig._from_dict(raw),
            raw_target_configuration=json.dumps(raw, separators=(",", ":")),
        )