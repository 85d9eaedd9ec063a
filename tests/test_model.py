import json

import pytest

from logservice.model import (
    MACHINE_ID_TYPE_IP,
    GetContextLogsResponse,
    GetHistogramsResponse,
    GetLogRequest,
    GetLogsResponse,
    Index,
    IndexKey,
    IndexLine,
    JsonKey,
    MachineGroup,
    MachineGroupAttribute,
    OSSShipperConfig,
    OssStorageCsvDetail,
    OssStorageJsonDetail,
    Shipper,
    ShipperStorage,
    SubStore,
    SubStoreKey,
    create_default_index,
    new_sub_store,
)


@pytest.mark.parametrize(
    "index, expected",
    [
        (
            Index(keys={"test1": IndexKey()}, line=IndexLine()),
            '{"keys":{"test1":{"token":null,"caseSensitive":false,"type":"","chn":false}},'
            '"line":{"token":null,"caseSensitive":false,"chn":false},"log_reduce":false}',
        ),
        (Index(ttl=2, max_text_len=3), '{"ttl":2,"max_text_len":3,"log_reduce":false}'),
        (
            Index(
                log_reduce_white_list=["key1"],
                log_reduce_black_list=["key2"],
                log_reduce=True,
            ),
            '{"log_reduce":true,"log_reduce_white_list":["key1"],"log_reduce_black_list":["key2"]}',
        ),
    ],
)
def test_index_marshal_json(index, expected):
    assert index.to_json() == expected


def test_index_key_json_keys_sorted_and_omitempty():
    key = IndexKey(
        type="json",
        json_keys={"b": JsonKey(type="long"), "a": JsonKey(type="text", alias="x")},
    )
    data = key.to_dict()
    assert list(data["json_keys"]) == ["a", "b"]
    assert data["json_keys"]["a"] == {"type": "text", "alias": "x"}
    assert data["json_keys"]["b"] == {"type": "long"}


def test_default_index_tokens_and_escaping():
    index = create_default_index()
    assert index.line.case_sensitive is False
    assert "<" in index.line.token and "\\" in index.line.token
    text = index.to_json()
    assert "\\u003c" in text and "<" not in text
    assert json.loads(text)["line"]["token"] == index.line.token


def test_get_log_request_params():
    params = GetLogRequest(
        from_time=10, to_time=20, lines=100, reverse=True, query="*"
    ).to_url_params()
    assert params["type"] == "log"
    assert params["from"] == "10"
    assert params["to"] == "20"
    assert params["line"] == "100"
    assert params["reverse"] == "true"
    assert params["powerSql"] == "false"
    assert params["query"] == "*"


def test_is_complete_case_insensitive():
    assert GetLogsResponse(progress="Complete").is_complete()
    assert not GetLogsResponse(progress="Incomplete").is_complete()
    assert GetHistogramsResponse(progress="COMPLETE").is_complete()
    assert not GetContextLogsResponse(progress="").is_complete()


def test_get_keys():
    response = GetLogsResponse(contents='{"keys":["a","b"],"other":[1]}')
    assert response.get_keys() == ["a", "b"]
    assert GetLogsResponse(contents="{}").get_keys() == []


def test_get_keys_invalid_json():
    with pytest.raises(ValueError):
        GetLogsResponse(contents="not json").get_keys()


def _valid_keys():
    return [
        SubStoreKey(name="k1", type="text"),
        SubStoreKey(name="k2", type="long"),
        SubStoreKey(name="k3", type="long"),
    ]


def test_sub_store_key_validity():
    assert SubStoreKey(name="k", type="double").is_valid()
    assert not SubStoreKey(name="", type="text").is_valid()
    assert not SubStoreKey(name="k", type="json").is_valid()


def test_new_sub_store_valid():
    store = new_sub_store("s", 30, 2, 2, _valid_keys())
    assert store.is_valid()
    assert store.to_dict() if False else store.sorted_key_count == 2


@pytest.mark.parametrize(
    "ttl, sorted_count, time_index",
    [(30, 0, 2), (30, 3, 2), (30, 2, 1), (30, 2, 3), (0, 2, 2), (3651, 2, 2)],
)
def test_new_sub_store_invalid(ttl, sorted_count, time_index):
    with pytest.raises(ValueError):
        new_sub_store("s", ttl, sorted_count, time_index, _valid_keys())


def test_sub_store_time_key_must_be_long():
    keys = _valid_keys()
    keys[2] = SubStoreKey(name="k3", type="text")
    assert not SubStore(ttl=30, sorted_key_count=2, time_index=2, keys=keys).is_valid()


def test_sub_store_sorted_key_not_double():
    keys = _valid_keys()
    keys[0] = SubStoreKey(name="k1", type="double")
    assert not SubStore(ttl=30, sorted_key_count=2, time_index=2, keys=keys).is_valid()


def test_machine_group_to_dict():
    group = MachineGroup(
        name="g",
        type="",
        machine_id_type=MACHINE_ID_TYPE_IP,
        machine_id_list=["10.0.0.1"],
        attribute=MachineGroupAttribute(external_name="e", topic_name="t"),
    )
    data = group.to_dict()
    assert data["groupName"] == "g"
    assert data["machineIdentifyType"] == "ip"
    assert data["groupAttribute"] == {"externalName": "e", "groupTopic": "t"}
    assert "createTime" not in data
    assert MachineGroup(create_time=5).to_dict()["createTime"] == 5


def test_shipper_round_trip():
    shipper = Shipper(
        shipper_name="ship",
        target_type="oss",
        target_configuration=OSSShipperConfig(
            oss_bucket="bucket",
            buffer_size=256,
            storage=ShipperStorage(format="json", detail=OssStorageJsonDetail(enable_tag=True)),
        ),
    )
    decoded = Shipper.from_json(shipper.to_json())
    assert decoded.shipper_name == "ship"
    assert decoded.target_configuration.oss_bucket == "bucket"
    assert decoded.target_configuration.buffer_size == 256
    assert decoded.target_configuration.storage.format == "json"
    assert decoded.target_configuration.storage.detail == {"enableTag": True}
    assert json.loads(decoded.raw_target_configuration)["ossBucket"] == "bucket"


def test_csv_detail_field_names():
    shipper = Shipper(
        shipper_name="s",
        target_type="oss",
        target_configuration=OSSShipperConfig(
            storage=ShipperStorage(
                format="csv",
                detail=OssStorageCsvDetail(delimiter=",", null_identifier="-"),
            )
        ),
    )
    detail = json.loads(shipper.to_json())["targetConfiguration"]["storage"]["detail"]
    assert detail["delemiter"] == ","
    assert detail["nullIdentfifier"] == "-"


def test_shipper_unknown_target_type():
    with pytest.raises(ValueError, match="unknown target type odps"):
        Shipper.from_json('{"shipperName":"s","targetType":"odps","targetConfiguration":{}}')