import time

import pytest

from logservice.producer.logs import (
    Log,
    LogContent,
    LogGroup,
    generate_log,
    get_log_list_size,
    get_log_size,
    get_time_ms,
)


@pytest.mark.parametrize(
    "nanos, expected",
    [
        (1554880287052203000, 1554880287052),
        (1554880322922250000, 1554880322922),
        (1554880363658257000, 1554880363658),
    ],
)
def test_get_time_ms(nanos, expected):
    assert get_time_ms(nanos) == expected


def test_get_time_ms_truncates_negative_toward_zero():
    assert get_time_ms(-1500000) == -1


def test_generate_log():
    expected = Log(time=1554880724, contents=[LogContent(key="name", value="sls")])
    assert generate_log(1554880724, {"name": "sls"}) == expected


def test_get_log_size():
    log = generate_log(int(time.time()), {"content_1": "logtest", "contena_2": "logtest"})
    assert get_log_size(log) == 36


def test_get_log_list_size_sums_logs():
    log = generate_log(int(time.time()), {"content_1": "logtest", "contena_2": "logtest"})
    assert get_log_list_size([log, log]) == 2 * get_log_size(log)
    assert get_log_list_size([]) == 0


def test_empty_group_size():
    assert LogGroup().size() == 0
    assert LogGroup(topic="", source="").size() == 4


def test_group_size_of_small_log():
    group = LogGroup(logs=[generate_log(1, {"a": "b"})])
    assert group.size() == 12


def test_group_size_grows_with_logs():
    log = generate_log(1554880724, {"name": "sls"})
    one = LogGroup(logs=[log], topic="topic", source="127.0.0.1")
    two = LogGroup(logs=[log, log], topic="topic", source="127.0.0.1")
    base = LogGroup(topic="topic", source="127.0.0.1")
    assert two.size() - one.size() == one.size() - base.size()
    assert one.size() > base.size()