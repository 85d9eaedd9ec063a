from logservice.producer.result import Attempt, Result


def test_empty_result_reports_blank_values():
    result = Result()
    assert result.successful is False
    assert result.attempts == []
    assert result.error_code() == ""
    assert result.error_message() == ""
    assert result.request_id() == ""
    assert result.timestamp_ms() == 0
    assert result.last_attempt_cost_ms() == 0


def test_result_reports_latest_attempt():
    first = Attempt(False, "req-1", "Unauthorized", "denied", 1000, 20)
    second = Attempt(False, "req-2", "InternalServerError", "boom", 2000, 35)
    result = Result(attempts=[first, second])
    assert result.request_id() == second.request_id
    assert result.error_code() == second.error_code
    assert result.error_message() == second.error_message
    assert result.timestamp_ms() == second.timestamp_ms
    assert result.last_attempt_cost_ms() == second.last_attempt_cost_ms


def test_results_do_not_share_attempts():
    first = Result()
    second = Result()
    first.attempts.append(Attempt(True))
    assert len(second.attempts) == 0
    assert first.error_code() == ""