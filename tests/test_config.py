from logservice.producer.config import ProducerConfig, default_producer_config


def test_default_config_values():
    config = default_producer_config()
    assert config.total_size_in_bytes == 100 * 1024 * 1024
    assert config.max_io_worker_count == 50
    assert config.max_block_sec == 60
    assert config.max_batch_size == 512 * 1024
    assert config.linger_ms == 2000
    assert config.retries == 10
    assert config.max_reserved_attempts == 11
    assert config.base_retry_backoff_ms == 100
    assert config.max_retry_backoff_ms == 50 * 1000
    assert config.adjust_shard_hash is True
    assert config.buckets == 64
    assert config.max_batch_count == 4096
    assert config.no_retry_status_codes == [400, 404]


def test_default_configs_do_not_share_lists():
    first = default_producer_config()
    second = default_producer_config()
    first.no_retry_status_codes.append(500)
    assert second.no_retry_status_codes == [400, 404]


def test_plain_config_has_zero_values():
    config = ProducerConfig()
    assert config.max_batch_count == 0
    assert config.linger_ms == 0
    assert config.no_retry_status_codes == []
    assert config.adjust_shard_hash is False
    assert config.log_file_name == ""


def test_plain_configs_do_not_share_lists():
    first = ProducerConfig()
    second = ProducerConfig()
    first.no_retry_status_codes.append(400)
    assert second.no_retry_status_codes == []