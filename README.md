# logservice

Client-side building blocks for a cloud log service:

- `logservice.model`: dataclasses for log queries and responses, index
  configuration, machine groups, sorted sub stores and OSS shippers.
  `Index.to_json()` and `Shipper.to_json()` produce the compact JSON the
  service expects; `Shipper.from_json()` decodes a shipper with an `oss`
  target; `create_default_index()` returns a full-text index;
  `new_sub_store()` raises `ValueError` for an invalid layout.
- `logservice.signature`: `signature(access_key_secret, method, uri, headers)`
  computes the base64 HMAC-SHA1 request signature (the headers must contain
  `Date`), and `now_rfc1123()` gives the current time in the format used for
  that header.
- `logservice.retry`: `ExponentialBackOff` and the helpers `retry`,
  `retry_with_backoff`, `retry_with_condition` and `retry_with_attempt`. A
  timeout that passes before the operation settles raises `RetryStopped`.
- `logservice.credentials`: temporary credentials from an AES-encrypted JSON
  file (`ak_from_local_file`) or from the instance metadata service
  (`fetch_ecs_token`); `update_token(path)` tries the file first, and
  `new_token_update_func(role, path)` returns an updater together with a
  `threading.Event` for shutdown. Each returns a `Credentials` named tuple.
- `logservice.logconf`: the loggers used by the package.
  `default_logger()` is configured from the environment variables
  `SLS_SDK_LOG_FILE_NAME`, `SLS_SDK_IS_JSON_TYPE`, `SLS_SDK_LOG_MAX_SIZE`,
  `SLS_SDK_LOG_FILE_BACKUP_COUNT` and `SLS_SDK_ALLOW_LOG_LEVEL`;
  `producer_logger(config)` builds the producer's logger from a
  `ProducerConfig`.
- `logservice.producer`: a batching log producer that sends in the background.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Producer

`Producer(config, client)` groups logs per project, logstore, topic, source
and shard hash. A batch is handed to the sending threads when it grows past
`max_batch_size` bytes or `max_batch_count` logs, or once it has waited
`linger_ms`. A failed send is retried with exponential back-off (from
`base_retry_backoff_ms`, capped at `max_retry_backoff_ms`) up to `retries`
times, except for `SendError`s whose `http_code` is in
`no_retry_status_codes` (400 and 404 by default).

The producer does not talk to the network itself: `client` is any object with

- `put_logs(project, logstore, log_group)`
- `post_logstore_logs(project, logstore, log_group, shard_hash)`

which raise on failure (raise `logservice.producer.io_worker.SendError` to
pass the service's HTTP status, error code, message and request id). If the
config sets `http_client` or `user_agent`, the client's `set_http_client` or
`set_user_agent` is called with it.

```python
from logservice.producer.config import default_producer_config
from logservice.producer.io_worker import CallBack
from logservice.producer.logs import generate_log
from logservice.producer.producer import Producer


class PrintingClient:
    def put_logs(self, project, logstore, log_group):
        print(project, logstore, len(log_group.logs), "logs")

    def post_logstore_logs(self, project, logstore, log_group, shard_hash):
        print(project, logstore, shard_hash, len(log_group.logs), "logs")


class Report(CallBack):
    def success(self, result):
        print("sent after", len(result.attempts), "attempt(s)")

    def fail(self, result):
        print("failed:", result.error_code(), result.error_message())


config = default_producer_config()
producer = Producer(config, PrintingClient())
producer.start()

log = generate_log(1554880724, {"content": "hello"})
producer.send_log("project", "logstore", "topic", "127.0.0.1", log)
producer.hash_send_log_with_callback(
    "project", "logstore", "127.0.0.1", "topic", "127.0.0.1", log, Report()
)

producer.safe_close()
```

Sending methods: `send_log`, `send_log_list`, `hash_send_log`,
`hash_send_log_list`, and the `*_with_callback` variants of each. When the
buffered data exceeds `total_size_in_bytes`, a send waits up to
`max_block_sec` seconds (0: not at all, negative: indefinitely) and then
raises `TimeoutError`. After closing has begun, sends raise `RuntimeError`.

`close(timeout_ms)` stops the producer and waits for pending sends, raising
`TimeoutError` if some are still pending when the time is up; `safe_close()`
waits until every batch has been handled.

Out-of-range settings are corrected by `validate_producer_config`, with a
warning for each. With `adjust_shard_hash` enabled (the default), hashed sends
map the key onto one of `buckets` shard ranges with
`logservice.producer.adjusthash.adjust_hash`.

## Index configuration

```python
from logservice.model import create_default_index

print(create_default_index().to_json())
```

## Signing a request

```python
from logservice.signature import now_rfc1123, signature

headers = {"Date": now_rfc1123(), "x-log-bodyrawsize": "0"}
digest = signature("secret", "GET", "/logstores?offset=0&size=10", headers)
```

## What this package does not do

There is no client for the service's HTTP API here: no requests are sent, no
projects, logstores, indexes or shippers are created or read on the server,
and credentials are not refreshed automatically. The models, signing, retry
helpers and producer are the parts such a client is built from; the producer
needs a client object supplied by the caller.