# falcout

`falcout` is the output side of a runtime security monitor. It takes alert messages and delivers them to the channels you configure. It watches capture statistics for dropped system-call events and acts on them. It has a small logger and a watchdog thread that reports when a deadline passes.

The package has no runtime dependencies beyond the standard library.

## Installation

```
pip install falcout
```

For the tests:

```
pip install "falcout[test]"
pytest
```

## Output channels (`falcout.outputs`)

An `OutputConfig` holds a channel name and its string options. A `Message` carries a timestamp in nanoseconds, a `Priority`, the text, the rule, the source, the fields and the tags. Every channel is a subclass of `Output` with the methods `output(msg)`, `reopen()` and `cleanup()`.

| name      | class          | options                  | behaviour                                                   |
|-----------|----------------|--------------------------|-------------------------------------------------------------|
| `file`    | `FileOutput`   | `filename`, `keep_alive` | appends one line per message                                |
| `program` | `ProgramOutput`| `program`, `keep_alive`  | pipes each message as a line into a shell command           |
| `stdout`  | `StdoutOutput` |                          | prints each message                                         |
| `syslog`  | `SyslogOutput` |                          | sends each message to syslog at the message's priority      |
| `http`    | `HttpOutput`   | `url`, `user_agent`      | POSTs each message as `application/json` or `text/plain`    |
| `grpc`    | `GrpcOutput`   |                          | pushes a response onto a `falcout.grpc_queue.ResponseQueue` |

`FileOutput` and `ProgramOutput` close the file or the program after each message, unless `keep_alive` is `"true"`. `FileOutput` raises `OutputError` if it cannot open the file. `HttpOutput` logs transport errors and does not raise them.

`ResponseQueue.instance()` returns the process-wide queue. `push(res)` adds a response. `try_pop()` returns the oldest response, or `None` if there is none.

## Fan-out (`falcout.falco_outputs`)

`create_output(config, buffered, hostname, json_output)` builds a channel from its name. It raises `OutputError` for an unknown name.

`FalcoOutputs` takes configs or ready-made `Output` objects. It delivers each queued message to every channel from a worker thread. A `Watchdog` logs any channel that blocks for longer than `timeout` milliseconds.

```python
from falcout.falco_outputs import FalcoOutputs
from falcout.outputs import OutputConfig, Priority

with FalcoOutputs(
    [OutputConfig("file", {"filename": "/tmp/alerts.log", "keep_alive": "true"})],
    json_output=True,
    timeout=2000,
    buffered=False,
    hostname="host.example.com",
    queue_capacity=1000,
) as outputs:
    outputs.handle_msg(
        1_600_000_000_000_000_000,
        Priority.DEBUG,
        "something happened",
        "my rule",
        {"key": "value"},
    )
```

- `handle_msg` formats a message as JSON, or as `time: Priority msg (key=value ...)`, and queues it.
- `cleanup_outputs()` and `reopen_outputs()` forward to every channel.
- `close()`, which the `with` block also calls, stops the worker once the queue is drained. If the channels are still blocked after the timeout, it discards the messages that remain.
- A `queue_capacity` of `0` means the queue is unbounded. If the queue is full, `OutputQueueFull` is raised.

## Event drop monitoring (`falcout.event_drops`)

`SyscallEventDropManager(inspector, outputs, actions, threshold, rate, max_tokens, simulate_drops)` needs two collaborators:

- `inspector` is any object with a `get_capture_stats()` method that returns `CaptureStats`.
- `outputs` is anything with a `handle_msg` method, such as `FalcoOutputs`.

Call `process_event(ts, bpf_enabled)` for every event. At most once per second of event time it compares the current stats with the last ones. If the share of dropped events is above `threshold`, and the `TokenBucket` allows it, the manager performs the first configured `DropAction`:

- `IGNORE` does nothing.
- `LOG` writes a debug log line.
- `ALERT` sends a debug-priority message with per-category drop counts.
- `EXIT` logs the message and makes `process_event` return `False`.

With `simulate_drops`, every check adds one drop and the threshold is zero. `print_stats(stream)` writes the counters to `stream`, or to stderr if no stream is given.

## Logging and watchdog

`falcout.logger.FalcoLogger` writes to syslog and stderr. It drops messages that are less severe than its level. `set_level` takes a level name:

- `emergency`
- `alert`
- `critical`
- `error`
- `warning`
- `notice`
- `info`
- `debug`

Any other name raises `ValueError`. The module-level `log(priority, msg)` uses the shared `default_logger`.

`falcout.watchdog.Watchdog.start(callback, resolution)` starts a polling thread. After that:

- `set_timeout(seconds, payload)` arms it, and the callback receives `payload` once the deadline passes.
- `cancel_timeout()` disarms it.
- `stop()` ends the polling thread.

## What this package does not do

- It does not run a gRPC server. The `grpc` channel only fills a `ResponseQueue`, and something else must serve it to clients.
- It has no HTTP health endpoint.
- It does not write periodic stats files.
- It does not capture events or evaluate rules. Capture statistics and messages must come from the caller.
- It provides no command-line program.