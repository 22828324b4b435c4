# autotestkit

Small building blocks for black-box autotests of network services: start the
program under test in the background, wait until it is ready, stop it, and
generate random data to feed it. It has no dependencies outside the standard
library.

## Installation

```
pip install autotestkit
```

With the test suite's requirements:

```
pip install "autotestkit[test]"
```

## Running a service under test

`autotestkit.process.BackgroundProcess` runs a command as a child process and
captures its output in memory.

```python
import signal
from autotestkit.process import BackgroundProcess

proc = BackgroundProcess(
    "./bin/server",
    args=["-a=localhost:8080"],
    env={"PATH": "/usr/bin:/bin", "RESTORE": "false"},
)
proc.start(timeout=20)
proc.wait_port("tcp", "8080", timeout=20)   # connect until the server accepts

# ... exercise the service ...

exit_code = proc.stop(signal.SIGINT, signal.SIGKILL)
print(proc.stdout().decode())
```

Constructor arguments:

- `command` and `args`: the program and its arguments.
- `env`: the child's whole environment, either a mapping or a list of
  `"KEY=VALUE"` strings. It replaces the parent's environment rather than
  adding to it; pass `dict(os.environ, ...)` to extend it. `None` (the
  default) inherits the parent's environment.
- `wait_port_interval` (seconds, default `0.1`): how often the port checks
  poll.
- `wait_port_conn_timeout` (seconds, default `0.05`): connection timeout of
  each `wait_port` attempt.

Methods:

- `start(timeout=None)` creates the process. It raises `TimeoutError` if that
  takes longer than `timeout`, re-raises the error if the command cannot be
  run, and raises `RuntimeError` if called twice.
- `wait_port(network, port, timeout=None)` connects to the local port every
  interval until a connection succeeds. A leading `:` on the port is ignored.
  It raises `TimeoutError` when time runs out.
- `listen_port(network, port, timeout=None)` opens a listener on the port as
  soon as it can be bound, then waits for one incoming connection and closes
  it. This suits agents that push data to a server address. It raises
  `TimeoutError` when time runs out.
- `network` is `"tcp"`, `"tcp4"` or `"tcp6"`; anything else raises
  `ValueError`.
- `stdout()` returns everything the process has written so far. Standard
  error is merged into standard output, so `stderr()` always returns `b""`.
- `stop(*signals)` sends each signal in turn until one is delivered, then
  waits for the process to exit and returns its exit code, or `-1` if it was
  ended by a signal. It raises `OSError` if no signal could be delivered,
  `ProcessLookupError` if the process was already stopped, and `RuntimeError`
  if it was never started.
- `str(proc)` gives the command line, with the command resolved on `PATH`
  where possible.

## Random test data

`autotestkit.randomdata` produces values for requests from a generator seeded
from the operating system once per process:

```python
from autotestkit import randomdata

randomdata.ascii_string(5, 15)   # letters and digits, never starting with a digit
randomdata.digit_string(4, 8)    # digits, never starting with 0
randomdata.domain(5, 15)         # e.g. "qwertyz.ru"
randomdata.domain(5, 15, "org")  # fixed zone
randomdata.url()                 # e.g. "http://abcde.com/xyzab/klmno"
randomdata.port(1024, 65535)     # a port number in [1024, 65535)
randomdata.unused_port()         # a TCP port free on localhost right now
```

Details:

- Lengths follow a half-open range: `ascii_string(5, 15)` returns between 5
  and 14 characters. `max_len` must be greater than `min_len`, otherwise
  `ValueError` is raised. The last symbol of each alphabet (`Z` for
  `ascii_string`, `9` for `digit_string`) is never produced.
- `domain(min_len, max_len, *zones)` returns a lower-case host name and a
  zone. A length bound of `0` falls back to 5 (minimum) or 15 (maximum).
  With no zones one of `com`, `ru`, `net`, `biz`, `yandex` is chosen; with
  one zone it is always used; with several one is chosen. A leading dot on
  the zone is dropped.
- `url()` returns a string URL with scheme `http`, a random domain and up to
  three lower-case path segments.
- `port(from_, to)`: a non-positive `from_` becomes 1024; a `to` that is
  non-positive or above 65535 becomes 65535.

## What it does not do

autotestkit is a library only. It has no command-line tool and ships no test
suites for any particular service; the checks that drive a service over HTTP
or inspect its storage are left to the tests you write with it.