import signal
import socket
import sys
import threading
import time

import pytest

from autotestkit.process import BackgroundProcess
from autotestkit.randomdata import unused_port


def _python(code, **kwargs):
    return BackgroundProcess(sys.executable, ["-c", code], **kwargs)


def _await_output(proc, expected, timeout=10.0):
    deadline = time.monotonic() + timeout
    while expected not in proc.stdout() and time.monotonic() < deadline:
        time.sleep(0.02)
    return proc.stdout()


def test_str_lists_command_and_args():
    proc = BackgroundProcess(sys.executable, ["-c", "pass", "-x"])
    text = str(proc)
    assert text.startswith(sys.executable) or sys.executable.endswith(text.split(" ")[0])
    assert text.endswith(" -c pass -x")


def test_exit_code_returned():
    proc = _python("import sys; sys.exit(3)")
    proc.start(timeout=10)
    assert proc.stop() == 3


def test_output_captured_and_signal_stop():
    proc = _python("import time; print('hello', flush=True); time.sleep(30)")
    proc.start(timeout=10)
    assert b"hello" in _await_output(proc, b"hello")
    assert proc.stop(signal.SIGTERM, signal.SIGKILL) == -1
    assert b"hello" in proc.stdout()


def test_stderr_merged_into_stdout():
    proc = _python("import sys; sys.stderr.write('oops'); sys.stderr.flush()")
    proc.start(timeout=10)
    assert proc.stop() == 0
    assert b"oops" in proc.stdout()
    assert proc.stderr() == b""


def test_env_strings_are_passed():
    proc = _python("import os; print(os.environ.get('AUTOTESTKIT_VALUE'))", env=["AUTOTESTKIT_VALUE=bar"])
    proc.start(timeout=10)
    assert proc.stop() == 0
    assert proc.stdout().strip() == b"bar"


def test_env_mapping_is_passed():
    proc = _python("import os; print(os.environ.get('AUTOTESTKIT_VALUE'))", env={"AUTOTESTKIT_VALUE": "baz"})
    proc.start(timeout=10)
    assert proc.stop() == 0
    assert proc.stdout().strip() == b"baz"


def test_stop_twice_raises():
    proc = _python("pass")
    proc.start(timeout=10)
    assert proc.stop() == 0
    with pytest.raises(ProcessLookupError):
        proc.stop(signal.SIGINT)


def test_stop_before_start_raises():
    with pytest.raises(RuntimeError):
        BackgroundProcess(sys.executable).stop(signal.SIGINT)


def test_start_missing_command_raises():
    proc = BackgroundProcess("/nonexistent/autotestkit-command")
    with pytest.raises(FileNotFoundError):
        proc.start(timeout=10)


def test_wait_port_connects_to_listener():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server:
        server.bind(("127.0.0.1", 0))
        server.listen()
        server.settimeout(5)
        number = server.getsockname()[1]
        proc = BackgroundProcess(sys.executable, wait_port_interval=0.05)
        proc.wait_port("tcp4", f":{number}", timeout=5)
        conn, _ = server.accept()
        with conn:
            assert conn.getsockname()[1] == number


def test_wait_port_times_out():
    proc = BackgroundProcess(sys.executable, wait_port_interval=0.05)
    with pytest.raises(TimeoutError):
        proc.wait_port("tcp4", str(unused_port()), timeout=0.3)


def test_wait_port_rejects_unknown_network():
    proc = BackgroundProcess(sys.executable)
    with pytest.raises(ValueError):
        proc.wait_port("carrier-pigeon", "80", timeout=0.3)


def test_listen_port_accepts_connection():
    number = unused_port()
    connected = threading.Event()

    def client():
        deadline = time.monotonic() + 5
        while time.monotonic() < deadline:
            try:
                with socket.create_connection(("127.0.0.1", number), timeout=0.2):
                    connected.set()
                    return
            except OSError:
                time.sleep(0.05)

    worker = threading.Thread(target=client)
    worker.start()
    proc = BackgroundProcess(sys.executable, wait_port_interval=0.05)
    started = time.monotonic()
    result = proc.listen_port("tcp", str(number), timeout=5)
    elapsed = time.monotonic() - started
    worker.join()
    assert result is None
    assert elapsed < 5
    assert connected.is_set()


def test_listen_port_times_out_without_client():
    proc = BackgroundProcess(sys.executable, wait_port_interval=0.05)
    with pytest.raises(TimeoutError):
        proc.listen_port("tcp", str(unused_port()), timeout=0.4)