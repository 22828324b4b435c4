"""Background child processes and port readiness checks."""

from __future__ import annotations

import shutil
import socket
import subprocess
import threading
import time
from collections.abc import Iterable, Iterator, Mapping


def _normalize_env(env: Mapping[str, str] | Iterable[str] | None) -> dict[str, str] | None:
    if env is None:
        return None
    if isinstance(env, Mapping):
        return {str(key): str(value) for key, value in env.items()}
    result: dict[str, str] = {}
    for item in env:
        key, _, value = item.partition("=")
        result[key] = value
    return result


def _clean_port(port: str | int) -> int:
    return int(str(port).lstrip(":"))


def _dial_host(network: str) -> str:
    hosts = {"tcp": "localhost", "tcp4": "127.0.0.1", "tcp6": "::1"}
    try:
        return hosts[network]
    except KeyError:
        raise ValueError(f"unsupported network {network!r}") from None


def _listen_family(network: str) -> socket.AddressFamily:
    families = {"tcp": socket.AF_INET, "tcp4": socket.AF_INET, "tcp6": socket.AF_INET6}
    try:
        return families[network]
    except KeyError:
        raise ValueError(f"unsupported network {network!r}") from None


class BackgroundProcess:
    """A command run in the background with its output captured.

    Standard error is merged into standard output.
    """

    def __init__(
        self,
        command: str,
        args: Iterable[str] = (),
        env: Mapping[str, str] | Iterable[str] | None = None,
        wait_port_interval: float = 0.1,
        wait_port_conn_timeout: float = 0.05,
    ) -> None:
        self.command = command
        self.args = list(args)
        self.env = _normalize_env(env)
        self.wait_port_interval = wait_port_interval
        self.wait_port_conn_timeout = wait_port_conn_timeout
        self._proc: subprocess.Popen[bytes] | None = None
        self._reader: threading.Thread | None = None
        self._output = bytearray()
        self._lock = threading.Lock()
        self._waited = False

    def start(self, timeout: float | None = None) -> None:
        """Create the OS process; raise TimeoutError if that takes too long."""
        if self._proc is not None:
            raise RuntimeError("process already started")

        outcome: dict[str, object] = {}

        def launch() -> None:
            try:
                outcome["proc"] = subprocess.Popen(
                    [self.command, *self.args],
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    env=self.env,
                )
            except BaseException as exc:  # re-raised in the caller's thread
                outcome["error"] = exc

        launcher = threading.Thread(target=launch, daemon=True)
        launcher.start()
        launcher.join(timeout)
        if launcher.is_alive():
            raise TimeoutError(f"timed out starting {self}")
        if "error" in outcome:
            raise outcome["error"]  # type: ignore[misc]

        self._proc = outcome["proc"]  # type: ignore[assignment]
        self._reader = threading.Thread(target=self._drain, daemon=True)
        self._reader.start()

    def _drain(self) -> None:
        assert self._proc is not None and self._proc.stdout is not None
        stream = self._proc.stdout
        with stream:
            for chunk in iter(lambda: stream.read1(4096), b""):
                with self._lock:
                    self._output.extend(chunk)

    def _ticks(self, timeout: float | None) -> Iterator[float | None]:
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= self.wait_port_interval:
                    time.sleep(max(remaining, 0.0))
                    raise TimeoutError("timed out waiting for port")
            time.sleep(self.wait_port_interval)
            yield deadline

    def wait_port(self, network: str, port: str | int, timeout: float | None = None) -> None:
        """Poll until a connection to the local port succeeds."""
        host = _dial_host(network)
        number = _clean_port(port)
        for _ in self._ticks(timeout):
            try:
                with socket.create_connection((host, number), timeout=self.wait_port_conn_timeout):
                    return
            except OSError:
                continue

    def listen_port(self, network: str, port: str | int, timeout: float | None = None) -> None:
        """Poll until the local port can be listened on, then await one connection."""
        family = _listen_family(network)
        number = _clean_port(port)
        for deadline in self._ticks(timeout):
            listener = self._try_listen(family, number)
            if listener is None:
                continue
            with listener:
                if deadline is not None:
                    listener.settimeout(max(deadline - time.monotonic(), 1e-3))
                try:
                    conn, _ = listener.accept()
                except TimeoutError:
                    raise TimeoutError(f"timed out waiting for a connection on port {number}") from None
                conn.close()
                return

    @staticmethod
    def _try_listen(family: socket.AddressFamily, port: int) -> socket.socket | None:
        listener = socket.socket(family, socket.SOCK_STREAM)
        try:
            listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            listener.bind(("", port))
            listener.listen()
        except OSError:
            listener.close()
            return None
        return listener

    def stdout(self) -> bytes:
        """Return everything the process has written so far."""
        with self._lock:
            return bytes(self._output)

    def stderr(self) -> bytes:
        """Return captured standard error; always empty, as it is merged into stdout."""
        return b""

    def stop(self, *signals: int) -> int:
        """Send the signals in turn until one is delivered, then wait for exit.

        Returns the exit code, or -1 when the process was ended by a signal.
        Raises ProcessLookupError if the process was already waited for.
        """
        if self._proc is None:
            raise RuntimeError("process has not been started")
        if self._waited:
            raise ProcessLookupError("error sending signal to process: process already finished")

        error: OSError | None = None
        for sig in signals:
            try:
                self._proc.send_signal(sig)
            except OSError as exc:
                error = exc
                continue
            error = None
            break
        if error is not None:
            raise OSError(f"error sending signal to process: {error}") from error

        returncode = self._proc.wait()
        self._waited = True
        if self._reader is not None:
            self._reader.join()
        return -1 if returncode < 0 else returncode

    def __str__(self) -> str:
        path = shutil.which(self.command) or self.command
        return " ".join([path, *self.args])