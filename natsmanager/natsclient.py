"""A small NATS client for inspecting JetStream streams and consumers."""

from __future__ import annotations

import enum
import itertools
import json
import logging
import socket
import ssl
import threading
import uuid
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.parse import unquote, urlsplit

DEFAULT_PORT = 4222
DEFAULT_TIMEOUT = 5.0
CLIENT_NAME = "NATS Manager"

_STREAM_LIST = "$JS.API.STREAM.LIST"
_CONSUMER_LIST = "$JS.API.CONSUMER.LIST.{}"

_log = logging.getLogger(__name__)


class NatsClientError(Exception):
    """Raised when talking to the NATS server fails."""


class ConnectionStatus(enum.Enum):
    CONNECTED = "connected"
    CLOSED = "closed"


@dataclass
class NatsConfig:
    """Where the NATS server is and how long to wait for it, in seconds."""

    url: str
    timeout: float = DEFAULT_TIMEOUT


class _JetStream:
    """Lists streams and consumers through the JetStream API."""

    def __init__(self, conn: Connection) -> None:
        self._conn = conn

    def _paged(self, subject: str, key: str) -> Iterator[dict[str, Any]]:
        offset = 0
        while True:
            try:
                response = self._conn.request(subject, {"offset": offset})
            except NatsClientError as exc:
                _log.debug("listing %s stopped: %s", subject, exc)
                return
            if "error" in response:
                _log.debug("listing %s stopped: %s", subject, response["error"])
                return
            items = response.get(key) or []
            yield from items
            offset += len(items)
            if not items or offset >= response.get("total", 0):
                return

    def streams(self) -> Iterator[dict[str, Any]]:
        """Yield the info of every stream."""
        return self._paged(_STREAM_LIST, "streams")

    def consumers(self, stream_name: str) -> Iterator[dict[str, Any]]:
        """Yield the info of every consumer of ``stream_name``."""
        return self._paged(_CONSUMER_LIST.format(stream_name), "consumers")


class Connection:
    """A connection speaking the NATS client protocol, enough for JetStream API requests."""

    def __init__(self, sock: socket.socket, timeout: float = DEFAULT_TIMEOUT) -> None:
        sock.settimeout(timeout)
        self._sock = sock
        self._reader = sock.makefile("rb")
        self._status = ConnectionStatus.CONNECTED
        self._sids = itertools.count(1)
        self._lock = threading.Lock()

    @classmethod
    def connect(cls, url: str, timeout: float = DEFAULT_TIMEOUT, name: str = CLIENT_NAME) -> Connection:
        """Open a connection to ``url`` and complete the protocol handshake."""
        parts = urlsplit(url if "://" in url else f"nats://{url}")
        host = parts.hostname or "localhost"
        port = parts.port or DEFAULT_PORT
        sock = socket.create_connection((host, port), timeout=timeout)
        if parts.scheme == "tls":
            sock = ssl.create_default_context().wrap_socket(sock, server_hostname=host)
        conn = cls(sock, timeout)
        try:
            conn._handshake(name, parts.username, parts.password)
        except BaseException:
            conn.close()
            raise
        return conn

    def _send(self, data: bytes) -> None:
        try:
            self._sock.sendall(data)
        except OSError as exc:
            self._status = ConnectionStatus.CLOSED
            raise NatsClientError(f"write failed: {exc}") from exc

    def _readline(self) -> bytes:
        try:
            line = self._reader.readline()
        except OSError as exc:
            self._status = ConnectionStatus.CLOSED
            raise NatsClientError(f"read failed: {exc}") from exc
        if not line:
            self._status = ConnectionStatus.CLOSED
            raise NatsClientError("connection closed by server")
        return line.rstrip(b"\r\n")

    def _read_exact(self, size: int) -> bytes:
        try:
            data = self._reader.read(size)
        except OSError as exc:
            self._status = ConnectionStatus.CLOSED
            raise NatsClientError(f"read failed: {exc}") from exc
        if len(data) < size:
            self._status = ConnectionStatus.CLOSED
            raise NatsClientError("connection closed by server")
        return data

    def _control(self, line: bytes) -> None:
        """Handle a protocol line that is not a message."""
        if line.startswith(b"PING"):
            self._send(b"PONG\r\n")
        elif line.startswith(b"-ERR"):
            raise NatsClientError(line[4:].strip().decode(errors="replace").strip("'"))

    def _handshake(self, name: str, user: str | None, secret: str | None) -> None:
        if not self._readline().startswith(b"INFO"):
            raise NatsClientError("server did not send INFO")
        options: dict[str, Any] = {
            "verbose": False,
            "pedantic": False,
            "lang": "python",
            "protocol": 1,
            "name": name,
            "headers": False,
        }
        if user:
            options["user"] = unquote(user)
        if secret:
            options["pass"] = unquote(secret)
        self._send(f"CONNECT {json.dumps(options)}\r\nPING\r\n".encode())
        while not (line := self._readline()).startswith(b"PONG"):
            self._control(line)

    def request(self, subject: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Publish ``payload`` as JSON to ``subject`` and return the decoded reply."""
        if not self.is_connected():
            raise NatsClientError("connection closed")
        with self._lock:
            inbox = f"_INBOX.{uuid.uuid4().hex}"
            sid = str(next(self._sids))
            data = json.dumps(payload).encode()
            self._send(
                f"SUB {inbox} {sid}\r\nUNSUB {sid} 1\r\nPUB {subject} {inbox} {len(data)}\r\n".encode()
                + data
                + b"\r\n"
            )
            while True:
                line = self._readline()
                if not line.startswith(b"MSG"):
                    self._control(line)
                    continue
                fields = line.split()
                size = int(fields[-1])
                body = self._read_exact(size + 2)[:size]
                if fields[2].decode() == sid:
                    try:
                        return json.loads(body)
                    except ValueError as exc:
                        raise NatsClientError(f"invalid reply: {exc}") from exc

    def status(self) -> ConnectionStatus:
        return self._status

    def is_connected(self) -> bool:
        return self._status is ConnectionStatus.CONNECTED

    def jetstream(self) -> _JetStream:
        """Return a JetStream context bound to this connection."""
        if not self.is_connected():
            raise NatsClientError("connection closed")
        return _JetStream(self)

    def close(self) -> None:
        if self._status is ConnectionStatus.CLOSED and self._reader.closed:
            return
        self._status = ConnectionStatus.CLOSED
        self._reader.close()
        self._sock.close()


class _Conn(Protocol):
    def status(self) -> ConnectionStatus: ...

    def jetstream(self) -> Any: ...

    def is_connected(self) -> bool: ...

    def close(self) -> None: ...


class NatsClient:
    """Checks a NATS server for JetStream streams and consumers."""

    def __init__(
        self,
        config: NatsConfig,
        connect: Callable[..., _Conn] = Connection.connect,
    ) -> None:
        self.config = config
        self._connect = connect
        self._conn: _Conn | None = None

    def __enter__(self) -> NatsClient:
        self.init()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def init(self) -> None:
        """Connect to the server unless a live connection exists."""
        if self._conn is not None and self._conn.status() is ConnectionStatus.CONNECTED:
            return
        try:
            conn = self._connect(self.config.url, self.config.timeout, name=CLIENT_NAME)
        except (OSError, ValueError, NatsClientError) as exc:
            raise NatsClientError(f"failed to connect to NATS server: {exc}") from exc
        if not conn.is_connected():
            raise NatsClientError("failed to connect to NATS server")
        self._conn = conn

    def _jetstream(self) -> Any:
        if self._conn is None:
            raise NatsClientError("failed to get JetStream: not connected")
        try:
            return self._conn.jetstream()
        except (OSError, NatsClientError) as exc:
            raise NatsClientError(f"failed to get JetStream: {exc}") from exc

    def stream_exists(self) -> bool:
        """Return True if JetStream holds at least one stream."""
        return any(True for _ in self._jetstream().streams())

    def get_streams(self) -> list[dict[str, Any]]:
        """Return the info of every stream; empty if there is none."""
        return list(self._jetstream().streams())

    def consumers_exist(self, stream_name: str) -> bool:
        """Return True if ``stream_name`` has at least one consumer."""
        return any(True for _ in self._jetstream().consumers(stream_name))

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()