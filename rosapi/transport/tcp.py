"""Non-blocking TCP transport driven by a selector."""

import errno
import logging
import os
import selectors
import socket
import time

from ..constants import DEFAULT_CONNECT_TIMEOUT, READ_CHUNK_SIZE, ConnectionState
from ..errors import TransportError
from .base import Transport

_IN_PROGRESS = {0, errno.EINPROGRESS, errno.EWOULDBLOCK, errno.EAGAIN}


class TcpTransport(Transport):
    """TCP transport using a non-blocking socket and ``selectors``."""

    def __init__(self, connect_timeout: float = DEFAULT_CONNECT_TIMEOUT):
        """Initialize transport.

        Args:
            connect_timeout: Seconds allowed for the TCP handshake
        """
        super().__init__()
        self.connect_timeout = connect_timeout
        self._sock: socket.socket | None = None
        self._selector = selectors.DefaultSelector()
        self._inbox = bytearray()
        self._outbox = bytearray()
        self._deadline: float | None = None

    def connect(self, host: str, port: int) -> None:
        """Resolve ``host`` and start a non-blocking connect.

        Name resolution blocks; it is bracketed by the HOST_LOOKUP state.
        """
        self._release()
        self._set_state(ConnectionState.HOST_LOOKUP)
        try:
            infos = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)
        except socket.gaierror as exc:
            self._fail(f"Host {host} not found: {exc}")
            return

        family, sock_type, proto, _, address = infos[0]
        sock = socket.socket(family, sock_type, proto)
        sock.setblocking(False)
        self._sock = sock
        self._selector.register(sock, selectors.EVENT_WRITE)
        self._deadline = time.monotonic() + self.connect_timeout
        self._set_state(ConnectionState.CONNECTING)

        logging.debug("Connecting to %s:%d", host, port)
        err = sock.connect_ex(address)
        if err not in _IN_PROGRESS:
            self._fail(os.strerror(err))

    def read(self, n: int) -> bytes:
        chunk = bytes(self._inbox[:n])
        del self._inbox[:n]
        return chunk

    def write(self, data: bytes) -> None:
        """Queue data and send as much as the socket accepts right now.

        Send failures are reported from the next ``poll``.

        Raises:
            TransportError: If the socket is not connected
        """
        if self._sock is None or self._state != ConnectionState.CONNECTED:
            raise TransportError("Socket is not connected")
        self._outbox += data
        self._send_pending()
        self._update_interest()

    def disconnect(self) -> None:
        if self._sock is None:
            return
        if self._state != ConnectionState.CONNECTED:
            self.abort()
            return
        self._set_state(ConnectionState.CLOSING)
        self._inbox.clear()
        if self._sock is not None and not self._outbox:
            self._close()
        else:
            self._update_interest()

    def abort(self) -> None:
        self._outbox.clear()
        self._close()

    def poll(self, timeout: float | None = None) -> None:
        if self._sock is None:
            return

        if self._deadline is not None:
            remaining = max(self._deadline - time.monotonic(), 0.0)
            timeout = remaining if timeout is None else min(timeout, remaining)

        for key, mask in self._selector.select(timeout):
            if self._sock is None:
                break
            if key.fileobj is not self._sock:
                continue  # replaced by a reconnect from a callback
            if self._state == ConnectionState.CONNECTING:
                self._finish_connect()
                continue
            if mask & selectors.EVENT_READ:
                self._handle_read()
            if mask & selectors.EVENT_WRITE and self._sock is key.fileobj:
                self._handle_write()

        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._fail("Connection timed out")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _finish_connect(self) -> None:
        err = self._sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
        if err:
            self._fail(os.strerror(err))
            return
        self._deadline = None
        self._update_interest(connected=True)
        self._set_state(ConnectionState.CONNECTED)

    def _handle_read(self) -> None:
        try:
            data = self._sock.recv(READ_CHUNK_SIZE)
        except (BlockingIOError, InterruptedError):
            return
        except OSError as exc:
            self._fail(exc.strerror or str(exc))
            return

        if not data:
            logging.debug("Remote host closed the connection")
            self._close()
            return

        if self._state == ConnectionState.CLOSING:
            return  # input is discarded once closing
        self._inbox += data
        if self.on_ready_read:
            self.on_ready_read()

    def _handle_write(self) -> None:
        err = self._send_pending()
        if err is not None:
            self._fail(err.strerror or str(err))
            return
        if not self._outbox and self._state == ConnectionState.CLOSING:
            self._close()
            return
        self._update_interest()

    def _send_pending(self) -> OSError | None:
        while self._outbox:
            try:
                sent = self._sock.send(self._outbox)
            except (BlockingIOError, InterruptedError):
                return None
            except OSError as exc:
                return exc
            del self._outbox[:sent]
        return None

    def _update_interest(self, connected: bool = False) -> None:
        if self._sock is None:
            return
        if self._state == ConnectionState.CLOSING:
            events = selectors.EVENT_READ | selectors.EVENT_WRITE
        elif connected or self._state == ConnectionState.CONNECTED:
            events = selectors.EVENT_READ | (selectors.EVENT_WRITE if self._outbox else 0)
        else:
            events = selectors.EVENT_WRITE
        self._selector.modify(self._sock, events)

    def _fail(self, message: str) -> None:
        # The socket is gone by the time the error is reported; a handler may reconnect.
        self._close()
        self._report_error(message)

    def _close(self) -> None:
        self._release()
        self._set_state(ConnectionState.UNCONNECTED)

    def _release(self) -> None:
        sock, self._sock = self._sock, None
        if sock is not None:
            self._selector.unregister(sock)
            try:
                sock.close()
            except OSError:
                pass
        self._inbox.clear()
        self._outbox.clear()
        self._deadline = None
