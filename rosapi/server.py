# mypy: ignore-errors
"""Minimal RouterOS API server, used as a stand-in router."""
import hashlib
import hmac
import logging
import os
import socket
import threading
from collections.abc import Callable
from contextlib import contextmanager

from .constants import DEFAULT_API_PORT, DEFAULT_ENCODING, LOGIN_COMMAND, RESPONSE_PREFIX, ResultType
from .errors import ProtocolError
from .sentence import Sentence
from .wire import pack_sentence, read_sentence

DEFAULT_IDENTITY = "MikroTik"


class _ClientHandler(threading.Thread):
    """Handle a single client connection."""

    def __init__(
        self,
        sock: socket.socket,
        addr,
        users: dict[str, str],
        on_sentence: Callable[[Sentence], list[Sentence]],
        encoding: str = DEFAULT_ENCODING,
    ):
        """Initialize client handler.

        Args:
            sock: Client socket
            addr: Client address
            users: Accepted user names and passwords
            on_sentence: Produces the replies to a command once logged in
            encoding: Text encoding of words on the wire
        """
        super().__init__(daemon=True)
        self.sock = sock
        self.addr = addr
        self.users = users
        self.on_sentence = on_sentence
        self.encoding = encoding
        self.running = True
        self.logged_in = False
        self._challenge: bytes | None = None

    def run(self):
        """Handle client connection."""
        try:
            self._serve()
        except Exception as exc:
            logging.debug("Client %s closed: %s", self.addr, exc)
        finally:
            self.sock.close()

    def _serve(self):
        """Serve client requests."""
        while self.running:
            try:
                words = read_sentence(self.sock)
            except (ConnectionError, ProtocolError) as e:
                logging.debug("Client %s error: %s", self.addr, e)
                break
            if not words:
                continue

            request = Sentence.from_words(words, self.encoding)
            if request.command == LOGIN_COMMAND:
                replies = [self._handle_login(request)]
            elif not self.logged_in:
                replies = [Sentence.trap("not logged in")]
            else:
                replies = self.on_sentence(request)

            for reply in replies:
                reply.tag = request.tag
                self.sock.sendall(pack_sentence(reply.to_words(include_tag=True), self.encoding))
                if reply.result_type == ResultType.FATAL:
                    self.running = False

    def _handle_login(self, request: Sentence) -> Sentence:
        """Answer one step of the login handshake."""
        name = request.attributes.get("name")
        if name is None:
            self._challenge = os.urandom(16)
            return Sentence.done(ret=self._challenge.hex())

        password = self.users.get(name)
        if password is not None and "password" in request.attributes:
            accepted = hmac.compare_digest(
                request.attribute("password").encode(self.encoding), password.encode(self.encoding)
            )
        elif password is not None and self._challenge is not None:
            md5 = hashlib.md5()
            md5.update(b"\x00")
            md5.update(password.encode(self.encoding))
            md5.update(self._challenge)
            expected = RESPONSE_PREFIX + md5.hexdigest()
            accepted = hmac.compare_digest(request.attribute("response").encode(self.encoding), expected.encode())
        else:
            accepted = False
        self._challenge = None

        if not accepted:
            logging.info("Login failure for user %s from %s", name, self.addr)
            return Sentence.trap("invalid user name or password")
        logging.info("User %s logged in from %s", name, self.addr)
        self.logged_in = True
        return Sentence.done()


class Server:
    """RouterOS API server that accepts connections and answers commands."""

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = DEFAULT_API_PORT,
        users: dict[str, str] | None = None,
        on_sentence: Callable[[Sentence], list[Sentence]] = None,
        identity: str = DEFAULT_IDENTITY,
        encoding: str = DEFAULT_ENCODING,
    ):
        """Initialize server.

        Args:
            host: Host to bind to
            port: Port to bind to (0 picks a free port)
            users: Accepted user names and passwords, defaults to admin with
                an empty password
            on_sentence: Optional command handler returning the replies
            identity: Name reported by /system/identity/print
            encoding: Text encoding of words on the wire
        """
        self.host = host
        self.port = port
        self.users = users if users is not None else {"admin": ""}
        self.identity = identity
        self.encoding = encoding
        self.on_sentence = on_sentence or self._default_handler
        self._sock: socket.socket | None = None
        self._running = threading.Event()

    @property
    def address(self) -> tuple[str, int]:
        """Bound (host, port), valid once the server is listening."""
        return self._sock.getsockname()[:2]

    def _default_handler(self, sentence: Sentence) -> list[Sentence]:
        """Default handler answering a few system commands.

        Args:
            sentence: Received command

        Returns:
            Reply sentences
        """
        if sentence.command == "/system/identity/print":
            return [Sentence.reply(name=self.identity), Sentence.done()]
        if sentence.command == "/quit":
            return [Sentence.fatal("session terminated on request")]
        return [Sentence.trap("no such command")]

    def serve_forever(self):
        """Start the server and handle connections."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as srv:
            srv.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            srv.bind((self.host, self.port))
            srv.listen()
            self._sock = srv
            self._running.set()

            logging.info("RouterOS API server listening on %s:%d", *self.address)

            while self._running.is_set():
                try:
                    cli_sock, addr = srv.accept()
                    _ClientHandler(cli_sock, addr, self.users, self.on_sentence, self.encoding).start()
                except OSError:
                    break  # socket closed

    def wait_until_listening(self, timeout: float | None = None) -> bool:
        return self._running.wait(timeout)

    def stop(self):
        """Stop the server."""
        self._running.clear()
        if self._sock:
            try:
                self._sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            self._sock.close()


@contextmanager
def run_server(host: str = "127.0.0.1", port: int = 0, **kwargs):
    """Context manager to spin up a server in a background thread.

    Args:
        host: Host to bind to
        port: Port to bind to, 0 for any free port
        **kwargs: Passed on to Server

    Yields:
        The listening Server
    """
    server = Server(host, port, **kwargs)
    thread = threading.Thread(target=server.serve_forever, name="rosapi-server", daemon=True)
    thread.start()
    if not server.wait_until_listening(5.0):
        raise RuntimeError("RouterOS API server did not start")
    try:
        yield server
    finally:
        server.stop()
        thread.join(timeout=1.0)
