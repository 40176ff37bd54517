# Copyright 2025 Maida.AI
# SPDX-License-Identifier: Apache-2.0
r"""rosapi - An event-driven client for the RouterOS API protocol.

The RouterOS API is a word-oriented, sentence-framed binary protocol carried
over TCP. This package provides:
- The variable-length word length codec and sentence packing
- An incremental sentence reassembler independent of read boundaries
- An event-driven Connection with the MD5 challenge/response login
- A non-blocking TCP transport polled from the caller's thread
- Pydantic models for sentences and credentials
- A small threaded server speaking the protocol, for tests and demos
"""

# Import public API from modules
from .connection import Connection
from .constants import (
    DEFAULT_API_PORT,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_ENCODING,
    MAX_WORD_LENGTH,
    ConnectionState,
    LoginMethod,
    LoginState,
    ResultType,
)
from .errors import (
    AlreadyConnectedError,
    ApiError,
    AuthenticationError,
    IllegalStateError,
    LengthTooLargeError,
    ProtocolError,
    TransportClosedError,
    TransportError,
)
from .reassembler import SentenceReassembler
from .sentence import Credentials, Sentence
from .server import Server, run_server
from .transport import TcpTransport, Transport
from .wire import (
    LengthDecoder,
    NeedMore,
    decode_length,
    encode_length,
    pack_sentence,
    pack_word,
)

# Public API exports
__all__ = [
    # Core classes
    "Connection",
    "Sentence",
    "Credentials",
    "SentenceReassembler",
    "Transport",
    "TcpTransport",
    "Server",
    # Constants and enums
    "DEFAULT_API_PORT",
    "DEFAULT_CONNECT_TIMEOUT",
    "DEFAULT_ENCODING",
    "MAX_WORD_LENGTH",
    "ConnectionState",
    "LoginState",
    "LoginMethod",
    "ResultType",
    # Errors
    "ApiError",
    "ProtocolError",
    "TransportError",
    "TransportClosedError",
    "AuthenticationError",
    "AlreadyConnectedError",
    "LengthTooLargeError",
    "IllegalStateError",
    # Wire utilities
    "LengthDecoder",
    "NeedMore",
    "encode_length",
    "decode_length",
    "pack_word",
    "pack_sentence",
    # Server utilities
    "run_server",
]
