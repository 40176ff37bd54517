"""RouterOS API protocol constants and enums."""

from enum import Enum, IntEnum

# ----------------------------------------------------------------------------
# Protocol constants
# ----------------------------------------------------------------------------

DEFAULT_API_PORT = 8728
DEFAULT_ENCODING = "latin-1"  # round-trips every byte value
DEFAULT_CONNECT_TIMEOUT = 10.0  # seconds
READ_CHUNK_SIZE = 64 << 10  # 64 KiB per recv()

# ----------------------------------------------------------------------------
# Word length prefix
# ----------------------------------------------------------------------------

MAX_WORD_LENGTH = 0x0FFFFFFF  # 2^28 - 1

# Upper bound (exclusive) of the lengths each prefix form can carry
ONE_BYTE_LIMIT = 0x80
TWO_BYTE_LIMIT = 0x4000
THREE_BYTE_LIMIT = 0x200000
FOUR_BYTE_LIMIT = 0x10000000

# First-byte markers for the 2, 3 and 4 byte forms
TWO_BYTE_MARK = 0x80
THREE_BYTE_MARK = 0xC0
FOUR_BYTE_MARK = 0xE0
RESERVED_MARK = 0xF0

# Masks applied to the first byte to strip the marker bits
TWO_BYTE_MASK = 0x7F
THREE_BYTE_MASK = 0x3F
FOUR_BYTE_MASK = 0x1F

# ----------------------------------------------------------------------------
# Word prefixes
# ----------------------------------------------------------------------------

ATTRIBUTE_PREFIX = "="
API_ATTRIBUTE_PREFIX = "."
QUERY_PREFIX = "?"
TAG_ATTRIBUTE = "tag"

LOGIN_COMMAND = "/login"
RESPONSE_PREFIX = "00"  # literal prefix in front of the MD5 hex digest
CHALLENGE_HEX_LENGTH = 32

# ----------------------------------------------------------------------------
# Sentence result types
# ----------------------------------------------------------------------------


class ResultType(str, Enum):
    """Reply kind, taken from the first word of a received sentence."""

    DONE = "!done"
    TRAP = "!trap"
    FATAL = "!fatal"
    REPLY = "!re"
    UNKNOWN = ""

    @classmethod
    def from_command(cls, command: str) -> "ResultType":
        for member in cls:
            if member is not cls.UNKNOWN and member.value == command:
                return member
        return cls.UNKNOWN


# ----------------------------------------------------------------------------
# Connection and login states
# ----------------------------------------------------------------------------


class ConnectionState(IntEnum):
    """Observable socket states."""

    UNCONNECTED = 0
    HOST_LOOKUP = 1
    CONNECTING = 2
    CONNECTED = 3
    CLOSING = 4


class LoginState(IntEnum):
    """Login progress, meaningful only while CONNECTED."""

    NO_LOGIN = 0
    LOGIN_REQUESTED = 1
    CREDENTIALS_SENT = 2
    LOGGED_IN = 3


class LoginMethod(IntEnum):
    """How credentials are presented to the router."""

    CHALLENGE = 0  # /login, then MD5 response to the =ret= challenge
    PLAIN = 1  # /login =name= =password= in a single sentence
