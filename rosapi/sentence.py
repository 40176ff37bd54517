"""Sentence and credential models for the RouterOS API."""

from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, Field, SecretStr

from .constants import (
    API_ATTRIBUTE_PREFIX,
    ATTRIBUTE_PREFIX,
    DEFAULT_ENCODING,
    QUERY_PREFIX,
    TAG_ATTRIBUTE,
    ResultType,
)


class Sentence(BaseModel):
    """A command sent to, or a reply received from, the router."""

    command: str = Field("", description="First word, e.g. /ip/address/print or !done")
    attributes: dict[str, str] = Field(default_factory=dict, description="=name=value words")
    api_attributes: dict[str, str] = Field(default_factory=dict, description=".name=value words other than .tag")
    queries: list[str] = Field(default_factory=list, description="?query words, verbatim")
    tag: str = Field("", description="Value of the .tag API attribute")
    extra_words: list[str] = Field(default_factory=list, description="Unclassified words after the command")

    @property
    def result_type(self) -> ResultType:
        return ResultType.from_command(self.command)

    @property
    def is_empty(self) -> bool:
        return not (
            self.command or self.attributes or self.api_attributes or self.queries or self.tag or self.extra_words
        )

    def attribute(self, name: str) -> str:
        """Return the value of attribute ``name``, or "" if it is absent."""
        return self.attributes.get(name, "")

    def to_words(self, include_tag: bool = False) -> list[str]:
        """Return the words to put on the wire, without the terminator.

        Order is command, attributes, API attributes, queries, then any
        unclassified words. The ``.tag`` word is appended only when
        ``include_tag`` is set and the sentence carries a tag.
        """
        words = [self.command]
        words.extend(f"{ATTRIBUTE_PREFIX}{name}={value}" for name, value in self.attributes.items())
        words.extend(f"{API_ATTRIBUTE_PREFIX}{name}={value}" for name, value in self.api_attributes.items())
        words.extend(q if q.startswith(QUERY_PREFIX) else QUERY_PREFIX + q for q in self.queries)
        words.extend(self.extra_words)
        if include_tag and self.tag:
            words.append(tag_word(self.tag))
        return words

    @classmethod
    def from_words(cls, words: Iterable[bytes | str], encoding: str = DEFAULT_ENCODING) -> "Sentence":
        """Build a sentence from received words."""
        decoded = [w.decode(encoding) if isinstance(w, bytes | bytearray) else w for w in words]
        if not decoded:
            return cls()

        fields: dict[str, Any] = {
            "command": decoded[0],
            "attributes": {},
            "api_attributes": {},
            "queries": [],
            "extra_words": [],
        }
        for word in decoded[1:]:
            if word.startswith(ATTRIBUTE_PREFIX):
                name, _, value = word[1:].partition("=")
                fields["attributes"][name] = value
            elif word.startswith(API_ATTRIBUTE_PREFIX):
                name, _, value = word[1:].partition("=")
                if name == TAG_ATTRIBUTE:
                    fields["tag"] = value
                else:
                    fields["api_attributes"][name] = value
            elif word.startswith(QUERY_PREFIX):
                fields["queries"].append(word)
            else:
                fields["extra_words"].append(word)
        return cls(**fields)

    @classmethod
    def done(cls, **attributes: str) -> "Sentence":
        """Create a !done reply."""
        return cls(command=ResultType.DONE.value, attributes=attributes)

    @classmethod
    def reply(cls, **attributes: str) -> "Sentence":
        """Create a !re data reply."""
        return cls(command=ResultType.REPLY.value, attributes=attributes)

    @classmethod
    def trap(cls, message: str, **attributes: str) -> "Sentence":
        """Create a !trap error reply."""
        return cls(command=ResultType.TRAP.value, attributes={**attributes, "message": message})

    @classmethod
    def fatal(cls, message: str) -> "Sentence":
        """Create a !fatal reply."""
        return cls(command=ResultType.FATAL.value, attributes={"message": message})


def tag_word(tag: str) -> str:
    return f"{API_ATTRIBUTE_PREFIX}{TAG_ATTRIBUTE}={tag}"


class Credentials(BaseModel):
    """User name and password for the router login."""

    username: str
    password: SecretStr = Field(default=SecretStr(""), description="Never shown in repr or logs")

    @classmethod
    def coerce(cls, value: "Credentials | tuple[str, str]") -> "Credentials":
        """Accept either a Credentials instance or a (username, password) pair."""
        if isinstance(value, Credentials):
            return value
        username, password = value
        return cls(username=username, password=password)
