"""Tests for the sentence and credential models."""

from rosapi import Credentials, ResultType, Sentence


def test_from_words_classifies_words() -> None:
    sentence = Sentence.from_words(
        [b"!re", b"=.id=*1", b"=name=ether1", b"=comment=a=b", b"=disabled", b".tag=42", b".section=2", b"?type=ether", b"odd"]
    )
    assert sentence.command == "!re"
    assert sentence.attributes == {".id": "*1", "name": "ether1", "comment": "a=b", "disabled": ""}
    assert sentence.tag == "42"
    assert sentence.api_attributes == {"section": "2"}
    assert sentence.queries == ["?type=ether"]
    assert sentence.extra_words == ["odd"]
    assert sentence.result_type == ResultType.REPLY


def test_to_words_order() -> None:
    """Command, attributes, API attributes, then queries."""
    sentence = Sentence(
        command="/interface/print",
        attributes={".proplist": "name,type"},
        api_attributes={"section": "1"},
        queries=["?type=ether", "#|"],
        tag="t1",
    )
    assert sentence.to_words() == [
        "/interface/print",
        "=.proplist=name,type",
        ".section=1",
        "?type=ether",
        "?#|",
    ]
    assert sentence.to_words(include_tag=True)[-1] == ".tag=t1"


def test_round_trip_through_words() -> None:
    sentence = Sentence(command="!trap", attributes={"message": "failure: already have such address"}, tag="9")
    assert Sentence.from_words(sentence.to_words(include_tag=True)) == sentence


def test_result_types() -> None:
    assert Sentence.done().result_type == ResultType.DONE
    assert Sentence.reply(name="x").result_type == ResultType.REPLY
    assert Sentence.trap("no such command").result_type == ResultType.TRAP
    assert Sentence.fatal("bye").result_type == ResultType.FATAL
    assert Sentence(command="/login").result_type == ResultType.UNKNOWN
    assert Sentence(command="!empty").result_type == ResultType.UNKNOWN


def test_attribute_defaults_to_empty() -> None:
    sentence = Sentence.trap("invalid user name or password")
    assert sentence.attribute("message") == "invalid user name or password"
    assert sentence.attribute("category") == ""
    assert len(sentence.attributes) == 1


def test_empty_sentence() -> None:
    assert Sentence.from_words([]).is_empty
    assert not Sentence.done().is_empty


def test_credentials_hide_password() -> None:
    credentials = Credentials(username="admin", password="s3cret")
    assert "s3cret" not in repr(credentials)
    assert credentials.password.get_secret_value() == "s3cret"


def test_credentials_coerce() -> None:
    credentials = Credentials.coerce(("admin", "pw"))
    assert credentials.username == "admin"
    assert credentials.password.get_secret_value() == "pw"
    assert Credentials.coerce(credentials) is credentials
    assert Credentials(username="u").password.get_secret_value() == ""
