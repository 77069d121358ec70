from types import SimpleNamespace

import pytest

from squabble.transport.base import MessageEnvelope
from squabble.triggers.extract import (
    REPLY_STRATEGIES,
    extract,
    extract_reply,
    from_fallback_pattern,
)


def _text(content):
    return MessageEnvelope(id="m1", conversation_id="c1", sender_id="u1", content=content)


def _reply(payload):
    return MessageEnvelope(id="m2", conversation_id="c1", sender_id="u1", content=payload, content_type="reply")


def test_plain_message_is_coerced_to_text():
    assert extract(_text("hello @squabble")) == "hello @squabble"
    assert extract(_text(42)) == "42"


def test_plain_message_without_content_is_empty():
    assert extract(_text(None)) == ""


def test_reply_prefers_content_field():
    payload = {"content": "real text", "text": "other", "fallback": 'Replied with "x" to an earlier message'}
    assert extract(_reply(payload)) == "real text"


def test_reply_falls_through_text_then_message():
    assert extract(_reply({"text": "from text", "message": "from message"})) == "from text"
    assert extract(_reply({"message": "from message"})) == "from message"


def test_reply_reads_attribute_payloads():
    payload = SimpleNamespace(content="attr text", reference="abc")
    assert extract(_reply(payload)) == "attr text"


def test_reply_fallback_pattern_is_unwrapped():
    payload = {"content": None, "fallback": 'Replied with "no bet" to an earlier message'}
    assert extract(_reply(payload)) == "no bet"


def test_reply_raw_fallback_when_pattern_does_not_match():
    payload = {"fallback": "something else entirely"}
    assert extract(_reply(payload)) == "something else entirely"


def test_reply_json_is_last_resort():
    payload = {"reference": "abc", "contentType": {"typeId": "text"}}
    result = extract(_reply(payload))
    assert '"reference": "abc"' in result


def test_nested_object_content_is_not_stringified_as_content():
    payload = {"content": {"foo": "bar"}}
    assert extract(_reply(payload)) == '{"content": {"foo": "bar"}}'


@pytest.mark.parametrize("payload", [None, {}, {"content": ""}, {"fallback": None}])
def test_malformed_reply_never_raises(payload):
    assert isinstance(extract(_reply(payload)), str)


def test_null_reply_payload_is_empty():
    assert extract(_reply(None)) == ""


def test_failing_strategy_is_skipped():
    def broken(_payload):
        raise RuntimeError("boom")

    assert extract_reply({"content": "ok"}, strategies=(broken, *REPLY_STRATEGIES)) == "ok"


def test_fallback_pattern_ignores_non_strings():
    assert from_fallback_pattern({"fallback": 12}) is None
