import io
import re

import pytest
from hypothesis import given
from hypothesis import strategies as st
from pydantic import ValidationError

from pytest_teamcity_report.messages import (
    ServiceMessage,
    ServiceMessageWriter,
    escape,
    format_message,
    to_milliseconds,
)


@pytest.mark.parametrize(
    "raw, escaped",
    (
        ("plain name", "plain name"),
        ("a|b", "a||b"),
        ("it's", "it|'s"),
        ("line\nbreak", "line|nbreak"),
        ("carriage\rreturn", "carriage|rreturn"),
        ("test_examples[2-2]", "test_examples|[2-2|]"),
        ("|[", "|||["),
        ("ünïcödé → ok", "ünïcödé → ok"),
    ),
)
def test_escape__known_values(raw, escaped):
    assert escape(raw) == escaped


@given(st.text())
def test_escape__no_raw_delimiters(text):
    escaped = escape(text)

    # Drop every escape sequence; whatever is left must be free of delimiters
    remainder = re.sub(r"\|[|'nr\[\]]", "", escaped)

    assert not set(remainder) & {"|", "'", "\n", "\r", "[", "]"}


def test_escape__applied_once():
    assert escape("[x]") == "|[x|]"
    assert escape(escape("[x]")) == "|||[x|||]"


@pytest.mark.parametrize(
    "seconds, milliseconds",
    (
        (1.2345, 1235),
        (0.0, 0),
        (-0.0005, 0),
        (0.0004, 0),
        (0.0005, 1),
        (2, 2000),
        (0.1234564, 123),
    ),
)
def test_to_milliseconds(seconds, milliseconds):
    assert to_milliseconds(seconds) == milliseconds


def test_format_message__flow_id_is_appended_last():
    message = ServiceMessage(
        name="testStarted", attributes={"name": "x", "locationHint": "y"}
    )

    assert (
        format_message(message, flow_id=42)
        == "\n##teamcity[testStarted name='x' locationHint='y' flowId='42']\n"
    )


def test_format_message__zero_flow_id_is_omitted():
    message = ServiceMessage(name="testCount", attributes={"count": 3})

    assert format_message(message) == "\n##teamcity[testCount count='3']\n"


def test_format_message__values_are_escaped_keys_are_not():
    message = ServiceMessage(
        name="testFinished", attributes={"name": "it's [odd]", "duration": 7}
    )

    assert (
        format_message(message)
        == "\n##teamcity[testFinished name='it|'s |[odd|]' duration='7']\n"
    )


def test_service_message__unknown_event_name():
    with pytest.raises(ValidationError):
        ServiceMessage(name="testFailed", attributes={})


def test_writer__emits_flow_id_once_set():
    stream = io.StringIO()
    writer = ServiceMessageWriter(stream)

    writer.emit("testCount", {"count": 1})
    writer.flow_id = 1234
    writer.emit("testCount", {"count": 1})

    assert stream.getvalue() == (
        "\n##teamcity[testCount count='1']\n"
        "\n##teamcity[testCount count='1' flowId='1234']\n"
    )


def test_writer__stream_errors_propagate():
    stream = io.StringIO()
    stream.close()
    writer = ServiceMessageWriter(stream)

    with pytest.raises(ValueError):
        writer.emit("testCount", {"count": 1})
