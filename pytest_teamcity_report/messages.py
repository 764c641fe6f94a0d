from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Literal, TextIO, Union

from pydantic import BaseModel

PROTOCOL = "pytest_qn://"

EventName = Literal[
    "testCount",
    "testSuiteStarted",
    "testSuiteFinished",
    "testStarted",
    "testFinished",
]
AttributeValue = Union[str, int]

# Single pass: substituted text is never rescanned.
_ESCAPES = str.maketrans(
    {
        "|": "||",
        "'": "|'",
        "\n": "|n",
        "\r": "|r",
        "]": "|]",
        "[": "|[",
    }
)


class Dto(BaseModel):
    pass


class ServiceMessage(Dto):
    name: EventName
    attributes: Dict[str, AttributeValue] = {}


def escape(text: str) -> str:
    return text.translate(_ESCAPES)


def to_milliseconds(seconds: float) -> int:
    milliseconds = (Decimal(str(seconds)) * 1000).quantize(
        Decimal(1), rounding=ROUND_HALF_UP
    )
    return max(int(milliseconds), 0)


def format_message(message: ServiceMessage, flow_id: int = 0) -> str:
    attributes = dict(message.attributes)
    if flow_id != 0:
        attributes["flowId"] = flow_id
    rendered = "".join(
        f" {key}='{escape(str(value))}'" for key, value in attributes.items()
    )
    return f"\n##teamcity[{message.name}{rendered}]\n"


class ServiceMessageWriter:
    """Writes service messages for one test process to a text stream."""

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream
        self.flow_id: int = 0

    def write(self, text: str) -> None:
        self.stream.write(text)
        self.stream.flush()

    def emit(self, name: EventName, attributes: Dict[str, AttributeValue]) -> None:
        message = ServiceMessage(name=name, attributes=attributes)
        self.write(format_message(message, flow_id=self.flow_id))
