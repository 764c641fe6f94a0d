import logging
import os
from typing import Dict, Optional, TextIO, Tuple

from pytest_teamcity_report import __version__
from pytest_teamcity_report.messages import (
    PROTOCOL,
    AttributeValue,
    ServiceMessageWriter,
    to_milliseconds,
)
from pytest_teamcity_report.types import (
    CaseHandle,
    FileBackedSuite,
    RunResult,
    SecondaryPrinter,
    SuiteHandle,
)

logger = logging.getLogger(__name__)

NAME = "name"
LOCATION_HINT = "locationHint"
DURATION = "duration"
TEST_SUITE_STARTED = "testSuiteStarted"
TEST_SUITE_FINISHED = "testSuiteFinished"


def suite_identity(suite: SuiteHandle) -> Tuple[str, str]:
    if isinstance(suite, FileBackedSuite):
        return suite.name, PROTOCOL + suite.name
    return suite.name[2:], PROTOCOL + suite.file_name


def suite_finish_attributes(suite: SuiteHandle) -> Dict[str, AttributeValue]:
    name, location_hint = suite_identity(suite)
    if isinstance(suite, FileBackedSuite):
        return {NAME: name, LOCATION_HINT: location_hint}
    return {NAME: name}


def case_identity(test: CaseHandle) -> Tuple[str, str]:
    return test.name, PROTOCOL + test.canonical


class TeamCityReporter:
    """Methods defined in order of execution.

    Every callback writes its service message first and then forwards to the
    secondary printer, when there is one. Outcome callbacks only forward: the
    protocol has no dedicated failure event here.
    """

    def __init__(
        self,
        stream: TextIO,
        printer: Optional[SecondaryPrinter] = None,
        version: str = __version__,
    ) -> None:
        self.writer = ServiceMessageWriter(stream)
        self.printer = printer
        self.is_summary_test_count_printed = False
        self.test_count = 0
        self.assertion_count = 0

        self.writer.write("\n")
        self.writer.write(f"pytest-teamcity-report {version}\n")

    @property
    def flow_id(self) -> int:
        return self.writer.flow_id

    def suite_started(self, suite: SuiteHandle) -> None:
        self.writer.flow_id = os.getpid()

        if not self.is_summary_test_count_printed:
            self.writer.emit("testCount", {"count": suite.count})
            self.is_summary_test_count_printed = True

        name, location_hint = suite_identity(suite)
        logger.debug("suite started: %s (%s)", name, suite.kind)
        self.writer.emit(
            TEST_SUITE_STARTED, {NAME: name, LOCATION_HINT: location_hint}
        )

        if self.printer is not None:
            self.printer.suite_started(suite)

    def test_started(self, test: CaseHandle) -> None:
        name, location_hint = case_identity(test)
        self.writer.emit("testStarted", {NAME: name, LOCATION_HINT: location_hint})

        if self.printer is not None:
            self.printer.test_started(test)

    def add_error(self, test: CaseHandle, message: str, elapsed: float) -> None:
        if self.printer is not None:
            self.printer.add_error(test, message, elapsed)

    def add_failure(self, test: CaseHandle, message: str, elapsed: float) -> None:
        if self.printer is not None:
            self.printer.add_failure(test, message, elapsed)

    def add_warning(self, test: CaseHandle, message: str, elapsed: float) -> None:
        if self.printer is not None:
            self.printer.add_warning(test, message, elapsed)

    def add_incomplete(self, test: CaseHandle, message: str, elapsed: float) -> None:
        if self.printer is not None:
            self.printer.add_incomplete(test, message, elapsed)

    def add_risky(self, test: CaseHandle, message: str, elapsed: float) -> None:
        if self.printer is not None:
            self.printer.add_risky(test, message, elapsed)

    def add_skipped(self, test: CaseHandle, message: str, elapsed: float) -> None:
        if self.printer is not None:
            self.printer.add_skipped(test, message, elapsed)

    def test_finished(self, test: CaseHandle, elapsed: float) -> None:
        if test.assertion_count is None:
            self.assertion_count += 1
        else:
            self.assertion_count += test.assertion_count
        self.test_count += 1

        self.writer.emit(
            "testFinished", {NAME: test.name, DURATION: to_milliseconds(elapsed)}
        )

        if self.printer is not None:
            self.printer.test_finished(test, elapsed)

    def suite_finished(self, suite: SuiteHandle) -> None:
        self.writer.emit(TEST_SUITE_FINISHED, suite_finish_attributes(suite))
        logger.debug("suite finished: %s", suite.name)

        if self.printer is not None:
            self.printer.suite_finished(suite)

    def print_result(self) -> None:
        if self.printer is not None:
            self.printer.print_result(
                RunResult(tests=self.test_count, assertions=self.assertion_count)
            )
